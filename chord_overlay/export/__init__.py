"""
Export module for Chord Overlay.

Provides the MusicXML chord chart exporter.
"""

from chord_overlay.export.musicxml_exporter import ChordChartExporter, ChordChartExportOptions

__all__ = ["ChordChartExporter", "ChordChartExportOptions"]
