"""
Chord Chart Exporter - Export detected chords as a MusicXML lead sheet.

Each chord becomes a chord symbol over a whole-bar rest; every printed
line of the source page starts a new system.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence, Union
from dataclasses import dataclass
import logging

from music21 import exceptions21, expressions, harmony, layout, metadata, note, stream

from chord_overlay.config import get_config
from chord_overlay.core.models import ChordToken, TranspositionState, sort_reading_order
from chord_overlay.core.transposer import transpose_tokens

logger = logging.getLogger(__name__)

# music21 spells flats with "-"
_FLAT_NOTE = re.compile(r"(^|/)([A-G])b")


@dataclass
class ChordChartExportOptions:
    """Options for chord chart export."""

    title: Optional[str] = None  # None = configured title
    compressed: bool = False  # Export as .mxl (compressed) vs .musicxml
    line_tolerance_pct: Optional[float] = None  # None = configured tolerance


def to_music21_figure(chord: str) -> str:
    """Convert a chord symbol to music21's spelling, e.g. "Bb/D" -> "B-/D"."""
    return _FLAT_NOTE.sub(r"\1\2-", chord)


def group_printed_lines(
    tokens: Sequence[ChordToken],
    tolerance_pct: float,
) -> List[List[ChordToken]]:
    """Split tokens (in reading order) into printed lines."""
    lines: List[List[ChordToken]] = []
    anchor = None

    for token in tokens:
        position = (token.page_index, token.y_pct)
        if (
            anchor is None
            or position[0] != anchor[0]
            or abs(position[1] - anchor[1]) >= tolerance_pct
        ):
            lines.append([])
            anchor = position
        lines[-1].append(token)

    for line in lines:
        line.sort(key=lambda t: t.x_pct)
    return lines


class ChordChartExporter:
    """
    Export chord tokens to MusicXML.

    Tokens are written in reading order under the given transposition, so
    the chart matches what the overlay shows.
    """

    def __init__(self, options: Optional[ChordChartExportOptions] = None):
        """
        Initialize the exporter.

        Args:
            options: Export options, or None for defaults
        """
        self.options = options or ChordChartExportOptions()
        config = get_config().export
        self.title = self.options.title or config.title
        self.line_tolerance_pct = (
            self.options.line_tolerance_pct
            if self.options.line_tolerance_pct is not None
            else config.line_tolerance_pct
        )
        self.compressed = self.options.compressed or config.compressed

    def _chord_element(self, text: str):
        try:
            return harmony.ChordSymbol(to_music21_figure(text))
        except (exceptions21.Music21Exception, ValueError, KeyError, IndexError) as e:
            logger.warning(f"Writing {text!r} as text, not a chord symbol: {e}")
            return expressions.TextExpression(text)

    def build_score(
        self,
        tokens: Sequence[ChordToken],
        state: Optional[TranspositionState] = None,
    ) -> stream.Score:
        """
        Build a music21 score from chord tokens.

        Args:
            tokens: Chord tokens of one or more pages
            state: Transposition to apply, or None for the original key

        Returns:
            Score with one part and one measure per chord
        """
        state = state or TranspositionState()
        ordered = sort_reading_order(transpose_tokens(tokens, state))

        score = stream.Score()
        score.metadata = metadata.Metadata()
        score.metadata.title = self.title

        part = stream.Part()
        measure_number = 1

        for line_index, line in enumerate(group_printed_lines(ordered, self.line_tolerance_pct)):
            for position, token in enumerate(line):
                measure = stream.Measure(number=measure_number)
                if position == 0 and line_index > 0:
                    measure.insert(0, layout.SystemLayout(isNew=True))
                measure.insert(0, self._chord_element(token.text))
                measure.insert(0, note.Rest(quarterLength=4.0))
                part.append(measure)
                measure_number += 1

        score.append(part)
        return score

    def export(
        self,
        tokens: Sequence[ChordToken],
        output_path: Union[str, Path],
        state: Optional[TranspositionState] = None,
    ) -> Path:
        """
        Export chord tokens to a MusicXML file.

        Args:
            tokens: Chord tokens to write
            output_path: Output file path
            state: Transposition to apply

        Returns:
            Path to created MusicXML file
        """
        output_path = Path(output_path)

        # Determine format based on extension or options
        if self.compressed or output_path.suffix.lower() == '.mxl':
            format_type = 'mxl'
            if output_path.suffix.lower() != '.mxl':
                output_path = output_path.with_suffix('.mxl')
        else:
            format_type = 'musicxml'
            if output_path.suffix.lower() not in ['.musicxml', '.xml']:
                output_path = output_path.with_suffix('.musicxml')

        # Create output directory if needed
        output_path.parent.mkdir(parents=True, exist_ok=True)

        score = self.build_score(tokens, state)
        score.write(format_type, fp=str(output_path))

        logger.info(f"Exported {len(tokens)} chord(s) to: {output_path}")
        return output_path

    def export_to_string(
        self,
        tokens: Sequence[ChordToken],
        state: Optional[TranspositionState] = None,
    ) -> str:
        """
        Export chord tokens to a MusicXML string.

        Returns:
            MusicXML content as string
        """
        from music21.musicxml import m21ToXml

        exporter = m21ToXml.GeneralObjectExporter(self.build_score(tokens, state))
        return exporter.parse().decode('utf-8')

    @staticmethod
    def get_supported_extensions() -> list:
        """Get list of supported file extensions."""
        return [".musicxml", ".xml", ".mxl"]
