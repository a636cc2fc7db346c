"""
Configuration module for Chord Overlay.

Holds the tunable heuristics of the scanner, classifier, key estimator and
correction overlay, and persists them as JSON in the user's home directory.
"""

import json
import logging
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class ScannerConfig:
    """Configuration for strip scanning."""
    ink_threshold: int = 200  # average RGB below this counts as ink
    noise_threshold: int = 5  # ink pixels a row needs to be part of a block
    min_block_height: int = 10  # blocks must be taller than this
    padding: int = 10  # rows added above and below each strip
    max_strip_height: int = 96  # strips are downscaled to at most this height
    jpeg_quality: int = 80


@dataclass
class ClassifierConfig:
    """Configuration for chord token classification."""
    line_tolerance: float = 10.0  # px between fragment tops on the same line
    merge_gap: float = 15.0  # px between fragments that get stitched together


@dataclass
class KeyEstimatorConfig:
    """Positional weights for key estimation."""
    occurrence_weight: int = 1
    first_weight: int = 10
    second_weight: int = 2
    last_weight: int = 3


@dataclass
class OverlayConfig:
    """Configuration for merging corrections with detected chords."""
    suppression_tolerance: float = 3.0  # percent of page size, on each axis
    added_width_pct: float = 6.0
    added_height_pct: float = 3.0


@dataclass
class PipelineConfig:
    """Configuration for page scanning."""
    max_workers: int = 1  # pages scanned in parallel


@dataclass
class TextLayerConfig:
    """Configuration for reading chords from a PDF text layer."""
    merge_gap_ratio: float = 1.0  # stitch words closer than this many font heights
    line_tolerance_ratio: float = 0.5  # font heights between tops on the same line


@dataclass
class ExportConfig:
    """Configuration for chord chart export."""
    title: str = "Chord Chart"
    compressed: bool = False
    line_tolerance_pct: float = 1.0  # tokens this close vertically share a system


@dataclass
class Config:
    """
    Main configuration class for Chord Overlay.

    Handles loading/saving settings for every engine component.
    """

    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    key_estimator: KeyEstimatorConfig = field(default_factory=KeyEstimatorConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    text_layer: TextLayerConfig = field(default_factory=TextLayerConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    # Application directories
    _config_dir: Path = field(default_factory=lambda: Path.home() / ".chord_overlay")
    _config_file: Path = field(default=None)

    def __post_init__(self):
        """Initialize configuration paths."""
        self._config_dir = Path(self._config_dir)
        self._config_file = self._config_dir / "config.json"

    @property
    def config_file(self) -> Path:
        return self._config_file

    def to_dict(self) -> dict:
        return {
            "scanner": asdict(self.scanner),
            "classifier": asdict(self.classifier),
            "key_estimator": asdict(self.key_estimator),
            "overlay": asdict(self.overlay),
            "pipeline": asdict(self.pipeline),
            "text_layer": asdict(self.text_layer),
            "export": asdict(self.export),
        }

    def save(self) -> None:
        """Save configuration to disk."""
        self._config_dir.mkdir(parents=True, exist_ok=True)
        with open(self._config_file, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> "Config":
        """Load configuration from disk or create default."""
        config = cls() if config_dir is None else cls(_config_dir=Path(config_dir))

        if config._config_file.exists():
            try:
                with open(config._config_file, "r") as f:
                    data = json.load(f)

                if "scanner" in data:
                    config.scanner = ScannerConfig(**data["scanner"])
                if "classifier" in data:
                    config.classifier = ClassifierConfig(**data["classifier"])
                if "key_estimator" in data:
                    config.key_estimator = KeyEstimatorConfig(**data["key_estimator"])
                if "overlay" in data:
                    config.overlay = OverlayConfig(**data["overlay"])
                if "pipeline" in data:
                    config.pipeline = PipelineConfig(**data["pipeline"])
                if "text_layer" in data:
                    config.text_layer = TextLayerConfig(**data["text_layer"])
                if "export" in data:
                    config.export = ExportConfig(**data["export"])

            except (json.JSONDecodeError, TypeError, KeyError) as e:
                logger.warning(f"Could not load config file: {e}")

        return config


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Replace the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration to defaults."""
    global _config
    _config = Config()
    _config.save()
