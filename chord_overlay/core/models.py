"""
Data model for the chord overlay engine.

Page bitmaps, cropped strips and recognizer fragments are scan-scoped
values. Chord tokens and corrections live as long as the open document.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from chord_overlay.core.chord_grammar import normalize_semitones
from chord_overlay.core.errors import InvalidInput


@dataclass(frozen=True, eq=False)
class PageBitmap:
    """
    Read-only RGBA pixel grid of one rendered page.

    ``pixels`` has shape (height, width, 4) and dtype uint8.
    """

    pixels: np.ndarray

    def __post_init__(self):
        pixels = self.pixels
        if not isinstance(pixels, np.ndarray) or pixels.ndim != 3 or pixels.shape[2] != 4:
            raise InvalidInput("Page bitmap must be an (height, width, 4) array")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidInput("Page bitmap is empty")
        if pixels.dtype != np.uint8:
            raise InvalidInput(f"Page bitmap must be uint8, got {pixels.dtype}")
        frozen = np.array(pixels, copy=True)
        frozen.setflags(write=False)
        object.__setattr__(self, "pixels", frozen)

    @classmethod
    def from_array(cls, array: Any) -> "PageBitmap":
        """
        Build a bitmap from a grayscale, RGB or RGBA array.

        Args:
            array: Array-like of shape (h, w), (h, w, 3) or (h, w, 4)

        Returns:
            PageBitmap with an opaque alpha channel added where missing
        """
        try:
            data = np.asarray(array)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Could not read bitmap data: {e}") from e

        if data.size == 0:
            raise InvalidInput("Page bitmap is empty")
        if data.dtype != np.uint8:
            if not np.issubdtype(data.dtype, np.number):
                raise InvalidInput(f"Unsupported bitmap dtype: {data.dtype}")
            data = np.clip(data, 0, 255).astype(np.uint8)

        if data.ndim == 2:
            data = np.stack([data, data, data], axis=-1)
        if data.ndim != 3 or data.shape[2] not in (3, 4):
            raise InvalidInput(f"Unsupported bitmap shape: {data.shape}")
        if data.shape[2] == 3:
            alpha = np.full(data.shape[:2] + (1,), 255, dtype=np.uint8)
            data = np.concatenate([data, alpha], axis=-1)

        return cls(data)

    @classmethod
    def from_image(cls, image) -> "PageBitmap":
        """Build a bitmap from a Pillow image."""
        return cls(np.asarray(image.convert("RGBA"), dtype=np.uint8))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class ChordStrip:
    """
    A horizontal band cropped from a page for text recognition.

    ``top_y`` and ``height`` are in page pixels (before downscaling);
    ``scale`` is the factor applied to produce ``cropped_image``.
    """

    id: str
    top_y: int
    height: int
    cropped_image: bytes = field(repr=False)
    scale: float = 1.0

    def to_page_point(self, x: float, y: float) -> "Point":
        """Map a point in the cropped image back onto the page."""
        return Point(x / self.scale, self.top_y + y / self.scale)


class Point(NamedTuple):
    x: float
    y: float


Quad = Tuple[Point, Point, Point, Point]


def _coerce_point(value: Any) -> Point:
    # Vertex dicts may omit zero-valued coordinates
    if isinstance(value, dict):
        return Point(float(value.get("x", 0.0)), float(value.get("y", 0.0)))
    x, y = value
    return Point(float(x), float(y))


@dataclass(frozen=True)
class RecognizedFragment:
    """
    One piece of text returned by the recognizer.

    The quad lists the corners clockwise from top-left:
    top-left, top-right, bottom-right, bottom-left.
    """

    text: str
    quad: Quad

    def __post_init__(self):
        if not isinstance(self.text, str):
            raise InvalidInput(f"Fragment text must be a string, got {type(self.text).__name__}")
        try:
            points = tuple(_coerce_point(p) for p in self.quad)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInput(f"Malformed fragment quad for {self.text!r}: {e}") from e
        if len(points) != 4:
            raise InvalidInput(
                f"Fragment quad for {self.text!r} has {len(points)} points, expected 4"
            )
        object.__setattr__(self, "quad", points)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecognizedFragment":
        """
        Create from a recognizer response item.

        The corners may be given as ``quad``, ``boundingQuad`` or
        ``bounding_quad``.
        """
        if "text" not in data:
            raise InvalidInput("Fragment is missing 'text'")
        quad = data.get("quad")
        if quad is None:
            quad = data.get("boundingQuad", data.get("bounding_quad"))
        if quad is None:
            raise InvalidInput(f"Fragment {data['text']!r} is missing 'quad'")
        return cls(text=data["text"], quad=quad)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "quad": [[p.x, p.y] for p in self.quad]}

    @property
    def left(self) -> float:
        return self.quad[0].x

    @property
    def right(self) -> float:
        return self.quad[1].x

    @property
    def top(self) -> float:
        return self.quad[0].y

    @property
    def bottom(self) -> float:
        return self.quad[2].y

    def on_page(self, strip: ChordStrip) -> "RecognizedFragment":
        """Translate a fragment from strip-image space into page space."""
        return RecognizedFragment(
            text=self.text,
            quad=tuple(strip.to_page_point(p.x, p.y) for p in self.quad),
        )


class TokenOrigin(Enum):
    """Where a chord token came from."""
    DETECTED = "detected"
    ADDED = "added"


@dataclass
class ChordToken:
    """
    A chord symbol positioned on a page.

    Positions are percentages of the page size so the token renders at any
    zoom; ``px_height`` is the source pixel height used for font sizing, or
    None when the chord was placed by hand on a page with no detected chords.
    ``text`` is ``original_text`` under the current transposition.
    """

    text: str
    original_text: str
    x_pct: float
    y_pct: float
    height_pct: float
    px_height: Optional[int]
    origin: TokenOrigin = TokenOrigin.DETECTED
    width_pct: float = 0.0
    page_index: int = 0
    correction_id: Optional[str] = None

    def with_text(self, text: str) -> "ChordToken":
        return replace(self, text=text)


class CorrectionKind(Enum):
    """Type of user edit."""
    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class Correction:
    """A user edit layered over the detected chords of a page."""

    id: str
    kind: CorrectionKind
    x_pct: float
    y_pct: float
    text: str
    page_index: int

    @classmethod
    def add(cls, x_pct: float, y_pct: float, text: str, page_index: int) -> "Correction":
        """Create an edit that places a chord where none was detected."""
        return cls(str(uuid.uuid4()), CorrectionKind.ADD, x_pct, y_pct, text.strip(), page_index)

    @classmethod
    def remove(cls, x_pct: float, y_pct: float, text: str, page_index: int) -> "Correction":
        """Create an edit that hides a detected chord near a position."""
        return cls(str(uuid.uuid4()), CorrectionKind.REMOVE, x_pct, y_pct, text, page_index)

    @classmethod
    def remove_token(cls, token: ChordToken) -> "Correction":
        """Create a suppression for a detected token at its own position."""
        return cls.remove(token.x_pct, token.y_pct, token.original_text, token.page_index)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "x_pct": self.x_pct,
            "y_pct": self.y_pct,
            "text": self.text,
            "page_index": self.page_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Correction":
        try:
            return cls(
                id=str(data["id"]),
                kind=CorrectionKind(data["kind"]),
                x_pct=float(data["x_pct"]),
                y_pct=float(data["y_pct"]),
                text=str(data.get("text", "")),
                page_index=int(data["page_index"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInput(f"Malformed correction: {e}") from e


@dataclass(frozen=True)
class TranspositionState:
    """
    Document-wide transposition applied when rendering chord tokens.

    ``semitone_offset`` is stored normalized (see ``normalize_semitones``).
    ``prefer_flats`` of None keeps each chord's own accidental style.
    """

    semitone_offset: int = 0
    prefer_flats: Optional[bool] = None

    def __post_init__(self):
        object.__setattr__(self, "semitone_offset", normalize_semitones(self.semitone_offset))

    def shifted(self, semitones: int) -> "TranspositionState":
        """Get a new state moved up (or down) by some semitones."""
        return replace(self, semitone_offset=self.semitone_offset + semitones)

    @classmethod
    def from_capo(cls, capo, prefer_flats: Optional[bool] = None) -> "TranspositionState":
        """Get the state that displays chord shapes for a capo position."""
        return cls(semitone_offset=capo.transposition, prefer_flats=prefer_flats)

    @property
    def is_identity(self) -> bool:
        return self.semitone_offset == 0 and self.prefer_flats is None


def sort_reading_order(tokens: Sequence[ChordToken]) -> list:
    """Order tokens page by page, top to bottom, left to right."""
    return sorted(tokens, key=lambda t: (t.page_index, t.y_pct, t.x_pct))
