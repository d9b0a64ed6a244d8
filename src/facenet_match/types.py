"""Core data types for the embedding pipeline."""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple

import cv2
import numpy as np


class PixelFormat(Enum):
    """Supported 32-bit interleaved pixel layouts, named by byte order."""
    ARGB32 = "argb32"
    BGRA32 = "bgra32"
    RGBA32 = "rgba32"


# Layout produced by the resize step, whatever the input layout was
CANONICAL_FORMAT = PixelFormat.BGRA32


class ElementType(Enum):
    """Element type of a model input tensor."""
    UINT8 = "uint8"
    FLOAT32 = "float32"

    @classmethod
    def from_dtype(cls, dtype) -> "ElementType":
        """Map a numpy dtype (or dtype-like) to an ElementType."""
        name = np.dtype(dtype).name
        for member in cls:
            if member.value == name:
                return member
        raise ValueError(f"Unsupported tensor element type: {name}")


@dataclass
class PixelBuffer:
    """A 2-D grid of 32-bit pixels in one of the supported layouts.

    ``data`` has shape (height, width, 4) and dtype uint8. The pipeline only
    borrows the buffer; use :meth:`locked` for read access.
    """

    data: np.ndarray
    pixel_format: PixelFormat = CANONICAL_FORMAT

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def shape(self) -> tuple:
        return self.data.shape

    @contextmanager
    def locked(self) -> Iterator[np.ndarray]:
        """Borrow the pixel data read-only for the duration of the block.

        The array is marked non-writeable while the block runs and its
        previous flag is restored on every exit path.
        """
        was_writeable = self.data.flags.writeable
        self.data.flags.writeable = False
        try:
            yield self.data
        finally:
            if was_writeable:
                self.data.flags.writeable = True

    @classmethod
    def from_bgr(cls, image: np.ndarray) -> "PixelBuffer":
        """Wrap a 3-channel OpenCV BGR image as a BGRA32 buffer."""
        if image.ndim == 2:
            bgra = cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
        elif image.shape[2] == 4:
            bgra = image.copy()
        else:
            bgra = cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
        return cls(data=np.ascontiguousarray(bgra, dtype=np.uint8),
                   pixel_format=PixelFormat.BGRA32)


@dataclass
class FaceRegion:
    """Face rectangle in image pixel coordinates (not normalized)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        """Return bounding box as integer (x, y, w, h)."""
        return (int(self.x), int(self.y), int(self.width), int(self.height))

    def clamp(self, image_width: int, image_height: int) -> "FaceRegion":
        """Return this region clamped to lie within the image bounds."""
        safe_x = max(0.0, min(float(self.x), image_width - 1.0))
        safe_y = max(0.0, min(float(self.y), image_height - 1.0))
        safe_w = min(float(self.width), image_width - safe_x)
        safe_h = min(float(self.height), image_height - safe_y)
        return FaceRegion(safe_x, safe_y, max(0.0, safe_w), max(0.0, safe_h))


@dataclass
class FaceEmbedding:
    """A normalized face embedding and what is known about it."""

    embedding: np.ndarray
    face_rect: Optional[FaceRegion] = None
    score: Optional[float] = None
    label: Optional[str] = None

    @property
    def dim(self) -> int:
        return int(self.embedding.shape[0])


@dataclass
class FaceNetResult:
    """Output of one extraction: embedding plus model invocation latency."""

    embedding: FaceEmbedding
    inference_time_ms: float


class MatchCategory(Enum):
    """Outcome of matching a query against the gallery."""
    MATCH = "match"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class MatchResult:
    """Result of a gallery match.

    ``score`` is the cosine similarity of the winning candidate, in [-1, 1].
    A no-match carries neither label nor score.
    """

    category: MatchCategory = MatchCategory.NO_MATCH
    label: Optional[str] = None
    score: Optional[float] = None

    @classmethod
    def match(cls, label: str, score: float) -> "MatchResult":
        return cls(MatchCategory.MATCH, label, float(score))

    @classmethod
    def no_match(cls) -> "MatchResult":
        return cls()

    @property
    def is_match(self) -> bool:
        return self.category == MatchCategory.MATCH

    @property
    def display_label(self) -> str:
        """Label for overlays and logs ("Unknown" when nothing matched)."""
        return self.label if self.is_match else "Unknown"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "matched": self.is_match,
            "label": self.label,
            "score": self.score,
        }
