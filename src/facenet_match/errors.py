"""Exception hierarchy for the embedding pipeline.

Every failure the pipeline can surface for a single frame is a subclass of
FaceNetError, so callers can catch one type per frame and move on to the next.
"""

from typing import Optional


class FaceNetError(Exception):
    """Base class for all pipeline errors."""


class UnsupportedFormatError(FaceNetError):
    """Pixel buffer is not one of the supported 32-bit layouts."""

    def __init__(self, pixel_format: object, detail: Optional[str] = None):
        message = f"Unsupported pixel format: {pixel_format!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.pixel_format = pixel_format


class ConversionFailedError(FaceNetError):
    """Resize, crop or channel conversion failed."""


class OutOfMemoryError(FaceNetError):
    """A destination buffer could not be allocated."""


class ShapeMismatchError(FaceNetError):
    """Model output length differs from the expected embedding dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Output dimension mismatch. Expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class InferenceFailedError(FaceNetError):
    """Model invocation failed.

    Allocation failures, engine faults and malformed input are all reported
    as this one kind. The underlying exception, when there is one, is kept
    as ``__cause__``.
    """


class IncompatibleDimensionsError(FaceNetError):
    """Two embeddings of different length were compared."""

    def __init__(self, query_dim: int, candidate_dim: int, label: Optional[str] = None):
        message = (
            "Cannot calculate similarity between embeddings of different "
            f"dimensions ({query_dim} vs {candidate_dim})"
        )
        if label is not None:
            message = f"{message} for '{label}'"
        super().__init__(message)
        self.query_dim = query_dim
        self.candidate_dim = candidate_dim
        self.label = label


class ReportingError(FaceNetError):
    """Uploading a match result failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
