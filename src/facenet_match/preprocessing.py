"""Pixel buffer to model input tensor conversion."""

import logging
from typing import Tuple

import cv2
import numpy as np

from .errors import ConversionFailedError, OutOfMemoryError, UnsupportedFormatError
from .types import CANONICAL_FORMAT, FaceRegion, PixelBuffer, PixelFormat

logger = logging.getLogger(__name__)

# Channel indices that reorder each supported layout into BGRA
_CANONICAL_ORDER = {
    PixelFormat.ARGB32: [3, 2, 1, 0],
    PixelFormat.BGRA32: [0, 1, 2, 3],
    PixelFormat.RGBA32: [2, 1, 0, 3],
}


def _check_buffer(buffer: PixelBuffer) -> None:
    """Raise UnsupportedFormatError unless the buffer is a supported layout."""
    if not isinstance(buffer.pixel_format, PixelFormat):
        raise UnsupportedFormatError(buffer.pixel_format)

    data = buffer.data
    if not isinstance(data, np.ndarray):
        raise UnsupportedFormatError(buffer.pixel_format, "pixel data is not an array")
    if data.ndim != 3 or data.shape[2] != 4:
        raise UnsupportedFormatError(
            buffer.pixel_format, f"expected H x W x 4 pixels, got shape {data.shape}"
        )
    if data.dtype != np.uint8:
        raise UnsupportedFormatError(
            buffer.pixel_format, f"expected 8-bit channels, got {data.dtype}"
        )


def standardize(values: np.ndarray) -> np.ndarray:
    """Standardize a whole tensor to zero mean and unit variance.

    Uses the population mean and standard deviation over every element (not
    per channel). The standard deviation is floored at ``1 / sqrt(N)`` so a
    uniform image yields zeros instead of dividing by zero.

    Args:
        values: Array of any shape

    Returns:
        float32 array of the same shape
    """
    floats = values.astype(np.float32)
    count = floats.size
    if count == 0:
        raise ConversionFailedError("Cannot standardize an empty tensor")

    mean = floats.mean(dtype=np.float64)
    std = np.sqrt(np.mean(np.square(floats - mean, dtype=np.float64)))
    min_std = 1.0 / np.sqrt(count)
    std = max(std, min_std)

    return ((floats - mean) / std).astype(np.float32)


def crop_face(
    buffer: PixelBuffer,
    region: FaceRegion,
    min_size: int = 20,
) -> PixelBuffer:
    """Crop a face region out of a frame.

    The region is re-clamped to the image bounds first. The crop keeps the
    source pixel format.

    Args:
        buffer: Full frame
        region: Face rectangle in pixel coordinates
        min_size: Crops whose clamped width or height is not larger than
                  this are rejected

    Returns:
        New PixelBuffer holding a copy of the face pixels

    Raises:
        UnsupportedFormatError: Frame is not a supported layout
        ConversionFailedError: Region is too small or outside the image
    """
    _check_buffer(buffer)

    safe = region.clamp(buffer.width, buffer.height)
    if safe.width <= min_size or safe.height <= min_size:
        raise ConversionFailedError(f"Face region too small: {safe.bbox}")

    x, y, w, h = safe.bbox
    with buffer.locked() as pixels:
        face = pixels[y:y + h, x:x + w]
        if face.size == 0:
            raise ConversionFailedError(f"Face region outside image: {region.bbox}")
        try:
            face = face.copy()
        except MemoryError as e:
            raise OutOfMemoryError("Error: out of memory") from e

    return PixelBuffer(data=face, pixel_format=buffer.pixel_format)


class ImagePreprocessor:
    """Converts pixel buffers into (1, H, W, 3) model input tensors.

    Holds no shared state, so one instance can be used from any thread.
    """

    def __init__(self, interpolation: int = cv2.INTER_LINEAR):
        """Initialize preprocessor.

        Args:
            interpolation: OpenCV interpolation flag used for resizing
        """
        self.interpolation = interpolation

    def preprocess(
        self,
        buffer: PixelBuffer,
        target_size: Tuple[int, int],
        quantized: bool,
    ) -> np.ndarray:
        """Resize, drop alpha and encode a pixel buffer for the model.

        Args:
            buffer: Source pixels in any supported layout
            target_size: Model input size as (width, height)
            quantized: If True return raw uint8 RGB, otherwise standardized float32

        Returns:
            Tensor of shape (1, height, width, 3)

        Raises:
            UnsupportedFormatError: Buffer layout is not supported
            ConversionFailedError: Resize or channel conversion failed
            OutOfMemoryError: A destination buffer could not be allocated
        """
        _check_buffer(buffer)

        width, height = (int(v) for v in target_size)
        if width <= 0 or height <= 0:
            raise ConversionFailedError(f"Invalid target size: {target_size}")

        with buffer.locked() as pixels:
            canonical = self._resize(pixels, buffer.pixel_format, (width, height))

        rgb = self._drop_alpha(canonical)

        if quantized:
            tensor = rgb
        else:
            try:
                tensor = standardize(rgb)
            except MemoryError as e:
                raise OutOfMemoryError("Error: out of memory") from e

        return np.expand_dims(tensor, axis=0)

    def _resize(
        self,
        pixels: np.ndarray,
        pixel_format: PixelFormat,
        size: Tuple[int, int],
    ) -> np.ndarray:
        """Scale X and Y independently to ``size`` and emit canonical BGRA."""
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ConversionFailedError("Cannot resize an empty pixel buffer")

        try:
            resized = cv2.resize(pixels, size, interpolation=self.interpolation)
            if pixel_format == CANONICAL_FORMAT:
                return resized
            return np.ascontiguousarray(resized[..., _CANONICAL_ORDER[pixel_format]])
        except cv2.error as e:
            raise ConversionFailedError(f"Failed to resize pixel buffer: {e}") from e
        except MemoryError as e:
            raise OutOfMemoryError("Error: out of memory") from e

    @staticmethod
    def _drop_alpha(canonical: np.ndarray) -> np.ndarray:
        """Convert canonical BGRA pixels to 3-channel RGB."""
        try:
            return cv2.cvtColor(canonical, cv2.COLOR_BGRA2RGB)
        except cv2.error as e:
            raise ConversionFailedError(
                f"Failed to convert the image buffer to RGB data: {e}"
            ) from e
        except MemoryError as e:
            raise OutOfMemoryError("Error: out of memory") from e
