"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from facenet_match.model import EmbeddingModel  # noqa: E402
from facenet_match.types import ElementType, PixelBuffer, PixelFormat  # noqa: E402


class FakeEmbeddingModel(EmbeddingModel):
    """In-process stand-in for the TFLite model."""

    def __init__(
        self,
        input_type=ElementType.FLOAT32,
        size=(160, 160),
        output=None,
        error=None,
        delay=0.0,
    ):
        self._input_type = input_type
        self._size = size
        self.output = output
        self.error = error
        self.delay = delay
        self.calls = []

    @property
    def input_shape(self):
        width, height = self._size
        return (1, height, width, 3)

    @property
    def input_type(self):
        return self._input_type

    def invoke(self, tensor):
        self.calls.append(tensor)
        if self.delay:
            import time
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.output is not None:
            return self.output
        # Deterministic 512D output derived from the input
        flat = tensor.astype(np.float32).ravel()
        return np.resize(flat, (1, 512)) + 1.0


@pytest.fixture
def fake_model():
    """Float32-input fake model."""
    return FakeEmbeddingModel()


@pytest.fixture
def quantized_model():
    """uint8-input fake model."""
    return FakeEmbeddingModel(input_type=ElementType.UINT8)


@pytest.fixture
def sample_image():
    """Create a sample BGR test image."""
    rng = np.random.default_rng(0)
    return rng.integers(0, 255, (120, 100, 3), dtype=np.uint8)


@pytest.fixture
def sample_buffer(sample_image):
    """Create a sample BGRA pixel buffer."""
    return PixelBuffer.from_bgr(sample_image)


@pytest.fixture
def random_embedding():
    """Factory for normalized random embeddings."""
    rng = np.random.default_rng(42)

    def make(dim=512):
        v = rng.standard_normal(dim).astype(np.float32)
        return v / np.linalg.norm(v)

    return make


def make_buffer(rgb: np.ndarray, pixel_format: PixelFormat, alpha: int = 255) -> PixelBuffer:
    """Pack an H x W x 3 RGB array into a 32-bit buffer of the given layout."""
    h, w, _ = rgb.shape
    a = np.full((h, w, 1), alpha, dtype=np.uint8)
    r, g, b = rgb[..., 0:1], rgb[..., 1:2], rgb[..., 2:3]
    if pixel_format == PixelFormat.ARGB32:
        data = np.concatenate([a, r, g, b], axis=2)
    elif pixel_format == PixelFormat.BGRA32:
        data = np.concatenate([b, g, r, a], axis=2)
    else:
        data = np.concatenate([r, g, b, a], axis=2)
    return PixelBuffer(data=np.ascontiguousarray(data), pixel_format=pixel_format)


@pytest.fixture
def buffer_factory():
    """Factory packing RGB arrays into pixel buffers."""
    return make_buffer
