"""Tests for embedding extraction."""

import time

import numpy as np
import pytest

from conftest import FakeEmbeddingModel
from facenet_match.errors import (
    InferenceFailedError,
    ShapeMismatchError,
    UnsupportedFormatError,
)
from facenet_match.extractor import EmbeddingExtractor
from facenet_match.preprocessing import ImagePreprocessor
from facenet_match.types import ElementType, PixelBuffer


class SlowPreprocessor(ImagePreprocessor):
    def preprocess(self, buffer, target_size, quantized):
        time.sleep(0.2)
        return super().preprocess(buffer, target_size, quantized)


class TestEmbeddingExtractor:
    """Test cases for EmbeddingExtractor."""

    def test_float_model_input(self, fake_model, sample_buffer):
        EmbeddingExtractor(fake_model).extract(sample_buffer)

        assert len(fake_model.calls) == 1
        tensor = fake_model.calls[0]
        assert tensor.shape == (1, 160, 160, 3)
        assert tensor.dtype == np.float32

    def test_quantized_model_input(self, quantized_model, sample_buffer):
        EmbeddingExtractor(quantized_model).extract(sample_buffer)

        tensor = quantized_model.calls[0]
        assert tensor.shape == (1, 160, 160, 3)
        assert tensor.dtype == np.uint8

    def test_input_size_from_model(self, sample_buffer):
        model = FakeEmbeddingModel(size=(112, 96))
        EmbeddingExtractor(model).extract(sample_buffer)

        assert model.calls[0].shape == (1, 96, 112, 3)

    def test_output_is_normalized(self, fake_model, sample_buffer):
        result = EmbeddingExtractor(fake_model).extract(sample_buffer)

        vector = result.embedding.embedding
        assert vector.shape == (512,)
        assert abs(np.linalg.norm(vector) - 1.0) < 1e-5

    def test_batched_output_flattened(self, sample_buffer):
        raw = np.arange(1, 513, dtype=np.float32).reshape(1, 512)
        model = FakeEmbeddingModel(output=raw)

        result = EmbeddingExtractor(model).extract(sample_buffer)

        expected = raw.ravel() / np.linalg.norm(raw)
        np.testing.assert_allclose(result.embedding.embedding, expected, rtol=1e-5)

    def test_zero_output_passes_through(self, sample_buffer):
        model = FakeEmbeddingModel(output=np.zeros(512, dtype=np.float32))

        result = EmbeddingExtractor(model).extract(sample_buffer)

        assert np.all(result.embedding.embedding == 0.0)

    def test_shape_mismatch(self, sample_buffer):
        model = FakeEmbeddingModel(output=np.ones((1, 511), dtype=np.float32))

        with pytest.raises(ShapeMismatchError) as exc_info:
            EmbeddingExtractor(model).extract(sample_buffer)
        assert exc_info.value.expected == 512
        assert exc_info.value.actual == 511

    def test_custom_embedding_dim(self, sample_buffer):
        model = FakeEmbeddingModel(output=np.ones(128, dtype=np.float32))

        result = EmbeddingExtractor(model, embedding_dim=128).extract(sample_buffer)

        assert result.embedding.dim == 128

    @pytest.mark.parametrize("error", [
        RuntimeError("engine fault"),
        MemoryError(),
        ValueError("Cannot set tensor: Dimension mismatch"),
    ])
    def test_invocation_errors_flatten(self, sample_buffer, error):
        model = FakeEmbeddingModel(error=error)

        with pytest.raises(InferenceFailedError) as exc_info:
            EmbeddingExtractor(model).extract(sample_buffer)
        assert exc_info.value.__cause__ is error

    def test_empty_output(self, sample_buffer):
        model = FakeEmbeddingModel(output=np.array([], dtype=np.float32))

        with pytest.raises(InferenceFailedError):
            EmbeddingExtractor(model).extract(sample_buffer)

    def test_preprocessing_error_propagates(self, fake_model, sample_image):
        buffer = PixelBuffer(sample_image, pixel_format="nv12")

        with pytest.raises(UnsupportedFormatError):
            EmbeddingExtractor(fake_model).extract(buffer)
        assert fake_model.calls == []

    def test_latency_covers_invocation(self, sample_buffer):
        model = FakeEmbeddingModel(delay=0.05)

        result = EmbeddingExtractor(model).extract(sample_buffer)

        assert result.inference_time_ms >= 45.0

    def test_latency_excludes_preprocessing(self, fake_model, sample_buffer):
        extractor = EmbeddingExtractor(fake_model, preprocessor=SlowPreprocessor())

        result = extractor.extract(sample_buffer)

        assert result.inference_time_ms < 150.0

    def test_same_input_same_embedding(self, fake_model, sample_buffer):
        extractor = EmbeddingExtractor(fake_model)

        first = extractor.extract(sample_buffer).embedding.embedding
        second = extractor.extract(sample_buffer).embedding.embedding

        np.testing.assert_allclose(first, second, atol=1e-6)

    def test_input_contract_read_once(self, sample_buffer):
        model = FakeEmbeddingModel(input_type=ElementType.UINT8)
        extractor = EmbeddingExtractor(model)

        assert extractor.input_contract() == ((160, 160), True)
        extractor.extract(sample_buffer)
        assert extractor.input_contract() == ((160, 160), True)

    def test_unsupported_input_type(self, sample_buffer):
        extractor = EmbeddingExtractor(Int8InputModel())

        with pytest.raises(InferenceFailedError) as exc_info:
            extractor.extract(sample_buffer)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert "int8" in str(exc_info.value)


class Int8InputModel(FakeEmbeddingModel):
    """Declares an input element type the preprocessor cannot produce."""

    @property
    def input_type(self):
        return ElementType.from_dtype(np.int8)
