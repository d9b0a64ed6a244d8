"""Tests for the TFLite embedding model wrapper."""

import sys
import types

import numpy as np
import pytest

from facenet_match.errors import InferenceFailedError
from facenet_match.extractor import EmbeddingExtractor
from facenet_match.model import TFLiteEmbeddingModel
from facenet_match.types import ElementType


class FakeInterpreter:
    """Mimics the tflite Interpreter calls the wrapper relies on."""

    instances = []

    def __init__(self, model_path, num_threads=1):
        self.model_path = model_path
        self.num_threads = num_threads
        self.tensors = {}
        self.invocations = 0
        FakeInterpreter.instances.append(self)

    def allocate_tensors(self):
        pass

    def get_input_details(self):
        return [{"index": 0, "shape": np.array([1, 160, 160, 3]), "dtype": np.uint8}]

    def get_output_details(self):
        return [{"index": 7, "shape": np.array([1, 512]), "dtype": np.float32}]

    def set_tensor(self, index, value):
        self.tensors[index] = value

    def invoke(self):
        self.invocations += 1
        self.tensors[7] = np.full((1, 512), 2.0, dtype=np.float32)

    def get_tensor(self, index):
        return self.tensors[index]


@pytest.fixture
def fake_tflite(monkeypatch):
    FakeInterpreter.instances = []
    package = types.ModuleType("tflite_runtime")
    interpreter = types.ModuleType("tflite_runtime.interpreter")
    interpreter.Interpreter = FakeInterpreter
    package.interpreter = interpreter
    monkeypatch.setitem(sys.modules, "tflite_runtime", package)
    monkeypatch.setitem(sys.modules, "tflite_runtime.interpreter", interpreter)
    return FakeInterpreter


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "facenet_512.tflite"
    path.write_bytes(b"\x00")
    return path


class TestTFLiteEmbeddingModel:
    """Test cases for TFLiteEmbeddingModel."""

    def test_missing_model_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        model = TFLiteEmbeddingModel(model_path=str(tmp_path / "nope.tflite"))

        with pytest.raises(InferenceFailedError):
            model.input_shape

    def test_declared_contract(self, fake_tflite, model_file):
        model = TFLiteEmbeddingModel(model_path=str(model_file), num_threads=2)

        assert model.input_shape == (1, 160, 160, 3)
        assert model.input_size == (160, 160)
        assert model.input_type == ElementType.UINT8
        assert model.is_quantized
        assert fake_tflite.instances[0].num_threads == 2

    def test_lazy_single_load(self, fake_tflite, model_file):
        model = TFLiteEmbeddingModel(model_path=str(model_file))
        assert fake_tflite.instances == []

        model.input_shape
        model.input_type
        model.invoke(np.zeros((1, 160, 160, 3), dtype=np.uint8))

        assert len(fake_tflite.instances) == 1

    def test_invoke(self, fake_tflite, model_file):
        model = TFLiteEmbeddingModel(model_path=str(model_file))
        tensor = np.zeros((1, 160, 160, 3), dtype=np.uint8)

        output = model.invoke(tensor)

        interpreter = fake_tflite.instances[0]
        assert interpreter.tensors[0] is tensor
        assert interpreter.invocations == 1
        assert output.shape == (1, 512)

    def test_with_extractor(self, fake_tflite, model_file, sample_buffer):
        extractor = EmbeddingExtractor(TFLiteEmbeddingModel(model_path=str(model_file)))

        result = extractor.extract(sample_buffer)

        assert fake_tflite.instances[0].tensors[0].dtype == np.uint8
        np.testing.assert_allclose(
            result.embedding.embedding, np.full(512, 1 / np.sqrt(512)), rtol=1e-5
        )


class TestElementType:
    """Test cases for ElementType."""

    def test_from_dtype(self):
        assert ElementType.from_dtype(np.uint8) == ElementType.UINT8
        assert ElementType.from_dtype(np.float32) == ElementType.FLOAT32
        assert ElementType.from_dtype("float32") == ElementType.FLOAT32

    def test_unsupported_dtype(self):
        with pytest.raises(ValueError):
            ElementType.from_dtype(np.int16)
