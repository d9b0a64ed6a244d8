"""Embedding model interface and TFLite backend."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from .constants import MODEL_FILENAME
from .errors import InferenceFailedError
from .types import ElementType

logger = logging.getLogger(__name__)


class EmbeddingModel(ABC):
    """Abstract inference engine producing one raw embedding per input.

    Implementations are not required to be reentrant; callers serialize
    access to a single instance.
    """

    @property
    def name(self) -> str:
        """Return the name of the model backend."""
        return type(self).__name__

    @property
    @abstractmethod
    def input_shape(self) -> Tuple[int, int, int, int]:
        """Return the declared input shape (1, height, width, 3)."""
        pass

    @property
    @abstractmethod
    def input_type(self) -> ElementType:
        """Return the declared input element type."""
        pass

    @property
    def input_size(self) -> Tuple[int, int]:
        """Return the input size as (width, height)."""
        _, height, width, _ = self.input_shape
        return (int(width), int(height))

    @property
    def is_quantized(self) -> bool:
        return self.input_type == ElementType.UINT8

    @abstractmethod
    def invoke(self, tensor: np.ndarray) -> np.ndarray:
        """Run inference on one input tensor.

        Args:
            tensor: Input of shape ``input_shape`` and type ``input_type``

        Returns:
            Raw output values
        """
        pass


class TFLiteEmbeddingModel(EmbeddingModel):
    """FaceNet embedding using a TFLite model (512D)."""

    def __init__(self, model_path: Optional[str] = None, num_threads: int = 1):
        """Initialize TFLite embedding model.

        Args:
            model_path: Path to the TFLite FaceNet model.
                       If None, will try default locations
            num_threads: Interpreter thread count
        """
        self._interpreter = None
        self._model_path = model_path
        self._num_threads = num_threads
        self._input_details = None
        self._output_details = None

    @property
    def name(self) -> str:
        return "tflite"

    def _find_model(self) -> Optional[str]:
        model_locations = [
            self._model_path,
            MODEL_FILENAME,
            Path("data") / "models" / MODEL_FILENAME,
            Path.home() / ".face_models" / MODEL_FILENAME,
        ]

        for loc in model_locations:
            if loc and Path(str(loc)).exists():
                return str(loc)
        return None

    def _initialize(self):
        """Lazy initialization of TFLite interpreter."""
        if self._interpreter is not None:
            return self._interpreter

        try:
            import tflite_runtime.interpreter as tflite
        except ImportError:
            try:
                import tensorflow.lite as tflite
            except ImportError as e:
                raise InferenceFailedError(
                    "TFLite not installed. Install with: "
                    "pip install tflite-runtime or pip install tensorflow"
                ) from e

        model_file = self._find_model()
        if not model_file:
            raise InferenceFailedError(
                f"Failed to load the model file with name: {MODEL_FILENAME}"
            )

        try:
            interpreter = tflite.Interpreter(
                model_path=model_file, num_threads=self._num_threads
            )
            interpreter.allocate_tensors()
        except (RuntimeError, ValueError) as e:
            raise InferenceFailedError(
                f"Failed to create the interpreter with error: {e}"
            ) from e

        self._input_details = interpreter.get_input_details()
        self._output_details = interpreter.get_output_details()
        self._interpreter = interpreter
        logger.info(f"Loaded TFLite model from {model_file}")
        return interpreter

    @property
    def input_shape(self) -> Tuple[int, int, int, int]:
        self._initialize()
        return tuple(int(v) for v in self._input_details[0]["shape"])

    @property
    def input_type(self) -> ElementType:
        self._initialize()
        return ElementType.from_dtype(self._input_details[0]["dtype"])

    def invoke(self, tensor: np.ndarray) -> np.ndarray:
        """Run the interpreter on one input tensor and return output 0."""
        interpreter = self._initialize()

        interpreter.set_tensor(self._input_details[0]["index"], tensor)
        interpreter.invoke()

        return np.array(interpreter.get_tensor(self._output_details[0]["index"]))
