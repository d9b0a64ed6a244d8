"""Embedding extraction: preprocess, invoke model, decode and normalize."""

import logging
import threading
import time
from typing import Optional, Tuple

import numpy as np

from .constants import EMBEDDING_DIM
from .errors import InferenceFailedError, ShapeMismatchError
from .model import EmbeddingModel
from .normalizer import normalize
from .preprocessing import ImagePreprocessor
from .types import FaceEmbedding, FaceNetResult, PixelBuffer

logger = logging.getLogger(__name__)


class EmbeddingExtractor:
    """Runs one face crop through the embedding model.

    Calls into the model are serialized with a lock because model instances
    are not reentrant. Preprocessing happens outside the lock.
    """

    def __init__(
        self,
        model: EmbeddingModel,
        embedding_dim: int = EMBEDDING_DIM,
        preprocessor: Optional[ImagePreprocessor] = None,
    ):
        """Initialize extractor.

        Args:
            model: Inference backend
            embedding_dim: Required length of the model output
            preprocessor: Image preprocessor (default one if None)
        """
        self.model = model
        self.embedding_dim = embedding_dim
        self.preprocessor = preprocessor or ImagePreprocessor()
        self._lock = threading.Lock()
        self._contract: Optional[Tuple[Tuple[int, int], bool]] = None

    def input_contract(self) -> Tuple[Tuple[int, int], bool]:
        """Return the model's (input size, quantized) pair, read once.

        Raises:
            InferenceFailedError: The model cannot load or declares an input
                                  this extractor cannot feed
        """
        if self._contract is None:
            with self._lock:
                if self._contract is None:
                    try:
                        contract = (self.model.input_size, self.model.is_quantized)
                    except InferenceFailedError:
                        raise
                    except Exception as e:
                        raise InferenceFailedError(
                            f"Unsupported model input contract: {e}"
                        ) from e
                    self._contract = contract
        return self._contract

    def extract(self, buffer: PixelBuffer) -> FaceNetResult:
        """Extract a normalized embedding from a face crop.

        Args:
            buffer: Cropped face pixels

        Returns:
            FaceNetResult with the embedding and the model invocation
            latency in milliseconds (preprocessing excluded)

        Raises:
            UnsupportedFormatError, ConversionFailedError, OutOfMemoryError:
                Preprocessing failed
            InferenceFailedError: Model invocation failed for any reason
            ShapeMismatchError: Model output length is not ``embedding_dim``
        """
        target_size, quantized = self.input_contract()
        tensor = self.preprocessor.preprocess(buffer, target_size, quantized)

        outputs, interval = self._invoke(tensor)
        raw = self._decode(outputs)

        embedding = FaceEmbedding(embedding=normalize(raw))
        logger.debug(f"Extracted {self.embedding_dim}D embedding in {interval:.1f} ms")
        return FaceNetResult(embedding=embedding, inference_time_ms=interval)

    def _invoke(self, tensor: np.ndarray) -> Tuple[np.ndarray, float]:
        """Invoke the model once, timing only the invocation."""
        with self._lock:
            try:
                start = time.perf_counter()
                outputs = self.model.invoke(tensor)
                interval = (time.perf_counter() - start) * 1000
            except InferenceFailedError:
                raise
            except Exception as e:
                logger.warning(f"Failed to invoke the interpreter with error: {e}")
                raise InferenceFailedError(
                    f"Failed to invoke the interpreter with error: {e}"
                ) from e

        if outputs is None:
            raise InferenceFailedError("Model returned no output")
        return outputs, interval

    def _decode(self, outputs: np.ndarray) -> np.ndarray:
        """Flatten model output into a raw embedding of the required length."""
        try:
            raw = np.asarray(outputs, dtype=np.float32).ravel()
        except (TypeError, ValueError) as e:
            raise InferenceFailedError("Failed to convert output tensor data") from e

        if raw.size == 0:
            raise InferenceFailedError("Model returned an empty output tensor")
        if raw.size != self.embedding_dim:
            raise ShapeMismatchError(self.embedding_dim, raw.size)
        return raw
