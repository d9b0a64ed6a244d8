"""FaceNet face embedding and gallery matching.

Pipeline: pixel buffer -> ImagePreprocessor -> EmbeddingModel ->
normalize -> match against a FaceGallery.

Quick Start:
    from facenet_match import (
        EmbeddingExtractor, FaceGallery, PixelBuffer, TFLiteEmbeddingModel, match,
    )

    extractor = EmbeddingExtractor(TFLiteEmbeddingModel("facenet_512.tflite"))
    gallery = FaceGallery()

    result = extractor.extract(PixelBuffer.from_bgr(face_crop))
    gallery.enroll("alice", result.embedding)
    print(match(result.embedding.embedding, gallery, threshold=0.7))
"""

from .errors import (
    FaceNetError,
    UnsupportedFormatError,
    ConversionFailedError,
    OutOfMemoryError,
    ShapeMismatchError,
    InferenceFailedError,
    IncompatibleDimensionsError,
    ReportingError,
)
from .types import (
    PixelFormat,
    ElementType,
    PixelBuffer,
    FaceRegion,
    FaceEmbedding,
    FaceNetResult,
    MatchCategory,
    MatchResult,
)
from .preprocessing import ImagePreprocessor, standardize, crop_face
from .normalizer import normalize
from .model import EmbeddingModel, TFLiteEmbeddingModel
from .extractor import EmbeddingExtractor
from .gallery import FaceGallery, enroll
from .matcher import FaceMatcher, cosine_similarity, match
from .pipeline import RecognitionEvent, RecognitionPipeline
from .reporting import MatchReporter

__version__ = "0.1.0"

__all__ = [
    # Errors
    "FaceNetError", "UnsupportedFormatError", "ConversionFailedError",
    "OutOfMemoryError", "ShapeMismatchError", "InferenceFailedError",
    "IncompatibleDimensionsError", "ReportingError",
    # Types
    "PixelFormat", "ElementType", "PixelBuffer", "FaceRegion",
    "FaceEmbedding", "FaceNetResult", "MatchCategory", "MatchResult",
    # Pipeline stages
    "ImagePreprocessor", "standardize", "crop_face", "normalize",
    "EmbeddingModel", "TFLiteEmbeddingModel", "EmbeddingExtractor",
    "FaceGallery", "enroll", "FaceMatcher", "cosine_similarity", "match",
    "RecognitionEvent", "RecognitionPipeline", "MatchReporter",
]
