"""Nearest-neighbour matching of embeddings against a gallery."""

import logging
from typing import List, Mapping, Optional, Tuple, Union

import numpy as np

from .constants import MATCH_THRESHOLD
from .errors import IncompatibleDimensionsError
from .gallery import FaceGallery
from .types import MatchResult

logger = logging.getLogger(__name__)

GalleryLike = Union[FaceGallery, Mapping[str, np.ndarray]]


def cosine_similarity(
    embedding1: np.ndarray,
    embedding2: np.ndarray,
    label: Optional[str] = None,
) -> float:
    """Cosine similarity of two normalized embeddings.

    Both inputs must already be unit length, in which case the dot product
    is the cosine similarity. Returns a value between -1 and 1.

    Raises:
        IncompatibleDimensionsError: Embeddings differ in length
    """
    a = np.asarray(embedding1, dtype=np.float32).ravel()
    b = np.asarray(embedding2, dtype=np.float32).ravel()

    if a.shape[0] != b.shape[0]:
        raise IncompatibleDimensionsError(a.shape[0], b.shape[0], label)

    return float(np.dot(a, b))


def _sorted_entries(gallery: GalleryLike) -> List[Tuple[str, np.ndarray]]:
    if isinstance(gallery, FaceGallery):
        return gallery.items()
    return [(label, gallery[label]) for label in sorted(gallery)]


def _score_all(query: np.ndarray, gallery: GalleryLike) -> List[Tuple[str, float]]:
    """Score every entry in ascending label order.

    A single length mismatch aborts the whole scan.
    """
    return [
        (label, cosine_similarity(query, candidate, label))
        for label, candidate in _sorted_entries(gallery)
    ]


def match(
    query: np.ndarray,
    gallery: GalleryLike,
    threshold: float = MATCH_THRESHOLD,
) -> MatchResult:
    """Find the best gallery match for a normalized query embedding.

    Candidates are visited in ascending label order and only a strictly
    greater score replaces the current best, so on equal scores the
    lexicographically smallest label wins.

    Scores are float32 dot products, so a vector compared with itself can
    land a few ULP below 1.0. A threshold of exactly 1.0 will then miss
    self-matches; leave a tolerance of about 1e-5.

    Args:
        query: Normalized query embedding
        gallery: FaceGallery or plain label -> embedding mapping
        threshold: Minimum similarity (inclusive) for a match

    Returns:
        MatchResult.match(label, score) or MatchResult.no_match()

    Raises:
        IncompatibleDimensionsError: Any candidate differs in length from
                                     the query
    """
    best_label = None
    best_similarity = -np.inf

    for label, similarity in _score_all(query, gallery):
        if similarity > best_similarity:
            best_similarity = similarity
            best_label = label

    if best_label is not None and best_similarity >= threshold:
        return MatchResult.match(best_label, best_similarity)

    return MatchResult.no_match()


class FaceMatcher:
    """Gallery matcher with a configured threshold."""

    def __init__(self, threshold: float = MATCH_THRESHOLD):
        """Initialize matcher.

        Args:
            threshold: Minimum cosine similarity for a match, on [-1, 1]
        """
        self.threshold = threshold

    def match(self, query: np.ndarray, gallery: GalleryLike) -> MatchResult:
        """Match ``query`` against ``gallery`` using the configured threshold."""
        result = match(query, gallery, self.threshold)
        if result.is_match:
            logger.debug(f"Matched {result.label} ({result.score:.3f})")
        return result

    def top_k(
        self,
        query: np.ndarray,
        gallery: GalleryLike,
        k: int = 5,
    ) -> List[Tuple[str, float]]:
        """Rank gallery entries by similarity, ignoring the threshold.

        Args:
            query: Normalized query embedding
            gallery: FaceGallery or plain label -> embedding mapping
            k: Number of entries to return

        Returns:
            List of (label, similarity) tuples, best first, ties by label
        """
        scores = _score_all(query, gallery)
        scores.sort(key=lambda x: (-x[1], x[0]))
        return scores[:k]
