"""In-memory gallery of enrolled face embeddings."""

import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from .types import FaceEmbedding

logger = logging.getLogger(__name__)

EmbeddingLike = Union[FaceEmbedding, np.ndarray, List[float]]


def _as_vector(embedding: EmbeddingLike) -> np.ndarray:
    if isinstance(embedding, FaceEmbedding):
        embedding = embedding.embedding
    return np.array(embedding, dtype=np.float32).ravel()


class FaceGallery:
    """Mapping from identity label to one normalized embedding.

    Embeddings are expected to be normalized already; the gallery never
    re-normalizes. Writers are serialized with a lock and readers that need a
    stable view take a :meth:`snapshot`, so matching never sees a half-applied
    enrollment. Iteration order is ascending label order.
    """

    def __init__(self, embeddings: Optional[Dict[str, EmbeddingLike]] = None):
        self._lock = threading.Lock()
        self._embeddings: Dict[str, np.ndarray] = {}
        for label, embedding in (embeddings or {}).items():
            self._embeddings[label] = _as_vector(embedding)

    def enroll(self, label: str, embedding: EmbeddingLike) -> None:
        """Store an embedding under ``label``, replacing any existing entry.

        Args:
            label: Identity name
            embedding: Normalized embedding
        """
        vector = _as_vector(embedding)
        with self._lock:
            replaced = label in self._embeddings
            # Copy-on-write so snapshots already handed out stay untouched
            embeddings = dict(self._embeddings)
            embeddings[label] = vector
            self._embeddings = embeddings

        action = "Replaced" if replaced else "Enrolled"
        logger.info(f"{action} face for {label} ({len(self)} identities)")

    def remove(self, label: str) -> bool:
        """Remove an identity from the gallery.

        Returns:
            True if removed, False if not found
        """
        with self._lock:
            if label not in self._embeddings:
                return False
            embeddings = dict(self._embeddings)
            del embeddings[label]
            self._embeddings = embeddings
        logger.info(f"Removed identity: {label}")
        return True

    def clear(self) -> None:
        """Remove all identities."""
        with self._lock:
            self._embeddings = {}
        logger.info("Gallery cleared")

    def snapshot(self) -> Dict[str, np.ndarray]:
        """Return the current label -> embedding mapping.

        The returned dict is never mutated by later enroll/remove calls.
        """
        with self._lock:
            return self._embeddings

    def get(self, label: str) -> Optional[np.ndarray]:
        """Get the embedding for an identity."""
        return self.snapshot().get(label)

    def labels(self) -> List[str]:
        """Get sorted list of enrolled identity names."""
        return sorted(self.snapshot())

    def items(self) -> List[Tuple[str, np.ndarray]]:
        """Get (label, embedding) pairs in ascending label order."""
        embeddings = self.snapshot()
        return [(label, embeddings[label]) for label in sorted(embeddings)]

    def save_npz(self, output_path: Union[str, Path]) -> None:
        """Save the gallery as an NPZ file.

        Labels are stored in a ``labels`` array and the embedding for
        ``labels[i]`` in array ``e{i}``, so any string is a valid label.

        Args:
            output_path: Path for output file
        """
        entries = self.items()
        arrays = {f"e{i}": embedding for i, (_, embedding) in enumerate(entries)}
        labels = np.array([label for label, _ in entries], dtype=str)
        np.savez(str(output_path), labels=labels, **arrays)
        logger.info(f"Saved {len(entries)} identities to {output_path}")

    @classmethod
    def load_npz(cls, input_path: Union[str, Path]) -> "FaceGallery":
        """Load a gallery written by :meth:`save_npz`.

        Args:
            input_path: Path to NPZ file
        """
        with np.load(str(input_path)) as data:
            labels = [str(label) for label in data["labels"]]
            embeddings = {label: data[f"e{i}"] for i, label in enumerate(labels)}
        logger.info(f"Loaded {len(embeddings)} identities from {input_path}")
        return cls(embeddings)

    def __len__(self) -> int:
        return len(self.snapshot())

    def __contains__(self, label: object) -> bool:
        return label in self.snapshot()

    def __iter__(self) -> Iterator[str]:
        return iter(self.labels())


def enroll(label: str, embedding: EmbeddingLike, gallery: FaceGallery) -> None:
    """Enroll ``embedding`` under ``label`` in ``gallery`` (last write wins)."""
    gallery.enroll(label, embedding)
