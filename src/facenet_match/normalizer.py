"""L2 normalization of embedding vectors."""

from typing import Sequence, Union

import numpy as np


def normalize(vector: Union[np.ndarray, Sequence[float]]) -> np.ndarray:
    """L2-normalize a vector.

    Every embedding stored in a gallery or compared by dot product must go
    through this function. A vector whose magnitude is not positive (all
    zeros) is returned unchanged rather than turned into NaNs.

    Args:
        vector: Raw embedding values

    Returns:
        float32 array with Euclidean norm 1.0, same element order
    """
    values = np.asarray(vector, dtype=np.float32).ravel()

    squared_sum = np.sum(np.square(values, dtype=np.float64))
    magnitude = np.sqrt(squared_sum)

    if magnitude <= 0:
        return values.copy()

    return (values / magnitude).astype(np.float32)
