"""Vector similarity helpers."""

from typing import List, Sequence

import numpy as np

from memkeep.exceptions import InvalidInputError


def _as_array(v: Sequence[float]) -> np.ndarray:
    return np.asarray(v, dtype=np.float64)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity between two equal-length vectors.

    Returns 0.0 when either vector has zero norm. The result is clipped to
    [-1, 1] to absorb floating point error.

    Raises:
        InvalidInputError: If the vectors differ in length
    """
    va, vb = _as_array(a), _as_array(b)
    if va.shape != vb.shape:
        raise InvalidInputError(f"vector length mismatch: {va.size} != {vb.size}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0))


def normalize(v: Sequence[float]) -> List[float]:
    """Return the unit vector of ``v``, or ``v`` unchanged if its norm is 0."""
    arr = _as_array(v)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.tolist()
    return (arr / norm).tolist()


def average_and_normalize(a: Sequence[float], b: Sequence[float]) -> List[float]:
    """Element-wise mean of two vectors, normalised to unit length.

    Raises:
        InvalidInputError: If the vectors differ in length
    """
    va, vb = _as_array(a), _as_array(b)
    if va.shape != vb.shape:
        raise InvalidInputError(f"cannot average vectors of different dimensions: {va.size} != {vb.size}")
    return normalize((va + vb) / 2.0)
