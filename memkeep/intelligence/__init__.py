"""Deduplication, forgetting-curve and similarity primitives."""

from memkeep.intelligence.dedup import DedupManager
from memkeep.intelligence.ebbinghaus import EbbinghausManager
from memkeep.intelligence.similarity import average_and_normalize, cosine_similarity, normalize

__all__ = ["DedupManager", "EbbinghausManager", "average_and_normalize", "cosine_similarity", "normalize"]
