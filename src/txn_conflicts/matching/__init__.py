"""Similarity scoring for manual vs. bank-imported transactions."""

from txn_conflicts.matching.scorer import (
    SimilarityScore,
    SimilarityScorer,
    SimilaritySignal,
    calculate_similarity,
)

__all__ = ["SimilarityScore", "SimilarityScorer", "SimilaritySignal", "calculate_similarity"]
