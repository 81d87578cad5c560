"""Pairwise similarity scoring and the all-pairs comparison scheduler."""

from .cache import SimilarityCache, make_cache_key
from .detector import Match, SimilarityBreakdown, SimilarityDetector
from .scheduler import (
    ComparisonJob,
    ComparisonResult,
    ParallelComparisonScheduler,
    SchedulerState,
)

__all__ = [
    "ComparisonJob",
    "ComparisonResult",
    "Match",
    "ParallelComparisonScheduler",
    "SchedulerState",
    "SimilarityBreakdown",
    "SimilarityCache",
    "SimilarityDetector",
    "make_cache_key",
]
