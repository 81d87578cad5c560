"""funcsim - Detect duplicate and near-duplicate functions by structural similarity."""

__version__ = "0.1.0"

from .config import SimilarityConfig, SimilarityWeights
from .core.function import FunctionDescriptor
from .errors import ComparisonRunError, ConfigurationError, FuncSimError
from .similarity.detector import Match, SimilarityDetector
from .similarity.scheduler import ParallelComparisonScheduler

__all__ = [
    "ComparisonRunError",
    "ConfigurationError",
    "FuncSimError",
    "FunctionDescriptor",
    "Match",
    "ParallelComparisonScheduler",
    "SimilarityConfig",
    "SimilarityDetector",
    "SimilarityWeights",
    "__version__",
]
