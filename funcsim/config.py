"""
Configuration for the similarity engine.

Weights, limits and thresholds are plain dataclasses validated on
construction. A full ``SimilarityConfig`` can be saved to and loaded from
YAML so calibrated weights survive between runs.
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

WEIGHT_SUM_TARGET = 1.0
WEIGHT_SUM_TOLERANCE = 0.05
MIN_WEIGHT = 0.01

DEFAULT_CONFIG_FILE = ".funcsim.yml"

PRIMARY_WEIGHTS = ("tree_edit", "token_similarity", "structural", "signature")


@dataclass
class SimilarityWeights:
    """Relative importance of each similarity factor."""

    tree_edit: float = 0.30
    token_similarity: float = 0.30
    structural: float = 0.25
    signature: float = 0.15
    # Multiplier for the whole score when two signatures diverge
    different_signature: float = 0.30

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError unless the weights are usable."""
        for name in PRIMARY_WEIGHTS:
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(
                    f"{name} weight must be positive, got {value}",
                    field_name=name, value=value
                )

        total = self.total()
        if abs(total - WEIGHT_SUM_TARGET) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(
                f"weights must sum to {WEIGHT_SUM_TARGET} "
                f"(±{WEIGHT_SUM_TOLERANCE}), got {total:.4f}",
                field_name="weights", value=total
            )

        if not 0.0 <= self.different_signature <= 1.0:
            raise ConfigurationError(
                f"different_signature must be between 0 and 1, got {self.different_signature}",
                field_name="different_signature", value=self.different_signature
            )

    def total(self) -> float:
        """Sum of the four primary weights."""
        return sum(getattr(self, name) for name in PRIMARY_WEIGHTS)

    def as_vector(self) -> List[float]:
        """Primary weights in canonical order."""
        return [getattr(self, name) for name in PRIMARY_WEIGHTS]

    @classmethod
    def from_vector(cls, vector, different_signature: float = 0.30) -> 'SimilarityWeights':
        """
        Build weights from a raw vector, rescaling it to sum to one.

        Each entry is floored at ``MIN_WEIGHT`` before the proportional
        rescale so every factor keeps a positive share.
        """
        values = [max(float(v), MIN_WEIGHT) for v in vector]
        if len(values) != len(PRIMARY_WEIGHTS):
            raise ConfigurationError(
                f"expected {len(PRIMARY_WEIGHTS)} weights, got {len(values)}",
                field_name="weights", value=list(vector)
            )
        total = sum(values)
        return cls(*[v / total for v in values], different_signature=different_signature)

    def renormalized(self) -> 'SimilarityWeights':
        """Return a copy whose primary weights sum to exactly one."""
        return SimilarityWeights.from_vector(self.as_vector(), self.different_signature)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimilarityWeights':
        return cls(**{k: float(v) for k, v in data.items()})

    def __str__(self) -> str:
        return (f"TreeEdit={self.tree_edit:.3f}, Token={self.token_similarity:.3f}, "
                f"Structural={self.structural:.3f}, Signature={self.signature:.3f}")


@dataclass
class SimilarityLimits:
    """Hard limits used by the pre-checks and the cache."""

    max_signature_length_diff: int = 50
    max_line_difference_ratio: float = 3.0
    max_cache_size: int = 10000
    max_empty_vs_populated: int = 5

    def __post_init__(self):
        if self.max_signature_length_diff < 0:
            raise ConfigurationError(
                "max_signature_length_diff cannot be negative",
                field_name="max_signature_length_diff", value=self.max_signature_length_diff
            )
        if self.max_line_difference_ratio <= 0:
            raise ConfigurationError(
                "max_line_difference_ratio must be positive",
                field_name="max_line_difference_ratio", value=self.max_line_difference_ratio
            )
        if self.max_cache_size <= 0:
            raise ConfigurationError(
                "max_cache_size must be positive",
                field_name="max_cache_size", value=self.max_cache_size
            )
        if self.max_empty_vs_populated < 0:
            raise ConfigurationError(
                "max_empty_vs_populated cannot be negative",
                field_name="max_empty_vs_populated", value=self.max_empty_vs_populated
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SimilarityThresholds:
    """Penalty factors and decision thresholds."""

    statement_count_penalty: float = 0.5
    min_signature_similarity: float = 0.5
    classification_threshold: float = 0.7

    def __post_init__(self):
        for name in ("statement_count_penalty", "min_signature_similarity",
                     "classification_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(
                    f"{name} must be between 0 and 1, got {value}",
                    field_name=name, value=value
                )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SimilarityConfig:
    """
    Complete engine configuration.

    Attributes:
        threshold: Minimum score for a pair to be reported as a match
        min_lines: Functions shorter than this are not compared
        workers: Worker threads for the scheduler (<= 0 means CPU count)
        progress_interval: Completed comparisons between progress callbacks
    """

    threshold: float = 0.8
    min_lines: int = 5
    workers: int = 0
    progress_interval: int = 100
    weights: SimilarityWeights = field(default_factory=SimilarityWeights)
    limits: SimilarityLimits = field(default_factory=SimilarityLimits)
    thresholds: SimilarityThresholds = field(default_factory=SimilarityThresholds)

    def __post_init__(self):
        if not 0.0 <= self.threshold <= 1.0:
            raise ConfigurationError(
                f"threshold must be between 0 and 1, got {self.threshold}",
                field_name="threshold", value=self.threshold
            )
        if self.min_lines < 0:
            raise ConfigurationError(
                "min_lines cannot be negative",
                field_name="min_lines", value=self.min_lines
            )
        if self.progress_interval <= 0:
            raise ConfigurationError(
                "progress_interval must be positive",
                field_name="progress_interval", value=self.progress_interval
            )

    def with_weights(self, weights: SimilarityWeights) -> 'SimilarityConfig':
        """Copy of this configuration using different weights."""
        return replace(self, weights=weights)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'threshold': self.threshold,
            'min_lines': self.min_lines,
            'workers': self.workers,
            'progress_interval': self.progress_interval,
            'weights': self.weights.to_dict(),
            'limits': self.limits.to_dict(),
            'thresholds': self.thresholds.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SimilarityConfig':
        """Create from dictionary, falling back to defaults for missing keys."""
        data = dict(data or {})
        known = {'threshold', 'min_lines', 'workers', 'progress_interval',
                 'weights', 'limits', 'thresholds'}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {k: data[k] for k in known - {'weights', 'limits', 'thresholds'}
                                  if k in data}
        try:
            if data.get('weights'):
                kwargs['weights'] = SimilarityWeights.from_dict(data['weights'])
            if data.get('limits'):
                kwargs['limits'] = SimilarityLimits(**data['limits'])
            if data.get('thresholds'):
                kwargs['thresholds'] = SimilarityThresholds(**data['thresholds'])
            return cls(**kwargs)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def save_to_file(self, path: Union[str, Path]) -> Path:
        """Write configuration as YAML and return the path written."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved configuration to {path}")
        return path

    @classmethod
    def load_from_file(cls, path: Union[str, Path]) -> 'SimilarityConfig':
        """Load configuration from a YAML file."""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load configuration from {path}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {path} must be a mapping")
        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def load_or_default(cls, path: Optional[Union[str, Path]] = None) -> 'SimilarityConfig':
        """
        Load an explicit config file, else the first default location found.

        Searches ``.funcsim.yml`` in the working directory, then the home
        directory. Returns the built-in defaults when nothing is found.
        """
        if path is not None:
            return cls.load_from_file(path)

        for candidate in default_config_locations():
            if candidate.is_file():
                return cls.load_from_file(candidate)
        return cls()


def default_config_locations() -> Tuple[Path, Path]:
    return Path.cwd() / DEFAULT_CONFIG_FILE, Path.home() / DEFAULT_CONFIG_FILE
