"""
Multi-factor similarity scoring between two functions.

The score is a weighted sum of four sub-scores computed on the normalized
forms of both functions:

- tree edit similarity of the canonical trees
- token similarity of the canonical token streams
- structural similarity of the control-flow skeletons
- signature similarity of the parameter/return types

Scores are memoized per unordered pair of structural hashes.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import SimilarityConfig, SimilarityWeights
from ..core.function import FunctionDescriptor
from .algorithms import (
    signature_similarity,
    structural_similarity,
    token_similarity,
    tree_edit_similarity,
)
from .cache import SimilarityCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Match:
    """Two functions whose similarity reached the detection threshold."""

    function_a: FunctionDescriptor
    function_b: FunctionDescriptor
    similarity: float

    @property
    def pair_key(self) -> Tuple[tuple, tuple]:
        """Identity of the pair regardless of argument order."""
        first, second = sorted((self.function_a.identity, self.function_b.identity))
        return first, second


@dataclass(frozen=True)
class SimilarityBreakdown:
    """Weight-independent sub-scores for one pair of functions."""

    tree_edit: float
    token_similarity: float
    structural: float
    signature: float
    signature_diverged: bool = False

    @classmethod
    def identical(cls) -> 'SimilarityBreakdown':
        return cls(1.0, 1.0, 1.0, 1.0, False)

    def combine(self, weights: SimilarityWeights) -> float:
        """
        Weighted total, clamped to [0, 1].

        When the signatures diverge the whole total is multiplied by
        ``weights.different_signature``, the signature term included.
        """
        total = (self.tree_edit * weights.tree_edit
                 + self.token_similarity * weights.token_similarity
                 + self.structural * weights.structural
                 + self.signature * weights.signature)
        if self.signature_diverged:
            total *= weights.different_signature
        return min(max(total, 0.0), 1.0)

    def to_dict(self) -> Dict[str, float]:
        return {
            'tree_edit': self.tree_edit,
            'token_similarity': self.token_similarity,
            'structural': self.structural,
            'signature': self.signature,
            'signature_diverged': self.signature_diverged,
        }


class SimilarityDetector:
    """
    Scores pairs of functions and decides whether they are duplicates.

    Safe to share between threads: descriptors memoize their own derived
    views and the result caches are internally locked.
    """

    def __init__(self, config: Optional[SimilarityConfig] = None,
                 cache: Optional[SimilarityCache] = None,
                 breakdown_cache: Optional[SimilarityCache] = None):
        """
        Initialize the detector.

        Args:
            config: Engine configuration (defaults when omitted)
            cache: Score cache; a fresh one sized from the limits when omitted
            breakdown_cache: Optional cache of weight-independent sub-scores,
                shareable between detectors that differ only in weights
        """
        self.config = config or SimilarityConfig()
        if cache is None:
            cache = SimilarityCache(self.config.limits.max_cache_size)
        self.cache = cache
        self.breakdown_cache = breakdown_cache

    @property
    def weights(self) -> SimilarityWeights:
        return self.config.weights

    @property
    def threshold(self) -> float:
        return self.config.threshold

    def score(self, a: FunctionDescriptor, b: FunctionDescriptor) -> float:
        """
        Similarity of two functions in [0, 1].

        Identical structural hashes short-circuit to 1.0. The result is
        symmetric in its arguments and stable across repeated calls.
        """
        hash_a, hash_b = a.structural_hash, b.structural_hash
        if hash_a == hash_b:
            return 1.0

        cached = self.cache.get(hash_a, hash_b)
        if cached is not None:
            return cached

        value = self.breakdown(a, b).combine(self.weights)
        self.cache.set(hash_a, hash_b, value)
        return value

    def breakdown(self, a: FunctionDescriptor, b: FunctionDescriptor) -> SimilarityBreakdown:
        """Sub-scores for a pair, always computed in canonical pair order."""
        if a.structural_hash == b.structural_hash:
            return SimilarityBreakdown.identical()
        if b.structural_hash < a.structural_hash:
            a, b = b, a

        if self.breakdown_cache is not None:
            cached = self.breakdown_cache.get(a.structural_hash, b.structural_hash)
            if cached is not None:
                return cached

        result = self._compute_breakdown(a, b)
        if self.breakdown_cache is not None:
            self.breakdown_cache.set(a.structural_hash, b.structural_hash, result)
        return result

    def is_above_threshold(self, score: float) -> bool:
        return score >= self.threshold

    def compare(self, a: FunctionDescriptor, b: FunctionDescriptor) -> Optional[Match]:
        """Score a pair and return a Match when it reaches the threshold."""
        value = self.score(a, b)
        if self.is_above_threshold(value):
            return Match(a, b, value)
        return None

    def find_similar_functions(self, functions: Sequence[FunctionDescriptor]) -> List[Match]:
        """Compare every unordered pair on the calling thread."""
        matches = []
        for i in range(len(functions)):
            for j in range(i + 1, len(functions)):
                match = self.compare(functions[i], functions[j])
                if match is not None:
                    matches.append(match)
        logger.debug(f"Sequential comparison of {len(functions)} functions: "
                     f"{len(matches)} matches")
        return matches

    def cache_stats(self) -> Dict[str, float]:
        return self.cache.get_stats()

    def _compute_breakdown(self, a: FunctionDescriptor, b: FunctionDescriptor) -> SimilarityBreakdown:
        form_a, form_b = a.normalized_form, b.normalized_form

        signature = signature_similarity(a.signature, b.signature)
        return SimilarityBreakdown(
            tree_edit=tree_edit_similarity(form_a, form_b),
            token_similarity=token_similarity(form_a, form_b),
            structural=self._structural_score(a, b),
            signature=signature,
            signature_diverged=self._signatures_diverge(a.signature, b.signature, signature),
        )

    def _structural_score(self, a: FunctionDescriptor, b: FunctionDescriptor) -> float:
        limits = self.config.limits
        form_a, form_b = a.normalized_form, b.normalized_form

        statements_a = form_a.skeleton.statements
        statements_b = form_b.skeleton.statements
        if (statements_a == 0 and statements_b > limits.max_empty_vs_populated) or \
                (statements_b == 0 and statements_a > limits.max_empty_vs_populated):
            return 0.0

        score = structural_similarity(form_a, form_b)

        shorter = min(a.line_count, b.line_count)
        longer = max(a.line_count, b.line_count)
        if shorter > 0 and longer / shorter > limits.max_line_difference_ratio:
            score *= self.config.thresholds.statement_count_penalty

        return score

    def _signatures_diverge(self, signature_a: str, signature_b: str, similarity: float) -> bool:
        if abs(len(signature_a) - len(signature_b)) > self.config.limits.max_signature_length_diff:
            return True
        return similarity < self.config.thresholds.min_signature_similarity
