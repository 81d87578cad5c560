"""
Statistical validation of similarity weights against a labeled suite.

The validator scores every case with a detector built from the weights
under test and compares the scores with the expected similarities using
regression, classification and robustness metrics.
"""

import ast
import logging
import textwrap
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy import stats

from ..config import SimilarityConfig, SimilarityWeights
from ..core.function import FunctionDescriptor
from ..core.parser import parse_source
from ..similarity.cache import SimilarityCache
from ..similarity.detector import SimilarityDetector
from .dataset import ValidationCase, default_validation_suite

logger = logging.getLogger(__name__)

# Expected-similarity bins used by the consistency score
CONSISTENCY_BINS = ((0.0, 0.3), (0.3, 0.7), (0.7, 1.0 + 1e-9))
MIN_BIN_SAMPLES = 2
NEUTRAL_SCORE = 0.5


@dataclass
class CaseResult:
    """Score of a single validation case."""

    name: str
    category: str
    expected: float
    actual: float
    perturbed: List[float] = field(default_factory=list)

    @property
    def error(self) -> float:
        return self.actual - self.expected

    @property
    def absolute_error(self) -> float:
        return abs(self.error)


@dataclass
class ErrorDistribution:
    """Shape of the signed error distribution."""

    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    skewness: float = 0.0
    kurtosis: float = 0.0
    q25: float = 0.0
    q75: float = 0.0
    iqr: float = 0.0


@dataclass
class CategoryStats:
    count: int
    mae: float
    mean_expected: float
    mean_actual: float
    max_error: float


@dataclass
class ValidationResult:
    """All metrics for one weight vector."""

    weights: SimilarityWeights
    mae: float
    mse: float
    rmse: float
    r2: float
    pearson_r: float
    spearman_rho: float
    precision: float
    recall: float
    f1_score: float
    accuracy: float
    robustness_score: float
    consistency_score: float
    discrimination_score: float
    error_distribution: ErrorDistribution
    category_stats: Dict[str, CategoryStats]
    case_results: List[CaseResult]

    @property
    def composite_score(self) -> float:
        """
        Single figure of merit used by the optimizers.

        Increases with lower MAE, higher R2 and higher F1; bounded to [0, 1].
        """
        return (0.5 * (1.0 - min(self.mae, 1.0))
                + 0.25 * min(max(self.r2, 0.0), 1.0)
                + 0.25 * self.f1_score)

    def worst_cases(self, count: int = 5) -> List[CaseResult]:
        return sorted(self.case_results, key=lambda c: c.absolute_error, reverse=True)[:count]


class StatisticalValidator:
    """
    Evaluates weight vectors over a fixed validation suite.

    Parsing, normalization and weight-independent sub-scores are computed
    once and shared between calls, so evaluating many weight vectors is
    cheap.
    """

    def __init__(self, cases: Optional[List[ValidationCase]] = None,
                 config: Optional[SimilarityConfig] = None,
                 perturb: bool = True):
        """
        Initialize the validator.

        Args:
            cases: Validation suite (defaults to the built-in suite)
            config: Base configuration; only its weights are replaced
            perturb: Score perturbed variants for the robustness metric
        """
        self.cases = list(cases) if cases is not None else default_validation_suite()
        if not self.cases:
            raise ValueError("validation suite is empty")
        self.config = config or SimilarityConfig()
        self.perturb = perturb
        self.classification_threshold = self.config.thresholds.classification_threshold

        self._breakdown_cache = SimilarityCache(max(self.config.limits.max_cache_size, 1024))
        self._pairs: Optional[List[Tuple[FunctionDescriptor, FunctionDescriptor,
                                         List[FunctionDescriptor]]]] = None

    def validate(self, weights: SimilarityWeights) -> ValidationResult:
        """Score every case with ``weights`` and compute all metrics."""
        detector = SimilarityDetector(
            self.config.with_weights(weights),
            breakdown_cache=self._breakdown_cache,
        )

        case_results = []
        for case, (a, b, variants) in zip(self.cases, self._prepared_pairs()):
            case_results.append(CaseResult(
                name=case.name,
                category=case.category,
                expected=case.expected_similarity,
                actual=detector.score(a, b),
                perturbed=[detector.score(a, variant) for variant in variants],
            ))

        return self._build_result(weights, case_results)

    def _prepared_pairs(self):
        if self._pairs is None:
            pairs = []
            for case in self.cases:
                a, b = case.create_function_pair()
                variants = perturbed_variants(case.source_b, case.name) if self.perturb else []
                pairs.append((a, b, variants))
            self._pairs = pairs
            logger.debug(f"Prepared {len(pairs)} validation pairs")
        return self._pairs

    def _build_result(self, weights: SimilarityWeights,
                      case_results: List[CaseResult]) -> ValidationResult:
        expected = np.array([c.expected for c in case_results], dtype=float)
        actual = np.array([c.actual for c in case_results], dtype=float)
        errors = actual - expected

        mse = float(np.mean(errors ** 2))
        precision, recall, f1, accuracy = self._classification_metrics(expected, actual)

        return ValidationResult(
            weights=weights,
            mae=float(np.mean(np.abs(errors))),
            mse=mse,
            rmse=float(np.sqrt(mse)),
            r2=r_squared(expected, actual),
            pearson_r=_safe_correlation(stats.pearsonr, expected, actual),
            spearman_rho=_safe_correlation(stats.spearmanr, expected, actual),
            precision=precision,
            recall=recall,
            f1_score=f1,
            accuracy=accuracy,
            robustness_score=robustness_score(case_results),
            consistency_score=consistency_score(case_results),
            discrimination_score=discrimination_score(case_results),
            error_distribution=error_distribution(errors),
            category_stats=category_stats(case_results),
            case_results=case_results,
        )

    def _classification_metrics(self, expected: np.ndarray,
                                actual: np.ndarray) -> Tuple[float, float, float, float]:
        truth = expected >= self.classification_threshold
        predicted = actual >= self.classification_threshold

        tp = int(np.sum(truth & predicted))
        fp = int(np.sum(~truth & predicted))
        fn = int(np.sum(truth & ~predicted))
        tn = int(np.sum(~truth & ~predicted))

        precision = tp / (tp + fp) if tp + fp > 0 else 0.0
        recall = tp / (tp + fn) if tp + fn > 0 else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0
        accuracy = (tp + tn) / len(expected)
        return precision, recall, f1, accuracy


def r_squared(expected: np.ndarray, actual: np.ndarray) -> float:
    """Coefficient of determination; 0 when the expected values are constant."""
    ss_tot = float(np.sum((expected - np.mean(expected)) ** 2))
    if ss_tot == 0:
        return 0.0
    ss_res = float(np.sum((expected - actual) ** 2))
    return 1.0 - ss_res / ss_tot


def _safe_correlation(method, x: np.ndarray, y: np.ndarray) -> float:
    if len(x) < 2 or np.std(x) == 0 or np.std(y) == 0:
        return 0.0
    corr, _ = method(x, y)
    corr = float(corr)
    return 0.0 if np.isnan(corr) else corr


def error_distribution(errors: np.ndarray) -> ErrorDistribution:
    std_dev = float(np.std(errors))
    q25, q75 = (float(q) for q in np.percentile(errors, [25, 75]))
    return ErrorDistribution(
        mean=float(np.mean(errors)),
        median=float(np.median(errors)),
        std_dev=std_dev,
        skewness=float(stats.skew(errors)) if std_dev > 0 else 0.0,
        kurtosis=float(stats.kurtosis(errors)) if std_dev > 0 else 0.0,
        q25=q25,
        q75=q75,
        iqr=q75 - q25,
    )


def category_stats(case_results: List[CaseResult]) -> Dict[str, CategoryStats]:
    grouped: Dict[str, List[CaseResult]] = {}
    for result in case_results:
        grouped.setdefault(result.category, []).append(result)

    summary = {}
    for category, results in grouped.items():
        abs_errors = [r.absolute_error for r in results]
        summary[category] = CategoryStats(
            count=len(results),
            mae=float(np.mean(abs_errors)),
            mean_expected=float(np.mean([r.expected for r in results])),
            mean_actual=float(np.mean([r.actual for r in results])),
            max_error=float(np.max(abs_errors)),
        )
    return summary


def robustness_score(case_results: List[CaseResult]) -> float:
    """
    Stability of scores under the perturbations of ``perturbed_variants``.

    1.0 means every perturbed variant scored exactly like the original.
    """
    deviations = [float(np.std([r.actual] + r.perturbed))
                  for r in case_results if r.perturbed]
    if not deviations:
        return 1.0
    return max(0.0, 1.0 - 2.0 * float(np.mean(deviations)))


def consistency_score(case_results: List[CaseResult]) -> float:
    """Inverse of the score variance within each expected-similarity bin."""
    total_variance = 0.0
    total_weight = 0
    for low, high in CONSISTENCY_BINS:
        scores = [r.actual for r in case_results if low <= r.expected < high]
        if len(scores) >= MIN_BIN_SAMPLES:
            total_variance += float(np.var(scores)) * len(scores)
            total_weight += len(scores)

    if total_weight == 0:
        return NEUTRAL_SCORE
    return 1.0 / (1.0 + total_variance / total_weight)


def discrimination_score(case_results: List[CaseResult]) -> float:
    """Share of case pairs whose scores are ordered like their expectations."""
    concordant = 0.0
    total = 0
    for i, first in enumerate(case_results):
        for second in case_results[i + 1:]:
            if first.expected == second.expected:
                continue
            total += 1
            expected_order = np.sign(first.expected - second.expected)
            actual_order = np.sign(first.actual - second.actual)
            if actual_order == expected_order:
                concordant += 1
            elif actual_order == 0:
                concordant += 0.5

    if total == 0:
        return NEUTRAL_SCORE
    return concordant / total


def perturbed_variants(source: str, name: str) -> List[FunctionDescriptor]:
    """
    Semantically neutral rewrites of a function source.

    Returns descriptors for a renamed, a reformatted, a commented and a
    mirrored variant of the first function in ``source``. Normalization
    erases the first three; the mirrored variant swaps the operands of
    commutative products and single comparisons, which changes the
    canonical tree while keeping the behaviour.
    """
    source = textwrap.dedent(source).strip() + "\n"
    tree = ast.parse(source)
    func = next(node for node in tree.body
                if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)))

    variants = {
        'renamed': ast.unparse(_IdentifierRenamer(func).visit(ast.parse(source))),
        'reformatted': ast.unparse(tree),
        'commented': _insert_comment(source, func),
        'mirrored': ast.unparse(_OperandMirror().visit(ast.parse(source))),
    }

    descriptors = []
    for kind, text in variants.items():
        descriptors.extend(parse_source(text, filename=f"{name}_{kind}.py")[:1])
    return descriptors


class _IdentifierRenamer(ast.NodeTransformer):
    """Appends a suffix to every parameter and local name."""

    def __init__(self, func: ast.AST, suffix: str = "_v2"):
        self.suffix = suffix
        args = func.args
        self.names = {a.arg for a in args.posonlyargs + args.args + args.kwonlyargs}
        for extra in (args.vararg, args.kwarg):
            if extra is not None:
                self.names.add(extra.arg)
        self.names.update(node.id for node in ast.walk(func)
                          if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store))

    def visit_Name(self, node: ast.Name) -> ast.Name:
        if node.id in self.names:
            node.id += self.suffix
        return node

    def visit_arg(self, node: ast.arg) -> ast.arg:
        if node.arg in self.names:
            node.arg += self.suffix
        return node


def _insert_comment(source: str, func: ast.AST) -> str:
    lines = source.splitlines()
    first = func.body[0]
    indent = lines[first.lineno - 1][:first.col_offset]
    insert_at = first.lineno - 1
    lines[insert_at:insert_at] = [f"{indent}# reviewed", ""]
    return "\n".join(lines) + "\n"


class _OperandMirror(ast.NodeTransformer):
    """Rewrites ``a * b`` as ``b * a`` and ``a < b`` as ``b > a``."""

    MIRRORED_COMPARISONS = {
        ast.Eq: ast.Eq, ast.NotEq: ast.NotEq,
        ast.Lt: ast.Gt, ast.Gt: ast.Lt,
        ast.LtE: ast.GtE, ast.GtE: ast.LtE,
    }

    def visit_BinOp(self, node: ast.BinOp) -> ast.BinOp:
        self.generic_visit(node)
        if isinstance(node.op, ast.Mult):
            node.left, node.right = node.right, node.left
        return node

    def visit_Compare(self, node: ast.Compare) -> ast.Compare:
        self.generic_visit(node)
        if len(node.ops) == 1 and type(node.ops[0]) in self.MIRRORED_COMPARISONS:
            mirrored = self.MIRRORED_COMPARISONS[type(node.ops[0])]
            node.left, node.comparators = node.comparators[0], [node.left]
            node.ops = [mirrored()]
        return node
