"""
Console reports for calibration runs.
"""

from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import SimilarityWeights
from .genetic import GeneticResult
from .grid_search import OptimizationResult
from .validator import ValidationResult


class CalibrationReporter:
    """Renders validation and optimization results as rich tables."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def show_weights(self, weights: SimilarityWeights, title: str = "Similarity Weights"):
        table = Table(title=title)
        table.add_column("Factor", style="cyan")
        table.add_column("Weight", style="magenta", justify="right")

        table.add_row("Tree edit", f"{weights.tree_edit:.3f}")
        table.add_row("Token similarity", f"{weights.token_similarity:.3f}")
        table.add_row("Structural", f"{weights.structural:.3f}")
        table.add_row("Signature", f"{weights.signature:.3f}")
        table.add_row("Different-signature penalty", f"{weights.different_signature:.3f}")

        self.console.print(table)

    def show_validation(self, result: ValidationResult, title: str = "Validation Report",
                        worst: int = 5):
        """Error, classification and robustness metrics plus per-category breakdown."""
        metrics = Table(title=title)
        metrics.add_column("Metric", style="cyan")
        metrics.add_column("Value", style="magenta", justify="right")

        for label, value in (
            ("MAE", result.mae),
            ("MSE", result.mse),
            ("RMSE", result.rmse),
            ("R²", result.r2),
            ("Pearson r", result.pearson_r),
            ("Spearman ρ", result.spearman_rho),
            ("Precision", result.precision),
            ("Recall", result.recall),
            ("F1", result.f1_score),
            ("Accuracy", result.accuracy),
            ("Robustness", result.robustness_score),
            ("Consistency", result.consistency_score),
            ("Discrimination", result.discrimination_score),
            ("Composite", result.composite_score),
        ):
            metrics.add_row(label, f"{value:.4f}")
        self.console.print(metrics)

        dist = result.error_distribution
        self.console.print(
            f"Error distribution: mean {dist.mean:+.4f}, median {dist.median:+.4f}, "
            f"std {dist.std_dev:.4f}, skew {dist.skewness:+.3f}, kurtosis {dist.kurtosis:+.3f}, "
            f"IQR {dist.iqr:.4f}"
        )

        categories = Table(title="Per-category performance")
        categories.add_column("Category", style="cyan")
        categories.add_column("Cases", justify="right")
        categories.add_column("MAE", justify="right")
        categories.add_column("Expected", justify="right")
        categories.add_column("Actual", justify="right")
        for name, stats in sorted(result.category_stats.items()):
            categories.add_row(name, str(stats.count), f"{stats.mae:.4f}",
                               f"{stats.mean_expected:.3f}", f"{stats.mean_actual:.3f}")
        self.console.print(categories)

        if worst:
            cases = Table(title="Worst cases")
            cases.add_column("Case", style="cyan")
            cases.add_column("Category")
            cases.add_column("Expected", justify="right")
            cases.add_column("Actual", justify="right")
            cases.add_column("Error", style="red", justify="right")
            for case in result.worst_cases(worst):
                cases.add_row(case.name, case.category, f"{case.expected:.3f}",
                              f"{case.actual:.3f}", f"{case.error:+.3f}")
            self.console.print(cases)

    def show_grid_search(self, result: OptimizationResult, top: int = 5):
        self.console.print(Panel(
            f"Evaluated {result.iterations} combinations in {result.duration:.2f}s\n"
            f"Baseline score: {result.baseline_score:.4f}\n"
            f"Best score:     {result.best_score:.4f} ({result.improvement:+.4f})",
            title="[bold cyan]Grid Search[/bold cyan]",
            border_style="cyan",
        ))
        self.show_weights(result.best_weights, title="Best grid-search weights")

        table = Table(title=f"Top {top} combinations")
        table.add_column("Rank", justify="right")
        table.add_column("Weights", style="cyan")
        table.add_column("Score", style="magenta", justify="right")
        for rank, (weights, score) in enumerate(result.top_results(top), 1):
            table.add_row(str(rank), str(weights), f"{score:.4f}")
        self.console.print(table)

    def show_genetic(self, result: GeneticResult):
        self.console.print(Panel(
            f"Generations: {len(result.history)}\n"
            f"Evaluations: {result.total_evaluations}\n"
            f"Converged at generation: {result.convergence_generation}\n"
            f"Best fitness: {result.best_fitness:.4f}\n"
            f"Duration: {result.duration:.2f}s",
            title="[bold cyan]Genetic Optimization[/bold cyan]",
            border_style="cyan",
        ))
        self.show_weights(result.best_weights, title="Best genetic weights")

        table = Table(title="Evolution")
        table.add_column("Generation", justify="right")
        table.add_column("Best", justify="right")
        table.add_column("Average", justify="right")
        table.add_column("Worst", justify="right")
        table.add_column("Diversity", justify="right")
        for stats in _sample_history(result, rows=10):
            table.add_row(str(stats.generation), f"{stats.best_fitness:.4f}",
                          f"{stats.average_fitness:.4f}", f"{stats.worst_fitness:.4f}",
                          f"{stats.diversity:.4f}")
        self.console.print(table)

    def show_recommendation(self, baseline: ValidationResult,
                            candidates: List[ValidationResult],
                            labels: List[str]):
        """Compare optimized weights against the baseline and name the best."""
        table = Table(title="Method comparison")
        table.add_column("Method", style="cyan")
        table.add_column("MAE", justify="right")
        table.add_column("R²", justify="right")
        table.add_column("F1", justify="right")
        table.add_column("Composite", style="magenta", justify="right")

        table.add_row("current", f"{baseline.mae:.4f}", f"{baseline.r2:.4f}",
                      f"{baseline.f1_score:.4f}", f"{baseline.composite_score:.4f}")
        for label, result in zip(labels, candidates):
            table.add_row(label, f"{result.mae:.4f}", f"{result.r2:.4f}",
                          f"{result.f1_score:.4f}", f"{result.composite_score:.4f}")
        self.console.print(table)

        if not candidates:
            return
        best_label, best = max(zip(labels, candidates), key=lambda item: item[1].composite_score)
        if best.composite_score > baseline.composite_score:
            self.console.print(f"[green]✓ Recommended: {best_label} weights "
                               f"({best.composite_score - baseline.composite_score:+.4f})[/green]")
        else:
            self.console.print("[yellow]Current weights are already the best found[/yellow]")


def _sample_history(result: GeneticResult, rows: int):
    history = result.history
    if len(history) <= rows:
        return history
    step = max(1, len(history) // rows)
    sampled = history[::step]
    if sampled[-1] is not history[-1]:
        sampled.append(history[-1])
    return sampled
