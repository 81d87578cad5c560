"""Command-line interface for funcsim."""

import shutil
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from . import __version__
from .calibration.genetic import GeneticOptimizer, GeneticParameters
from .calibration.grid_search import GridSearchConfig, GridSearchOptimizer
from .calibration.reporting import CalibrationReporter
from .calibration.validator import StatisticalValidator, ValidationResult
from .config import SimilarityConfig
from .core.parser import parse_files
from .errors import ConfigurationError
from .similarity.detector import Match, SimilarityDetector
from .similarity.scheduler import ParallelComparisonScheduler
from .utils.logging_setup import log_operation, setup_logging

console = Console()


def _load_config(path: Optional[str]) -> SimilarityConfig:
    try:
        return SimilarityConfig.load_or_default(path)
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e


@click.group(name="funcsim")
@click.version_option(__version__, prog_name="funcsim")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--log-file", is_flag=True, help="Also write JSON logs to ./logs")
@click.pass_context
def cli(ctx, verbose, log_file):
    """Find duplicate and near-duplicate Python functions."""
    ctx.ensure_object(dict)
    ctx.obj['logger'] = setup_logging(level="DEBUG" if verbose else "WARNING", file=log_file)


@cli.command()
@click.argument("files", nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Path to a YAML config file")
@click.option("--threshold", type=click.FloatRange(0.0, 1.0),
              help="Minimum similarity for a match")
@click.option("--workers", type=int, help="Worker threads (<= 0 means CPU count)")
@click.option("--min-lines", type=click.IntRange(min=0),
              help="Skip functions shorter than this")
@click.pass_context
def scan(ctx, files, config_path, threshold, workers, min_lines):
    """Compare every function in FILES against every other."""
    config = _load_config(config_path)

    overrides = {key: value for key, value in (
        ('threshold', threshold), ('workers', workers), ('min_lines', min_lines)
    ) if value is not None}
    try:
        config = replace(config, **overrides)
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    with log_operation(ctx.obj['logger'], "scan", files=len(files)):
        matches, run_error = _run_scan(files, config)
    _print_matches(matches)

    if run_error is not None:
        console.print(f"[red]✗ {run_error.message}[/red]")
        ctx.exit(1)


def _run_scan(files, config: SimilarityConfig):
    parsed = parse_files(files)
    for error in parsed.errors:
        console.print(f"[yellow]Skipped {error.file_path}: {error.message}[/yellow]")

    functions = [f for f in parsed.functions if f.is_analyzable(config.min_lines)]
    console.print(f"Analyzing {len(functions)} of {len(parsed.functions)} functions "
                  f"from {parsed.successful_files} files")

    scheduler = ParallelComparisonScheduler(SimilarityDetector(config))
    with Progress(TextColumn("[cyan]Comparing"), BarColumn(), TaskProgressColumn(),
                  console=console, transient=True) as progress:
        task = progress.add_task("compare", total=None)
        return scheduler.find_similar(
            functions,
            lambda completed, total: progress.update(task, completed=completed, total=total),
        )


def _print_matches(matches: List[Match]):
    if not matches:
        console.print("[green]No similar functions found[/green]")
        return

    table = Table(title=f"{len(matches)} similar function pairs")
    table.add_column("Similarity", style="magenta", justify="right")
    table.add_column("Function A", style="cyan")
    table.add_column("Function B", style="cyan")
    for match in sorted(matches, key=lambda m: m.similarity, reverse=True):
        table.add_row(f"{match.similarity:.3f}",
                      match.function_a.qualified_location,
                      match.function_b.qualified_location)
    console.print(table)


@cli.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Path to a YAML config file")
@click.pass_context
def validate(ctx, config_path):
    """Report how well the configured weights fit the validation suite."""
    config = _load_config(config_path)
    reporter = CalibrationReporter(console)

    with log_operation(ctx.obj['logger'], "validate"):
        result = StatisticalValidator(config=config).validate(config.weights)
    reporter.show_weights(config.weights, title="Configured weights")
    reporter.show_validation(result)


@cli.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Path to a YAML config file")
@click.option("--method", type=click.Choice(["grid", "genetic", "all"]), default="all",
              show_default=True, help="Optimization method")
@click.option("--step", type=float, default=0.05, show_default=True,
              help="Grid resolution")
@click.option("--population", type=int, default=30, show_default=True,
              help="Genetic population size")
@click.option("--generations", type=int, default=50, show_default=True,
              help="Genetic generation count")
@click.option("--mutation-rate", type=float, default=0.1, show_default=True)
@click.option("--crossover-rate", type=float, default=0.8, show_default=True)
@click.option("--elite-size", type=int, default=3, show_default=True)
@click.option("--seed", type=int, default=None, help="Random seed for reproducibility")
@click.option("--write-config", type=click.Path(dir_okay=False),
              help="Save a config with the best weights to this path")
@click.pass_context
def calibrate(ctx, config_path, method, step, population, generations, mutation_rate,
              crossover_rate, elite_size, seed, write_config):
    """Tune the similarity weights against the validation suite."""
    config = _load_config(config_path)
    reporter = CalibrationReporter(console)
    validator = StatisticalValidator(config=config)

    try:
        grid = GridSearchConfig(step=step)
        parameters = GeneticParameters(
            population_size=population,
            generations=generations,
            mutation_rate=mutation_rate,
            crossover_rate=crossover_rate,
            elite_size=elite_size,
            seed=seed,
        )
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    with log_operation(ctx.obj['logger'], "calibrate", method=method):
        console.print("[bold cyan]Current weights[/bold cyan]")
        baseline = validator.validate(config.weights)
        reporter.show_weights(config.weights)
        reporter.show_validation(baseline, title="Current weights", worst=0)

        labels: List[str] = []
        candidates: List[ValidationResult] = []

        if method in ("grid", "all"):
            console.print("\n[yellow]Running grid search...[/yellow]")
            result = GridSearchOptimizer(validator, grid).optimize(config.weights)
            reporter.show_grid_search(result)
            labels.append("grid")
            candidates.append(result.best_validation)

        if method in ("genetic", "all"):
            console.print("\n[yellow]Running genetic optimization...[/yellow]")
            result = GeneticOptimizer(validator, parameters,
                                      different_signature=config.weights.different_signature).optimize()
            reporter.show_genetic(result)
            labels.append("genetic")
            candidates.append(result.best.validation or validator.validate(result.best_weights))

        reporter.show_recommendation(baseline, candidates, labels)

    if write_config:
        best = max(candidates, key=lambda r: r.composite_score)
        weights = best.weights if best.composite_score > baseline.composite_score else config.weights
        path = _write_config(config.with_weights(weights), Path(write_config))
        console.print(f"[green]✓ Saved weights to {path}[/green]")


def _write_config(config: SimilarityConfig, path: Path) -> Path:
    """Save ``config`` to ``path``, keeping a backup of any existing file."""
    if path.exists():
        backup = path.with_name(path.name + ".bak")
        shutil.copy2(path, backup)
        console.print(f"Backed up existing config to {backup}")
    return config.save_to_file(path)


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
