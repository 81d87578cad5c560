"""
Genetic optimization of similarity weights.

Individuals are weight vectors; fitness is the validator's composite score.
Each generation keeps the elite unchanged and fills the remaining slots
with children bred from fitness-proportionate parents.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from scipy.spatial.distance import pdist

from ..config import MIN_WEIGHT, SimilarityWeights
from ..errors import ConfigurationError
from .validator import StatisticalValidator, ValidationResult

logger = logging.getLogger(__name__)

# Sampling ranges for the initial population: offset + U(0, 1) * span
INITIAL_OFFSETS = np.array([0.10, 0.10, 0.10, 0.05])
INITIAL_SPANS = np.array([0.40, 0.40, 0.30, 0.25])


@dataclass
class GeneticParameters:
    """Genetic algorithm settings."""

    population_size: int = 50
    generations: int = 100
    mutation_rate: float = 0.1
    crossover_rate: float = 0.8
    elite_size: int = 5
    mutation_sigma: float = 0.05
    convergence_epsilon: float = 1e-6
    convergence_window: int = 10
    seed: Optional[int] = None

    def __post_init__(self):
        if self.population_size < 2:
            raise ConfigurationError("population_size must be at least 2",
                                     field_name="population_size", value=self.population_size)
        if self.generations < 1:
            raise ConfigurationError("generations must be at least 1",
                                     field_name="generations", value=self.generations)
        for name in ("mutation_rate", "crossover_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be between 0 and 1, got {value}",
                                         field_name=name, value=value)
        if not 0 <= self.elite_size < self.population_size:
            raise ConfigurationError(
                f"elite_size must be between 0 and population_size - 1, got {self.elite_size}",
                field_name="elite_size", value=self.elite_size
            )
        if self.mutation_sigma <= 0:
            raise ConfigurationError("mutation_sigma must be positive",
                                     field_name="mutation_sigma", value=self.mutation_sigma)
        if self.convergence_window < 1:
            raise ConfigurationError("convergence_window must be at least 1",
                                     field_name="convergence_window", value=self.convergence_window)


@dataclass
class Individual:
    """A candidate weight vector and its fitness."""

    weights: SimilarityWeights
    fitness: float = 0.0
    age: int = 0
    validation: Optional[ValidationResult] = field(default=None, repr=False)

    def vector(self) -> np.ndarray:
        return np.array(self.weights.as_vector())


@dataclass
class GenerationStats:
    generation: int
    best_fitness: float
    average_fitness: float
    worst_fitness: float
    diversity: float


@dataclass
class GeneticResult:
    """Outcome of a genetic optimization run."""

    best: Individual
    population: List[Individual]
    history: List[GenerationStats]
    convergence_generation: int
    total_evaluations: int
    duration: float = 0.0

    @property
    def best_weights(self) -> SimilarityWeights:
        return self.best.weights

    @property
    def best_fitness(self) -> float:
        return self.best.fitness


class GeneticOptimizer:
    """Evolves weight vectors towards a higher validation score."""

    def __init__(self, validator: StatisticalValidator,
                 parameters: Optional[GeneticParameters] = None,
                 different_signature: float = 0.30):
        self.validator = validator
        self.parameters = parameters or GeneticParameters()
        self.different_signature = different_signature
        self.rng = np.random.default_rng(self.parameters.seed)
        self.evaluations = 0

    def optimize(self) -> GeneticResult:
        params = self.parameters
        start_time = time.time()
        self.evaluations = 0

        logger.info(f"Genetic optimization: population {params.population_size}, "
                    f"{params.generations} generations")

        population = [self._evaluate(self._random_weights())
                      for _ in range(params.population_size)]
        history: List[GenerationStats] = []

        for generation in range(params.generations):
            population.sort(key=lambda ind: ind.fitness, reverse=True)
            stats = self._generation_stats(generation, population)
            history.append(stats)
            logger.debug(f"Generation {generation}: best {stats.best_fitness:.4f}, "
                         f"avg {stats.average_fitness:.4f}, diversity {stats.diversity:.4f}")

            if generation == params.generations - 1:
                break
            population = self._next_generation(population)

        convergence_generation = self._convergence_generation(history)
        duration = time.time() - start_time
        logger.info(f"Genetic optimization finished in {duration:.2f}s: best fitness "
                    f"{population[0].fitness:.4f}, converged at generation {convergence_generation}")

        return GeneticResult(
            best=population[0],
            population=population,
            history=history,
            convergence_generation=convergence_generation,
            total_evaluations=self.evaluations,
            duration=duration,
        )

    def _next_generation(self, ranked: List[Individual]) -> List[Individual]:
        params = self.parameters
        offspring = [Individual(ind.weights, ind.fitness, ind.age + 1, ind.validation)
                     for ind in ranked[:params.elite_size]]

        while len(offspring) < params.population_size:
            first, second = self._select(ranked), self._select(ranked)
            if self.rng.random() < params.crossover_rate:
                child = self._crossover(first.vector(), second.vector())
            else:
                child = first.vector()
            if self.rng.random() < params.mutation_rate:
                child = self._mutate(child)
            offspring.append(self._evaluate(self._to_weights(child)))

        return offspring

    def _select(self, population: List[Individual]) -> Individual:
        """Fitness-proportionate (roulette wheel) selection."""
        fitness = np.array([max(ind.fitness, 0.0) for ind in population])
        total = fitness.sum()
        if total <= 0:
            return population[int(self.rng.integers(len(population)))]
        return population[int(self.rng.choice(len(population), p=fitness / total))]

    def _crossover(self, first: np.ndarray, second: np.ndarray) -> np.ndarray:
        """Arithmetic blend of two parents."""
        alpha = self.rng.random()
        return alpha * first + (1.0 - alpha) * second

    def _mutate(self, vector: np.ndarray) -> np.ndarray:
        """Gaussian perturbation of one randomly chosen weight."""
        mutated = vector.copy()
        index = int(self.rng.integers(len(mutated)))
        mutated[index] = max(mutated[index] + self.rng.normal(0.0, self.parameters.mutation_sigma),
                             MIN_WEIGHT)
        return mutated

    def _random_weights(self) -> SimilarityWeights:
        return self._to_weights(INITIAL_OFFSETS + self.rng.random(4) * INITIAL_SPANS)

    def _to_weights(self, vector: np.ndarray) -> SimilarityWeights:
        return SimilarityWeights.from_vector(vector.tolist(), self.different_signature)

    def _evaluate(self, weights: SimilarityWeights) -> Individual:
        validation = self.validator.validate(weights)
        self.evaluations += 1
        return Individual(weights, validation.composite_score, 0, validation)

    def _generation_stats(self, generation: int, ranked: List[Individual]) -> GenerationStats:
        fitness = np.array([ind.fitness for ind in ranked])
        vectors = np.array([ind.weights.as_vector() for ind in ranked])
        diversity = float(pdist(vectors).mean()) if len(vectors) > 1 else 0.0
        return GenerationStats(
            generation=generation,
            best_fitness=float(fitness.max()),
            average_fitness=float(fitness.mean()),
            worst_fitness=float(fitness.min()),
            diversity=diversity,
        )

    def _convergence_generation(self, history: List[GenerationStats]) -> int:
        """
        First generation whose best fitness improved by less than epsilon
        over the preceding window; the last generation when that never
        happens.
        """
        window = self.parameters.convergence_window
        epsilon = self.parameters.convergence_epsilon
        for index in range(window, len(history)):
            gain = history[index].best_fitness - history[index - window].best_fitness
            if gain < epsilon:
                return history[index].generation
        return history[-1].generation
