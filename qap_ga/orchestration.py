"""
Orchestration module for the QAP genetic algorithm.

Implements the generational search loop as an explicit state machine:

    INIT -> EVALUATED -> RECOMBINE -> REPLACE -> EVALUATED ... -> TERMINATED

Selection, crossover and replacement are pluggable: each can be given as
a strategy name from the GA configuration or as a callable.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
import copy
import numpy as np

from .data_models import ProblemInstance, Solution
from .population import Population
from .crossover import CROSSOVER_OPERATORS
from .mutation import mutate
from .selection import get_selection_policy, select_parents
from .replacement import get_replacement_policy, apply_replacement
from .cli import validate_ga_config


DEFAULT_GA_CONFIG: Dict[str, Any] = {
    'population_size': 50,
    'offspring_count': None,  # None -> population_size
    'max_generations': 200,
    'stagnation_limit': 50,   # None disables stagnation stop
    'target_fitness': None,
    'init_method': 'uniform',
    'selection_strategy': 'tournament',
    'tournament_size': 3,
    'crossover_strategy': 'order',
    'crossover_rate': 0.9,
    'mutation_rate': 0.2,
    'mutation': {
        'max_swaps': 1,
    },
    'replacement_strategy': 'elitist',
    'elite_count': 1,
    'workers': 1,
    'report_every': 10,
}


def merge_ga_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Merge user GA settings over the defaults.

    Nested dictionaries (e.g. 'mutation') are merged key by key.
    """
    config = copy.deepcopy(DEFAULT_GA_CONFIG)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


class SearchState(Enum):
    INIT = "init"
    EVALUATED = "evaluated"
    RECOMBINE = "recombine"
    REPLACE = "replace"
    TERMINATED = "terminated"


@dataclass
class GenerationRecord:
    """Fitness summary of one generation."""
    generation: int
    best: int
    mean: float
    worst: int
    best_so_far: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'generation': self.generation,
            'best': self.best,
            'mean': round(self.mean, 4),
            'worst': self.worst,
            'best_so_far': self.best_so_far,
        }


@dataclass
class SearchResult:
    """
    Outcome of a search run.

    Attributes:
        best: Copy of the cheapest solution seen across all generations
        best_fitness: Its cost
        generations: Number of completed generations
        termination_reason: "max_generations", "stagnation" or "target_fitness"
        history: Per-generation fitness summaries (generation 0 is the initial population)
        seed: Random seed of the run, if known
    """
    best: Solution
    best_fitness: int
    generations: int
    termination_reason: str
    history: List[GenerationRecord] = field(default_factory=list)
    seed: Optional[int] = None


class SearchLoop:
    """
    Generational genetic algorithm over QAP assignments.

    One injected numpy Generator drives initialization, selection,
    crossover and mutation. Fitness evaluation never touches it, which is
    what allows evaluation to run on worker threads.

    Args:
        problem: Shared ProblemInstance
        config: GA settings, merged over DEFAULT_GA_CONFIG
        rng: Random number generator
        selection: Strategy name or callable(population, rng, config) -> Solution
        crossover: Strategy name or callable(parent_a, parent_b, rng) -> (child_a, child_b)
        replacement: Strategy name or callable(population, offspring, config) -> list
        verbose: Print progress every report_every generations
        seed: Seed used to build rng, recorded in the result

    Raises:
        ConfigValidationError: If the GA settings are invalid
    """

    def __init__(
        self,
        problem: ProblemInstance,
        config: Optional[Dict[str, Any]],
        rng: np.random.Generator,
        selection: Union[str, Callable, None] = None,
        crossover: Union[str, Callable, None] = None,
        replacement: Union[str, Callable, None] = None,
        verbose: bool = False,
        seed: Optional[int] = None
    ):
        self.problem = problem
        self.config = merge_ga_config(config)
        validate_ga_config(self.config)
        self.rng = rng
        self.verbose = verbose
        self.seed = seed

        self.select = self._resolve(selection, 'selection_strategy', get_selection_policy)
        self.cross = self._resolve(crossover, 'crossover_strategy', self._crossover_operator)
        self.replace = self._resolve(replacement, 'replacement_strategy', get_replacement_policy)

        self.state = SearchState.INIT
        self.population: Optional[Population] = None
        self.generation = 0
        self.best_so_far: Optional[Solution] = None
        self.stagnant_generations = 0
        self.history: List[GenerationRecord] = []
        self.termination_reason: Optional[str] = None

    def _resolve(self, policy, config_key: str, lookup: Callable) -> Callable:
        if policy is None:
            return lookup(self.config[config_key])
        if isinstance(policy, str):
            return lookup(policy)
        if callable(policy):
            return policy
        raise TypeError(f"{config_key} must be a strategy name or a callable, got: {policy!r}")

    @staticmethod
    def _crossover_operator(strategy: str) -> Callable:
        if strategy not in CROSSOVER_OPERATORS:
            raise ValueError(f"Unknown crossover strategy: {strategy}")
        return CROSSOVER_OPERATORS[strategy]

    @property
    def offspring_count(self) -> int:
        count = self.config.get('offspring_count')
        return self.config['population_size'] if count is None else count

    def initialize(self) -> None:
        """
        Build and evaluate the initial population.

        Raises:
            RuntimeError: If the loop has already been initialized
        """
        if self.state is not SearchState.INIT:
            raise RuntimeError(f"Search already initialized (state: {self.state.value})")

        self.population = Population.random(
            self.problem,
            self.config['population_size'],
            self.rng,
            method=self.config['init_method']
        )
        self.population.evaluate(workers=self.config['workers'])
        self.state = SearchState.EVALUATED

        self._record()
        self._check_termination()

    def step(self) -> None:
        """
        Run one generation: select, recombine, mutate, evaluate, replace.

        Raises:
            RuntimeError: If called before initialize() or after termination
        """
        if self.state is not SearchState.EVALUATED:
            raise RuntimeError(f"step() requires state 'evaluated', got '{self.state.value}'")

        self.state = SearchState.RECOMBINE
        offspring = self._recombine()

        self.state = SearchState.REPLACE
        survivors = apply_replacement(self.population, offspring, self.config, policy=self.replace)
        self.population.replace_members(survivors)
        self.generation += 1
        self.state = SearchState.EVALUATED

        self._record()
        self._check_termination()

    def run(self) -> SearchResult:
        """
        Run generations until a termination condition is met.

        Returns:
            SearchResult with the cheapest solution found across all generations
        """
        if self.state is SearchState.INIT:
            self.initialize()

        while self.state is not SearchState.TERMINATED:
            self.step()

        if self.verbose:
            print(f"Search terminated after {self.generation} generations "
                  f"({self.termination_reason}), best fitness: {self.best_so_far.fitness}")

        return self.result()

    def result(self) -> SearchResult:
        """
        Raises:
            RuntimeError: If the search has not been initialized
        """
        if self.best_so_far is None:
            raise RuntimeError("No result available before initialize()")

        return SearchResult(
            best=self.best_so_far.copy(),
            best_fitness=self.best_so_far.fitness,
            generations=self.generation,
            termination_reason=self.termination_reason or "",
            history=list(self.history),
            seed=self.seed,
        )

    def _recombine(self) -> List[Solution]:
        """Produce offspring_count evaluated children from selected parents."""
        offspring: List[Solution] = []
        next_generation = self.generation + 1

        while len(offspring) < self.offspring_count:
            parent_a, parent_b = select_parents(self.population, self.config, self.rng, policy=self.select)

            if self.rng.random() < self.config['crossover_rate']:
                children = self.cross(parent_a, parent_b, self.rng)
            else:
                children = (parent_a.copy(), parent_b.copy())
                for child, parent in zip(children, (parent_a, parent_b)):
                    child.metadata = {'parent_a_id': parent.id, 'crossover_strategy': 'none'}

            for child in children:
                if len(offspring) >= self.offspring_count:
                    break
                mutate(child, self.config, self.rng)
                child.id = f"g{next_generation:03d}_{len(offspring):03d}"
                offspring.append(child)

        Population(self.problem, offspring).evaluate(workers=self.config['workers'])
        return offspring

    def _record(self) -> None:
        stats = self.population.statistics()
        current_best = self.population.best()

        if self.best_so_far is None or current_best.fitness < self.best_so_far.fitness:
            self.best_so_far = current_best.copy()
            self.stagnant_generations = 0
        else:
            self.stagnant_generations += 1

        record = GenerationRecord(
            generation=self.generation,
            best=stats['best'],
            mean=stats['mean'],
            worst=stats['worst'],
            best_so_far=self.best_so_far.fitness,
        )
        self.history.append(record)

        if self.verbose and self.generation % self.config['report_every'] == 0:
            print(f"  Generation {self.generation:4d}: best={record.best} "
                  f"mean={record.mean:.1f} worst={record.worst} "
                  f"best_so_far={record.best_so_far}")

    def _check_termination(self) -> None:
        target = self.config.get('target_fitness')
        stagnation_limit = self.config.get('stagnation_limit')

        if target is not None and self.best_so_far.fitness <= target:
            self.termination_reason = 'target_fitness'
        elif self.generation >= self.config['max_generations']:
            self.termination_reason = 'max_generations'
        elif stagnation_limit is not None and self.stagnant_generations >= stagnation_limit:
            self.termination_reason = 'stagnation'
        else:
            return

        self.state = SearchState.TERMINATED
