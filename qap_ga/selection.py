"""
Parent selection policies.

Every policy has the signature policy(population, rng, config) and
returns one member. Policies read fitness and never modify it; QAP is a
minimization problem, so lower cost is preferred throughout.
"""

from typing import Callable, Dict, Tuple
import numpy as np

from .data_models import Solution
from .population import Population


def tournament_selection(population: Population, rng: np.random.Generator, config: Dict) -> Solution:
    """
    Pick tournament_size members at random and return the cheapest.

    Args:
        population: Evaluated population
        rng: Random number generator
        config: GA configuration (tournament_size)

    Returns:
        Tournament winner
    """
    size = min(config.get('tournament_size', 3), len(population))
    contestants = rng.choice(len(population), size=size, replace=False)
    winner = min(contestants, key=lambda idx: population[int(idx)].fitness)
    return population[int(winner)]


def roulette_selection(population: Population, rng: np.random.Generator, config: Dict) -> Solution:
    """
    Fitness-proportional selection on inverted cost.

    Each member is weighted by (worst - fitness + 1), so the cheapest
    member has the largest slice and the worst still has a nonzero one.
    """
    costs = np.asarray(population.fitnesses(), dtype=np.float64)
    weights = costs.max() - costs + 1.0
    idx = rng.choice(len(population), p=weights / weights.sum())
    return population[int(idx)]


def rank_selection(population: Population, rng: np.random.Generator, config: Dict) -> Solution:
    """Linear ranking: the cheapest of N members gets weight N, the worst 1."""
    costs = np.asarray(population.fitnesses())
    order = np.argsort(costs, kind='stable')
    n = len(population)

    weights = np.empty(n, dtype=np.float64)
    weights[order] = np.arange(n, 0, -1)

    idx = rng.choice(n, p=weights / weights.sum())
    return population[int(idx)]


def random_selection(population: Population, rng: np.random.Generator, config: Dict) -> Solution:
    """Uniform selection, ignoring fitness."""
    return population[int(rng.integers(0, len(population)))]


SELECTION_POLICIES: Dict[str, Callable] = {
    'tournament': tournament_selection,
    'roulette': roulette_selection,
    'rank': rank_selection,
    'random': random_selection,
}


def get_selection_policy(strategy: str) -> Callable:
    """
    Raises:
        ValueError: If strategy is unknown
    """
    if strategy not in SELECTION_POLICIES:
        raise ValueError(f"Unknown selection strategy: {strategy}")
    return SELECTION_POLICIES[strategy]


def select_parents(
    population: Population,
    config: Dict,
    rng: np.random.Generator,
    policy: Callable = None
) -> Tuple[Solution, Solution]:
    """
    Select one parent pair.

    Args:
        population: Evaluated population
        config: GA configuration (selection_strategy)
        rng: Random number generator
        policy: Optional selection callable overriding the configured strategy

    Returns:
        Tuple of (parent_a, parent_b)
    """
    if policy is None:
        policy = get_selection_policy(config.get('selection_strategy', 'tournament'))

    return policy(population, rng, config), policy(population, rng, config)
