"""
Survivor replacement policies.

Every policy has the signature policy(population, offspring, config) and
returns exactly len(population) evaluated members for the next
generation.
"""

from typing import Callable, Dict, List

from .data_models import Solution
from .population import Population


def _cheapest(solutions: List[Solution], count: int) -> List[Solution]:
    return sorted(solutions, key=lambda member: member.fitness)[:count]


def generational_replacement(
    population: Population,
    offspring: List[Solution],
    config: Dict
) -> List[Solution]:
    """
    Offspring replace the population, keeping elite_count current members.

    The elite_count cheapest current members survive unchanged; the rest
    of the slots go to the cheapest offspring. If there are not enough
    offspring, the remaining slots are filled with the next-best current
    members.

    Args:
        population: Current evaluated population
        offspring: Evaluated offspring
        config: GA configuration (elite_count)

    Returns:
        Members of the next generation
    """
    size = len(population)
    elite_count = min(max(config.get('elite_count', 1), 0), size)

    ranked_current = population.sorted_members()
    survivors = ranked_current[:elite_count]
    survivors.extend(_cheapest(offspring, size - elite_count))

    if len(survivors) < size:
        survivors.extend(ranked_current[elite_count:elite_count + size - len(survivors)])

    return survivors


def elitist_replacement(
    population: Population,
    offspring: List[Solution],
    config: Dict
) -> List[Solution]:
    """(mu + lambda): the cheapest N of current and offspring combined."""
    return _cheapest(list(population) + list(offspring), len(population))


def steady_state_replacement(
    population: Population,
    offspring: List[Solution],
    config: Dict
) -> List[Solution]:
    """
    Each offspring replaces the current worst member if strictly cheaper.
    """
    survivors = list(population)

    for child in offspring:
        worst_idx = max(range(len(survivors)), key=lambda idx: survivors[idx].fitness)
        if child.fitness < survivors[worst_idx].fitness:
            survivors[worst_idx] = child

    return survivors


REPLACEMENT_POLICIES: Dict[str, Callable] = {
    'generational': generational_replacement,
    'elitist': elitist_replacement,
    'steady_state': steady_state_replacement,
}


def get_replacement_policy(strategy: str) -> Callable:
    """
    Raises:
        ValueError: If strategy is unknown
    """
    if strategy not in REPLACEMENT_POLICIES:
        raise ValueError(f"Unknown replacement strategy: {strategy}")
    return REPLACEMENT_POLICIES[strategy]


def apply_replacement(
    population: Population,
    offspring: List[Solution],
    config: Dict,
    policy: Callable = None
) -> List[Solution]:
    """
    Form the next generation using configured strategy.

    Raises:
        ValueError: If the policy does not preserve population size
    """
    if policy is None:
        policy = get_replacement_policy(config.get('replacement_strategy', 'elitist'))

    survivors = policy(population, offspring, config)

    if len(survivors) != len(population):
        raise ValueError(
            f"Replacement policy changed population size: {len(population)} -> {len(survivors)}"
        )

    return survivors
