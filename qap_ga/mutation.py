"""
Mutation operators for the QAP genetic algorithm.

Mutation is a position swap on the assignment, which keeps it a
permutation by construction. The driver applies a configured number of
swaps with a configured probability and records an operation log.
"""

from typing import Dict, List, Tuple
import numpy as np

from .data_models import Solution


def swap_mutation(solution: Solution, rng: np.random.Generator) -> List[str]:
    """
    Swap the locations of two distinct, randomly chosen facilities.

    Args:
        solution: Solution to mutate in place
        rng: Random number generator

    Returns:
        Operation log
    """
    n = solution.size
    if n < 2:
        return [f"swap_mutation: size {n} too small to swap"]

    pos1, pos2 = (int(p) for p in rng.choice(n, size=2, replace=False))
    before = solution.assignment
    loc1, loc2 = int(before[pos1]), int(before[pos2])

    solution.mutate(pos1, pos2)

    return [f"swap_mutation: facility {pos1} ({loc1} -> {loc2}) <-> facility {pos2} ({loc2} -> {loc1})"]


def mutate(
    solution: Solution,
    config: Dict,
    rng: np.random.Generator
) -> Tuple[Solution, List[str]]:
    """
    Apply mutation according to configuration.

    This is the main mutation orchestrator. It:
    1. Decides whether to mutate (based on mutation_rate)
    2. Draws the number of swaps (1..max_swaps)
    3. Applies the swaps in place and collects their log

    Fitness is left stale whenever any swap was applied.

    Args:
        solution: Solution to mutate
        config: GA configuration with mutation settings
        rng: Random number generator

    Returns:
        Tuple of (solution, operation_log)
    """
    mutation_rate = config.get('mutation_rate', 0.2)

    if rng.random() >= mutation_rate:
        return solution, ["no_mutation: skipped (probability)"]

    max_swaps = config.get('mutation', {}).get('max_swaps', 1)
    num_swaps = int(rng.integers(1, max_swaps + 1))

    all_logs = []
    for _ in range(num_swaps):
        all_logs.extend(swap_mutation(solution, rng))

    solution.metadata.setdefault('mutation_ops', []).extend(all_logs)

    return solution, all_logs


def mutation_statistics(original: Solution, mutated: Solution) -> Dict:
    """
    Calculate statistics about mutation operations.

    Args:
        original: Solution before mutation
        mutated: Solution after mutation

    Returns:
        Dictionary with mutation statistics
    """
    changed = int(np.sum(original.assignment != mutated.assignment))

    return {
        'size': mutated.size,
        'positions_changed': changed,
        'change_rate': changed / max(mutated.size, 1),
    }
