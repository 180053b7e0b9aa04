"""
Crossover operators for the QAP genetic algorithm.

Implements order (OX), partially mapped (PMX) and cycle (CX) crossover.
Each operator recombines two parent assignments into two children and
every child is validated as a permutation before it is returned.
"""

from typing import Callable, Dict, Tuple
import numpy as np

from .data_models import Solution, InvalidPermutation, is_permutation


def _cut_points(n: int, rng: np.random.Generator) -> Tuple[int, int]:
    """Pick a slice [start, end) with 0 <= start < end <= n."""
    start, end = sorted(rng.choice(n + 1, size=2, replace=False))
    return int(start), int(end)


def _check_parents(parent_a: Solution, parent_b: Solution) -> None:
    if parent_a.problem is not parent_b.problem:
        raise ValueError(
            f"Cannot cross solutions of different problem instances: "
            f"{parent_a.problem!r} vs {parent_b.problem!r}"
        )


def _make_child(
    values: np.ndarray,
    parent_a: Solution,
    parent_b: Solution,
    strategy: str,
    suffix: str
) -> Solution:
    """
    Wrap child values in a Solution, failing loudly on a broken operator.

    Raises:
        InvalidPermutation: If values is not a permutation of [0, n)
    """
    n = parent_a.size
    if not is_permutation(values, n):
        raise InvalidPermutation(
            f"{strategy} crossover produced non-permutation {values.tolist()} "
            f"from {parent_a.id or 'A'} x {parent_b.id or 'B'}"
        )

    child_id = f"{parent_a.id}_x_{parent_b.id}_{suffix}" if parent_a.id or parent_b.id else ""
    return Solution(
        parent_a.problem,
        assignment=values,
        id=child_id,
        metadata={
            'parent_a_id': parent_a.id,
            'parent_b_id': parent_b.id,
            'crossover_strategy': strategy,
        }
    )


def _order_child(donor: np.ndarray, filler: np.ndarray, start: int, end: int) -> np.ndarray:
    n = len(donor)
    child = np.full(n, -1, dtype=np.int64)
    child[start:end] = donor[start:end]
    taken = set(donor[start:end].tolist())

    # Fill from filler's cyclic order, beginning just after the slice
    order = [int(filler[(end + k) % n]) for k in range(n)]
    remaining = [v for v in order if v not in taken]

    for k, value in enumerate(remaining):
        child[(end + k) % n] = value

    return child


def order_crossover(
    parent_a: Solution,
    parent_b: Solution,
    rng: np.random.Generator
) -> Tuple[Solution, Solution]:
    """
    Order crossover (OX).

    Each child keeps a slice of one parent in place and fills the
    remaining positions with the missing locations in the order they
    appear in the other parent, starting after the slice.

    Args:
        parent_a: First parent
        parent_b: Second parent
        rng: Random number generator

    Returns:
        Tuple of (child_a, child_b)
    """
    _check_parents(parent_a, parent_b)
    a, b = parent_a.assignment, parent_b.assignment
    start, end = _cut_points(parent_a.size, rng)

    child_a = _order_child(a, b, start, end)
    child_b = _order_child(b, a, start, end)

    return (
        _make_child(child_a, parent_a, parent_b, 'order', 'ox1'),
        _make_child(child_b, parent_b, parent_a, 'order', 'ox2'),
    )


def _pmx_child(donor: np.ndarray, other: np.ndarray, start: int, end: int) -> np.ndarray:
    n = len(donor)
    child = other.copy()
    child[start:end] = donor[start:end]

    # Map each slice value of donor to the value it displaced in other
    mapping = {int(donor[k]): int(other[k]) for k in range(start, end)}
    in_slice = set(mapping)

    for k in list(range(0, start)) + list(range(end, n)):
        value = int(other[k])
        while value in in_slice:
            value = mapping[value]
        child[k] = value

    return child


def pmx_crossover(
    parent_a: Solution,
    parent_b: Solution,
    rng: np.random.Generator
) -> Tuple[Solution, Solution]:
    """
    Partially mapped crossover (PMX).

    Exchanges a slice between parents, then repairs duplicates outside
    the slice by following the value mapping the slice defines.

    Args:
        parent_a: First parent
        parent_b: Second parent
        rng: Random number generator

    Returns:
        Tuple of (child_a, child_b)
    """
    _check_parents(parent_a, parent_b)
    a, b = parent_a.assignment, parent_b.assignment
    start, end = _cut_points(parent_a.size, rng)

    child_a = _pmx_child(a, b, start, end)
    child_b = _pmx_child(b, a, start, end)

    return (
        _make_child(child_a, parent_a, parent_b, 'pmx', 'pmx1'),
        _make_child(child_b, parent_b, parent_a, 'pmx', 'pmx2'),
    )


def cycle_crossover(
    parent_a: Solution,
    parent_b: Solution,
    rng: np.random.Generator
) -> Tuple[Solution, Solution]:
    """
    Cycle crossover (CX).

    Splits positions into cycles between the parents and takes alternate
    cycles from each parent. The starting parent is chosen at random.

    Args:
        parent_a: First parent
        parent_b: Second parent
        rng: Random number generator

    Returns:
        Tuple of (child_a, child_b)
    """
    _check_parents(parent_a, parent_b)
    a, b = parent_a.assignment, parent_b.assignment
    n = parent_a.size

    position_in_a = np.empty(n, dtype=np.int64)
    position_in_a[a] = np.arange(n)

    child_a = np.full(n, -1, dtype=np.int64)
    child_b = np.full(n, -1, dtype=np.int64)
    take_from_a = bool(rng.random() < 0.5)

    for start in range(n):
        if child_a[start] != -1:
            continue

        pos = start
        while child_a[pos] == -1:
            if take_from_a:
                child_a[pos], child_b[pos] = a[pos], b[pos]
            else:
                child_a[pos], child_b[pos] = b[pos], a[pos]
            pos = int(position_in_a[b[pos]])

        take_from_a = not take_from_a

    return (
        _make_child(child_a, parent_a, parent_b, 'cycle', 'cx1'),
        _make_child(child_b, parent_b, parent_a, 'cycle', 'cx2'),
    )


CROSSOVER_OPERATORS: Dict[str, Callable] = {
    'order': order_crossover,
    'pmx': pmx_crossover,
    'cycle': cycle_crossover,
}


def apply_crossover(
    parent_a: Solution,
    parent_b: Solution,
    config: Dict,
    rng: np.random.Generator
) -> Tuple[Solution, Solution]:
    """
    Apply crossover using configured strategy.

    This is the main entry point for crossover operations. It dispatches
    to the appropriate operator based on configuration.

    Args:
        parent_a: First parent
        parent_b: Second parent
        config: GA configuration
        rng: Random number generator

    Returns:
        Tuple of (child_a, child_b)

    Raises:
        ValueError: If strategy is unknown or parents belong to different instances
    """
    strategy = config.get('crossover_strategy', 'order')

    if strategy not in CROSSOVER_OPERATORS:
        raise ValueError(f"Unknown crossover strategy: {strategy}")

    return CROSSOVER_OPERATORS[strategy](parent_a, parent_b, rng)


def crossover_statistics(child: Solution, parent_a: Solution, parent_b: Solution) -> Dict:
    """
    Calculate statistics about the crossover operation.

    Args:
        child: Child solution
        parent_a: First parent
        parent_b: Second parent

    Returns:
        Dictionary with per-parent inheritance counts
    """
    c = child.assignment
    from_a = int(np.sum(c == parent_a.assignment))
    from_b = int(np.sum(c == parent_b.assignment))

    return {
        'size': child.size,
        'inherited_from_a': from_a,
        'inherited_from_b': from_b,
        'shared_by_parents': int(np.sum(parent_a.assignment == parent_b.assignment)),
    }
