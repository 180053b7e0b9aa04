"""
Data models for the QAP genetic algorithm.

Core data structures: the problem instance (flow and distance matrices),
the tagged fitness state, and the Solution individual with its
initialization, evaluation and swap-mutation operators.
"""

import copy
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple, Union
import numpy as np


class QAPError(Exception):
    """Base class for QAP domain errors."""
    pass


class MalformedInstance(QAPError):
    """Raised when flow/distance matrices are not square or mismatched."""
    pass


class IndexOutOfRange(QAPError, IndexError):
    """Raised when a position or matrix index falls outside [0, n)."""
    pass


class StaleFitness(QAPError):
    """Raised when fitness is read before being (re-)computed."""
    pass


class InvalidPermutation(QAPError):
    """Raised when an assignment is not a permutation of [0, n)."""
    pass


def is_permutation(values: Sequence[int], n: int) -> bool:
    """
    Check whether values hold every integer in [0, n) exactly once.

    Args:
        values: Candidate assignment
        n: Problem size

    Returns:
        True if values is a permutation of range(n)
    """
    arr = np.asarray(values)
    if arr.ndim != 1 or arr.shape[0] != n:
        return False
    if n == 0:
        return True
    if not np.issubdtype(arr.dtype, np.integer):
        return False
    return bool(np.array_equal(np.sort(arr), np.arange(n)))


def _as_matrix(name: str, values: Any) -> np.ndarray:
    """Convert a nested sequence to a read-only int64 square matrix."""
    try:
        raw = np.asarray(values)
    except ValueError as e:
        raise MalformedInstance(f"{name} matrix is ragged: {e}")

    if raw.ndim != 2 or raw.shape[0] != raw.shape[1]:
        raise MalformedInstance(f"{name} matrix must be square, got shape {raw.shape}")

    if raw.size and not np.issubdtype(raw.dtype, np.number):
        raise MalformedInstance(f"{name} matrix must be numeric, got dtype {raw.dtype}")

    matrix = raw.astype(np.int64)
    if not np.array_equal(matrix, raw):
        raise MalformedInstance(f"{name} matrix must contain integers only")
    if (matrix < 0).any():
        raise MalformedInstance(f"{name} matrix must be non-negative")

    matrix.setflags(write=False)
    return matrix


class ProblemInstance:
    """
    QAP input: flow between facilities and distance between locations.

    Immutable after construction and shared by reference across every
    Solution of a search run.

    Attributes:
        name: Optional instance name (e.g. QAPLIB file stem)
        flow_matrix: Read-only n x n flow matrix
        distance_matrix: Read-only n x n distance matrix
    """

    def __init__(self, flow: Any, distance: Any, name: str = "instance"):
        flow_matrix = _as_matrix("flow", flow)
        distance_matrix = _as_matrix("distance", distance)

        if flow_matrix.shape != distance_matrix.shape:
            raise MalformedInstance(
                f"flow and distance dimensions differ: "
                f"{flow_matrix.shape[0]} vs {distance_matrix.shape[0]}"
            )
        if flow_matrix.shape[0] < 1:
            raise MalformedInstance("instance size must be at least 1")

        self.name = name
        self._flow = flow_matrix
        self._distance = distance_matrix

    @property
    def size(self) -> int:
        """Number of facilities (and locations)."""
        return self._flow.shape[0]

    @property
    def flow_matrix(self) -> np.ndarray:
        return self._flow

    @property
    def distance_matrix(self) -> np.ndarray:
        return self._distance

    def flow(self, i: int, j: int) -> int:
        """Traffic between facility i and facility j."""
        self._check_index(i)
        self._check_index(j)
        return int(self._flow[i, j])

    def distance(self, p: int, q: int) -> int:
        """Distance between location p and location q."""
        self._check_index(p)
        self._check_index(q)
        return int(self._distance[p, q])

    def cost(self, assignment: Sequence[int]) -> int:
        """
        QAP objective for an assignment.

        Sums flow(i, j) * distance(assignment[i], assignment[j]) over all
        ordered pairs, including i == j.
        """
        perm = np.asarray(assignment, dtype=np.int64)
        return int(np.sum(self._flow * self._distance[np.ix_(perm, perm)]))

    def _check_index(self, index: int) -> None:
        if not _is_index(index) or not 0 <= index < self.size:
            raise IndexOutOfRange(f"index {index!r} outside [0, {self.size})")

    def __repr__(self) -> str:
        return f"ProblemInstance(name={self.name!r}, size={self.size})"


def _is_index(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


@dataclass(frozen=True)
class Evaluated:
    """Fitness computed for the current assignment."""
    value: int


@dataclass(frozen=True)
class Stale:
    """Fitness not computed since the last change to the assignment."""
    pass


FitnessState = Union[Evaluated, Stale]

STALE = Stale()


class Solution:
    """
    A candidate assignment of facilities to locations (GA individual).

    assignment[i] is the location given to facility i. The assignment is
    always a permutation of [0, n); the only ways to change it are
    initialize(), mutate() and crossover(), all permutation-preserving.

    Fitness is held as a tagged state. Reading it while Stale raises
    StaleFitness; nothing recomputes it behind the caller's back.

    Attributes:
        problem: Shared, non-owned ProblemInstance
        id: Identifier used in lineage notes
        metadata: Lineage notes (parents, crossover method, mutation ops)
    """

    def __init__(
        self,
        problem: ProblemInstance,
        assignment: Optional[Sequence[int]] = None,
        id: str = "",
        metadata: Optional[dict] = None
    ):
        self.problem = problem
        self.id = id
        self.metadata = metadata if metadata is not None else {}
        self.fitness_state: FitnessState = STALE

        if assignment is None:
            self._assignment = np.arange(problem.size, dtype=np.int64)
        else:
            if not is_permutation(assignment, problem.size):
                raise InvalidPermutation(
                    f"assignment {list(assignment)} is not a permutation of [0, {problem.size})"
                )
            self._assignment = np.array(assignment, dtype=np.int64)

    @property
    def size(self) -> int:
        return self.problem.size

    @property
    def assignment(self) -> np.ndarray:
        """Read-only view of the current assignment."""
        view = self._assignment.view()
        view.setflags(write=False)
        return view

    @property
    def is_evaluated(self) -> bool:
        return isinstance(self.fitness_state, Evaluated)

    @property
    def fitness(self) -> int:
        """
        Cached cost of the current assignment.

        Raises:
            StaleFitness: If the assignment changed since the last evaluation
        """
        if isinstance(self.fitness_state, Evaluated):
            return self.fitness_state.value
        raise StaleFitness(
            f"fitness of solution {self.id or '<anonymous>'} read before evaluate_fitness()"
        )

    def initialize(self, rng: np.random.Generator, method: str = "uniform") -> None:
        """
        Replace the assignment with a random permutation.

        Args:
            rng: Random number generator
            method: "uniform" for an unbiased Fisher-Yates shuffle, or
                "full_range" to swap each position with one drawn from the
                whole range [0, n). The latter always yields a permutation
                but does not sample permutations uniformly.

        Raises:
            ValueError: If method is unknown
        """
        n = self.size
        values = np.arange(n, dtype=np.int64)

        if method == "uniform":
            for i in range(n - 1, 0, -1):
                j = int(rng.integers(0, i + 1))
                values[i], values[j] = values[j], values[i]
        elif method == "full_range":
            for i in range(n):
                j = int(rng.integers(0, n))
                values[i], values[j] = values[j], values[i]
        else:
            raise ValueError(f"Unknown initialization method: {method}")

        self._assignment = values
        self.fitness_state = STALE

    def evaluate_fitness(self) -> int:
        """
        Compute and cache the QAP cost of the current assignment.

        Returns:
            Sum over all (i, j) of flow(i, j) * distance(a[i], a[j])
        """
        value = self.problem.cost(self._assignment)
        self.fitness_state = Evaluated(value)
        return value

    def mutate(self, pos1: int, pos2: int) -> None:
        """
        Swap the locations assigned at two positions.

        Always marks fitness stale, even when pos1 == pos2.

        Raises:
            IndexOutOfRange: If either position is outside [0, n)
        """
        n = self.size
        for pos in (pos1, pos2):
            if not _is_index(pos) or not 0 <= pos < n:
                raise IndexOutOfRange(f"mutation position {pos!r} outside [0, {n})")

        self._assignment[pos1], self._assignment[pos2] = (
            self._assignment[pos2], self._assignment[pos1]
        )
        self.fitness_state = STALE

    def crossover(
        self,
        other: "Solution",
        rng: np.random.Generator,
        method: str = "order"
    ) -> Tuple["Solution", "Solution"]:
        """
        Recombine with another solution of the same problem.

        Args:
            other: Second parent
            rng: Random number generator
            method: Crossover operator name ("order", "pmx", "cycle")

        Returns:
            Two stale children, each a valid permutation
        """
        from .crossover import apply_crossover  # Import here to avoid circular dependency

        return apply_crossover(self, other, {'crossover_strategy': method}, rng)

    def validate(self) -> None:
        """
        Raises:
            InvalidPermutation: If the assignment is not a permutation
        """
        if not is_permutation(self._assignment, self.size):
            raise InvalidPermutation(
                f"solution {self.id or '<anonymous>'} holds non-permutation "
                f"{self._assignment.tolist()}"
            )

    def copy(self) -> "Solution":
        """
        Copy this solution.

        The assignment and metadata (op-log lists included) are copied;
        the ProblemInstance is shared. The fitness state is carried over
        since the assignment is identical.
        """
        clone = Solution(self.problem, id=self.id, metadata=copy.deepcopy(self.metadata))
        clone._assignment = self._assignment.copy()
        clone.fitness_state = self.fitness_state
        return clone

    def __repr__(self) -> str:
        fitness = self.fitness_state.value if self.is_evaluated else "stale"
        return f"Solution(id={self.id!r}, assignment={self._assignment.tolist()}, fitness={fitness})"
