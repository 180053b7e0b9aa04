"""
Population of QAP solutions.

An ordered collection of Solutions that all share one ProblemInstance,
with batch fitness evaluation and summary statistics.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterator, List, Optional
import numpy as np

from .data_models import ProblemInstance, Solution


class Population:
    """
    Ordered collection of Solutions sharing the same ProblemInstance.

    Attributes:
        problem: Shared ProblemInstance
        members: Solutions, in order
    """

    def __init__(self, problem: ProblemInstance, members: Optional[List[Solution]] = None):
        self.problem = problem
        self.members: List[Solution] = []
        if members:
            self._check_members(members)
            self.members = list(members)

    @classmethod
    def random(
        cls,
        problem: ProblemInstance,
        size: int,
        rng: np.random.Generator,
        method: str = "uniform"
    ) -> "Population":
        """
        Create size randomly initialized solutions (not yet evaluated).

        Raises:
            ValueError: If size is not positive
        """
        if size <= 0:
            raise ValueError(f"Population size must be positive, got: {size}")

        members = []
        for i in range(size):
            solution = Solution(problem, id=f"g000_{i:03d}")
            solution.initialize(rng, method=method)
            members.append(solution)

        return cls(problem, members)

    def _check_members(self, members: List[Solution]) -> None:
        for member in members:
            if member.problem is not self.problem:
                raise ValueError(
                    f"Solution {member.id or '<anonymous>'} belongs to a different problem instance"
                )

    def evaluate(self, workers: int = 1) -> int:
        """
        Evaluate every stale member.

        Evaluation only reads the shared instance and each member's own
        assignment, so members can be evaluated concurrently.

        Args:
            workers: Number of worker threads (1 evaluates sequentially)

        Returns:
            Number of members evaluated
        """
        stale = [member for member in self.members if not member.is_evaluated]

        if workers > 1 and len(stale) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                list(executor.map(Solution.evaluate_fitness, stale))
        else:
            for member in stale:
                member.evaluate_fitness()

        return len(stale)

    def fitnesses(self) -> List[int]:
        """
        Raises:
            StaleFitness: If any member is not evaluated
        """
        return [member.fitness for member in self.members]

    def sorted_members(self) -> List[Solution]:
        """Members ordered from cheapest to most expensive."""
        return sorted(self.members, key=lambda member: member.fitness)

    def best(self) -> Solution:
        """Cheapest member."""
        if not self.members:
            raise ValueError("Population is empty")
        return min(self.members, key=lambda member: member.fitness)

    def worst(self) -> Solution:
        """Most expensive member."""
        if not self.members:
            raise ValueError("Population is empty")
        return max(self.members, key=lambda member: member.fitness)

    def statistics(self) -> Dict[str, float]:
        """
        Summary of the current fitness distribution.

        Returns:
            Dictionary with best, mean, worst and std of fitness
        """
        values = self.fitnesses()
        costs = np.asarray(values, dtype=np.float64)
        return {
            'best': min(values),
            'mean': float(costs.mean()),
            'worst': max(values),
            'std': float(costs.std()),
        }

    def replace_members(self, members: List[Solution]) -> None:
        """
        Install the next generation.

        Raises:
            ValueError: If the size changes or a member belongs to another instance
        """
        if len(members) != len(self.members):
            raise ValueError(
                f"Replacement must preserve population size: "
                f"{len(self.members)} -> {len(members)}"
            )
        self._check_members(members)
        self.members = list(members)

    def is_evaluated(self) -> bool:
        return all(member.is_evaluated for member in self.members)

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self) -> Iterator[Solution]:
        return iter(self.members)

    def __getitem__(self, index: int) -> Solution:
        return self.members[index]
