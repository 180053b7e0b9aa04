"""
Genetic Algorithm for the Quadratic Assignment Problem

This package searches for low-cost assignments of n facilities to n
locations, where cost is the flow between facilities weighted by the
distance between their assigned locations.

Key Features:
- Permutation encoding (every operator preserves it)
- Explicit fitness state (reading stale fitness is an error)
- Pluggable selection, crossover and replacement policies
- Single injected random generator (seeded, reproducible runs)

Modules:
- data_models: Core data structures (ProblemInstance, Solution) and errors
- crossover: Order, partially mapped and cycle crossover
- mutation: Swap mutation and configured mutation driver
- selection: Tournament, roulette, rank and random parent selection
- replacement: Generational, elitist and steady-state replacement
- population: Population container and batch evaluation
- orchestration: SearchLoop state machine and SearchResult
- io_utils: QAPLIB instance loading, result and history export
- cli: Run configuration loading and validation
"""

__version__ = "0.1.0"
__author__ = "QAP GA Team"

from .data_models import (
    ProblemInstance,
    Solution,
    Evaluated,
    Stale,
    QAPError,
    MalformedInstance,
    IndexOutOfRange,
    StaleFitness,
    InvalidPermutation,
)
from .population import Population
from .orchestration import SearchLoop, SearchResult, SearchState

__all__ = [
    "ProblemInstance",
    "Solution",
    "Evaluated",
    "Stale",
    "QAPError",
    "MalformedInstance",
    "IndexOutOfRange",
    "StaleFitness",
    "InvalidPermutation",
    "Population",
    "SearchLoop",
    "SearchResult",
    "SearchState",
]
