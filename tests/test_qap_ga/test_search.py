"""
Tests for the search loop.

Tests the state machine, termination conditions, elitist monotonicity,
pluggable policies and seeded reproducibility.
"""

import unittest
from itertools import permutations
from pathlib import Path
import numpy as np

from qap_ga.data_models import ProblemInstance, is_permutation
from qap_ga.io_utils import load_qaplib_instance
from qap_ga.orchestration import (
    SearchLoop,
    SearchState,
    DEFAULT_GA_CONFIG,
    merge_ga_config,
)
from qap_ga.cli import ConfigValidationError


EXAMPLES_DIR = Path(__file__).resolve().parents[2] / "examples"


def small_instance():
    flow = [
        [0, 3, 0, 2],
        [3, 0, 0, 1],
        [0, 0, 0, 4],
        [2, 1, 4, 0],
    ]
    distance = [
        [0, 22, 53, 53],
        [22, 0, 40, 62],
        [53, 40, 0, 55],
        [53, 62, 55, 0],
    ]
    return ProblemInstance(flow, distance, name="small4")


class TestSearchLoop(unittest.TestCase):
    """Test SearchLoop state machine and results."""

    def setUp(self):
        self.problem = load_qaplib_instance(EXAMPLES_DIR / "toy6.dat")
        self.config = {
            'population_size': 16,
            'max_generations': 25,
            'stagnation_limit': None,
        }

    def test_state_transitions(self):
        """Test INIT -> EVALUATED -> ... -> TERMINATED."""
        loop = SearchLoop(self.problem, self.config, np.random.default_rng(1))
        self.assertIs(loop.state, SearchState.INIT)

        with self.assertRaises(RuntimeError):
            loop.step()
        with self.assertRaises(RuntimeError):
            loop.result()

        loop.initialize()
        self.assertIs(loop.state, SearchState.EVALUATED)
        self.assertTrue(loop.population.is_evaluated())
        self.assertEqual(loop.generation, 0)

        with self.assertRaises(RuntimeError):
            loop.initialize()

        loop.step()
        self.assertIs(loop.state, SearchState.EVALUATED)
        self.assertEqual(loop.generation, 1)

        loop.run()
        self.assertIs(loop.state, SearchState.TERMINATED)

        with self.assertRaises(RuntimeError):
            loop.step()

    def test_run_result(self):
        """Test the reported best is a valid, correctly costed permutation."""
        result = SearchLoop(self.problem, self.config, np.random.default_rng(2)).run()

        self.assertTrue(is_permutation(result.best.assignment, self.problem.size))
        self.assertEqual(result.best_fitness, self.problem.cost(result.best.assignment))
        self.assertEqual(result.best.fitness, result.best_fitness)
        self.assertEqual(result.generations, 25)
        self.assertEqual(result.termination_reason, 'max_generations')
        self.assertEqual(len(result.history), 26)
        self.assertEqual(result.best_fitness, min(r.best for r in result.history))

    def test_population_size_constant(self):
        """Test every replacement policy preserves population size."""
        for strategy in ('elitist', 'generational', 'steady_state'):
            config = dict(self.config, replacement_strategy=strategy, offspring_count=7)
            loop = SearchLoop(self.problem, config, np.random.default_rng(3))
            loop.initialize()

            for _ in range(10):
                loop.step()
                self.assertEqual(len(loop.population), 16)
                self.assertTrue(loop.population.is_evaluated())
                for member in loop.population:
                    self.assertTrue(is_permutation(member.assignment, self.problem.size))

    def test_elitist_best_non_increasing(self):
        """Test population best never gets worse under elitist replacement."""
        for strategy in ('elitist', 'steady_state'):
            config = dict(self.config, replacement_strategy=strategy, mutation_rate=0.8)
            result = SearchLoop(self.problem, config, np.random.default_rng(4)).run()

            bests = [record.best for record in result.history]
            for previous, current in zip(bests, bests[1:]):
                self.assertLessEqual(current, previous)

    def test_best_so_far_non_increasing(self):
        """Test best-so-far is monotone even without elites."""
        config = dict(self.config, replacement_strategy='generational', elite_count=0)
        result = SearchLoop(self.problem, config, np.random.default_rng(5)).run()

        trace = [record.best_so_far for record in result.history]
        for previous, current in zip(trace, trace[1:]):
            self.assertLessEqual(current, previous)
        self.assertEqual(result.best_fitness, trace[-1])

    def test_finds_optimum_small_instance(self):
        """Test the search reaches the brute-force optimum for n = 4."""
        problem = small_instance()
        optimum = min(problem.cost(p) for p in permutations(range(4)))

        config = {'population_size': 30, 'max_generations': 60, 'stagnation_limit': None}
        result = SearchLoop(problem, config, np.random.default_rng(6)).run()

        self.assertEqual(result.best_fitness, optimum)

    def test_target_fitness(self):
        """Test reaching the target stops the search."""
        config = dict(self.config, target_fitness=10**9)
        result = SearchLoop(self.problem, config, np.random.default_rng(7)).run()

        self.assertEqual(result.termination_reason, 'target_fitness')
        self.assertEqual(result.generations, 0)

    def test_zero_generations(self):
        """Test max_generations 0 reports the best initial solution."""
        config = dict(self.config, max_generations=0)
        loop = SearchLoop(self.problem, config, np.random.default_rng(8))
        result = loop.run()

        self.assertEqual(result.generations, 0)
        self.assertEqual(result.termination_reason, 'max_generations')
        self.assertEqual(result.best_fitness, loop.population.best().fitness)

    def test_stagnation(self):
        """Test stagnation limit stops a search that cannot improve."""
        config = {
            'population_size': 2,
            'max_generations': 100,
            'stagnation_limit': 3,
            'crossover_rate': 0.0,
            'mutation_rate': 0.0,
        }
        result = SearchLoop(self.problem, config, np.random.default_rng(9)).run()

        self.assertEqual(result.termination_reason, 'stagnation')
        self.assertEqual(result.generations, 3)

    def test_seeded_runs_reproducible(self):
        """Test identical seeds give identical runs, with or without threads."""
        first = SearchLoop(self.problem, self.config, np.random.default_rng(10)).run()
        second = SearchLoop(self.problem, self.config, np.random.default_rng(10)).run()
        threaded = SearchLoop(
            self.problem, dict(self.config, workers=3), np.random.default_rng(10)
        ).run()

        for other in (second, threaded):
            self.assertEqual(other.best_fitness, first.best_fitness)
            self.assertEqual(other.best.assignment.tolist(), first.best.assignment.tolist())
            self.assertEqual(
                [r.to_dict() for r in other.history],
                [r.to_dict() for r in first.history]
            )

    def test_result_is_a_copy(self):
        """Test mutating the reported best does not affect the loop."""
        loop = SearchLoop(self.problem, self.config, np.random.default_rng(11))
        result = loop.run()

        result.best.mutate(0, 1)

        self.assertTrue(loop.best_so_far.is_evaluated)
        self.assertEqual(loop.result().best_fitness, result.best_fitness)

    def test_custom_policies(self):
        """Test callables replace configured selection, crossover and replacement."""
        calls = {'select': 0, 'cross': 0, 'replace': 0}

        def select(population, rng, config):
            calls['select'] += 1
            return population.best()

        def cross(parent_a, parent_b, rng):
            calls['cross'] += 1
            return parent_a.crossover(parent_b, rng, method='cycle')

        def replace(population, offspring, config):
            calls['replace'] += 1
            return sorted(list(population) + offspring, key=lambda s: s.fitness)[:len(population)]

        config = dict(self.config, max_generations=3, crossover_rate=1.0)
        SearchLoop(
            self.problem, config, np.random.default_rng(12),
            selection=select, crossover=cross, replacement=replace
        ).run()

        self.assertEqual(calls['replace'], 3)
        self.assertGreater(calls['cross'], 0)
        self.assertEqual(calls['select'], 2 * calls['cross'])

    def test_strategy_names(self):
        """Test named overrides and unknown names."""
        loop = SearchLoop(
            self.problem, self.config, np.random.default_rng(13),
            selection='rank', crossover='pmx', replacement='generational'
        )
        loop.run()

        with self.assertRaises(ValueError):
            SearchLoop(self.problem, self.config, np.random.default_rng(13), crossover='uniform')
        with self.assertRaises(TypeError):
            SearchLoop(self.problem, self.config, np.random.default_rng(13), selection=42)

    def test_invalid_config(self):
        """Test invalid GA settings are rejected at construction."""
        for bad in (
            {'population_size': 0},
            {'crossover_rate': 1.5},
            {'selection_strategy': 'lottery'},
            {'elite_count': 100},
            {'mutation': {'max_swaps': 0}},
        ):
            with self.assertRaises(ConfigValidationError):
                SearchLoop(self.problem, bad, np.random.default_rng(0))


class TestGAConfig(unittest.TestCase):
    """Test GA config merging."""

    def test_merge_defaults(self):
        config = merge_ga_config({'population_size': 5, 'mutation': {'max_swaps': 4}})

        self.assertEqual(config['population_size'], 5)
        self.assertEqual(config['mutation']['max_swaps'], 4)
        self.assertEqual(config['crossover_strategy'], DEFAULT_GA_CONFIG['crossover_strategy'])

        # Defaults are not modified by merging
        self.assertEqual(DEFAULT_GA_CONFIG['mutation']['max_swaps'], 1)


if __name__ == '__main__':
    unittest.main()
