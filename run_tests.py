#!/usr/bin/env python3
"""
Test runner for the QAP genetic algorithm
"""

import unittest
import sys
from pathlib import Path

# Add current directory to path for imports
sys.path.append(str(Path(__file__).parent))


def run_all_tests():
    """Discover and run every test module under tests/"""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    test_root = Path(__file__).parent / "tests"
    for test_dir in sorted(p for p in test_root.iterdir() if p.is_dir()):
        suite.addTests(loader.discover(str(test_dir), pattern="test_*.py", top_level_dir=str(test_dir)))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return result.wasSuccessful()


def run_integration_test():
    """Run a short seeded search on the bundled toy instance"""
    print("\n" + "=" * 50)
    print("INTEGRATION TEST")
    print("=" * 50)

    try:
        import numpy as np
        from qap_ga.io_utils import load_qaplib_instance
        from qap_ga.orchestration import SearchLoop

        problem = load_qaplib_instance(Path(__file__).parent / "examples" / "toy6.dat")
        print(f"Loaded instance {problem.name} (n={problem.size})")

        loop = SearchLoop(
            problem,
            {'population_size': 20, 'max_generations': 30},
            np.random.default_rng(0),
            seed=0
        )
        result = loop.run()

        print(f"Best fitness: {result.best_fitness}")
        print(f"Generations: {result.generations} ({result.termination_reason})")

        success = (
            result.best_fitness == problem.cost(result.best.assignment) and
            sorted(result.best.assignment.tolist()) == list(range(problem.size))
        )

        if success:
            print("✓ Integration test PASSED")
        else:
            print("✗ Integration test FAILED")

        return success

    except Exception as e:
        print(f"✗ Integration test FAILED: {e}")
        import traceback
        traceback.print_exc()
        return False


if __name__ == "__main__":
    print("Running QAP GA Tests")
    print("=" * 60)

    # Run unit tests
    print("Running unit tests...")
    unit_success = run_all_tests()

    # Run integration test
    integration_success = run_integration_test()

    # Summary
    print("\n" + "=" * 60)
    print("TEST SUMMARY")
    print("=" * 60)
    print(f"Unit tests: {'PASSED' if unit_success else 'FAILED'}")
    print(f"Integration test: {'PASSED' if integration_success else 'FAILED'}")

    overall_success = unit_success and integration_success
    print(f"Overall: {'PASSED' if overall_success else 'FAILED'}")

    sys.exit(0 if overall_success else 1)
