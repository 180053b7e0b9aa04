"""
CLI module for the QAP genetic algorithm.

Handles run configuration loading, GA parameter validation and running
a search from a YAML run configuration.
"""

from typing import Dict, Any, Optional
from pathlib import Path
import numpy as np
import yaml

from .crossover import CROSSOVER_OPERATORS
from .selection import SELECTION_POLICIES
from .replacement import REPLACEMENT_POLICIES


INIT_METHODS = ('uniform', 'full_range')


class ConfigValidationError(Exception):
    """Raised when run or GA configuration is invalid."""
    pass


def load_run_config(config_path: str) -> Dict[str, Any]:
    """
    Load run configuration from YAML file.

    Args:
        config_path: Path to run configuration YAML file

    Returns:
        Dictionary containing run configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in configuration file: {e}")

    if config is None:
        raise ConfigValidationError("Configuration file is empty")

    if not isinstance(config, dict):
        raise ConfigValidationError("Configuration file must contain a mapping")

    return config


def validate_run_config(config: Dict[str, Any]) -> None:
    """
    Validate run configuration structure.

    Args:
        config: Run configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    for field in ['instance', 'output']:
        if field not in config:
            raise ConfigValidationError(f"Missing required field: '{field}'")

    # Validate instance section
    instance = config['instance']
    if not isinstance(instance, dict):
        raise ConfigValidationError("'instance' must be a dictionary")

    has_path = 'path' in instance
    has_inline = 'flow' in instance or 'distance' in instance

    if not has_path and not has_inline:
        raise ConfigValidationError(
            "Instance requires either 'instance.path' or inline 'instance.flow' and 'instance.distance'"
        )

    if has_path and has_inline:
        raise ConfigValidationError(
            "Instance cannot have both 'path' and inline matrices. Please specify only one."
        )

    if has_path:
        instance_path = Path(instance['path'])
        if not instance_path.exists():
            raise ConfigValidationError(f"Instance file not found: {instance_path}")
    elif 'flow' not in instance or 'distance' not in instance:
        raise ConfigValidationError("Inline instance requires both 'flow' and 'distance'")

    # Validate output section
    if not isinstance(config['output'], dict):
        raise ConfigValidationError("'output' must be a dictionary")

    if 'root' not in config['output']:
        raise ConfigValidationError("Missing required field: 'output.root'")

    if 'ga_config' in config and not Path(config['ga_config']).exists():
        raise ConfigValidationError(f"GA config file not found: {config['ga_config']}")

    if 'ga' in config and not isinstance(config['ga'], dict):
        raise ConfigValidationError("'ga' must be a dictionary")

    seed = config.get('random_seed')
    if seed is not None and (not _is_int(seed) or seed < 0):
        raise ConfigValidationError(f"'random_seed' must be a non-negative integer, got: {seed}")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_positive_int(config: Dict[str, Any], key: str, allow_none: bool = False) -> None:
    value = config.get(key)
    if value is None and allow_none:
        return
    if not _is_int(value) or value <= 0:
        raise ConfigValidationError(f"'{key}' must be a positive integer, got: {value}")


def _require_rate(config: Dict[str, Any], key: str) -> None:
    value = config.get(key)
    if not _is_number(value) or not 0.0 <= value <= 1.0:
        raise ConfigValidationError(f"'{key}' must be a number in [0, 1], got: {value}")


def _require_choice(config: Dict[str, Any], key: str, choices) -> None:
    value = config.get(key)
    if value not in choices:
        raise ConfigValidationError(
            f"Invalid {key}: '{value}'. Must be one of: {', '.join(sorted(choices))}"
        )


def validate_ga_config(config: Dict[str, Any]) -> None:
    """
    Validate GA parameters (already merged over the defaults).

    Args:
        config: GA configuration dictionary

    Raises:
        ConfigValidationError: If any parameter is invalid
    """
    _require_positive_int(config, 'population_size')
    _require_positive_int(config, 'offspring_count', allow_none=True)
    _require_positive_int(config, 'stagnation_limit', allow_none=True)
    _require_positive_int(config, 'tournament_size')
    _require_positive_int(config, 'workers')
    _require_positive_int(config, 'report_every')

    max_generations = config.get('max_generations')
    if not _is_int(max_generations) or max_generations < 0:
        raise ConfigValidationError(
            f"'max_generations' must be a non-negative integer, got: {max_generations}"
        )

    target = config.get('target_fitness')
    if target is not None and not _is_number(target):
        raise ConfigValidationError(f"'target_fitness' must be a number, got: {target}")

    _require_rate(config, 'crossover_rate')
    _require_rate(config, 'mutation_rate')

    mutation = config.get('mutation')
    if not isinstance(mutation, dict):
        raise ConfigValidationError("'mutation' must be a dictionary")
    _require_positive_int(mutation, 'max_swaps')

    _require_choice(config, 'init_method', INIT_METHODS)
    _require_choice(config, 'selection_strategy', SELECTION_POLICIES)
    _require_choice(config, 'crossover_strategy', CROSSOVER_OPERATORS)
    _require_choice(config, 'replacement_strategy', REPLACEMENT_POLICIES)

    elite_count = config.get('elite_count')
    if not _is_int(elite_count) or not 0 <= elite_count <= config['population_size']:
        raise ConfigValidationError(
            f"'elite_count' must be an integer in [0, population_size], got: {elite_count}"
        )


def load_ga_config(run_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Assemble GA settings for a run.

    Precedence (lowest to highest): built-in defaults, the YAML file named
    by run_config['ga_config'], inline run_config['ga'] overrides.

    Returns:
        Merged and validated GA configuration
    """
    from .orchestration import merge_ga_config

    overrides: Dict[str, Any] = {}

    ga_config_path = run_config.get('ga_config')
    if ga_config_path:
        with open(ga_config_path, 'r') as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigValidationError(f"GA config must contain a mapping: {ga_config_path}")
        overrides.update(file_config)

    for key, value in run_config.get('ga', {}).items():
        if isinstance(value, dict) and isinstance(overrides.get(key), dict):
            overrides[key] = {**overrides[key], **value}
        else:
            overrides[key] = value

    ga_config = merge_ga_config(overrides)
    validate_ga_config(ga_config)
    return ga_config


def resolve_seed(run_config: Dict[str, Any], ga_config: Dict[str, Any]) -> int:
    """Run seed, else GA config seed, else a freshly drawn one."""
    seed: Optional[int] = run_config.get('random_seed')
    if seed is None:
        seed = ga_config.get('random_seed')
    if seed is None:
        seed = int(np.random.default_rng().integers(0, 2**31))
    return seed


def run_from_config(config_path: str):
    """
    Load run configuration and execute the search.

    This is the main entry point called by qap_cli.py.

    Args:
        config_path: Path to run configuration YAML file

    Returns:
        SearchResult of the run

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
        MalformedInstance: If the instance matrices are invalid
    """
    from .io_utils import (
        load_instance,
        create_run_folder,
        save_result,
        save_history_csv,
    )
    from .orchestration import SearchLoop

    print(f"Loading configuration from: {config_path}")
    run_config = load_run_config(config_path)

    print(f"Validating configuration...")
    validate_run_config(run_config)
    ga_config = load_ga_config(run_config)

    print("=" * 70)
    print("QAP GENETIC ALGORITHM")
    print("=" * 70)

    problem = load_instance(run_config['instance'])
    print(f"Instance: {problem.name} (n={problem.size})")

    seed = resolve_seed(run_config, ga_config)
    print(f"Random seed: {seed}")
    rng = np.random.default_rng(seed)

    output_root = create_run_folder(
        run_config['output']['root'],
        overwrite=run_config['output'].get('overwrite', False)
    )
    print(f"Output directory: {output_root}")
    print(f"Population: {ga_config['population_size']}, "
          f"selection: {ga_config['selection_strategy']}, "
          f"crossover: {ga_config['crossover_strategy']}, "
          f"replacement: {ga_config['replacement_strategy']}\n")

    loop = SearchLoop(problem, ga_config, rng, verbose=True, seed=seed)
    result = loop.run()

    result_path = save_result(result, output_root / 'result.yaml', problem_name=problem.name)
    history_path = save_history_csv(result.history, output_root / 'history.csv')

    print()
    print("=" * 70)
    print("SUMMARY")
    print("=" * 70)
    print(f"Best fitness: {result.best_fitness}")
    print(f"Best assignment: {result.best.assignment.tolist()}")
    print(f"Generations: {result.generations} ({result.termination_reason})")
    print(f"Result: {result_path}")
    print(f"History: {history_path}")

    print("\nRun completed successfully!")
    return result
