"""
I/O utilities for the QAP genetic algorithm.

Handles QAPLIB instance parsing, inline instance construction, result
and history export, and output folder management.
"""

import csv
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import yaml

from .data_models import ProblemInstance, MalformedInstance


def load_qaplib_instance(path: Union[str, Path], name: Optional[str] = None) -> ProblemInstance:
    """
    Load a QAPLIB-format instance file.

    Format (whitespace separated integers, line breaks not significant):
        n
        n x n flow matrix
        n x n distance matrix

    Args:
        path: Path to .dat file
        name: Optional instance name (defaults to filename stem)

    Returns:
        ProblemInstance

    Raises:
        FileNotFoundError: If the file doesn't exist
        MalformedInstance: If the token count or values are invalid
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Instance file not found: {path}")

    with open(path, 'r') as f:
        tokens = f.read().split()

    if not tokens:
        raise MalformedInstance(f"Instance file is empty: {path}")

    try:
        values = [int(token) for token in tokens]
    except ValueError as e:
        raise MalformedInstance(f"Non-integer token in {path}: {e}")

    n = values[0]
    expected = 1 + 2 * n * n
    if n < 1 or len(values) != expected:
        raise MalformedInstance(
            f"Invalid QAPLIB file {path}: size {n} needs {expected} integers, found {len(values)}"
        )

    body = values[1:]
    flow = [body[row * n:(row + 1) * n] for row in range(n)]
    distance = [body[n * n + row * n:n * n + (row + 1) * n] for row in range(n)]

    return ProblemInstance(flow, distance, name=name or path.stem)


def instance_from_dict(data: Dict[str, Any], name: str = "inline") -> ProblemInstance:
    """
    Build an instance from a mapping with 'flow' and 'distance' matrices.

    Raises:
        MalformedInstance: If a matrix is missing or invalid
    """
    for key in ('flow', 'distance'):
        if key not in data:
            raise MalformedInstance(f"Inline instance is missing '{key}' matrix")

    return ProblemInstance(data['flow'], data['distance'], name=data.get('name', name))


def load_instance(instance_config: Dict[str, Any]) -> ProblemInstance:
    """Load the instance described by a run config's 'instance' section."""
    if 'path' in instance_config:
        return load_qaplib_instance(instance_config['path'], name=instance_config.get('name'))
    return instance_from_dict(instance_config)


def save_qaplib_instance(problem: ProblemInstance, path: Union[str, Path]) -> Path:
    """
    Write an instance in QAPLIB format.

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        f.write(f"{problem.size}\n\n")
        for matrix in (problem.flow_matrix, problem.distance_matrix):
            for row in matrix:
                f.write(" ".join(str(int(v)) for v in row) + "\n")
            f.write("\n")

    return path


def save_result(result, path: Union[str, Path], problem_name: Optional[str] = None) -> Path:
    """
    Save a SearchResult summary as YAML.

    Args:
        result: SearchResult from a finished run
        path: Output YAML path
        problem_name: Instance name to record

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    report = {
        'instance': problem_name or result.best.problem.name,
        'size': result.best.size,
        'best_fitness': int(result.best_fitness),
        'best_assignment': [int(v) for v in result.best.assignment],
        'generations': result.generations,
        'termination_reason': result.termination_reason,
        'seed': result.seed,
        'timestamp': datetime.now().isoformat(timespec='seconds'),
    }

    with open(path, 'w') as f:
        yaml.safe_dump(report, f, sort_keys=False)

    return path


def load_result(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Raises:
        FileNotFoundError: If the result file doesn't exist
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Result file not found: {path}")

    with open(path, 'r') as f:
        return yaml.safe_load(f)


def save_history_csv(history: List, path: Union[str, Path]) -> Path:
    """
    Save per-generation fitness summaries to CSV.

    CSV format:
        generation,best,mean,worst,best_so_far
        0,1180,1320.5,1466,1180
        ...

    Args:
        history: List of GenerationRecord
        path: Output CSV path

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fieldnames = ['generation', 'best', 'mean', 'worst', 'best_so_far']
    with open(path, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for record in history:
            writer.writerow(record.to_dict())

    return path


def create_run_folder(root: Union[str, Path], overwrite: bool = False) -> Path:
    """
    Create the output folder for a run.

    Raises:
        FileExistsError: If the folder exists and overwrite is False
    """
    output_root = Path(root)

    if output_root.exists() and not overwrite:
        raise FileExistsError(
            f"Output directory already exists: {output_root}\n"
            f"Set 'output.overwrite: true' in config to overwrite"
        )

    output_root.mkdir(parents=True, exist_ok=overwrite)
    return output_root
