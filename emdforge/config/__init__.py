"""Experiment configuration: dataclass schema and YAML loading.

Example:
    >>> from emdforge.config import ExperimentConfig
    >>> config = ExperimentConfig.from_file("examples/configs/frequency_sweep.yml")
"""

from emdforge.config.yaml_utils import UniqueKeyLoader, dump_yaml, load_yaml, load_yaml_file
from emdforge.config.schema import (
    ExecutionConfig,
    ExperimentConfig,
    FitConfig,
    GratingConfig,
    HeadMotionConfig,
    SweepConfig,
    expand_values,
)

__all__ = [
    "UniqueKeyLoader",
    "dump_yaml",
    "load_yaml",
    "load_yaml_file",
    "ExecutionConfig",
    "ExperimentConfig",
    "FitConfig",
    "GratingConfig",
    "HeadMotionConfig",
    "SweepConfig",
    "expand_values",
]
