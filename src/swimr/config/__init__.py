"""Configuration management for the SWIMR engine."""

from swimr.config.loader import load_config
from swimr.config.models import (
    AnalysisConfig,
    JobsConfig,
    OutputConfig,
    StagingConfig,
    StorageConfig,
    SwimrConfig,
)

__all__ = [
    "AnalysisConfig",
    "JobsConfig",
    "OutputConfig",
    "StagingConfig",
    "StorageConfig",
    "SwimrConfig",
    "load_config",
]
