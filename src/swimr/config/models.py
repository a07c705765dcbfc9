"""Pydantic configuration models for the SWIMR engine."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from swimr.config.defaults import (
    DEFAULT_ANALYSIS_TIMEOUT,
    DEFAULT_ANALYZE_URL,
    DEFAULT_DB_PATH,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_PROGRESS_INCREMENT,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_RUN_STATE_PATH,
    DEFAULT_WAIT_TIMEOUT,
)


class AnalysisConfig(BaseModel):
    """Remote analysis service configuration."""

    endpoint_url: str = DEFAULT_ANALYZE_URL
    api_key: Optional[str] = None
    timeout_seconds: float = Field(default=DEFAULT_ANALYSIS_TIMEOUT, gt=0, le=3600)
    retry_attempts: int = Field(default=3, ge=1, le=10)


class StorageConfig(BaseModel):
    """Row store and run snapshot locations."""

    db_path: Path = DEFAULT_DB_PATH
    run_state_path: Path = DEFAULT_RUN_STATE_PATH
    candidate_name_unique: bool = False


class StagingConfig(BaseModel):
    """Simulated upload behaviour of the staging queue."""

    progress_interval_min: float = Field(default=DEFAULT_PROGRESS_INTERVAL[0], ge=0.0)
    progress_interval_max: float = Field(default=DEFAULT_PROGRESS_INTERVAL[1], ge=0.0)
    progress_increment_min: float = Field(default=DEFAULT_PROGRESS_INCREMENT[0], gt=0.0, le=100.0)
    progress_increment_max: float = Field(default=DEFAULT_PROGRESS_INCREMENT[1], gt=0.0, le=100.0)

    @model_validator(mode="after")
    def check_ranges(self) -> "StagingConfig":
        if self.progress_interval_min > self.progress_interval_max:
            raise ValueError("progress_interval_min must not exceed progress_interval_max")
        if self.progress_increment_min > self.progress_increment_max:
            raise ValueError("progress_increment_min must not exceed progress_increment_max")
        return self


class JobsConfig(BaseModel):
    """Analysis job ledger behaviour."""

    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    wait_timeout_seconds: float = Field(default=DEFAULT_WAIT_TIMEOUT, gt=0)


class OutputConfig(BaseModel):
    """Output configuration."""

    verbosity: int = Field(default=1, ge=0, le=3)
    log_file: Optional[Path] = None


class SwimrConfig(BaseModel):
    """Root configuration model."""

    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    staging: StagingConfig = Field(default_factory=StagingConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    model_config = ConfigDict(extra="ignore")  # Ignore unknown fields in config file
