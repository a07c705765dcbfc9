"""Default configuration values for the SWIMR engine."""

from pathlib import Path

# Default configuration file name
DEFAULT_CONFIG_FILENAME = "swimr.config.json"

# Search paths for configuration file (in order of priority)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / DEFAULT_CONFIG_FILENAME,
    Path.home() / ".config" / "swimr" / "config.json",
]

# Local data directory
DEFAULT_DATA_DIR = Path.home() / ".swimr"

# Row store (candidates, analysis_jobs, roles)
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "swimr.db"

# Durable key-value file holding the batch run snapshot
DEFAULT_RUN_STATE_PATH = DEFAULT_DATA_DIR / "run-state.db"

# Hosted functions base URL (analysis lives under /functions/v1/analyze-cv)
DEFAULT_ANALYZE_URL = "http://127.0.0.1:54321"
ANALYZE_CV_PATH = "/functions/v1/analyze-cv"

# Long LLM calls; the remote service bounds its own duration
DEFAULT_ANALYSIS_TIMEOUT = 180.0

# Simulated upload progress
DEFAULT_PROGRESS_INTERVAL = (0.3, 0.7)
DEFAULT_PROGRESS_INCREMENT = (10.0, 35.0)

# Ledger wait behaviour
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_WAIT_TIMEOUT = 300.0
