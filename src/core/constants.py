"""Core constants used across dashbuilder backend modules.

This module centralizes file naming conventions and configuration defaults.
Keeping values here avoids magic literals in persistence and deploy logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".dashbuilder")
DEFINITIONS_DIR_NAME = "datasets"
DEFINITION_FILE_SUFFIX = ".dset"
CSV_FILE_SUFFIX = ".csv"
UNDEPLOY_FILE_SUFFIX = ".undeploy"
DEFAULT_MAX_CSV_LENGTH = 1048576
DEFAULT_POLLING_TIME_MS = 3000
DEFAULT_STORE_BACKEND = "git"
SUPPORTED_STORE_BACKENDS = ("git", "local")
DEFAULT_COMMIT_AUTHOR = "dashbuilder"
DEFAULT_COMMIT_MESSAGE = "dashbuilder: batch update"
DEFAULT_LOG_LEVEL = "INFO"
DEPLOYER_ACTOR_ID = "---"
GIT_METADATA_DIR_NAME = ".git"
CSV_PROVIDER_TYPE = "CSV"
