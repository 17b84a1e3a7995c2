"""Runtime configuration model for the dashbuilder backend.

This module owns all environment variable and config file parsing.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Mapping, cast

from core.constants import (
    DEFAULT_COMMIT_AUTHOR,
    DEFAULT_DATA_ROOT,
    DEFAULT_MAX_CSV_LENGTH,
    DEFAULT_POLLING_TIME_MS,
    DEFAULT_STORE_BACKEND,
    SUPPORTED_STORE_BACKENDS,
)
from core.errors import DashbuilderConfigError, DashbuilderDependencyError

_CONFIG_FILE_KEYS = (
    "data_root",
    "store_backend",
    "max_csv_length",
    "deploy_directory",
    "polling_time_ms",
    "commit_author",
)


@dataclass(frozen=True)
class DashbuilderConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory holding the versioned definition store.
        store_backend: ``git`` for commit-tracked storage, ``local`` for plain files.
        max_csv_length: Maximum accepted CSV attachment size in bytes.
        deploy_directory: Watched deployment directory; blank disables watching.
        polling_time_ms: Watcher polling interval; 0 runs only the start pass.
        commit_author: Author recorded for anonymous store commits.
    """

    data_root: Path
    store_backend: str = DEFAULT_STORE_BACKEND
    max_csv_length: int = DEFAULT_MAX_CSV_LENGTH
    deploy_directory: str = ""
    polling_time_ms: int = DEFAULT_POLLING_TIME_MS
    commit_author: str = DEFAULT_COMMIT_AUTHOR

    @classmethod
    def from_env(cls) -> "DashbuilderConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            DashbuilderConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("DASHBUILDER_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            store_backend=_parse_store_backend(
                os.getenv("DASHBUILDER_STORE_BACKEND", DEFAULT_STORE_BACKEND),
                "DASHBUILDER_STORE_BACKEND",
            ),
            max_csv_length=_parse_non_negative_int(
                os.getenv("DASHBUILDER_MAX_CSV_LENGTH", str(DEFAULT_MAX_CSV_LENGTH)),
                "DASHBUILDER_MAX_CSV_LENGTH",
            ),
            deploy_directory=os.getenv("DASHBUILDER_DEPLOY_DIR", "").strip(),
            polling_time_ms=_parse_non_negative_int(
                os.getenv("DASHBUILDER_POLLING_TIME", str(DEFAULT_POLLING_TIME_MS)),
                "DASHBUILDER_POLLING_TIME",
            ),
            commit_author=os.getenv("DASHBUILDER_COMMIT_AUTHOR", DEFAULT_COMMIT_AUTHOR),
        )


def load_config_file(config_path: str, base: DashbuilderConfig) -> DashbuilderConfig:
    """Overlay values from a YAML config file onto a base config.

    Args:
        config_path: Path to a YAML mapping using the config field names.
        base: Config providing values for keys absent from the file.

    Returns:
        Merged config object.

    Raises:
        DashbuilderDependencyError: If PyYAML is unavailable.
        DashbuilderConfigError: If the file is missing, invalid, or has unknown keys.
    """
    payload = _load_yaml_mapping(config_path)
    unknown_keys = sorted(set(payload) - set(_CONFIG_FILE_KEYS))
    if unknown_keys:
        raise DashbuilderConfigError(
            f"Unsupported config keys in {config_path}: {', '.join(unknown_keys)}. "
            f"Supported keys: {', '.join(_CONFIG_FILE_KEYS)}."
        )
    config = base
    if "data_root" in payload:
        data_root = Path(str(payload["data_root"])).expanduser().resolve()
        config = replace(config, data_root=data_root)
    if "store_backend" in payload:
        backend = _parse_store_backend(str(payload["store_backend"]), "store_backend")
        config = replace(config, store_backend=backend)
    if "max_csv_length" in payload:
        max_length = _parse_non_negative_int(str(payload["max_csv_length"]), "max_csv_length")
        config = replace(config, max_csv_length=max_length)
    if "deploy_directory" in payload:
        directory = payload["deploy_directory"]
        config = replace(config, deploy_directory=str(directory or "").strip())
    if "polling_time_ms" in payload:
        polling = _parse_non_negative_int(str(payload["polling_time_ms"]), "polling_time_ms")
        config = replace(config, polling_time_ms=polling)
    if "commit_author" in payload:
        config = replace(config, commit_author=str(payload["commit_author"]))
    return config


def _load_yaml_mapping(config_path: str) -> Mapping[str, object]:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise DashbuilderDependencyError(
            "YAML config support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    config_file = Path(config_path).expanduser().resolve()
    if not config_file.exists():
        raise DashbuilderConfigError(
            f"Config file does not exist at {config_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise DashbuilderConfigError(
            f"Failed to read config file at {config_file}: {error}. "
            "Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise DashbuilderConfigError(
            f"Failed to parse YAML config at {config_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise DashbuilderConfigError(
            f"Invalid config file at {config_file}: expected a mapping at top level."
        )
    return {str(key): value for key, value in payload.items()}


def _parse_store_backend(raw_value: str, source_name: str) -> str:
    """Parse and validate a store backend name.

    Args:
        raw_value: Raw backend name.
        source_name: Env variable or config key for error context.

    Returns:
        Normalized backend name.

    Raises:
        DashbuilderConfigError: If the backend is not supported.
    """
    backend = raw_value.strip().lower()
    if backend not in SUPPORTED_STORE_BACKENDS:
        raise DashbuilderConfigError(
            f"Invalid {source_name} value: expected one of "
            f"{', '.join(SUPPORTED_STORE_BACKENDS)}, got '{raw_value}'."
        )
    return backend


def _parse_non_negative_int(raw_value: str, source_name: str) -> int:
    """Parse a non-negative integer setting.

    Args:
        raw_value: Raw string value.
        source_name: Env variable or config key for error context.

    Returns:
        Parsed integer.

    Raises:
        DashbuilderConfigError: If value is not a non-negative integer.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise DashbuilderConfigError(
            f"Invalid {source_name} value: expected integer, got '{raw_value}'. "
            f"Set {source_name} to a numeric value."
        ) from error
    if value < 0:
        raise DashbuilderConfigError(
            f"Invalid {source_name} value: expected a non-negative integer, got {value}."
        )
    return value
