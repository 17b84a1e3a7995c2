"""Shared typed models.

This module defines the data set definition document model and the typed
results shared by the store, registry, and deployment layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from core.constants import CSV_PROVIDER_TYPE


@dataclass
class DataSetDef:
    """Data set definition document.

    Definitions are mutable documents: the store stamps ``vfs_path`` on
    first save and the deployer stamps ``def_file_path`` on discovery.
    Neither location field is part of the serialized document.

    Attributes:
        uuid: Unique identifier within a registry.
        provider: Provider type discriminant such as ``BEAN`` or ``CSV``.
        name: Optional human readable name.
        is_public: Whether the definition is listed for public consumers.
        cache_enabled: Whether the provider caches loaded rows.
        cache_max_rows: Row cap for the provider cache.
        push_enabled: Whether data set push to clients is enabled.
        push_max_size: Push size cap in kilobytes.
        refresh_time: Optional refresh interval expression, e.g. ``1second``.
        refresh_always: Refresh even when data is unchanged.
        extra: Provider-specific fields preserved verbatim.
        vfs_path: Relative path in the versioned store once persisted.
        def_file_path: Absolute path of the deployment file it came from.
    """

    uuid: str | None
    provider: str
    name: str | None = None
    is_public: bool = True
    cache_enabled: bool = False
    cache_max_rows: int = 1000
    push_enabled: bool = False
    push_max_size: int = 1024
    refresh_time: str | None = None
    refresh_always: bool = False
    extra: dict[str, Any] = field(default_factory=dict)
    vfs_path: str | None = field(default=None, compare=False)
    def_file_path: str | None = field(default=None, compare=False)


@dataclass
class CSVDataSetDef(DataSetDef):
    """CSV-backed data set definition.

    Attributes:
        file_path: External CSV source path on the deploying filesystem.
        file_url: Optional remote CSV location.
        separator_char: Column separator.
        quote_char: Quote character.
        escape_char: Escape character.
        date_pattern: Date parsing pattern.
        number_pattern: Number parsing pattern.
        all_columns: Whether all CSV columns are exposed.
    """

    provider: str = CSV_PROVIDER_TYPE
    file_path: str | None = None
    file_url: str | None = None
    separator_char: str = ","
    quote_char: str = '"'
    escape_char: str = "\\"
    date_pattern: str = "MM-dd-yyyy HH:mm"
    number_pattern: str = "#,###.##"
    all_columns: bool = True


@dataclass(frozen=True)
class DataSetDefEntry:
    """Registry entry pairing a definition with its registration time."""

    definition: DataSetDef
    registered_at: float


@dataclass(frozen=True)
class CommitOption:
    """Attribution for one versioned store commit.

    Attributes:
        author: Actor identifier recorded as commit author.
        message: Commit message.
    """

    author: str
    message: str


@dataclass(frozen=True)
class DeploymentReport:
    """Outcome of one deployment directory reconciliation pass.

    Attributes:
        deployed: Uuids registered for the first time.
        redeployed: Uuids re-registered after their file changed.
        found: Uuids rediscovered without any content change.
        undeployed: Uuids removed through an undeploy marker.
        failed: File names that could not be read or parsed.
    """

    deployed: tuple[str, ...] = ()
    redeployed: tuple[str, ...] = ()
    found: tuple[str, ...] = ()
    undeployed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
