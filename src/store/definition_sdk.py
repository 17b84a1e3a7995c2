"""Python SDK for data set definition management.

This module wires the configured versioned store, definition registry,
and deployment watcher into one client used by the CLI and embedders.
"""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from uuid import uuid4

from core.config import DashbuilderConfig
from core.constants import DEFINITIONS_DIR_NAME
from core.errors import DashbuilderStoreError
from core.types import DataSetDef, DeploymentReport
from deploy.deployment_watcher import DeploymentWatcher
from store.definition_codec import DataSetDefJSONCodec
from store.definition_registry import RegistryListener
from store.definition_store import DefinitionStore
from store.versioned_store import GitDocumentStore, LocalDocumentStore


class DashbuilderClient:
    """Primary SDK entry point for definition persistence and deployment."""

    def __init__(self, config: DashbuilderConfig | None = None) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
        """
        self._config = config or DashbuilderConfig.from_env()
        self._codec = DataSetDefJSONCodec()
        self._store = DefinitionStore(
            document_store=_build_document_store(self._config),
            codec=self._codec,
            max_csv_length=self._config.max_csv_length,
        )
        self._watcher = DeploymentWatcher(
            registry=self._store,
            codec=self._codec,
            polling_time_ms=self._config.polling_time_ms,
        )

    @property
    def store(self) -> DefinitionStore:
        """Definition store backing this client."""
        return self._store

    @property
    def watcher(self) -> DeploymentWatcher:
        """Deployment directory watcher."""
        return self._watcher

    def start(self) -> int:
        """Load stored definitions and start the configured watcher.

        Returns:
            Number of definitions loaded from the store.
        """
        loaded_count = self._store.load_all()
        if self._config.deploy_directory:
            self._watcher.deploy(self._config.deploy_directory)
        return loaded_count

    def close(self) -> None:
        """Stop the deployment watcher."""
        self._watcher.stop()

    def __enter__(self) -> "DashbuilderClient":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def register_file(
        self,
        definition_file: str,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> DataSetDef:
        """Parse a local definition file and register it.

        A document without uuid is assigned a random one.

        Args:
            definition_file: Path to a ``.dset`` JSON document.
            actor_id: Optional commit author.
            message: Optional commit message.

        Returns:
            Registered definition.

        Raises:
            DashbuilderStoreError: If the file cannot be read or stored.
            DashbuilderParseError: If the document is malformed.
        """
        source_path = Path(definition_file).expanduser()
        try:
            definition_json = source_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            raise DashbuilderStoreError(
                f"Failed to read definition file {source_path}: {error}. "
                "Provide a readable UTF-8 JSON document."
            ) from error
        definition = self._codec.from_json(definition_json)
        if not definition.uuid:
            definition.uuid = str(uuid4())
        self._store.register_definition(definition, actor_id, message)
        return definition

    def remove(
        self,
        uuid: str,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> DataSetDef | None:
        """Remove a definition by uuid."""
        return self._store.remove_definition(uuid, actor_id, message)

    def get(self, uuid: str) -> DataSetDef | None:
        """Return a registered definition by uuid."""
        return self._store.get_definition(uuid)

    def list_definitions(self, public_only: bool = False) -> list[DataSetDef]:
        """List registered definitions."""
        return self._store.list_definitions(public_only=public_only)

    def add_listener(self, listener: RegistryListener) -> None:
        """Subscribe to register and remove events from the registry.

        Events fire for CLI, SDK and deployment watcher changes alike.
        """
        self._store.registry.add_listener(listener)

    def to_json(self, definition: DataSetDef) -> str:
        """Serialize a definition with the client codec."""
        return self._codec.to_json_string(definition)

    def deploy_once(self, directory: str) -> DeploymentReport | None:
        """Run a single deployment pass over a directory without polling.

        Returns:
            Pass report, or ``None`` if the directory is invalid.
        """
        watcher = DeploymentWatcher(registry=self._store, codec=self._codec, polling_time_ms=0)
        if not watcher.deploy(directory):
            return None
        watcher.stop()
        return watcher.last_report


def _build_document_store(config: DashbuilderConfig) -> LocalDocumentStore:
    """Build the configured versioned store backend.

    Args:
        config: Runtime configuration.

    Returns:
        Git-committing or plain local document store.
    """
    store_root = config.data_root / DEFINITIONS_DIR_NAME
    if config.store_backend == "git":
        return GitDocumentStore(store_root, default_author=config.commit_author)
    return LocalDocumentStore(store_root, default_author=config.commit_author)
