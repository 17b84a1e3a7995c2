"""Versioned persistence for data set definitions.

This module stores definition documents and their CSV attachments in a
versioned document store and keeps the in-memory registry in step with it.
Every write and delete runs inside a store batch so one registration or
removal becomes one change set.

A CSV attachment that fails the size check is rejected after the JSON
document has been written; the batch still ends and commits that document,
so callers must clean it up when they abandon the registration.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

from core.constants import CSV_FILE_SUFFIX, DEFAULT_MAX_CSV_LENGTH, DEFINITION_FILE_SUFFIX
from core.errors import (
    DashbuilderError,
    DashbuilderParseError,
    DashbuilderStoreError,
    DashbuilderValidationError,
)
from core.logging_config import get_logger
from core.types import CommitOption, CSVDataSetDef, DataSetDef
from store.definition_codec import DataSetDefJSONCodec
from store.definition_registry import DataSetDefRegistry
from store.versioned_store import LocalDocumentStore

_LOGGER = get_logger(__name__)


class DefinitionStore:
    """Definition registry backed by a versioned document store.

    Pure lookups go straight to the wrapped in-memory registry; register
    and remove also update the store.
    """

    def __init__(
        self,
        document_store: LocalDocumentStore,
        codec: DataSetDefJSONCodec,
        registry: DataSetDefRegistry | None = None,
        max_csv_length: int = DEFAULT_MAX_CSV_LENGTH,
    ) -> None:
        """Initialize the storage.

        Args:
            document_store: Versioned store holding definition files.
            codec: Definition JSON codec.
            registry: In-memory index to keep synchronized.
            max_csv_length: Maximum CSV attachment size in bytes.
        """
        self._document_store = document_store
        self._codec = codec
        self._registry = registry or DataSetDefRegistry()
        self._max_csv_length = max_csv_length

    @property
    def registry(self) -> DataSetDefRegistry:
        """In-memory index kept in step with the store."""
        return self._registry

    def load_all(self) -> int:
        """Index every definition persisted in the store.

        Returns:
            Number of definitions indexed.
        """
        loaded_count = 0
        for definition in self.list_definitions_in_store():
            if not definition.uuid:
                _LOGGER.warning("definition_without_uuid_skipped", path=definition.vfs_path)
                continue
            self._registry.put_definition(definition)
            loaded_count += 1
        _LOGGER.info(
            "definitions_loaded",
            root=str(self._document_store.root),
            count=loaded_count,
        )
        return loaded_count

    def register_definition(
        self,
        definition: DataSetDef,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> None:
        """Persist a definition and register it.

        Args:
            definition: Definition to persist; ``vfs_path`` is stamped on it.
            actor_id: Commit author; used only together with ``message``.
            message: Commit message; used only together with ``actor_id``.

        Raises:
            DashbuilderValidationError: If the uuid is missing or the CSV is too large.
            DashbuilderStoreError: If writing to the store fails.
        """
        self._document_store.start_batch(_commit_option(actor_id, message))
        try:
            definition_json = self._codec.to_json_string(definition)
            definition_path = definition.vfs_path or self.resolve_path(definition)
            self._document_store.write_text(definition_path, definition_json)
            definition.vfs_path = definition_path
            if isinstance(definition, CSVDataSetDef):
                self.save_csv_file(definition)
            self._registry.register_definition(definition, actor_id, message)
        except DashbuilderError:
            raise
        except Exception as error:
            raise DashbuilderStoreError(
                f"Can't register the data set definition {definition.uuid}: {error}"
            ) from error
        finally:
            self._document_store.end_batch()

    def remove_definition(
        self,
        target: str | DataSetDef,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> DataSetDef | None:
        """Delete a definition from the store and the registry.

        Args:
            target: Definition uuid or the definition itself.
            actor_id: Commit author; used only together with ``message``.
            message: Commit message; used only together with ``actor_id``.

        Returns:
            The removed registry definition, or ``None`` if none was registered.

        Raises:
            DashbuilderStoreError: If deleting from the store fails.
        """
        definition = self.get_definition(target) if isinstance(target, str) else target
        if definition is None or not definition.uuid:
            return None
        if definition.vfs_path is not None and self._document_store.exists(definition.vfs_path):
            self._document_store.start_batch(_commit_option(actor_id, message))
            try:
                self._document_store.delete_if_exists(
                    definition.vfs_path,
                    non_empty_directories=True,
                )
                if isinstance(definition, CSVDataSetDef):
                    self.delete_csv_file(definition)
            finally:
                self._document_store.end_batch()
        return self._registry.remove_definition(definition.uuid, actor_id, message)

    def remove_definition_at(
        self,
        path: str,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> DataSetDef | None:
        """Load the definition stored at ``path`` and remove it."""
        definition = self.load_definition(path)
        if definition is None:
            return None
        return self.remove_definition(definition, actor_id, message)

    def get_definition(self, uuid: str) -> DataSetDef | None:
        """Return the registered definition for a uuid, if any."""
        return self._registry.get_definition(uuid)

    def list_definitions(self, public_only: bool = False) -> list[DataSetDef]:
        """List registered definitions."""
        return self._registry.list_definitions(public_only=public_only)

    def list_definitions_in_store(self) -> list[DataSetDef]:
        """Read every definition document found in the store.

        The first unreadable document stops the walk and the whole listing
        is dropped; nothing read before it is returned.

        Returns:
            Definitions stamped with their store paths.
        """
        definitions: list[DataSetDef] = []
        for store_path in self._document_store.walk_files():
            if not store_path.endswith(DEFINITION_FILE_SUFFIX):
                continue
            try:
                definition = self._codec.from_json(self._document_store.read_text(store_path))
            except Exception as error:
                _LOGGER.error("definition_read_failed", path=store_path, error=str(error))
                return []
            definition.vfs_path = store_path
            definitions.append(definition)
        return definitions

    def load_definition(self, path: str) -> DataSetDef | None:
        """Read one definition document by store path.

        Args:
            path: Store path of a ``.dset`` document.

        Returns:
            Parsed definition, or ``None`` if the path does not exist.

        Raises:
            DashbuilderParseError: If the document cannot be parsed.
            DashbuilderStoreError: If the document cannot be read.
        """
        if not self._document_store.exists(path):
            return None
        definition_json = self._document_store.read_text(path)
        try:
            definition = self._codec.from_json(definition_json)
        except DashbuilderParseError as error:
            raise DashbuilderParseError(
                f"Error parsing data set JSON definition: {path}. {error}"
            ) from error
        definition.vfs_path = path
        return definition

    def resolve_path(self, definition: DataSetDef) -> str:
        """Return the store path of a definition document."""
        return self._document_store.resolve(_require_uuid(definition) + DEFINITION_FILE_SUFFIX)

    def resolve_csv_path(self, definition: CSVDataSetDef) -> str:
        """Return the store path of a definition's CSV attachment."""
        return self._document_store.resolve(_require_uuid(definition) + CSV_FILE_SUFFIX)

    def get_csv_input_stream(self, definition: CSVDataSetDef) -> BinaryIO | None:
        """Open the stored CSV attachment, or return ``None`` if absent."""
        csv_path = self.resolve_csv_path(definition)
        if self._document_store.exists(csv_path):
            return self._document_store.open_input(csv_path)
        return None

    def delete_csv_file(self, definition: CSVDataSetDef) -> None:
        """Delete the stored CSV attachment when present."""
        csv_path = self.resolve_csv_path(definition)
        if not self._document_store.exists(csv_path):
            return
        with self._document_store.batch():
            self._document_store.delete_if_exists(csv_path, non_empty_directories=True)

    def save_csv_file(self, definition: CSVDataSetDef) -> None:
        """Copy the definition's external CSV source into the store.

        A blank or missing source path is ignored.

        Args:
            definition: CSV definition whose ``file_path`` names the source.

        Raises:
            DashbuilderValidationError: If the source exceeds the size cap.
            DashbuilderStoreError: If the source cannot be read or stored.
        """
        source_path = definition.file_path
        if not source_path or not source_path.strip():
            return
        csv_file = Path(source_path).expanduser()
        if not csv_file.exists():
            return
        try:
            self._check_csv_length(csv_file.stat().st_size)
            csv_content = csv_file.read_bytes()
        except OSError as error:
            raise DashbuilderStoreError(f"Error saving CSV file: {csv_file}: {error}") from error
        # the source may have grown after stat
        self._check_csv_length(len(csv_content))
        with self._document_store.batch():
            self._document_store.write_bytes(self.resolve_csv_path(definition), csv_content)

    def _check_csv_length(self, csv_length: int) -> None:
        if csv_length > self._max_csv_length:
            raise DashbuilderValidationError(
                "CSV file length exceeds the maximum allowed: "
                f"{self._max_csv_length // 1024} Kb"
            )


def _commit_option(actor_id: str | None, message: str | None) -> CommitOption | None:
    if actor_id is None or message is None:
        return None
    return CommitOption(author=actor_id, message=message)


def _require_uuid(definition: DataSetDef) -> str:
    if not definition.uuid:
        raise DashbuilderValidationError(
            "Cannot resolve a store path for a data set definition without uuid."
        )
    if "/" in definition.uuid or "\\" in definition.uuid:
        raise DashbuilderValidationError(
            f"Invalid data set definition uuid '{definition.uuid}': path separators are "
            "not allowed. Definitions are stored at the store root."
        )
    return definition.uuid
