"""In-memory data set definition registry.

This module holds the uuid-keyed index of registered definitions and the
registry protocol shared by the versioned store and the deployment watcher.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from core.errors import DashbuilderValidationError
from core.logging_config import get_logger
from core.types import DataSetDef, DataSetDefEntry

_LOGGER = get_logger(__name__)


class DefinitionRegistry(Protocol):
    """Registry operations consumed by the store and the deployer."""

    def register_definition(
        self,
        definition: DataSetDef,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> None: ...

    def remove_definition(
        self,
        uuid: str,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> DataSetDef | None: ...

    def get_definition(self, uuid: str) -> DataSetDef | None: ...


class RegistryListener(Protocol):
    """Observer notified after registry mutations."""

    def on_registered(self, previous: DataSetDef | None, current: DataSetDef) -> None: ...

    def on_removed(self, definition: DataSetDef) -> None: ...


class DataSetDefRegistry:
    """Thread-safe in-memory definition index."""

    def __init__(self) -> None:
        self._entries: dict[str, DataSetDefEntry] = {}
        self._listeners: list[RegistryListener] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: RegistryListener) -> None:
        """Subscribe a listener to register and remove notifications.

        Listeners run on the mutating thread after the index is updated;
        the watch-mode CLI uses one to print live deployment events.
        """
        with self._lock:
            self._listeners.append(listener)

    def put_definition(self, definition: DataSetDef) -> None:
        """Index a definition without notifying listeners.

        Used when rebuilding the index from already persisted documents.
        """
        uuid = _require_uuid(definition)
        with self._lock:
            self._entries[uuid] = DataSetDefEntry(definition=definition, registered_at=time.time())

    def register_definition(
        self,
        definition: DataSetDef,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> None:
        """Register or replace a definition.

        Args:
            definition: Definition to index.
            actor_id: Optional actor performing the change.
            message: Optional audit message.

        Raises:
            DashbuilderValidationError: If the definition has no uuid.
        """
        uuid = _require_uuid(definition)
        with self._lock:
            previous_entry = self._entries.get(uuid)
            self._entries[uuid] = DataSetDefEntry(definition=definition, registered_at=time.time())
            listeners = tuple(self._listeners)
        previous = previous_entry.definition if previous_entry else None
        _LOGGER.info(
            "definition_registered",
            uuid=uuid,
            provider=definition.provider,
            replaced=previous is not None,
            actor_id=actor_id,
            message=message,
        )
        for listener in listeners:
            _notify(listener.on_registered, uuid, previous, definition)

    def remove_definition(
        self,
        uuid: str,
        actor_id: str | None = None,
        message: str | None = None,
    ) -> DataSetDef | None:
        """Remove a definition by uuid.

        Args:
            uuid: Definition uuid.
            actor_id: Optional actor performing the change.
            message: Optional audit message.

        Returns:
            Removed definition, or ``None`` when it was not registered.
        """
        with self._lock:
            entry = self._entries.pop(uuid, None)
            listeners = tuple(self._listeners)
        if entry is None:
            return None
        _LOGGER.info("definition_removed", uuid=uuid, actor_id=actor_id, message=message)
        for listener in listeners:
            _notify(listener.on_removed, uuid, entry.definition)
        return entry.definition

    def get_definition(self, uuid: str) -> DataSetDef | None:
        """Return the registered definition for a uuid, if any."""
        with self._lock:
            entry = self._entries.get(uuid)
        return entry.definition if entry else None

    def list_definitions(self, public_only: bool = False) -> list[DataSetDef]:
        """List registered definitions in registration order.

        Args:
            public_only: Only include definitions flagged public.

        Returns:
            Registered definitions.
        """
        with self._lock:
            entries = list(self._entries.values())
        return [
            entry.definition
            for entry in entries
            if entry.definition.is_public or not public_only
        ]


def _require_uuid(definition: DataSetDef) -> str:
    if not definition.uuid or not definition.uuid.strip():
        raise DashbuilderValidationError(
            "Cannot register a data set definition without uuid. "
            "Set the uuid field before registering."
        )
    return definition.uuid


def _notify(callback: Callable[..., None], uuid: str, *args: DataSetDef | None) -> None:
    try:
        callback(*args)
    except Exception as error:
        _LOGGER.error("registry_listener_failed", uuid=uuid, error=str(error))
