"""Unit tests for the in-memory definition registry."""

from __future__ import annotations

import pytest

from core.errors import DashbuilderValidationError
from core.types import DataSetDef
from store.definition_registry import DataSetDefRegistry


class _RecordingListener:
    def __init__(self) -> None:
        self.events: list[tuple[str, str | None]] = []

    def on_registered(self, previous: DataSetDef | None, current: DataSetDef) -> None:
        kind = "modified" if previous is not None else "registered"
        self.events.append((kind, current.uuid))

    def on_removed(self, definition: DataSetDef) -> None:
        self.events.append(("removed", definition.uuid))


class _FailingListener:
    def on_registered(self, previous: DataSetDef | None, current: DataSetDef) -> None:
        raise RuntimeError("listener failure")

    def on_removed(self, definition: DataSetDef) -> None:
        raise RuntimeError("listener failure")


def test_register_and_get_definition() -> None:
    """Registered definitions should be retrievable by uuid."""
    registry = DataSetDefRegistry()
    definition = DataSetDef(uuid="a", provider="BEAN")

    registry.register_definition(definition)

    assert registry.get_definition("a") is definition


def test_register_without_uuid_raises() -> None:
    """A definition without uuid cannot be indexed."""
    registry = DataSetDefRegistry()

    with pytest.raises(DashbuilderValidationError):
        registry.register_definition(DataSetDef(uuid=None, provider="BEAN"))

    assert registry.list_definitions() == []


def test_remove_definition_returns_removed_and_tolerates_unknown() -> None:
    """Removing returns the old definition, and unknown uuids return None."""
    registry = DataSetDefRegistry()
    definition = DataSetDef(uuid="a", provider="BEAN")
    registry.register_definition(definition)

    removed = registry.remove_definition("a")

    assert removed is definition and registry.remove_definition("a") is None


def test_list_definitions_filters_public() -> None:
    """Public-only listing should skip private definitions."""
    registry = DataSetDefRegistry()
    registry.register_definition(DataSetDef(uuid="public", provider="BEAN"))
    registry.register_definition(DataSetDef(uuid="private", provider="BEAN", is_public=False))

    public_uuids = [definition.uuid for definition in registry.list_definitions(public_only=True)]

    assert public_uuids == ["public"] and len(registry.list_definitions()) == 2


def test_listeners_receive_register_modify_and_remove_events() -> None:
    """Listeners should observe every registry mutation in order."""
    registry = DataSetDefRegistry()
    listener = _RecordingListener()
    registry.add_listener(listener)

    registry.register_definition(DataSetDef(uuid="a", provider="BEAN"))
    registry.register_definition(DataSetDef(uuid="a", provider="BEAN", name="renamed"))
    registry.remove_definition("a")

    assert listener.events == [("registered", "a"), ("modified", "a"), ("removed", "a")]


def test_listener_failures_do_not_abort_mutations() -> None:
    """A failing listener is logged and the registry still changes."""
    registry = DataSetDefRegistry()
    registry.add_listener(_FailingListener())

    registry.register_definition(DataSetDef(uuid="a", provider="BEAN"))

    assert registry.get_definition("a") is not None


def test_put_definition_skips_listeners() -> None:
    """Startup indexing should not fire registration events."""
    registry = DataSetDefRegistry()
    listener = _RecordingListener()
    registry.add_listener(listener)

    registry.put_definition(DataSetDef(uuid="a", provider="BEAN"))

    assert listener.events == [] and registry.get_definition("a") is not None
