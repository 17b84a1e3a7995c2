"""Unit tests for versioned definition persistence."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import DashbuilderParseError, DashbuilderStoreError, DashbuilderValidationError
from core.types import CommitOption, CSVDataSetDef, DataSetDef
from store.definition_codec import DataSetDefJSONCodec
from store.definition_store import DefinitionStore
from store.versioned_store import LocalDocumentStore
from tests.fixture_paths import fixture_path


class _RecordingStore(LocalDocumentStore):
    def __init__(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(*args, **kwargs)
        self.commits: list[tuple[tuple[str, ...], CommitOption]] = []

    def _commit(self, paths: tuple[str, ...], commit: CommitOption) -> None:
        self.commits.append((paths, commit))


def _build_store(tmp_path, max_csv_length: int = 1024 * 1024) -> DefinitionStore:
    return DefinitionStore(
        document_store=_RecordingStore(tmp_path / "store"),
        codec=DataSetDefJSONCodec(),
        max_csv_length=max_csv_length,
    )


def test_register_then_reload_roundtrip(tmp_path) -> None:
    """A registered definition should load back structurally equal."""
    store = _build_store(tmp_path)
    definition = DataSetDef(uuid="a", provider="BEAN", name="A", extra={"generatorClass": "G"})

    store.register_definition(definition, "alice", "register(a)")
    reloaded = _build_store(tmp_path)
    loaded_count = reloaded.load_all()

    assert loaded_count == 1 and reloaded.get_definition("a") == definition


def test_register_stamps_vfs_path_and_commits_with_attribution(tmp_path) -> None:
    """Registration writes one attributed change set."""
    store = _build_store(tmp_path)
    definition = DataSetDef(uuid="a", provider="BEAN")

    store.register_definition(definition, "alice", "register(a)")

    commits = store._document_store.commits  # type: ignore[attr-defined]
    assert definition.vfs_path == "a.dset" and commits == [
        (("a.dset",), CommitOption(author="alice", message="register(a)"))
    ]


def test_register_without_both_actor_and_message_uses_default_commit(tmp_path) -> None:
    """A lone actor or message is not enough for an attributed commit."""
    store = _build_store(tmp_path)

    store.register_definition(DataSetDef(uuid="a", provider="BEAN"), "alice", None)

    commit = store._document_store.commits[0][1]  # type: ignore[attr-defined]
    assert commit.author == "dashbuilder"


def test_register_without_uuid_raises_and_ends_batch(tmp_path) -> None:
    """Failures inside registration still close the batch."""
    store = _build_store(tmp_path)

    with pytest.raises(DashbuilderValidationError):
        store.register_definition(DataSetDef(uuid=None, provider="BEAN"))

    store.register_definition(DataSetDef(uuid="b", provider="BEAN"))
    assert store._document_store._batch_depth == 0  # type: ignore[attr-defined]


def test_register_csv_definition_copies_csv_bytes(tmp_path) -> None:
    """CSV attachments under the cap are stored byte-identical."""
    store = _build_store(tmp_path)
    source_csv = fixture_path("definitions/expenses.csv")
    definition = CSVDataSetDef(uuid="expense-reports", file_path=str(source_csv))

    store.register_definition(definition)

    stored_stream = store.get_csv_input_stream(definition)
    assert stored_stream is not None
    with stored_stream:
        assert stored_stream.read() == source_csv.read_bytes()


def test_register_csv_over_cap_raises_without_storing_csv(tmp_path) -> None:
    """Oversized CSV sources are rejected before being copied."""
    store = _build_store(tmp_path, max_csv_length=2048)
    source_csv = tmp_path / "big.csv"
    source_csv.write_bytes(b"x" * 4096)
    definition = CSVDataSetDef(uuid="big", file_path=str(source_csv))

    with pytest.raises(DashbuilderValidationError, match="maximum allowed: 2 Kb"):
        store.register_definition(definition)

    assert store.get_csv_input_stream(definition) is None and store.get_definition("big") is None


def test_register_csv_with_blank_source_skips_copy(tmp_path) -> None:
    """A CSV definition without source file only stores the document."""
    store = _build_store(tmp_path)
    definition = CSVDataSetDef(uuid="remote", file_url="http://example.com/data.csv")

    store.register_definition(definition)

    assert store.get_csv_input_stream(definition) is None and store.get_definition("remote")


def test_remove_unpersisted_definition_skips_store(tmp_path) -> None:
    """Definitions never written to the store are removed from the registry only."""
    store = _build_store(tmp_path)
    definition = DataSetDef(uuid="memory-only", provider="BEAN")
    store.registry.register_definition(definition)

    removed = store.remove_definition("memory-only")

    assert removed is definition and store._document_store.commits == []  # type: ignore[attr-defined]


def test_remove_csv_definition_deletes_document_and_csv(tmp_path) -> None:
    """Removal deletes the document and the CSV attachment in one change set."""
    store = _build_store(tmp_path)
    definition = CSVDataSetDef(
        uuid="expense-reports",
        file_path=str(fixture_path("definitions/expenses.csv")),
    )
    store.register_definition(definition)

    store.remove_definition("expense-reports", "alice", "remove")

    document_store = store._document_store
    assert (
        not document_store.exists("expense-reports.dset")
        and not document_store.exists("expense-reports.csv")
        and document_store.commits[-1]  # type: ignore[attr-defined]
        == (
            ("expense-reports.csv", "expense-reports.dset"),
            CommitOption(author="alice", message="remove"),
        )
    )


def test_remove_unknown_uuid_returns_none(tmp_path) -> None:
    """Unknown uuids are a no-op."""
    store = _build_store(tmp_path)

    assert store.remove_definition("missing") is None


def test_list_definitions_in_store_aborts_on_unreadable_document(tmp_path) -> None:
    """One malformed document drops the whole listing."""
    store = _build_store(tmp_path)
    store.register_definition(DataSetDef(uuid="a", provider="BEAN"))
    store._document_store.write_text("b.dset", "{broken")

    assert store.list_definitions_in_store() == []


def test_list_definitions_in_store_skips_non_definition_files(tmp_path) -> None:
    """Only ``.dset`` documents are parsed."""
    store = _build_store(tmp_path)
    store.register_definition(DataSetDef(uuid="a", provider="BEAN"))
    store._document_store.write_text("notes.txt", "not json")

    uuids = [definition.uuid for definition in store.list_definitions_in_store()]

    assert uuids == ["a"]


def test_load_definition_returns_none_for_missing_path(tmp_path) -> None:
    """Missing documents load as ``None``."""
    store = _build_store(tmp_path)

    assert store.load_definition("missing.dset") is None


def test_load_definition_wraps_parse_errors_with_path(tmp_path) -> None:
    """Parse failures name the offending store path."""
    store = _build_store(tmp_path)
    store._document_store.write_text("broken.dset", "{broken")

    with pytest.raises(DashbuilderParseError, match="broken.dset"):
        store.load_definition("broken.dset")

    assert isinstance(DashbuilderParseError("x"), DashbuilderStoreError)


def test_remove_definition_at_removes_stored_document(tmp_path) -> None:
    """Removing by store path loads the document and deletes it."""
    store = _build_store(tmp_path)
    store.register_definition(DataSetDef(uuid="a", provider="BEAN"))

    removed = store.remove_definition_at("a.dset")

    assert removed is not None and removed.uuid == "a" and not store._document_store.exists("a.dset")


def test_load_all_skips_documents_without_uuid(tmp_path) -> None:
    """Stored documents without uuid cannot be indexed."""
    store = _build_store(tmp_path)
    store._document_store.write_text("anonymous.dset", '{"provider": "BEAN"}')
    store._document_store.write_text("a.dset", '{"uuid": "a", "provider": "BEAN"}')

    loaded_count = store.load_all()

    assert loaded_count == 1 and store.get_definition("a") is not None


def test_load_definition_at_resolved_path_matches_registered(tmp_path) -> None:
    """Loading the resolved store path returns an equal definition."""
    store = _build_store(tmp_path)
    definition = CSVDataSetDef(uuid="expense-reports", separator_char=";", all_columns=False)
    store.register_definition(definition)

    loaded = store.load_definition(store.resolve_path(definition))

    assert loaded == definition and loaded.vfs_path == "expense-reports.dset"


def test_list_definitions_in_store_aborts_on_unexpected_error(tmp_path) -> None:
    """Non-domain failures while reading also abort the listing."""

    class _ExplodingCodec(DataSetDefJSONCodec):
        def from_json(self, json_text: str) -> DataSetDef:
            raise RuntimeError("decoder crashed")

    document_store = _RecordingStore(tmp_path / "store")
    document_store.write_text("a.dset", '{"uuid": "a", "provider": "BEAN"}')
    store = DefinitionStore(document_store=document_store, codec=_ExplodingCodec())

    loaded_count = store.load_all()

    assert loaded_count == 0 and store.list_definitions() == []


def test_load_all_survives_deeply_nested_document(tmp_path) -> None:
    """A document nested beyond the parser limit aborts loading without raising."""
    store = _build_store(tmp_path)
    nested_value = "[" * 200_000 + "]" * 200_000
    store._document_store.write_text("a.dset", '{"provider": "BEAN", "x": ' + nested_value + "}")

    assert store.load_all() == 0


@pytest.mark.parametrize("uuid", ["team/a", "team\\a"])
def test_register_rejects_uuid_with_path_separator(tmp_path, uuid: str) -> None:
    """Definition documents always live at the store root."""
    store = _build_store(tmp_path)

    with pytest.raises(DashbuilderValidationError, match="path separators"):
        store.register_definition(DataSetDef(uuid=uuid, provider="BEAN"))

    assert list(store._document_store.walk_files()) == []


def test_save_csv_file_checks_length_of_bytes_read(tmp_path, monkeypatch) -> None:
    """A source that grows after the size check is still rejected."""
    store = _build_store(tmp_path, max_csv_length=2048)
    source_csv = tmp_path / "growing.csv"
    source_csv.write_bytes(b"a,b\n")
    monkeypatch.setattr(Path, "read_bytes", lambda self: b"x" * 4096)
    definition = CSVDataSetDef(uuid="growing", file_path=str(source_csv))

    with pytest.raises(DashbuilderValidationError, match="maximum allowed"):
        store.save_csv_file(definition)

    assert store.get_csv_input_stream(definition) is None
