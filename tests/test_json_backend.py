"""Unit tests for the JSON file persistence backend."""

import json

import pytest

from sqlanalyzer.core.errors import PersistenceAppError
from sqlanalyzer.persistence.backend import JsonFileBackend, PersistenceBackend
from sqlanalyzer.persistence.registry import StoreRegistry
from sqlanalyzer.persistence.store import EntityStore
from sqlanalyzer.schemas.promptable_api import PromptableApi
from sqlanalyzer.schemas.records import (
    LLMRecord,
    PromptRecord,
    PromptTypeRecord,
    SampleQueryRecord,
)


def test_backends_satisfy_protocol(json_backend: JsonFileBackend, memory_backend) -> None:
    assert isinstance(json_backend, PersistenceBackend)
    assert isinstance(memory_backend, PersistenceBackend)


def test_persist_writes_one_readable_file_per_record(json_backend: JsonFileBackend) -> None:
    record = PromptRecord(id=7, text="Count the orders", sample_query_id=1, type_id=2)

    json_backend.persist(record)

    path = json_backend.base_path / "PromptRecord" / "7.json"
    assert path.is_file()
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["text"] == "Count the orders"
    assert document["id"] == 7


def test_load_returns_persisted_record(json_backend: JsonFileBackend) -> None:
    record = LLMRecord(
        id=3,
        name="gemini",
        api=PromptableApi.GEMINI,
        model="gemini-2.0-flash",
        api_key="secret",
        min_temperature=0.1,
        max_temperature=0.9,
    )
    json_backend.persist(record)

    assert json_backend.load(LLMRecord, 3) == record


def test_load_missing_record_raises(json_backend: JsonFileBackend) -> None:
    with pytest.raises(PersistenceAppError) as exc_info:
        json_backend.load(PromptRecord, 404)

    assert exc_info.value.code == "persistence_not_found"
    assert isinstance(exc_info.value.cause, FileNotFoundError)


def test_load_corrupt_record_raises(json_backend: JsonFileBackend) -> None:
    directory = json_backend.base_path / "PromptRecord"
    directory.mkdir(parents=True)
    (directory / "1.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceAppError) as exc_info:
        json_backend.load(PromptRecord, 1)

    assert exc_info.value.code == "persistence_corrupt_record"


def test_load_all_skips_broken_files(json_backend: JsonFileBackend) -> None:
    good = PromptRecord(id=1, text="ok")
    json_backend.persist(good)
    (json_backend.base_path / "PromptRecord" / "2.json").write_text("[]", encoding="utf-8")

    assert json_backend.load_all(PromptRecord) == {good}


def test_load_all_on_empty_store_creates_directory(json_backend: JsonFileBackend) -> None:
    assert json_backend.load_all(SampleQueryRecord) == set()
    assert (json_backend.base_path / "SampleQueryRecord").is_dir()


def test_persist_replaces_older_version(json_backend: JsonFileBackend) -> None:
    first = PromptRecord(id=1, text="first", version=1)
    second = PromptRecord(id=1, text="second", version=2)

    json_backend.persist(first)
    json_backend.persist(second)

    assert json_backend.load(PromptRecord, 1) == second


def test_persist_rejects_stale_write(json_backend: JsonFileBackend) -> None:
    json_backend.persist(PromptRecord(id=1, text="newer", version=5))

    with pytest.raises(PersistenceAppError) as exc_info:
        json_backend.persist(PromptRecord(id=1, text="older", version=4))

    assert exc_info.value.code == "persistence_stale_write"
    assert json_backend.load(PromptRecord, 1).text == "newer"


def test_delete_removes_file(json_backend: JsonFileBackend) -> None:
    record = PromptRecord(id=1, text="bye")
    json_backend.persist(record)

    json_backend.delete(record)

    assert json_backend.load_all(PromptRecord) == set()


def test_delete_missing_record_raises(json_backend: JsonFileBackend) -> None:
    with pytest.raises(PersistenceAppError):
        json_backend.delete(PromptRecord(id=1, text="never saved"))


def test_record_types_are_separate_namespaces(json_backend: JsonFileBackend) -> None:
    json_backend.persist(PromptRecord(id=1, text="prompt"))
    json_backend.persist(SampleQueryRecord(id=1, name="sample", sql="SELECT 1"))

    assert json_backend.load(PromptRecord, 1).text == "prompt"
    assert json_backend.load(SampleQueryRecord, 1).name == "sample"


def test_load_all_skips_non_utf8_file(json_backend: JsonFileBackend) -> None:
    good = PromptTypeRecord(id=1, name="zero-shot")
    json_backend.persist(good)
    (json_backend.base_path / "PromptTypeRecord" / "2.json").write_bytes(b"\xff\xfe\x00bad")

    assert json_backend.load_all(PromptTypeRecord) == {good}


def test_load_non_utf8_file_raises_persistence_error(json_backend: JsonFileBackend) -> None:
    directory = json_backend.base_path / "PromptTypeRecord"
    directory.mkdir(parents=True)
    (directory / "2.json").write_bytes(b"\xff\xfe\x00bad")

    with pytest.raises(PersistenceAppError) as exc_info:
        json_backend.load(PromptTypeRecord, 2)

    assert exc_info.value.code == "persistence_corrupt_record"
    assert isinstance(exc_info.value.cause, UnicodeDecodeError)


def test_persist_over_non_utf8_file_raises_persistence_error(
    json_backend: JsonFileBackend,
) -> None:
    directory = json_backend.base_path / "PromptTypeRecord"
    directory.mkdir(parents=True)
    (directory / "2.json").write_bytes(b"\xff\xfe\x00bad")

    with pytest.raises(PersistenceAppError) as exc_info:
        json_backend.persist(PromptTypeRecord(id=2, name="few-shot"))

    assert exc_info.value.code == "persistence_corrupt_record"


@pytest.mark.parametrize("content", [b"\xff\xfe\x00bad", b"{not json", b"[]"])
def test_store_over_broken_file_starts_without_raising(
    json_backend: JsonFileBackend, content: bytes
) -> None:
    good = PromptTypeRecord(id=1, name="zero-shot")
    json_backend.persist(good)
    (json_backend.base_path / "PromptTypeRecord" / "2.json").write_bytes(content)

    store = EntityStore(PromptTypeRecord, json_backend)

    assert store.get_all() == {good}
    assert store.get_by_id(2) is None


def test_registry_over_broken_file_starts_without_raising(json_backend: JsonFileBackend) -> None:
    directory = json_backend.base_path / "PromptRecord"
    directory.mkdir(parents=True)
    (directory / "9.json").write_bytes(b"\x80\x81")

    registry = StoreRegistry(json_backend)

    assert registry.prompts.get_all() == set()
