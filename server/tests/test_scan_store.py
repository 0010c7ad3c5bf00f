import json

import pytest

from meter_reader.errors import NoValueFound
from meter_reader.store import JsonScanStore, MemoryScanStore


def add(store, value):
    return store.add(raw=value, normalized=value, ocr_text=f"FR1 {value} m3/Hr")


def test_newest_first(memory_store):
    add(memory_store, "1")
    add(memory_store, "2")
    assert [s.normalized for s in memory_store.list()] == ["2", "1"]
    assert memory_store.latest().normalized == "2"


def test_evicts_oldest_beyond_cap():
    store = MemoryScanStore(max_scans=10)
    for i in range(11):
        add(store, str(i))
    scans = store.list()
    assert len(scans) == 10
    assert scans[0].normalized == "10"
    assert "0" not in [s.normalized for s in scans]


def test_records_have_unique_ids_and_timestamps(memory_store):
    first = add(memory_store, "1")
    second = add(memory_store, "2")
    assert first.id != second.id
    assert first.timestamp.endswith("+00:00")


def test_list_is_a_copy(memory_store):
    add(memory_store, "1")
    memory_store.list().clear()
    assert len(memory_store.list()) == 1


def test_empty_store(memory_store):
    assert memory_store.list() == []
    assert memory_store.latest() is None


def test_invalid_cap():
    with pytest.raises(ValueError):
        MemoryScanStore(max_scans=0)


def test_manual_entry_is_normalized(memory_store):
    record = memory_store.add_manual(" 041.50 ", ocr_text="FR1 O41.5O m3/Hr")
    assert record.manual
    assert record.raw == "041.50"
    assert record.normalized == "41.50"
    assert record.ocr_text == "FR1 O41.5O m3/Hr"


def test_manual_entry_must_be_numeric(memory_store):
    with pytest.raises(NoValueFound):
        memory_store.add_manual("abc")
    assert memory_store.list() == []


def test_json_store_persists(tmp_path):
    path = tmp_path / "history" / "scans.json"
    store = JsonScanStore(path)
    add(store, "1")
    add(store, "2")

    reloaded = JsonScanStore(path)
    assert [s.normalized for s in reloaded.list()] == ["2", "1"]
    assert json.loads(path.read_text())[0]["normalized"] == "2"


def test_json_store_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "scans.json"
    path.write_text("{not json")
    store = JsonScanStore(path)
    assert store.list() == []
    add(store, "3")
    assert JsonScanStore(path).latest().normalized == "3"


def test_json_store_applies_cap_on_load(tmp_path):
    path = tmp_path / "scans.json"
    store = JsonScanStore(path, max_scans=5)
    for i in range(5):
        add(store, str(i))
    assert len(JsonScanStore(path, max_scans=3).list()) == 3
