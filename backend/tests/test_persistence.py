"""Tests for persistence.py — JSON layout, atomic writes, validated loads."""

import json
import os

import numpy as np
import pytest

from exceptions import CorruptStore, PersistenceError
from persistence import load_documents, save_documents, store_path
from records import DocumentRecord


def _records(domain="erp", n=3, dim=4, seed=0):
    rng = np.random.default_rng(seed)
    return [
        DocumentRecord.from_chunk(domain, i, f"chunk number {i}", rng.normal(size=dim))
        for i in range(n)
    ]


def _write_raw(path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def _valid_entry(**overrides):
    entry = {
        "id": "erp_doc_0",
        "text": "hello",
        "embedding": [0.1, 0.2],
        "metadata": {"chunk_id": 0, "source": "erp_guide.pdf", "documentType": "erp"},
    }
    entry.update(overrides)
    return entry


class TestStorePath:
    def test_naming_convention(self, tmp_path):
        assert store_path(tmp_path, "hrms") == tmp_path / "vector_store_hrms.json"


class TestSaveAndLoad:

    def test_round_trip_is_exact(self, tmp_path):
        path = store_path(tmp_path, "erp")
        records = _records()
        save_documents(path, "erp", records)

        loaded = load_documents(path, "erp")
        assert len(loaded) == len(records)
        for orig, back in zip(records, loaded):
            assert back.id == orig.id
            assert back.text == orig.text
            assert back.metadata == orig.metadata
            np.testing.assert_array_equal(back.embedding, orig.embedding)

    def test_file_layout(self, tmp_path):
        path = store_path(tmp_path, "erp")
        save_documents(path, "erp", _records(n=2, dim=2))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert isinstance(data, list) and len(data) == 2
        assert data[1]["id"] == "erp_doc_1"
        assert data[1]["metadata"] == {"chunk_id": 1, "source": "erp_guide.pdf", "documentType": "erp"}
        # pretty-printed for diffs
        assert "\n  " in path.read_text(encoding="utf-8")

    def test_creates_missing_directory(self, tmp_path):
        path = store_path(tmp_path / "nested" / "data", "erp")
        save_documents(path, "erp", _records(n=1))
        assert path.exists()

    def test_empty_collection(self, tmp_path):
        path = store_path(tmp_path, "erp")
        save_documents(path, "erp", [])
        assert load_documents(path, "erp") == []

    def test_unicode_text(self, tmp_path):
        path = store_path(tmp_path, "hrms")
        rec = DocumentRecord.from_chunk("hrms", 0, "Congé payé — 25 jours", [1.0, 0.0])
        save_documents(path, "hrms", [rec])
        assert load_documents(path, "hrms")[0].text == "Congé payé — 25 jours"

    def test_missing_file_returns_none(self, tmp_path):
        assert load_documents(store_path(tmp_path, "erp"), "erp") is None

    def test_overwrite_replaces_content(self, tmp_path):
        path = store_path(tmp_path, "erp")
        save_documents(path, "erp", _records(n=5))
        save_documents(path, "erp", _records(n=2, seed=1))
        assert [d.id for d in load_documents(path, "erp")] == ["erp_doc_0", "erp_doc_1"]


class TestAtomicWrite:

    def test_failed_rename_keeps_old_file(self, tmp_path, monkeypatch):
        path = store_path(tmp_path, "erp")
        save_documents(path, "erp", _records(n=3))
        before = path.read_bytes()

        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", boom)
        with pytest.raises(PersistenceError) as info:
            save_documents(path, "erp", _records(n=1, seed=9))

        assert info.value.domain == "erp"
        assert info.value.operation == "save"
        assert isinstance(info.value.__cause__, OSError)
        assert path.read_bytes() == before
        assert [p.name for p in tmp_path.iterdir()] == [path.name]

    def test_failed_serialization_leaves_no_temp_file(self, tmp_path, monkeypatch):
        import persistence

        path = store_path(tmp_path, "erp")

        def bad_dump(*args, **kwargs):
            raise TypeError("not serializable")

        monkeypatch.setattr(persistence.json, "dump", bad_dump)
        with pytest.raises(TypeError):
            save_documents(path, "erp", _records(n=1))
        assert list(tmp_path.iterdir()) == []


class TestCorruptStore:

    def test_invalid_json(self, tmp_path):
        path = store_path(tmp_path, "erp")
        path.write_text('[{"id": "erp_doc_0", "text": "trunc', encoding="utf-8")
        with pytest.raises(CorruptStore) as info:
            load_documents(path, "erp")
        assert info.value.domain == "erp"
        assert info.value.path == path

    def test_nesting_too_deep(self, tmp_path):
        path = store_path(tmp_path, "erp")
        path.write_text("[" * 100000 + "]" * 100000, encoding="utf-8")
        with pytest.raises(CorruptStore, match="nesting too deep"):
            load_documents(path, "erp")

    def test_not_utf8(self, tmp_path):
        path = store_path(tmp_path, "erp")
        path.write_bytes(b"\xff\xfe\x00garbage")
        with pytest.raises(CorruptStore):
            load_documents(path, "erp")

    def test_top_level_object(self, tmp_path):
        path = store_path(tmp_path, "erp")
        _write_raw(path, {"documents": []})
        with pytest.raises(CorruptStore):
            load_documents(path, "erp")

    @pytest.mark.parametrize("entry", [
        "just a string",
        _valid_entry(id=7),
        _valid_entry(text=None),
        _valid_entry(embedding="0.1,0.2"),
        _valid_entry(embedding=[0.1, "x"]),
        _valid_entry(embedding=[True, False]),
        _valid_entry(embedding=[]),
        _valid_entry(embedding=[10**400, 0.1]),
        _valid_entry(metadata=None),
        _valid_entry(metadata={"chunk_id": "0", "source": "erp_guide.pdf", "documentType": "erp"}),
        _valid_entry(metadata={"chunk_id": 0, "documentType": "erp"}),
        _valid_entry(metadata={"chunk_id": 0, "source": "hrms_guide.pdf", "documentType": "hrms"}),
    ])
    def test_bad_record_shapes(self, tmp_path, entry):
        path = store_path(tmp_path, "erp")
        _write_raw(path, [entry])
        with pytest.raises(CorruptStore):
            load_documents(path, "erp")

    def test_mixed_dimensions(self, tmp_path):
        path = store_path(tmp_path, "erp")
        _write_raw(path, [_valid_entry(), _valid_entry(id="erp_doc_1", embedding=[0.1, 0.2, 0.3])])
        with pytest.raises(CorruptStore, match="expected 2"):
            load_documents(path, "erp")

    def test_expected_dimension_enforced(self, tmp_path):
        path = store_path(tmp_path, "erp")
        _write_raw(path, [_valid_entry()])
        with pytest.raises(CorruptStore, match="expected 384"):
            load_documents(path, "erp", dimension=384)
