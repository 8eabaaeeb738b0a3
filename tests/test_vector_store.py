"""Tests for the JSON-file vector store — similarity, search, persistence."""

from __future__ import annotations

import json
import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from minirag.src.database.vector_store import MISMATCH_SCORE, JsonFileVectorStore, VectorRecord, VectorStore, build_vector_store, cosine_similarity


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 2.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, -2.0, 3.0], [-1.0, 2.0, -3.0]) == pytest.approx(-1.0)

    def test_symmetric(self):
        pairs = [
            ([0.1, 0.7, -0.2], [0.5, -0.3, 0.9]),
            ([3.0, 4.0], [4.0, 3.0]),
            ([1e-3, 2e-3, 5.0], [7.0, -1.0, 0.25]),
        ]
        for a, b in pairs:
            assert cosine_similarity(a, b) == cosine_similarity(b, a)

    def test_zero_norm_is_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0

    def test_length_mismatch_is_minimum(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == MISMATCH_SCORE == -1.0

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 2.0], [10.0, 20.0]) == pytest.approx(1.0)

    @pytest.mark.parametrize("bad", [[math.nan, 0.0], [math.inf, 1.0], [-math.inf, 0.0]])
    def test_non_finite_is_minimum(self, bad):
        assert cosine_similarity(bad, [1.0, 0.0]) == MISMATCH_SCORE
        assert cosine_similarity([1.0, 0.0], bad) == MISMATCH_SCORE

    def test_overflowing_norm_is_minimum(self):
        assert cosine_similarity([1e200, 1e200], [1e200, 1e200]) == MISMATCH_SCORE


class TestUpsertAndAll:
    def test_empty_store(self, store):
        assert store.all() == []
        assert store.count() == 0

    def test_upsert_adds_record(self, store):
        store.upsert("a", "alpha", [1.0, 0.0])
        records = store.all()
        assert len(records) == 1
        assert records[0].id == "a"
        assert records[0].text == "alpha"
        assert records[0].vector == (1.0, 0.0)

    def test_vectors_are_float32(self, store):
        store.upsert("a", "alpha", [0.1])
        stored = store.all()[0].vector[0]
        assert stored == pytest.approx(0.1, rel=1e-6)
        assert stored != 0.1  # float32 rounding is visible in float64

    def test_upsert_is_idempotent(self, store):
        store.upsert("a", "alpha", [1.0, 2.0])
        before = store.all()
        store.upsert("a", "alpha", [1.0, 2.0])
        store.upsert("a", "alpha", [1.0, 2.0])
        assert store.all() == before
        assert store.count() == 1

    def test_overwrite_keeps_single_latest_record(self, store):
        store.upsert("a", "old text", [1.0, 0.0])
        store.upsert("a", "new text", [0.0, 1.0])
        records = store.all()
        assert [r.id for r in records] == ["a"]
        assert records[0].text == "new text"
        assert records[0].vector == (0.0, 1.0)

    def test_overwrite_keeps_position(self, store):
        store.upsert("a", "alpha", [1.0])
        store.upsert("b", "beta", [1.0])
        store.upsert("a", "alpha v2", [1.0])
        assert [r.id for r in store.all()] == ["a", "b"]

    def test_all_is_a_snapshot(self, store):
        store.upsert("a", "alpha", [1.0])
        snapshot = store.all()
        store.upsert("b", "beta", [1.0])
        assert len(snapshot) == 1
        snapshot.clear()
        assert store.count() == 2

    def test_records_are_immutable(self, store):
        store.upsert("a", "alpha", [1.0])
        record = store.all()[0]
        with pytest.raises(AttributeError):
            record.text = "changed"  # type: ignore[misc]

    def test_concurrent_upserts(self, store, store_path):
        def write(i: int) -> None:
            store.upsert(f"doc-{i}", f"text {i}", [float(i), 1.0])

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(write, range(50)))

        assert store.count() == 50
        reloaded = JsonFileVectorStore(store_path)
        assert {r.id for r in reloaded.all()} == {f"doc-{i}" for i in range(50)}


class TestSearch:
    def test_descending_order(self, store):
        store.upsert("far", "far", [0.0, 1.0])
        store.upsert("near", "near", [1.0, 0.1])
        store.upsert("mid", "mid", [1.0, 1.0])
        hits = store.search([1.0, 0.0], top_k=3)
        assert [h.record.id for h in hits] == ["near", "mid", "far"]
        scores = [h.score for h in hits]
        assert scores == sorted(scores, reverse=True)

    def test_never_more_than_top_k(self, store):
        for i in range(5):
            store.upsert(str(i), f"doc {i}", [1.0, float(i)])
        assert len(store.search([1.0, 0.0], top_k=2)) == 2

    def test_top_k_larger_than_store_returns_all(self, store):
        store.upsert("a", "alpha", [1.0, 0.0])
        store.upsert("b", "beta", [0.0, 1.0])
        store.upsert("c", "gamma", [1.0, 1.0])
        assert len(store.search([1.0, 0.0], top_k=10)) == 3

    @pytest.mark.parametrize("top_k", [0, -1])
    def test_non_positive_top_k_returns_nothing(self, store, top_k):
        store.upsert("a", "alpha", [1.0, 0.0])
        assert store.search([1.0, 0.0], top_k=top_k) == []

    def test_ties_keep_insertion_order(self, store):
        for doc_id in ["x", "y", "z"]:
            store.upsert(doc_id, doc_id, [0.5, 0.5])
        hits = store.search([1.0, 1.0], top_k=3)
        assert [h.record.id for h in hits] == ["x", "y", "z"]

    def test_mismatched_dimension_ranks_last(self, store):
        store.upsert("legacy", "old model", [1.0, 0.0, 0.0])
        store.upsert("current", "new model", [0.0, 1.0])
        hits = store.search([1.0, 0.0], top_k=2)
        assert [h.record.id for h in hits] == ["current", "legacy"]
        assert hits[1].score == MISMATCH_SCORE

    def test_empty_store_search(self, store):
        assert store.search([1.0, 0.0], top_k=5) == []

    def test_nan_vector_never_ranks_first(self, store):
        store.upsert("corrupt", "broken embedding", [math.nan, 0.0])
        store.upsert("good", "fine embedding", [1.0, 0.1])
        hits = store.search([1.0, 0.0], top_k=2)
        assert [h.record.id for h in hits] == ["good", "corrupt"]
        assert hits[1].score == MISMATCH_SCORE


class TestPersistence:
    def test_round_trip(self, store, store_path):
        docs = {"a": ("Paris", [0.1, 0.2, 0.3]), "b": ("Tokyo", [-0.5, 0.25, 1.5]), "c": ("Rome", [0.0, 0.0, 1.0])}
        for doc_id, (text, vector) in docs.items():
            store.upsert(doc_id, text, vector)

        reloaded = JsonFileVectorStore(store_path)
        records = reloaded.all()
        assert [r.id for r in records] == ["a", "b", "c"]
        for record in records:
            text, vector = docs[record.id]
            assert record.text == text
            assert record.vector == pytest.approx(vector, rel=1e-6)

    def test_file_format(self, store, store_path):
        store.upsert("a", "alpha", [1.0, 2.0])
        payload = json.loads(store_path.read_text(encoding="utf-8"))
        assert payload == [{"id": "a", "text": "alpha", "vector": [1.0, 2.0]}]

    def test_no_temp_file_left_behind(self, store, store_path):
        store.upsert("a", "alpha", [1.0])
        assert store_path.exists()
        assert not store_path.with_name(store_path.name + ".tmp").exists()

    def test_missing_file_starts_empty(self, tmp_path):
        store = JsonFileVectorStore(tmp_path / "nested" / "dir" / "vectors.json")
        assert store.count() == 0
        assert (tmp_path / "nested" / "dir").is_dir()

    @pytest.mark.parametrize("content", ["{not json", "", "null", '{"id": "a"}', '[{"text": "no id"}]', '[1, 2, 3]'])
    def test_malformed_file_starts_empty(self, store_path, content):
        store_path.parent.mkdir(parents=True, exist_ok=True)
        store_path.write_text(content, encoding="utf-8")
        store = JsonFileVectorStore(store_path)
        assert store.all() == []

    def test_malformed_file_is_replaced_on_next_write(self, store_path):
        store_path.parent.mkdir(parents=True, exist_ok=True)
        store_path.write_text("{broken", encoding="utf-8")
        store = JsonFileVectorStore(store_path)
        store.upsert("a", "alpha", [1.0])
        assert [r.id for r in JsonFileVectorStore(store_path).all()] == ["a"]

    def test_loads_pascal_case_keys(self, store_path):
        store_path.parent.mkdir(parents=True, exist_ok=True)
        store_path.write_text(json.dumps([{"Id": "a", "Text": "alpha", "Vector": [1.0, 0.5]}]), encoding="utf-8")
        records = JsonFileVectorStore(store_path).all()
        assert records == [VectorRecord(id="a", text="alpha", vector=(1.0, 0.5))]

    def test_null_text_and_vector_default_to_empty(self, store_path):
        store_path.parent.mkdir(parents=True, exist_ok=True)
        store_path.write_text(json.dumps([{"id": "a", "text": None, "vector": None}]), encoding="utf-8")
        records = JsonFileVectorStore(store_path).all()
        assert records == [VectorRecord(id="a", text="", vector=())]

    def test_duplicate_ids_last_wins(self, store_path):
        store_path.parent.mkdir(parents=True, exist_ok=True)
        store_path.write_text(json.dumps([{"id": "a", "text": "first", "vector": [1.0]}, {"id": "a", "text": "second", "vector": [2.0]}]), encoding="utf-8")
        records = JsonFileVectorStore(store_path).all()
        assert len(records) == 1
        assert records[0].text == "second"

    def test_non_finite_vector_persists_as_valid_json(self, store, store_path):
        store.upsert("corrupt", "broken embedding", [math.nan, 0.0])
        store.upsert("good", "fine embedding", [1.0, 0.1])
        payload = json.loads(store_path.read_text(encoding="utf-8"), parse_constant=lambda token: pytest.fail(f"non-JSON token {token}"))
        assert payload[0] == {"id": "corrupt", "text": "broken embedding", "vector": []}

        reloaded = JsonFileVectorStore(store_path)
        assert reloaded.count() == 2
        assert reloaded.search([1.0, 0.0], top_k=1)[0].record.id == "good"

    def test_non_finite_vector_on_disk_is_dropped(self, store_path):
        store_path.parent.mkdir(parents=True, exist_ok=True)
        store_path.write_text('[{"id": "corrupt", "text": "x", "vector": [NaN, 0.0]}, {"id": "good", "text": "y", "vector": [1.0, 0.1]}]', encoding="utf-8")
        reloaded = JsonFileVectorStore(store_path)
        assert all(math.isfinite(v) for r in reloaded.all() for v in r.vector)
        hits = reloaded.search([1.0, 0.0], top_k=1)
        assert [h.record.id for h in hits] == ["good"]

    def test_write_failure_is_raised(self, store, monkeypatch):
        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("minirag.src.database.vector_store.os.replace", broken_replace)
        with pytest.raises(OSError, match="disk full"):
            store.upsert("a", "alpha", [1.0])


class TestFactory:
    def test_build_json_store(self, tmp_path: Path):
        store = build_vector_store("json", path=tmp_path / "v.json")
        assert isinstance(store, JsonFileVectorStore)
        assert isinstance(store, VectorStore)
        assert store.count() == 0

    def test_unknown_backend_raises(self):
        with pytest.raises(ValueError, match="Unknown vector store backend"):
            build_vector_store("nonexistent")
