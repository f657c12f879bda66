"""
Unit tests for the vector store.

Runs against a real LanceDB database in a temporary directory.
"""

import math
import warnings
from unittest.mock import MagicMock

import pytest

from hexindex.errors import NotFoundError, NotInitializedError, SerializationError, StorageError
from hexindex.models import CodeChunk
from hexindex.store import VectorStore

from conftest import DIMENSION, axis_vector


def make_chunk(chunk_id, hex_id="hex-1", path="src/lib.rs", start=1, end=3, content=None):
    return CodeChunk(
        id=chunk_id,
        filesystem_hex_id=hex_id,
        file_path=path,
        start_line=start,
        end_line=end,
        content=content or f"fn {chunk_id}() {{}}",
        language="rust",
    )


def blend(a, b, weight):
    """Unit vector between two axis vectors; smaller weight stays closer to `a`."""
    vector = [x * (1 - weight) + y * weight for x, y in zip(a, b)]
    norm = math.sqrt(sum(x * x for x in vector))
    return [x / norm for x in vector]


def test_operations_require_initialize(temp_dir):
    store = VectorStore(temp_dir / "db" / "index.lance")

    assert not store.is_initialized()
    with pytest.raises(NotInitializedError):
        store.insert(make_chunk("a"), axis_vector(0))
    with pytest.raises(NotInitializedError):
        store.search(axis_vector(0))
    with pytest.raises(NotInitializedError):
        store.search(axis_vector(0), limit=0)
    with pytest.raises(NotInitializedError):
        store.search([0.0] * 3)
    with pytest.raises(NotInitializedError):
        store.insert_batch([make_chunk("a")], [])
    with pytest.raises(NotInitializedError):
        store.get_chunk_count("hex-1")


def test_initialize_creates_database(vector_store):
    assert vector_store.is_initialized()
    assert vector_store.db_path.exists()
    assert not vector_store.rebuilt

    # Second call is a no-op
    vector_store.initialize()
    assert vector_store.is_initialized()


def test_insert_and_get_chunk(vector_store):
    chunk = make_chunk("a", content="fn parse() { 'quoted' }")
    vector_store.insert(chunk, axis_vector(0))

    assert vector_store.get_chunk("a") == chunk
    assert vector_store.get_chunk_count("hex-1") == 1


def test_get_missing_chunk_raises(vector_store):
    with pytest.raises(NotFoundError):
        vector_store.get_chunk("missing")


def test_insert_same_id_replaces(vector_store):
    vector_store.insert(make_chunk("a", content="old body"), axis_vector(0))
    vector_store.insert(make_chunk("a", content="new body"), axis_vector(1))

    assert vector_store.get_chunk_count("hex-1") == 1
    assert vector_store.get_chunk("a").content == "new body"

    # The replaced vector is the one searched
    results = vector_store.search(axis_vector(1), limit=1)
    assert results[0].chunk.id == "a"
    assert results[0].distance == pytest.approx(0.0, abs=1e-5)


def test_insert_rejects_bad_embeddings(vector_store):
    with pytest.raises(SerializationError):
        vector_store.insert(make_chunk("a"), [0.1] * (DIMENSION - 1))
    with pytest.raises(SerializationError):
        vector_store.insert(make_chunk("a"), [float("nan")] * DIMENSION)
    with pytest.raises(SerializationError):
        vector_store.insert(make_chunk("a"), ["x"] * DIMENSION)

    assert vector_store.get_chunk_count("hex-1") == 0


def test_insert_batch_length_mismatch(vector_store):
    with pytest.raises(ValueError):
        vector_store.insert_batch([make_chunk("a")], [])


def test_search_orders_by_distance(vector_store):
    target = axis_vector(0)
    other = axis_vector(1)
    vector_store.insert_batch(
        [make_chunk("far"), make_chunk("near"), make_chunk("mid")],
        [blend(target, other, 0.9), blend(target, other, 0.1), blend(target, other, 0.5)],
    )

    results = vector_store.search(target, limit=10)

    assert [r.chunk.id for r in results] == ["near", "mid", "far"]
    distances = [r.distance for r in results]
    assert distances == sorted(distances)
    assert all(d >= 0 for d in distances)


def test_search_respects_limit(vector_store):
    vector_store.insert_batch(
        [make_chunk(f"c{i}", start=i + 1, end=i + 1) for i in range(5)],
        [axis_vector(i) for i in range(5)],
    )

    assert len(vector_store.search(axis_vector(0), limit=3)) == 3
    assert vector_store.search(axis_vector(0), limit=0) == []


def test_search_filters_by_collection(vector_store):
    vector_store.insert_batch(
        [make_chunk("a1", hex_id="A"), make_chunk("b1", hex_id="B"), make_chunk("c1", hex_id="C")],
        [axis_vector(0), axis_vector(1), axis_vector(2)],
    )

    only_b = vector_store.search(axis_vector(0), ["B"], limit=10)
    assert [r.chunk.id for r in only_b] == ["b1"]

    a_and_c = vector_store.search(axis_vector(2), ["A", "C"], limit=10)
    assert [r.chunk.id for r in a_and_c] == ["c1", "a1"]

    # An empty selection searches every collection
    assert len(vector_store.search(axis_vector(0), [], limit=10)) == 3
    assert vector_store.search(axis_vector(0), ["unknown"], limit=10) == []


def test_search_with_many_collections_is_split(temp_dir):
    store = VectorStore(temp_dir / "db" / "small.lance", max_filter_ids=2)
    store.initialize()

    hex_ids = [f"fs-{i}" for i in range(5)]
    store.insert_batch(
        [make_chunk(f"chunk-{i}", hex_id=h) for i, h in enumerate(hex_ids)],
        [axis_vector(i) for i in range(5)],
    )

    results = store.search(axis_vector(4), hex_ids, limit=3)

    assert len(results) == 3
    assert results[0].chunk.id == "chunk-4"
    assert [r.distance for r in results] == sorted(r.distance for r in results)


def test_search_reports_distances_without_warnings(vector_store, capfd):
    vector_store.insert_batch(
        [make_chunk("x"), make_chunk("y")],
        [axis_vector(0), axis_vector(1)],
    )

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        results = vector_store.search(axis_vector(0), limit=2)

    assert [r.chunk.id for r in results] == ["x", "y"]
    assert results[0].distance == pytest.approx(0.0, abs=1e-6)
    assert results[1].distance > results[0].distance
    assert not [w for w in caught if "_distance" in str(w.message)]
    assert "_distance" not in capfd.readouterr().err


def test_search_empty_store(vector_store):
    assert vector_store.search(axis_vector(0)) == []


def test_remove_file(vector_store):
    vector_store.insert_batch(
        [
            make_chunk("a", path="a.rs"),
            make_chunk("b", path="a.rs", start=5, end=9),
            make_chunk("c", path="b.rs"),
            make_chunk("d", hex_id="hex-2", path="a.rs"),
        ],
        [axis_vector(i) for i in range(4)],
    )

    assert vector_store.remove_file("hex-1", "a.rs") == 2
    assert vector_store.remove_file("hex-1", "a.rs") == 0

    assert vector_store.get_indexed_files("hex-1") == {"b.rs"}
    assert vector_store.get_indexed_files("hex-2") == {"a.rs"}
    # Removed embeddings never come back from search
    ids = {r.chunk.id for r in vector_store.search(axis_vector(0), limit=10)}
    assert ids == {"c", "d"}


def test_remove_file_with_quote_in_path(vector_store):
    vector_store.insert(make_chunk("q", path="it's.rs"), axis_vector(0))

    assert vector_store.get_indexed_files("hex-1") == {"it's.rs"}
    assert vector_store.remove_file("hex-1", "it's.rs") == 1


def test_clear_filesystem(vector_store):
    vector_store.insert_batch(
        [make_chunk("a"), make_chunk("b", path="other.rs"), make_chunk("c", hex_id="hex-2")],
        [axis_vector(0), axis_vector(1), axis_vector(2)],
    )

    assert vector_store.clear_filesystem("hex-1") == 2
    assert vector_store.get_chunk_count("hex-1") == 0
    assert vector_store.get_indexed_files("hex-1") == set()
    assert vector_store.get_chunk_count("hex-2") == 1
    assert vector_store.clear_filesystem("hex-1") == 0
    assert [r.chunk.id for r in vector_store.search(axis_vector(0), limit=10)] == ["c"]


def test_data_persists_across_instances(vector_store):
    vector_store.insert(make_chunk("a"), axis_vector(0))

    reopened = VectorStore(vector_store.db_path)
    reopened.initialize()

    assert reopened.get_chunk("a").content == "fn a() {}"
    assert not reopened.rebuilt


def test_dimension_change_rebuilds_index(vector_store):
    vector_store.insert(make_chunk("a"), axis_vector(0))

    resized = VectorStore(vector_store.db_path, dimension=8)
    resized.initialize()

    assert resized.rebuilt
    assert resized.get_chunk_count("hex-1") == 0
    resized.insert(make_chunk("b"), [1.0] + [0.0] * 7)
    assert resized.search([1.0] + [0.0] * 7)[0].chunk.id == "b"


def test_failed_vector_write_rolls_back_metadata(vector_store, monkeypatch):
    broken = MagicMock()
    broken.merge_insert.side_effect = RuntimeError("disk full")
    monkeypatch.setattr(vector_store, "_embeddings", broken)

    with pytest.raises(StorageError, match="disk full"):
        vector_store.insert(make_chunk("a"), axis_vector(0))
    assert vector_store.get_chunk_count("hex-1") == 0


def test_invalid_store_arguments(temp_dir):
    with pytest.raises(ValueError):
        VectorStore(temp_dir / "x", dimension=0)
    with pytest.raises(ValueError):
        VectorStore(temp_dir / "x", max_filter_ids=0)
