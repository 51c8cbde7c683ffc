from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from database.qdrant import VectorIndexWriter
from ingestion.embedder import generate_embeddings
from ingestion.models import Chunk, VectorIndexError


def make_chunk(text, tag="docs", index=0, source="guide.md"):
    return Chunk(
        text=text,
        index=index,
        token_count=3,
        metadata={"source": source, "knowledge": tag, "chunk_index": index},
    )


def test_commit_upserts_one_point_per_chunk(writer, qdrant_client):
    chunks = [make_chunk("first", index=0), make_chunk("second", index=1)]

    assert writer.commit(chunks) == 2

    qdrant_client.upsert.assert_called_once()
    kwargs = qdrant_client.upsert.call_args.kwargs
    assert kwargs["collection_name"] == "test_knowledge"
    payloads = [point.payload for point in kwargs["points"]]
    assert [p["content"] for p in payloads] == ["first", "second"]
    assert all(p["knowledge"] == "docs" for p in payloads)
    assert [p["chunk_index"] for p in payloads] == [0, 1]


def test_commit_accepts_mixed_tags(writer, qdrant_client):
    writer.commit([make_chunk("a", tag="one"), make_chunk("b", tag="two")])

    points = qdrant_client.upsert.call_args.kwargs["points"]
    assert {point.payload["knowledge"] for point in points} == {"one", "two"}


def test_empty_commit_is_a_no_op(writer, qdrant_client):
    assert writer.commit([]) == 0
    qdrant_client.upsert.assert_not_called()


def test_embedding_failure_raises_index_error(writer, qdrant_client):
    with pytest.raises(VectorIndexError) as exc_info:
        writer.commit([make_chunk("BOOM")])

    assert exc_info.value.source_path == "guide.md"
    qdrant_client.upsert.assert_not_called()


def test_embedding_count_mismatch_raises_index_error(qdrant_client):
    writer = VectorIndexWriter(client=qdrant_client, embedder=lambda texts: [[0.1, 0.2]])

    with pytest.raises(VectorIndexError):
        writer.commit([make_chunk("a"), make_chunk("b")])
    qdrant_client.upsert.assert_not_called()


def test_upsert_failure_raises_index_error(writer, qdrant_client):
    qdrant_client.upsert.side_effect = ConnectionError("qdrant unreachable")

    with pytest.raises(VectorIndexError) as exc_info:
        writer.commit([make_chunk("a")])
    assert "qdrant unreachable" in exc_info.value.cause


def test_ensure_collection_creates_missing_collection(writer, qdrant_client):
    writer.ensure_collection()

    qdrant_client.create_collection.assert_called_once()
    vectors_config = qdrant_client.create_collection.call_args.kwargs["vectors_config"]
    assert vectors_config.size == 4


def test_ensure_collection_keeps_existing_collection(writer, qdrant_client):
    qdrant_client.get_collections.return_value = SimpleNamespace(
        collections=[SimpleNamespace(name="test_knowledge")]
    )
    writer.ensure_collection()
    qdrant_client.create_collection.assert_not_called()


def test_collection_info_reports_errors(writer, qdrant_client):
    qdrant_client.get_collection.side_effect = RuntimeError("down")
    assert writer.get_collection_info() == {"name": "test_knowledge", "error": "down"}


def test_generate_embeddings_batches_and_orders_results():
    client = MagicMock()

    def create(model, input):
        # return items out of order; the index field decides placement
        data = [SimpleNamespace(index=i, embedding=[float(len(text))]) for i, text in enumerate(input)]
        return SimpleNamespace(data=list(reversed(data)))

    client.embeddings.create.side_effect = create

    vectors = generate_embeddings(["a", "bb", "ccc"], batch_size=2, client=client)

    assert vectors == [[1.0], [2.0], [3.0]]
    assert client.embeddings.create.call_count == 2
