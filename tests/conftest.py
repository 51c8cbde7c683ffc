"""
Pytest fixtures for the ingestion pipeline tests.

Everything runs without Docker or live services: Qdrant is a MagicMock,
embeddings are fake vectors, and the tag registry is SQLite in memory.
"""
import shutil
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from database.postgres import SqlTagRegistry, create_registry_engine
from database.qdrant import VectorIndexWriter
from ingestion.pipeline import KnowledgePipeline
from ingestion.repository import RepositoryFetcher

# PNG signature + IHDR header: contains NUL bytes, not text
BINARY_BLOB = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x10\x00\x00\x00\x10\x08\x06"

def fake_embedder(texts):
    """One small vector per text; fails for texts containing BOOM."""
    if any("BOOM" in text for text in texts):
        raise RuntimeError("embedding service rejected the batch")
    return [[float(len(text)), 0.0, 1.0, 0.5] for text in texts]


@pytest.fixture
def qdrant_client():
    """QdrantClient stand-in that records upserts."""
    client = MagicMock()
    client.get_collections.return_value = SimpleNamespace(collections=[])
    return client


@pytest.fixture
def writer(qdrant_client):
    return VectorIndexWriter(
        client=qdrant_client,
        collection_name="test_knowledge",
        embedder=fake_embedder,
        dimensions=4,
    )


@pytest.fixture
def registry():
    registry = SqlTagRegistry(create_registry_engine("sqlite://"))
    registry.init_database()
    return registry


@pytest.fixture
def scratch_root(tmp_path):
    return tmp_path / "scratch"


@pytest.fixture
def pipeline(writer, registry, scratch_root):
    return KnowledgePipeline(
        writer=writer,
        registry=registry,
        fetcher=RepositoryFetcher(scratch_root=scratch_root, timeout=30),
        chunk_size=50,
        chunk_overlap=0,
        max_workers=2,
    )


@pytest.fixture
def binary_blob():
    return BINARY_BLOB


@pytest.fixture
def committed_payloads(qdrant_client):
    """Payloads of every point upserted through the mocked client."""

    def collect():
        payloads = []
        for call in qdrant_client.upsert.call_args_list:
            payloads.extend(point.payload for point in call.kwargs["points"])
        return payloads

    return collect


@pytest.fixture
def git_remote(tmp_path):
    """A local git repository named 'myrepo' that can be cloned over file://."""
    if shutil.which("git") is None:
        pytest.skip("git binary not available")
    from git import Actor, Repo

    source = tmp_path / "remote" / "myrepo"
    source.mkdir(parents=True)
    repo = Repo.init(source)
    (source / "README.md").write_text("# My repo\n\nA small repository used in tests.\n")
    (source / "src").mkdir()
    (source / "src" / "app.py").write_text("def main():\n    return 'hello'\n")
    (source / "logo.png").write_bytes(BINARY_BLOB)
    repo.index.add(["README.md", "src/app.py", "logo.png"])
    author = Actor("Test", "test@example.com")
    repo.index.commit("initial commit", author=author, committer=author)
    repo.close()
    return source
