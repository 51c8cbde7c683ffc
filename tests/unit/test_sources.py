import io
import os
import types

import pytest

from ingestion.sources import for_each_document, iter_repository_documents, iter_upload_documents


@pytest.fixture
def checkout(tmp_path):
    root = tmp_path / "checkout"
    (root / ".git" / "objects").mkdir(parents=True)
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (root / ".git" / "objects" / "blob").write_bytes(b"\x00\x01")
    (root / "docs").mkdir()
    (root / "docs" / "guide.md").write_text("guide")
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "src" / "pkg" / "mod.py").write_text("x = 1\n")
    (root / "README.md").write_text("readme")
    return root


def test_repository_walk_skips_git_metadata(checkout):
    sources = [doc.source for doc in iter_repository_documents(checkout)]
    assert sources == ["README.md", "docs/guide.md", "src/pkg/mod.py"]


def test_repository_documents_are_read_lazily(checkout):
    documents = iter_repository_documents(checkout)
    assert isinstance(documents, types.GeneratorType)

    first = next(documents)
    assert first.content is None
    assert first.path == checkout / "README.md"
    assert first.read_bytes() == b"readme"


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_repository_walk_ignores_symlinks(checkout):
    (checkout / "link.md").symlink_to(checkout / "README.md")
    sources = [doc.source for doc in iter_repository_documents(checkout)]
    assert "link.md" not in sources


def test_uploads_accept_bytes_and_file_objects():
    files = [("a.txt", b"alpha"), ("b.txt", io.BytesIO(b"beta"))]
    documents = list(iter_upload_documents(files))

    assert [d.name for d in documents] == ["a.txt", "b.txt"]
    assert [d.read_bytes() for d in documents] == [b"alpha", b"beta"]


def test_for_each_document_dispatches_on_source(checkout):
    assert len(list(for_each_document(checkout))) == 3
    assert len(list(for_each_document(str(checkout)))) == 3
    assert len(list(for_each_document([("a.txt", b"alpha")]))) == 1
