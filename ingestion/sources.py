# ingestion/sources.py
"""
Content source adapters.

Both adapters produce a lazy, finite stream of RawDocument objects:
- uploads: one document per uploaded (name, bytes) pair
- repositories: one document per regular file of a cloned tree,
  skipping version-control metadata
"""
import logging
from pathlib import Path
from typing import IO, Iterable, Iterator, Tuple, Union

from ingestion.models import RawDocument

logger = logging.getLogger(__name__)

UploadedFile = Tuple[str, Union[bytes, IO[bytes]]]

# Directories that only hold version-control state
VCS_DIRS = {".git", ".svn", ".hg"}


def iter_upload_documents(files: Iterable[UploadedFile]) -> Iterator[RawDocument]:
    """Yield one RawDocument per uploaded file."""
    for name, data in files:
        if isinstance(data, bytes):
            yield RawDocument(name=name, source=name, content=data)
        else:
            yield RawDocument(name=name, source=name, stream=data)


def iter_repository_documents(root: Union[str, Path]) -> Iterator[RawDocument]:
    """
    Walk a cloned repository and yield its regular files.

    Files are only referenced by path here; their bytes are read by the
    parser, so a large repository is never held in memory.
    """
    root = Path(root)
    yield from _walk(root, root)


def _walk(root: Path, directory: Path) -> Iterator[RawDocument]:
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.warning("Cannot list directory %s: %s", directory, e)
        return

    for entry in entries:
        if entry.is_symlink():
            continue
        if entry.is_dir():
            if entry.name in VCS_DIRS:
                continue
            yield from _walk(root, entry)
        elif entry.is_file():
            relative = entry.relative_to(root).as_posix()
            yield RawDocument(name=entry.name, source=relative, path=entry)


def for_each_document(source: Union[Path, Iterable[UploadedFile]]) -> Iterator[RawDocument]:
    """Dispatch on the source kind: a directory path or a list of uploads."""
    if isinstance(source, (str, Path)):
        return iter_repository_documents(source)
    return iter_upload_documents(source)
