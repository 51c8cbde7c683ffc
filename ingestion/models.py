# ingestion/models.py
"""
Data model and error taxonomy for the ingestion pipeline.

Lifecycle of one job:
    RawDocument -> ParsedDocument -> N Chunks
Only the committed chunks and the knowledge tag outlive the job.
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import IO, Any, Mapping, Optional


# ===========================================
# Errors
# ===========================================


class IngestionError(Exception):
    """Base class for pipeline errors."""


class ParseError(IngestionError):
    """A document could not be decoded. Per-document, never retried."""

    def __init__(self, cause: str, source_path: str):
        super().__init__(f"{source_path}: {cause}")
        self.cause = cause
        self.source_path = source_path


class VectorIndexError(IngestionError):
    """A chunk batch could not be committed to the vector store."""

    def __init__(self, cause: str, source_path: Optional[str] = None):
        message = f"{source_path}: {cause}" if source_path else cause
        super().__init__(message)
        self.cause = cause
        self.source_path = source_path


class FetchError(IngestionError):
    """The repository could not be cloned. Fatal for the whole job."""

    def __init__(self, cause: str):
        super().__init__(cause)
        self.cause = cause


# ===========================================
# Documents and chunks
# ===========================================


@dataclass
class RawDocument:
    """
    One unit of unparsed content plus its origin.

    Uploads carry their bytes in ``content`` or an open ``stream``; repository
    files only carry a ``path``. Streams and paths are read when the parser
    asks for them, so a read error belongs to this document alone.
    """

    name: str
    source: str
    content: Optional[bytes] = None
    path: Optional[Path] = None
    stream: Optional[IO[bytes]] = None

    def read_bytes(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.stream is not None:
            return self.stream.read()
        if self.path is not None:
            return self.path.read_bytes()
        raise ValueError(f"RawDocument {self.source} has no content, stream or path")

    @property
    def suffix(self) -> str:
        return Path(self.name).suffix.lower()


@dataclass
class ParsedDocument:
    """Extracted text plus metadata (source, file_type, loader details)."""

    source: str
    text: str
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Chunk:
    """
    Immutable slice of a ParsedDocument's text.

    ``metadata`` is a read-only view built when the chunk is created; it holds
    every key of the parent document plus ``knowledge`` and ``chunk_index``.
    """

    text: str
    index: int
    token_count: int
    metadata: Mapping[str, Any]

    def __post_init__(self):
        if not self.text:
            raise ValueError("Chunk text must not be empty")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def knowledge(self) -> Optional[str]:
        return self.metadata.get("knowledge")

    def to_payload(self) -> dict:
        """Payload stored next to the vector in the index."""
        payload = dict(self.metadata)
        payload["content"] = self.text
        payload["token_count"] = self.token_count
        return payload


# ===========================================
# Job state and results
# ===========================================


class IngestionStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


@dataclass(frozen=True)
class FileFailure:
    source: str
    stage: str  # parse | index | unexpected
    reason: str

    def to_dict(self) -> dict:
        return {"source": self.source, "stage": self.stage, "reason": self.reason}


@dataclass(frozen=True)
class DocumentOutcome:
    """Result of processing one RawDocument: chunks written or a failure."""

    source: str
    chunks_written: int = 0
    failure: Optional[FileFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class IngestionResult:
    """What callers get back from an ingest operation. Never an exception."""

    tag: Optional[str]
    status: IngestionStatus
    files_ingested: int = 0
    files_failed: int = 0
    chunks_written: int = 0
    tag_registered: bool = False
    failures: list = field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None  # fetch_error | invalid_request | registry_error

    @property
    def success(self) -> bool:
        return self.status is IngestionStatus.SUCCESS

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "status": self.status.value,
            "files_ingested": self.files_ingested,
            "files_failed": self.files_failed,
            "chunks_written": self.chunks_written,
            "tag_registered": self.tag_registered,
            "failures": [f.to_dict() for f in self.failures],
            "error": self.error,
            "error_kind": self.error_kind,
        }


@dataclass
class IngestionJob:
    """Transient state of one upload or repository import."""

    source: str
    tag: Optional[str] = None
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    files_ingested: int = 0
    files_failed: int = 0
    chunks_written: int = 0
    failures: list = field(default_factory=list)

    def record(self, outcome: DocumentOutcome) -> None:
        if outcome.ok:
            self.files_ingested += 1
            self.chunks_written += outcome.chunks_written
        else:
            self.files_failed += 1
            self.failures.append(outcome.failure)

    def to_result(
        self,
        tag_registered: bool,
        error: Optional[str] = None,
        error_kind: Optional[str] = None,
    ) -> IngestionResult:
        if self.files_ingested == 0:
            status = IngestionStatus.FAILED
        elif self.files_failed or error:
            status = IngestionStatus.PARTIAL_FAILURE
        else:
            status = IngestionStatus.SUCCESS
        return IngestionResult(
            tag=self.tag,
            status=status,
            files_ingested=self.files_ingested,
            files_failed=self.files_failed,
            chunks_written=self.chunks_written,
            tag_registered=tag_registered,
            failures=list(self.failures),
            error=error,
            error_kind=error_kind,
        )
