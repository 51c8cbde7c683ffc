# ingestion/pipeline.py
"""
Complete ingestion pipeline that ties everything together.

Flow for one job (upload or repository import):
1. Produce raw documents (uploaded files, or a cloned repository's files)
2. Parse each document (failures are recorded, never fatal)
3. Chunk the text and tag every chunk with the knowledge tag
4. Commit the chunks of each document to the vector index
5. Register the knowledge tag once the walk is complete

Steps 2-4 run per document on a bounded thread pool.
"""
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Iterable, Iterator, List, Optional, Set

from config import CHUNK_OVERLAP, CHUNK_SIZE, INGEST_MAX_WORKERS
from database import TagRegistry
from ingestion import chunker, loaders
from ingestion.models import (
    DocumentOutcome,
    FetchError,
    FileFailure,
    IngestionJob,
    IngestionResult,
    IngestionStatus,
    ParseError,
    RawDocument,
    VectorIndexError,
)
from ingestion.repository import RepositoryFetcher, derive_repo_tag
from ingestion.sources import UploadedFile, iter_repository_documents, iter_upload_documents

if TYPE_CHECKING:
    from database.qdrant import VectorIndexWriter

logger = logging.getLogger(__name__)


class KnowledgePipeline:
    """
    Ingestion entry points used by the API layer.

    Both ingest methods run the whole job before returning and report the
    outcome as an IngestionResult; pipeline exceptions never escape.
    """

    def __init__(
        self,
        writer: "VectorIndexWriter",
        registry: TagRegistry,
        fetcher: Optional[RepositoryFetcher] = None,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        max_workers: int = INGEST_MAX_WORKERS,
    ):
        self.writer = writer
        self.registry = registry
        self.fetcher = fetcher or RepositoryFetcher()
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_workers = max(1, max_workers)

    # ===========================================
    # Public operations
    # ===========================================

    def list_knowledge_tags(self) -> List[str]:
        return self.registry.list_tags()

    def ingest_upload(self, tag: str, files: Iterable[UploadedFile]) -> IngestionResult:
        """Ingest uploaded (name, bytes) files under ``tag``."""
        tag = (tag or "").strip()
        if not tag:
            return _invalid_request(None, "knowledge tag must not be empty")

        job = IngestionJob(source="upload", tag=tag)
        logger.info("Upload ingestion %s started for tag %s", job.job_id, tag)

        self._run(job, iter_upload_documents(files))
        if job.files_ingested == 0 and job.files_failed == 0:
            return _invalid_request(tag, "no files supplied")

        return self._finish(job)

    def ingest_repository(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> IngestionResult:
        """Clone a git repository and ingest every file under its name as tag."""
        try:
            tag = derive_repo_tag(url)
        except FetchError as e:
            logger.error("Repository ingestion rejected: %s", e.cause)
            return _fetch_failed(None, e.cause)

        job = IngestionJob(source=url, tag=tag)
        logger.info("Repository ingestion %s started for tag %s", job.job_id, tag)

        try:
            with self.fetcher.checkout(url, username, password, job_id=job.job_id) as root:
                self._run(job, iter_repository_documents(root))
        except FetchError as e:
            logger.error("Repository ingestion %s failed: %s", job.job_id, e.cause)
            return _fetch_failed(tag, e.cause)

        return self._finish(job)

    # ===========================================
    # Job internals
    # ===========================================

    def process_document(self, raw: RawDocument, tag: str) -> DocumentOutcome:
        """Parse, chunk and commit one document; failures become outcomes."""
        try:
            document = loaders.parse(raw)
            chunks = chunker.split(document, self.chunk_size, self.chunk_overlap, tag=tag)
            written = self.writer.commit(chunks)
        except ParseError as e:
            logger.warning("Skipping %s: cannot parse (%s)", raw.source, e.cause)
            return DocumentOutcome(raw.source, failure=FileFailure(raw.source, "parse", e.cause))
        except VectorIndexError as e:
            logger.warning("Skipping %s: index commit failed (%s)", raw.source, e.cause)
            return DocumentOutcome(raw.source, failure=FileFailure(raw.source, "index", e.cause))
        except Exception as e:
            logger.exception("Unexpected error while ingesting %s", raw.source)
            return DocumentOutcome(
                raw.source, failure=FileFailure(raw.source, "unexpected", str(e) or type(e).__name__)
            )

        logger.debug("Ingested %s (%d chunks)", raw.source, written)
        return DocumentOutcome(raw.source, chunks_written=written)

    def _outcomes(self, documents: Iterator[RawDocument], tag: str) -> Iterator[DocumentOutcome]:
        """
        Process documents on the worker pool, keeping at most
        2 * max_workers of them in flight so lazy sources stay lazy.
        """
        limit = self.max_workers * 2
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            pending: Set[Future] = set()
            for raw in documents:
                pending.add(executor.submit(self.process_document, raw, tag))
                if len(pending) >= limit:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        yield future.result()
            for future in pending:
                yield future.result()

    def _run(self, job: IngestionJob, documents: Iterator[RawDocument]) -> None:
        for outcome in self._outcomes(documents, job.tag):
            job.record(outcome)

    def _finish(self, job: IngestionJob) -> IngestionResult:
        """Register the tag when anything was ingested and build the result."""
        if job.files_ingested == 0:
            logger.warning(
                "Ingestion %s for tag %s ingested nothing (%d failures)",
                job.job_id,
                job.tag,
                job.files_failed,
            )
            return job.to_result(tag_registered=False)

        try:
            self.registry.register_tag(job.tag)
        except Exception as e:
            logger.exception("Could not register knowledge tag %s", job.tag)
            return job.to_result(
                tag_registered=False,
                error=f"tag registration failed: {e}",
                error_kind="registry_error",
            )

        logger.info(
            "Ingestion %s for tag %s finished: %d files ingested, %d failed, %d chunks",
            job.job_id,
            job.tag,
            job.files_ingested,
            job.files_failed,
            job.chunks_written,
        )
        return job.to_result(tag_registered=True)


def _invalid_request(tag: Optional[str], message: str) -> IngestionResult:
    return IngestionResult(
        tag=tag,
        status=IngestionStatus.FAILED,
        error=message,
        error_kind="invalid_request",
    )


def _fetch_failed(tag: Optional[str], message: str) -> IngestionResult:
    return IngestionResult(
        tag=tag,
        status=IngestionStatus.FAILED,
        error=message,
        error_kind="fetch_error",
    )
