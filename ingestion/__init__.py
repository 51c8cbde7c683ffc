# ingestion/__init__.py
"""Document ingestion pipeline."""
from ingestion.models import (
    Chunk,
    FetchError,
    IngestionResult,
    IngestionStatus,
    ParseError,
    ParsedDocument,
    RawDocument,
    VectorIndexError,
)
from ingestion.loaders import parse
from ingestion.chunker import split, chunk_text, count_tokens
from ingestion.embedder import generate_embeddings
from ingestion.repository import RepositoryFetcher, derive_repo_tag
from ingestion.pipeline import KnowledgePipeline

__all__ = [
    "Chunk",
    "FetchError",
    "IngestionResult",
    "IngestionStatus",
    "ParseError",
    "ParsedDocument",
    "RawDocument",
    "VectorIndexError",
    "parse",
    "split",
    "chunk_text",
    "count_tokens",
    "generate_embeddings",
    "RepositoryFetcher",
    "derive_repo_tag",
    "KnowledgePipeline",
]
