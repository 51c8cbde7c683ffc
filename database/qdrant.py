# database/qdrant.py
"""
Qdrant vector index writer.

Qdrant stores embeddings (vectors) and enables fast similarity search.
Each point carries the chunk text and metadata as payload; the
``knowledge`` payload field holds the knowledge tag, so one collection
serves every tag.

A successful commit() is the durability boundary of the pipeline: once it
returns, the chunks are queryable by the retrieval layer.
"""
import logging
import uuid
from typing import Callable, List, Optional, Sequence

from qdrant_client import QdrantClient
from qdrant_client.models import (
    VectorParams,
    Distance,
    PointStruct,
)

from config import (
    QDRANT_HOST,
    QDRANT_PORT,
    QDRANT_COLLECTION,
    EMBEDDING_DIMENSIONS,
    INDEX_TIMEOUT,
)
from ingestion.embedder import generate_embeddings
from ingestion.models import Chunk, VectorIndexError

logger = logging.getLogger(__name__)

Embedder = Callable[[List[str]], List[List[float]]]


def create_client() -> QdrantClient:
    return QdrantClient(host=QDRANT_HOST, port=QDRANT_PORT, timeout=int(INDEX_TIMEOUT))


class VectorIndexWriter:
    """
    Embeds chunks and upserts them into a Qdrant collection.

    QdrantClient and the OpenAI client are safe to share between threads,
    so one writer serves all pipeline workers.
    """

    def __init__(
        self,
        client: Optional[QdrantClient] = None,
        collection_name: str = QDRANT_COLLECTION,
        embedder: Embedder = generate_embeddings,
        dimensions: int = EMBEDDING_DIMENSIONS,
    ):
        self.client = client or create_client()
        self.collection_name = collection_name
        self.embedder = embedder
        self.dimensions = dimensions

    # ===========================================
    # Collection Management
    # ===========================================

    def ensure_collection(self) -> None:
        """
        Create the Qdrant collection if it doesn't exist.

        A collection is like a table - it holds all vectors with the same dimensions.
        """
        collections = self.client.get_collections().collections
        exists = any(c.name == self.collection_name for c in collections)

        if not exists:
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(
                    size=self.dimensions,  # Must match embedding model output
                    distance=Distance.COSINE,
                ),
            )
            logger.info("Created Qdrant collection: %s", self.collection_name)
        else:
            logger.info("Qdrant collection '%s' already exists", self.collection_name)

    def get_collection_info(self) -> dict:
        """Get information about the collection."""
        try:
            info = self.client.get_collection(collection_name=self.collection_name)
            return {
                "name": self.collection_name,
                "points_count": info.points_count,
                "status": str(info.status),
            }
        except Exception as e:
            return {
                "name": self.collection_name,
                "error": str(e),
            }

    # ===========================================
    # Vector Operations
    # ===========================================

    def commit(self, chunks: Sequence[Chunk]) -> int:
        """
        Embed and store chunks. Chunks may carry different knowledge tags.

        Returns:
            Number of points written

        Raises:
            VectorIndexError: embedding or upsert failed; nothing is retried
        """
        if not chunks:
            return 0

        source = chunks[0].metadata.get("source")
        try:
            embeddings = self.embedder([chunk.text for chunk in chunks])
        except Exception as e:
            raise VectorIndexError(f"embedding failed: {e}", source) from e

        if len(embeddings) != len(chunks):
            raise VectorIndexError(
                f"expected {len(chunks)} embeddings, got {len(embeddings)}", source
            )

        points = [
            PointStruct(
                id=str(uuid.uuid4()),
                vector=embedding,
                payload=chunk.to_payload(),
            )
            for chunk, embedding in zip(chunks, embeddings)
        ]

        try:
            self.client.upsert(collection_name=self.collection_name, points=points, wait=True)
        except Exception as e:
            raise VectorIndexError(f"upsert failed: {e}", source) from e

        return len(points)
