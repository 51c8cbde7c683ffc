# ingestion/embedder.py
"""
Generate embeddings using OpenAI via LiteLLM.

Embeddings convert text to vectors (lists of numbers) that
capture semantic meaning. Similar texts have similar vectors.
"""
import logging
from functools import lru_cache
from typing import List, Optional

from openai import OpenAI

from config import EMBEDDING_BATCH_SIZE, EMBEDDING_MODEL, INDEX_TIMEOUT, LITELLM_BASE_URL

logger = logging.getLogger(__name__)


# ===========================================
# Client Setup
# ===========================================


@lru_cache(maxsize=1)
def get_client() -> OpenAI:
    """Client pointing to the LiteLLM proxy on the NAS."""
    return OpenAI(
        base_url=LITELLM_BASE_URL,
        api_key="dummy",  # LiteLLM handles actual API keys
        timeout=INDEX_TIMEOUT,
        max_retries=0,  # failed commits are reported, not retried
    )


# ===========================================
# Embedding Functions
# ===========================================


def generate_embeddings(
    texts: List[str],
    batch_size: int = EMBEDDING_BATCH_SIZE,
    client: Optional[OpenAI] = None,
) -> List[List[float]]:
    """
    Generate embeddings for a list of texts.

    Args:
        texts: List of text strings to embed
        batch_size: Process this many texts at once (API limit is ~2000)
        client: OpenAI-compatible client, defaults to the LiteLLM proxy

    Returns:
        List of embedding vectors, in the order of ``texts``
    """
    client = client or get_client()
    all_embeddings: List[List[float]] = []

    for i in range(0, len(texts), batch_size):
        batch = texts[i : i + batch_size]
        response = client.embeddings.create(
            model=EMBEDDING_MODEL,
            input=batch,
        )

        # Extract embeddings in correct order
        batch_embeddings = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
        all_embeddings.extend(batch_embeddings)
        logger.debug("Embedded batch of %d texts", len(batch))

    return all_embeddings
