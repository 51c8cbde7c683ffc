# config.py
"""
Centralized configuration for the knowledge ingestion pipeline.
Loads settings from environment variables.
"""
import logging
import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# ===========================================
# NAS Connection Settings
# ===========================================
NAS_IP = os.getenv("NAS_IP", "192.168.1.100")

# Qdrant Vector Database
QDRANT_HOST = os.getenv("QDRANT_HOST", NAS_IP)
QDRANT_PORT = int(os.getenv("QDRANT_PORT", "6333"))
QDRANT_COLLECTION = os.getenv("QDRANT_COLLECTION", "rag_knowledge")

# Tag registry: "redis" (shared list) or "sql" (knowledge_tags table)
TAG_REGISTRY_BACKEND = os.getenv("TAG_REGISTRY_BACKEND", "redis").lower()
REDIS_URL = os.getenv("REDIS_URL", f"redis://{NAS_IP}:6379/0")
TAG_LIST_KEY = os.getenv("TAG_LIST_KEY", "ragTag")

# PostgreSQL Database (only used by the "sql" tag registry)
POSTGRES_HOST = os.getenv("POSTGRES_HOST", NAS_IP)
POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))
POSTGRES_DB = os.getenv("POSTGRES_DB", "rag_system")
POSTGRES_USER = os.getenv("POSTGRES_USER", "rag_user")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "")

# SQLAlchemy connection string
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg2://{POSTGRES_USER}:{POSTGRES_PASSWORD}"
    f"@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

# LiteLLM Proxy
LITELLM_BASE_URL = os.getenv("LITELLM_BASE_URL", f"http://{NAS_IP}:4000/v1")

# ===========================================
# Embedding Settings
# ===========================================
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIMENSIONS = int(os.getenv("EMBEDDING_DIMENSIONS", "1536"))
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "100"))

# ===========================================
# Chunking Settings
# ===========================================
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "800"))  # max tokens per chunk
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "0"))  # overlap tokens

# ===========================================
# Ingestion Settings
# ===========================================
SCRATCH_ROOT = os.getenv("SCRATCH_ROOT", "./cloned-repo")
INGEST_MAX_WORKERS = int(os.getenv("INGEST_MAX_WORKERS", "4"))

# Timeouts (seconds) for network collaborators
GIT_CLONE_TIMEOUT = int(os.getenv("GIT_CLONE_TIMEOUT", "300"))
INDEX_TIMEOUT = float(os.getenv("INDEX_TIMEOUT", "60"))
REDIS_TIMEOUT = float(os.getenv("REDIS_TIMEOUT", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Set up root logging once for the API process or a script."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# ===========================================
# Utility function to print config
# ===========================================
def print_config():
    """Print current configuration (for debugging)."""
    print("=" * 50)
    print("Knowledge Ingestion Configuration")
    print("=" * 50)
    print(f"Qdrant:          {QDRANT_HOST}:{QDRANT_PORT} ({QDRANT_COLLECTION})")
    if TAG_REGISTRY_BACKEND == "sql":
        print(f"Tag registry:    sql ({POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB})")
    else:
        print(f"Tag registry:    redis (key: {TAG_LIST_KEY})")
    print(f"LiteLLM:         {LITELLM_BASE_URL}")
    print(f"Embedding Model: {EMBEDDING_MODEL} ({EMBEDDING_DIMENSIONS} dims)")
    print(f"Chunk Size:      {CHUNK_SIZE} tokens (overlap: {CHUNK_OVERLAP})")
    print(f"Scratch Root:    {os.path.abspath(SCRATCH_ROOT)}")
    print(f"Workers:         {INGEST_MAX_WORKERS}")
    print(f"Timeouts:        clone {GIT_CLONE_TIMEOUT}s, index {INDEX_TIMEOUT}s")
    print("=" * 50)


if __name__ == "__main__":
    print_config()
