# api/server.py
"""
FastAPI server exposing the knowledge ingestion pipeline.

Endpoints:
- GET  /api/v1/rag/query_rag_tag_list - List knowledge tags
- POST /api/v1/rag/file/upload - Upload files under a knowledge tag
- POST /api/v1/rag/analyze_git_repository - Clone and ingest a git repository
- GET  /health - Health check

Run with: uvicorn api.server:app --host 0.0.0.0 --port 8000 --reload
"""
import logging
import threading
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config import configure_logging
from database import build_tag_registry
from database.qdrant import VectorIndexWriter
from ingestion.models import IngestionResult, IngestionStatus
from ingestion.pipeline import KnowledgePipeline

logger = logging.getLogger(__name__)

# ===========================================
# FastAPI App
# ===========================================

app = FastAPI(
    title="Knowledge Ingestion API",
    description="Builds the knowledge base used for retrieval-augmented generation",
    version="1.0.0",
)

# Allow connections from any frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Response codes
CODE_SUCCESS = "0000"
CODE_PARTIAL = "0001"
CODE_FAILED = "0002"

STATUS_CODES = {
    IngestionStatus.SUCCESS: (CODE_SUCCESS, "success"),
    IngestionStatus.PARTIAL_FAILURE: (CODE_PARTIAL, "partial failure"),
    IngestionStatus.FAILED: (CODE_FAILED, "failure"),
}


# ===========================================
# Request/Response Models
# ===========================================


class Response(BaseModel):
    """Response envelope shared by every endpoint."""

    code: str
    info: str
    data: Optional[Any] = None


# ===========================================
# Pipeline wiring
# ===========================================


def build_pipeline() -> KnowledgePipeline:
    writer = VectorIndexWriter()
    writer.ensure_collection()
    return KnowledgePipeline(writer=writer, registry=build_tag_registry())


_pipeline_lock = threading.Lock()


def get_pipeline() -> KnowledgePipeline:
    # Sync endpoints run on a threadpool; build the clients only once
    with _pipeline_lock:
        pipeline = getattr(app.state, "pipeline", None)
        if pipeline is None:
            pipeline = build_pipeline()
            app.state.pipeline = pipeline
    return pipeline


@app.on_event("startup")
async def startup():
    """Set up logging; connections are opened on first use."""
    configure_logging()


def _result_response(result: IngestionResult) -> Response:
    if result.error_kind == "invalid_request":
        raise HTTPException(status_code=400, detail=result.error)
    code, info = STATUS_CODES[result.status]
    return Response(code=code, info=info, data=result.to_dict())


# ===========================================
# Endpoints
# ===========================================


@app.get("/health")
def health(pipeline: KnowledgePipeline = Depends(get_pipeline)):
    """Health check endpoint."""
    info = pipeline.writer.get_collection_info()
    if "error" in info:
        return {"status": "degraded", "error": info["error"]}
    return {"status": "healthy", "qdrant_points": info.get("points_count", 0)}


@app.get("/api/v1/rag/query_rag_tag_list", response_model=Response)
def query_rag_tag_list(pipeline: KnowledgePipeline = Depends(get_pipeline)):
    """List knowledge tags in registration order."""
    try:
        tags = pipeline.list_knowledge_tags()
    except Exception as e:
        logger.exception("Could not read knowledge tags")
        raise HTTPException(status_code=503, detail=f"tag registry unavailable: {e}")
    return Response(code=CODE_SUCCESS, info="success", data=tags)


@app.post("/api/v1/rag/file/upload", response_model=Response)
def upload_file(
    ragTag: str = Form(...),
    file: List[UploadFile] = File(...),
    pipeline: KnowledgePipeline = Depends(get_pipeline),
):
    """Upload and ingest files under a knowledge tag."""
    logger.info("Knowledge upload started for tag %s (%d files)", ragTag, len(file))
    files = [(upload.filename or "upload", upload.file) for upload in file]
    result = pipeline.ingest_upload(ragTag, files)
    logger.info("Knowledge upload finished for tag %s: %s", ragTag, result.status.value)
    return _result_response(result)


@app.post("/api/v1/rag/analyze_git_repository", response_model=Response)
def analyze_git_repository(
    repoURL: str = Form(...),
    username: str = Form(""),
    password: str = Form(""),
    pipeline: KnowledgePipeline = Depends(get_pipeline),
):
    """Clone a git repository and ingest its files under the repository name."""
    result = pipeline.ingest_repository(repoURL, username or None, password or None)
    return _result_response(result)
