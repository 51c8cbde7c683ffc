import time
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from git.exc import GitCommandError

from api.server import app, get_pipeline


@pytest.fixture
def client(pipeline):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_tag_list_starts_empty(client):
    response = client.get("/api/v1/rag/query_rag_tag_list")

    assert response.status_code == 200
    assert response.json() == {"code": "0000", "info": "success", "data": []}


def test_upload_reports_partial_failure_and_registers_tag(client, binary_blob):
    response = client.post(
        "/api/v1/rag/file/upload",
        data={"ragTag": "docs"},
        files=[
            ("file", ("guide.md", b"# Guide\n\nHow ingestion works.", "text/markdown")),
            ("file", ("image.png", binary_blob, "image/png")),
        ],
    )

    body = response.json()
    assert response.status_code == 200
    assert body["code"] == "0001"
    assert body["data"]["files_ingested"] == 1
    assert body["data"]["files_failed"] == 1
    assert body["data"]["tag_registered"] is True

    tags = client.get("/api/v1/rag/query_rag_tag_list").json()["data"]
    assert tags == ["docs"]


def test_upload_with_blank_tag_is_bad_request(client):
    response = client.post(
        "/api/v1/rag/file/upload",
        data={"ragTag": "   "},
        files=[("file", ("a.txt", b"alpha", "text/plain"))],
    )
    assert response.status_code == 400


def test_repository_fetch_failure_maps_to_failure_code(client):
    error = GitCommandError(["git", "clone"], 128, stderr="fatal: repository not found")

    with patch("ingestion.repository.GitRepo.clone_from", side_effect=error):
        response = client.post(
            "/api/v1/rag/analyze_git_repository",
            data={"repoURL": "https://example/org/myrepo.git", "username": "u", "password": "p"},
        )

    body = response.json()
    assert response.status_code == 200
    assert body["code"] == "0002"
    assert body["data"]["error_kind"] == "fetch_error"
    assert body["data"]["tag"] == "myrepo"


def test_repository_import_succeeds(client, git_remote):
    response = client.post("/api/v1/rag/analyze_git_repository", data={"repoURL": git_remote.as_uri()})

    body = response.json()
    assert body["data"]["tag"] == "myrepo"
    assert body["data"]["tag_registered"] is True
    assert client.get("/api/v1/rag/query_rag_tag_list").json()["data"] == ["myrepo"]


def test_health_reports_collection_state(client, qdrant_client):
    qdrant_client.get_collection.return_value = SimpleNamespace(points_count=3, status="green")
    assert client.get("/health").json() == {"status": "healthy", "qdrant_points": 3}

    qdrant_client.get_collection.side_effect = RuntimeError("down")
    assert client.get("/health").json()["status"] == "degraded"


def test_repository_url_without_name_maps_to_failure_code(client):
    response = client.post("/api/v1/rag/analyze_git_repository", data={"repoURL": "https://example.com/"})

    body = response.json()
    assert response.status_code == 200
    assert body["code"] == "0002"
    assert body["data"]["error_kind"] == "fetch_error"


def test_concurrent_first_requests_build_one_pipeline(pipeline):
    def slow_build():
        time.sleep(0.05)
        return pipeline

    app.state.pipeline = None
    try:
        with patch("api.server.build_pipeline", side_effect=slow_build) as build:
            with ThreadPoolExecutor(max_workers=4) as executor:
                results = list(executor.map(lambda _: get_pipeline(), range(4)))
    finally:
        app.state.pipeline = None

    assert build.call_count == 1
    assert all(result is pipeline for result in results)
