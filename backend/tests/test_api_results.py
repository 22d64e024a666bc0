"""``POST /api/upload-results`` schema validation."""

import json

import pytest
from fastapi.testclient import TestClient

from epub_counter.api.routes_results import validate_results_payload
from epub_counter.config import settings
from epub_counter.main import create_app
from tests.conftest import FakeProcessor, make_queue


def valid_results() -> dict:
    return {
        "schemaVersion": "1.0",
        "timestamp": "2024-01-01T00:00:00.000Z",
        "options": {"tokenizers": ["gpt4"], "maxMb": 500},
        "results": [
            {
                "filePath": "/books/a.epub",
                "metadata": {"title": "A", "author": "B"},
                "wordCount": 10,
                "tokenCounts": [{"name": "gpt4", "count": 12}],
            }
        ],
        "summary": {"total": 1, "success": 1, "failed": 0},
        "failed": [],
    }


@pytest.fixture
def client(tmp_path):
    with TestClient(create_app(make_queue(tmp_path, {}, FakeProcessor()))) as test_client:
        yield test_client


def test_valid_upload_is_acknowledged(client):
    response = client.post("/api/upload-results", json=valid_results())

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "data": {
            "message": "Results validated successfully",
            "resultsCount": 1,
            "summary": {"total": 1, "success": 1, "failed": 0},
        },
    }


def test_invalid_upload_lists_every_problem(client):
    payload = valid_results()
    del payload["schemaVersion"]
    payload["results"] = "nope"
    payload["summary"]["total"] = "1"

    response = client.post("/api/upload-results", json=payload)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INVALID_SCHEMA"
    assert error["message"] == "Invalid results.json format"
    assert len(error["details"]) == 3
    assert any(detail.startswith("schemaVersion:") for detail in error["details"])
    assert any(detail.startswith("results:") for detail in error["details"])
    assert any(detail.startswith("summary.total:") for detail in error["details"])


def test_non_object_upload(client):
    response = client.post("/api/upload-results", json=[1, 2, 3])
    assert response.status_code == 400
    assert response.json()["error"]["details"] == ["Input must be an object"]


def test_unparseable_upload(client):
    response = client.post("/api/upload-results", content=b"{oops", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_JSON"


def test_oversized_upload(client, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_MAX_BYTES", 64)
    body = json.dumps(valid_results()).encode()

    response = client.post("/api/upload-results", content=body, headers={"content-type": "application/json"})

    assert response.status_code == 413
    assert response.json()["error"]["code"] == "PAYLOAD_TOO_LARGE"


def test_validator_accepts_extra_fields():
    payload = valid_results()
    payload["generator"] = "someone else"
    payload["options"]["recursive"] = True
    assert validate_results_payload(payload) == []
