"""Basic health check test for the API."""

from fastapi.testclient import TestClient

from epub_counter.main import app


client = TestClient(app)


def test_health_endpoint() -> None:
    """The ``/api/health`` route should return ``{"status": "ok"}``."""

    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_job_queue_is_attached_to_app_state() -> None:
    assert app.state.job_queue is not None
    assert app.state.job_queue.is_processing is False
