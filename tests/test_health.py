from fastapi.testclient import TestClient

from moment_ranker import __version__
from moment_ranker.main import app

client = TestClient(app)


def test_healthcheck_returns_200():
    response = client.get("/health")
    assert response.status_code == 200


def test_healthcheck_response_body():
    response = client.get("/health")
    assert response.json() == {"status": "ok", "version": __version__}


def test_healthcheck_needs_no_collaborators():
    # No Elasticsearch or AI client is attached to app.state here.
    response = client.get("/health")
    data = response.json()
    assert isinstance(data["status"], str)
