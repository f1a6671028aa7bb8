import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from gradedesk.main import app
from gradedesk.settings import settings


@pytest.mark.parametrize(
    ("api_key", "expected_openai_configured"),
    [("test-key", True), ("   ", False)],
)
def test_health_returns_openai_configuration_status(engine, monkeypatch, api_key: str, expected_openai_configured: bool) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", api_key)

    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200

    payload = response.json()
    assert payload["ok"] is True
    assert payload["openai_configured"] is expected_openai_configured


def test_health_deep_reports_db_and_mock_mode(engine, monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("OPENAI_MOCK", "1")

    with TestClient(app) as client:
        response = client.get("/health/deep")

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["openai_configured"] is True
    assert payload["mock_models"] is True
    assert payload["db_ok"] is True
    assert payload["data_dir"] == str(settings.data_path)


@pytest.mark.parametrize("path", ["/health", "/gradebook"])
def test_cors_headers_present(engine, path: str) -> None:
    with TestClient(app) as client:
        response = client.get(path, headers={"Origin": "https://example.com"})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
