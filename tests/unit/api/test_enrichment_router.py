"""Tests for the enrichment API endpoints.

The engine dependency is overridden with one backed by a scripted provider,
so requests exercise the full pipeline without network calls.
"""

from __future__ import annotations

from collections.abc import Generator
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_engine
from enrichment.engine import EnrichmentEngine
from enrichment.integration import MockProvider
from tests.fixtures.fakes import ScriptedProvider, reply_with


def enrich_body(**overrides) -> dict:
    body = {
        "items": [{"id": "a", "name": "Mercy Health"}, {"id": "b", "name": "Acme Widgets"}],
        "promptTemplate": "Is {{name}} a hospital?",
        "columnName": "isHospital",
        "columnType": "boolean",
        "includeGroundingData": False,
    }
    body.update(overrides)
    return body


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider(reply_with(lambda item_id, body: "yes" if "Mercy" in body else "no"))


@pytest.fixture
def client(provider: ScriptedProvider) -> Generator[TestClient, None, None]:
    """App with the enrichment router and a scripted engine."""
    from api.main import create_app

    app = create_app()
    app.dependency_overrides[get_engine] = lambda: EnrichmentEngine(provider)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestEnrichEndpoint:
    """Test POST /api/ai/enrich."""

    def test_returns_one_result_per_item(self, client: TestClient) -> None:
        response = client.post("/api/ai/enrich", json=enrich_body())

        assert response.status_code == 200
        results = response.json()["results"]
        assert results == [
            {
                "item": {"id": "a", "name": "Mercy Health"},
                "success": True,
                "enrichedData": {"isHospital": True, "_source": "gpt-3.5-turbo"},
            },
            {
                "item": {"id": "b", "name": "Acme Widgets"},
                "success": True,
                "enrichedData": {"isHospital": False, "_source": "gpt-3.5-turbo"},
            },
        ]

    def test_item_failures_are_reported_per_item(self, client: TestClient, provider: ScriptedProvider) -> None:
        provider.responder = reply_with(lambda item_id, body: "12" if item_id == "a" else "many")

        response = client.post("/api/ai/enrich", json=enrich_body(columnType="number"))

        results = response.json()["results"]
        assert results[0]["enrichedData"]["isHospital"] == 12.0
        assert results[1] == {
            "item": {"id": "b", "name": "Acme Widgets"},
            "success": False,
            "error": "AI did not return a valid number",
        }

    def test_item_fields_take_precedence(self, client: TestClient, provider: ScriptedProvider) -> None:
        body = enrich_body(itemFields={"a": [{"id": "Name", "label": "Name", "value": "Mercy Structured"}]})

        client.post("/api/ai/enrich", json=body)

        assert "Is Mercy Structured a hospital?" in provider.calls[0].user_message
        assert "Is Acme Widgets a hospital?" in provider.calls[0].user_message

    @pytest.mark.parametrize(
        "overrides, detail",
        [
            ({"items": []}, "Invalid items format: expected a non-empty array"),
            ({"items": "a,b"}, "Invalid items format: expected a non-empty array"),
            ({"promptTemplate": ""}, "Invalid prompt template"),
            ({"columnName": None}, "Invalid column name"),
            ({"columnType": None}, "Invalid column type"),
        ],
    )
    def test_invalid_requests_are_400(self, client: TestClient, provider, overrides, detail) -> None:
        response = client.post("/api/ai/enrich", json=enrich_body(**overrides))

        assert response.status_code == 400
        assert response.json() == {"detail": detail}
        assert provider.calls == []

    def test_unknown_column_type_is_400(self, client: TestClient) -> None:
        response = client.post("/api/ai/enrich", json=enrich_body(columnType="date"))

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid column type")

    def test_malformed_body_is_400(self, client: TestClient) -> None:
        response = client.post("/api/ai/enrich", json=enrich_body(itemFields={"a": "not a list"}))

        assert response.status_code == 400

    def test_unexpected_error_is_500(self) -> None:
        from api.main import create_app

        engine = Mock()
        engine.enrich = AsyncMock(side_effect=RuntimeError("boom"))
        app = create_app()
        app.dependency_overrides[get_engine] = lambda: engine

        response = TestClient(app).post("/api/ai/enrich", json=enrich_body())

        assert response.status_code == 500
        assert response.json() == {"detail": "An error occurred processing your request"}


class TestTestPromptEndpoint:
    """Test POST /api/ai/test-prompt."""

    def test_preview_with_mock_provider(self) -> None:
        from api.main import create_app

        app = create_app()
        app.dependency_overrides[get_engine] = lambda: EnrichmentEngine(MockProvider())

        response = TestClient(app).post(
            "/api/ai/test-prompt",
            json={
                "item": {"id": "a", "name": "Mercy Health"},
                "promptTemplate": "Describe {{name}}",
                "columnName": "summary",
                "columnType": "text",
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "result": "mock response",
            "rawResponse": "mock response",
            "matchInfo": None,
            "source": "gpt-3.5-turbo",
            "error": None,
        }

    def test_preview_uses_supplied_fields(self, client: TestClient, provider: ScriptedProvider) -> None:
        response = client.post(
            "/api/ai/test-prompt",
            json={
                "item": {"id": "a"},
                "promptTemplate": "Is {{name}} a hospital?",
                "columnName": "isHospital",
                "columnType": "boolean",
                "fields": [{"id": "name", "label": "Name", "value": "Mercy Health"}],
            },
        )

        assert response.json()["result"] is True
        assert "Is Mercy Health a hospital?" in provider.calls[0].user_message

    def test_preview_reports_item_failure(self, client: TestClient, provider: ScriptedProvider) -> None:
        provider.responder = reply_with(lambda item_id, body: "a lot")

        response = client.post(
            "/api/ai/test-prompt",
            json={"item": {"id": "a"}, "promptTemplate": "Beds?", "columnName": "beds", "columnType": "number"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "AI did not return a valid number"
        assert body["rawResponse"] == "a lot"

    def test_preview_requires_item(self, client: TestClient) -> None:
        response = client.post(
            "/api/ai/test-prompt",
            json={"promptTemplate": "x", "columnName": "c", "columnType": "text"},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid item format"}


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
