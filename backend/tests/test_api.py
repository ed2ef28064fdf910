"""
Tests for the FastAPI application.
"""

import uuid
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from discubot.api.app import app
from discubot.api.routes import discussions
from discubot.api.routes.discussions import get_processor
from discubot.pipeline import DiscussionProcessor, ProcessorRepositories


def request_body(sample_parsed, **overrides):
    body = {
        "source_type": sample_parsed.source_type,
        "source_thread_id": sample_parsed.source_thread_id,
        "source_url": sample_parsed.source_url,
        "team_id": sample_parsed.team_id,
        "author_handle": sample_parsed.author_handle,
        "title": sample_parsed.title,
        "content": sample_parsed.content,
        "participants": list(sample_parsed.participants),
        "metadata": dict(sample_parsed.metadata),
    }
    body.update(overrides)
    return body


@pytest.fixture
def client(
    api_client: TestClient,
    db_session,
    mock_adapter,
    mock_analyzer,
    mock_task_creator,
    sample_thread,
):
    """API client whose processor uses mocked external services."""
    mock_adapter.fetch_thread.return_value = sample_thread

    def override_get_processor():
        return DiscussionProcessor(
            ProcessorRepositories.from_session(db_session),
            analyzer=mock_analyzer,
            task_creator=mock_task_creator,
            adapter_factory=lambda source_type: mock_adapter,
            sleep=Mock(),
        )

    app.dependency_overrides[get_processor] = override_get_processor
    return api_client


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_when_database_connected(self, api_client: TestClient):
        with patch("discubot.db.connection.check_connection", return_value=True):
            response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "healthy"}

    def test_health_when_database_disconnected(self, api_client: TestClient):
        with patch("discubot.db.connection.check_connection", return_value=False):
            response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"


class TestProcessEndpoint:
    """Tests for POST /api/discussions/process."""

    def test_process_creates_tasks(
        self, client: TestClient, sample_parsed, slack_input, sample_outputs
    ):
        response = client.post("/api/discussions/process", json=request_body(sample_parsed))

        assert response.status_code == 200
        data = response.json()
        assert data["discussion_id"]
        assert data["summary"] == "The login button is broken on mobile."
        assert [t["title"] for t in data["tasks"]] == ["Fix mobile login button"]
        assert [t["id"] for t in data["notion_tasks"]] == ["page-1", "page-2"]
        assert data["cached"] is False

    def test_repeat_delivery_is_cached(
        self, client: TestClient, sample_parsed, slack_input, sample_outputs
    ):
        first = client.post("/api/discussions/process", json=request_body(sample_parsed))
        second = client.post("/api/discussions/process", json=request_body(sample_parsed))

        assert second.status_code == 200
        assert second.json()["cached"] is True
        assert second.json()["discussion_id"] == first.json()["discussion_id"]

    def test_invalid_discussion_returns_400(self, client: TestClient, sample_parsed):
        response = client.post(
            "/api/discussions/process", json=request_body(sample_parsed, title="")
        )

        assert response.status_code == 400
        assert response.json()["detail"]["stage"] == "validation"

    def test_unknown_workspace_returns_422(self, client: TestClient, sample_parsed):
        response = client.post(
            "/api/discussions/process", json=request_body(sample_parsed, team_id="T999")
        )

        assert response.status_code == 422
        assert response.json()["detail"]["stage"] == "flow_loading"

    def test_missing_fields_rejected_by_schema(self, client: TestClient):
        response = client.post("/api/discussions/process", json={"source_type": "slack"})

        assert response.status_code == 422

    def test_processing_failure_returns_500(
        self, client: TestClient, sample_parsed, slack_input, sample_outputs, mock_analyzer
    ):
        mock_analyzer.analyze.side_effect = RuntimeError("model overloaded")

        response = client.post("/api/discussions/process", json=request_body(sample_parsed))

        assert response.status_code == 500
        assert response.json()["detail"]["retryable"] is True


class TestDiscussionEndpoints:
    """Tests for GET /api/discussions/{id} and retry."""

    def test_get_discussion(
        self, client: TestClient, sample_parsed, slack_input, sample_outputs
    ):
        created = client.post("/api/discussions/process", json=request_body(sample_parsed))
        discussion_id = created.json()["discussion_id"]

        response = client.get(f"/api/discussions/{discussion_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["title"] == "Login button broken"
        assert [t["notion_page_id"] for t in data["tasks"]] == ["page-1", "page-2"]
        assert [j["status"] for j in data["jobs"]] == ["completed"]

    def test_get_unknown_discussion_returns_404(self, client: TestClient):
        response = client.get(f"/api/discussions/{uuid.uuid4()}")

        assert response.status_code == 404

    def test_retry_completed_discussion_returns_400(
        self, client: TestClient, sample_parsed, slack_input, sample_outputs
    ):
        created = client.post("/api/discussions/process", json=request_body(sample_parsed))

        response = client.post(f"/api/discussions/{created.json()['discussion_id']}/retry")

        assert response.status_code == 400
        assert response.json()["detail"]["stage"] == "validation"


class TestSharedServices:
    """Tests for the analyzer and Notion client shared across requests."""

    @pytest.fixture(autouse=True)
    def reset_shared(self):
        discussions.close_shared_services()
        yield
        discussions.close_shared_services()

    def test_analyzer_built_once(self, db_session):
        def build():
            return get_processor(
                db_session, discussions.get_analyzer(), discussions.get_task_creator()
            )

        with patch.object(discussions, "create_analyzer", return_value=Mock()) as factory:
            first = build()
            second = build()

        factory.assert_called_once()
        assert first.analyzer is second.analyzer
        assert first.task_creator is second.task_creator

    def test_close_shared_services_closes_notion_client(self):
        creator = Mock()
        with patch.object(discussions, "NotionTaskCreator", return_value=creator):
            assert discussions.get_task_creator() is creator

        discussions.close_shared_services()

        creator.close.assert_called_once()
