"""
Tests for the Admin API and the Periodic Scheduler

Tests cover:
- Queue endpoints enqueue the right kind and return task ids
- Broker outages surface as 503
- Manual and all-users scrape triggers
- Scheduled batch scrape never raises
"""

import pytest
from fastapi.testclient import TestClient
from kombu.exceptions import OperationalError
from unittest.mock import AsyncMock, patch

from jobpipeline.api.scrape import get_gateway
from jobpipeline.main import app
from jobpipeline.scheduler import schedule_batch_scrape


@pytest.fixture
def client():
    # No context manager: lifespan (database, scheduler) is not started
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_metrics_exposed(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "scrape_operations_total" in response.text


class TestQueueEndpoints:
    """Test enqueue endpoints."""

    @patch("jobpipeline.api.queue.enqueue_scrape", return_value="task-1")
    def test_scrape(self, mock_enqueue, client):
        response = client.post("/queue/scrape", json={"user_id": "user-1", "sources": ["linkedin"]})

        assert response.status_code == 200
        assert response.json()["task_id"] == "task-1"
        assert response.json()["kind"] == "scrape"
        mock_enqueue.assert_called_once_with("user-1", ["linkedin"])

    def test_scrape_rejects_unknown_source(self, client):
        response = client.post("/queue/scrape", json={"user_id": "user-1", "sources": ["monster"]})

        assert response.status_code == 422

    @patch("jobpipeline.api.queue.enqueue_scrape", return_value="task-1")
    def test_scrape_rejects_empty_sources(self, mock_enqueue, client):
        response = client.post("/queue/scrape", json={"user_id": "user-1", "sources": []})

        assert response.status_code == 422
        mock_enqueue.assert_not_called()

    @patch("jobpipeline.api.queue.enqueue_batch_scrape", return_value="task-2")
    def test_batch_scrape(self, mock_enqueue, client):
        response = client.post("/queue/batch-scrape", json={"user_ids": ["a", "b"]})

        assert response.json() == {"task_id": "task-2", "kind": "batch-scrape", "users": 2}
        mock_enqueue.assert_called_once_with(["a", "b"])

    @patch("jobpipeline.api.queue.enqueue_ai_match", return_value="task-3")
    def test_ai_match(self, mock_enqueue, client):
        response = client.post("/queue/ai-match", json={"user_id": "user-1"})

        assert response.json()["kind"] == "ai-match"
        mock_enqueue.assert_called_once_with("user-1", None)

    @patch("jobpipeline.api.queue.enqueue_email", return_value="task-4")
    def test_send_email(self, mock_enqueue, client):
        response = client.post(
            "/queue/send-email",
            json={"to": "a@example.com", "subject": "Matches", "body": "3 new jobs"},
        )

        assert response.json()["kind"] == "send-email"
        mock_enqueue.assert_called_once_with("a@example.com", "Matches", "3 new jobs")

    @patch("jobpipeline.api.queue.enqueue_scrape", side_effect=OperationalError("connection refused"))
    def test_broker_down_is_503(self, mock_enqueue, client):
        response = client.post("/queue/scrape", json={"user_id": "user-1"})

        assert response.status_code == 503

    @patch("jobpipeline.api.queue.get_queue_stats")
    def test_stats(self, mock_stats, client):
        mock_stats.return_value = {
            "scrape": {"waiting": 1, "active": 2, "completed": 3, "failed": 0},
        }

        response = client.get("/queue/stats")

        assert response.json()["scrape"]["completed"] == 3


class TestScrapeEndpoints:
    """Test manual scrape triggers."""

    @patch("jobpipeline.api.scrape.enqueue_scrape", return_value="task-5")
    def test_manual(self, mock_enqueue, client):
        response = client.post("/scrape/manual", json={"user_id": "user-1"})

        assert response.json() == {"task_id": "task-5", "kind": "scrape", "users": 1}

    @patch("jobpipeline.api.scrape.enqueue_batch_scrape", return_value="task-6")
    def test_all_users(self, mock_enqueue, client):
        gateway = AsyncMock()
        gateway.get_active_user_ids.return_value = ["user-1", "user-2"]
        app.dependency_overrides[get_gateway] = lambda: gateway

        response = client.post("/scrape/all")

        assert response.json() == {"task_id": "task-6", "kind": "batch-scrape", "users": 2}
        mock_enqueue.assert_called_once_with(["user-1", "user-2"])

    @patch("jobpipeline.api.scrape.enqueue_batch_scrape")
    def test_all_users_without_preferences(self, mock_enqueue, client):
        gateway = AsyncMock()
        gateway.get_active_user_ids.return_value = []
        app.dependency_overrides[get_gateway] = lambda: gateway

        response = client.post("/scrape/all")

        assert response.json()["users"] == 0
        mock_enqueue.assert_not_called()


class TestScheduler:
    """Test the periodic batch-scrape job."""

    @pytest.mark.asyncio
    @patch("jobpipeline.scheduler.enqueue_batch_scrape", return_value="task-7")
    async def test_enqueues_batch_scrape(self, mock_enqueue):
        assert await schedule_batch_scrape() == "task-7"
        mock_enqueue.assert_called_once_with()

    @pytest.mark.asyncio
    @patch("jobpipeline.scheduler.enqueue_batch_scrape", side_effect=OperationalError("down"))
    async def test_broker_error_logged_not_raised(self, mock_enqueue):
        assert await schedule_batch_scrape() is None
