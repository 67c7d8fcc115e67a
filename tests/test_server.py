"""Tests for the HTTP surface."""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from pr_sheriff import server
from pr_sheriff.config import AppConfig
from pr_sheriff.jobs.blame import BlameResult
from pr_sheriff.jobs.reminders import ReminderResult
from pr_sheriff.server import create_app, verify_webhook_signature
from pr_sheriff.services import build_services
from pr_sheriff.storage.database import Database

SECRET = "s3cret"


def sign(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def services():
    services = build_services(AppConfig(github_webhook_secret=SECRET))
    services.events = AsyncMock()
    services.events.process.return_value = {"status": "processed"}
    return services


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as client:
        yield client


class TestVerifyWebhookSignature:
    """Tests for HMAC validation."""

    def test_valid_signature(self) -> None:
        body = b'{"action": "opened"}'
        assert verify_webhook_signature(body, sign(body), SECRET) is True

    def test_tampered_body(self) -> None:
        assert verify_webhook_signature(b"{}", sign(b'{"a": 1}'), SECRET) is False

    def test_missing_prefix(self) -> None:
        body = b"{}"
        digest = hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()
        assert verify_webhook_signature(body, digest, SECRET) is False

    def test_empty_secret_rejects_everything(self) -> None:
        body = b"{}"
        assert verify_webhook_signature(body, sign(body, ""), "") is False


class TestWebhookEndpoint:
    """Tests for POST /webhook/github."""

    def test_accepts_and_processes_in_background(self, client, services) -> None:
        body = json.dumps({"action": "opened", "number": 1}).encode()

        response = client.post(
            "/webhook/github",
            content=body,
            headers={
                "X-Hub-Signature-256": sign(body),
                "X-GitHub-Event": "pull_request",
                "X-GitHub-Delivery": "delivery-1",
                "Content-Type": "application/json",
            },
        )

        assert response.status_code == 200
        assert response.json() == {"status": "accepted"}
        services.events.process.assert_awaited_once_with(
            "pull_request", "delivery-1", {"action": "opened", "number": 1}
        )

    def test_invalid_signature(self, client, services) -> None:
        response = client.post(
            "/webhook/github",
            content=b"{}",
            headers={"X-Hub-Signature-256": sign(b"other"), "X-GitHub-Event": "ping"},
        )

        assert response.status_code == 401
        services.events.process.assert_not_awaited()

    def test_invalid_json(self, client) -> None:
        body = b"not json"
        response = client.post(
            "/webhook/github",
            content=body,
            headers={"X-Hub-Signature-256": sign(body), "X-GitHub-Event": "ping"},
        )

        assert response.status_code == 400

    def test_processing_errors_are_not_surfaced(self, client, services) -> None:
        services.events.process.side_effect = RuntimeError("boom")
        body = b'{"action": "opened"}'

        response = client.post(
            "/webhook/github",
            content=body,
            headers={"X-Hub-Signature-256": sign(body), "X-GitHub-Event": "pull_request"},
        )

        assert response.status_code == 200
        services.events.process.assert_awaited_once()


class TestJobEndpoints:
    """Tests for the job triggers."""

    def test_reminders(self, client, monkeypatch) -> None:
        result = ReminderResult(reviewers_notified=2, total_prs=5, repositories_processed=3)
        result.record_error("acme/web", RuntimeError("rate limited"))
        monkeypatch.setattr(server, "run_reminders", AsyncMock(return_value=result))

        response = client.post("/jobs/reminders")

        assert response.status_code == 200
        assert response.json() == {
            "reviewers_notified": 2,
            "total_prs": 5,
            "repositories_processed": 3,
            "errors": [{"repository": "acme/web", "error": "rate limited"}],
        }

    def test_blame(self, client, monkeypatch) -> None:
        monkeypatch.setattr(
            server, "run_blame", AsyncMock(return_value=BlameResult(prs_blamed=1))
        )

        response = client.post("/jobs/blame")

        assert response.json() == {"prs_blamed": 1, "repositories_processed": 0, "errors": []}


class TestHealth:
    def test_without_database(self, client) -> None:
        response = client.get("/health")
        assert response.json() == {"status": "healthy", "database": "disabled"}

    def test_with_database(self) -> None:
        services = build_services(
            AppConfig(github_webhook_secret=SECRET),
            database=Database("sqlite+aiosqlite:///:memory:"),
        )
        with TestClient(create_app(services)) as client:
            response = client.get("/health")

        assert response.json() == {"status": "healthy", "database": "connected"}
