# =============================================================================
# APP PREVIEW WEBHOOK API TESTS
# =============================================================================
# Tests for the FastAPI webhook receiver.
# =============================================================================

import hashlib
import hmac
import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app_preview.api import create_app, dispatch_logged, verify_signature
from app_preview.core.dispatcher import LifecycleCommand
from app_preview.domain.models import GitSource
from app_preview.settings import ServerConfig

SECRET = "webhook-secret"

PAYLOAD = {
    "action": "opened",
    "number": 7,
    "repository": {
        "name": "shop",
        "full_name": "acme/shop",
        "html_url": "https://github.com/acme/shop",
    },
    "pull_request": {"draft": False, "head": {"ref": "feature/cart"}, "base": {"ref": "main"}},
}


def sign(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def post(client, payload, event="pull_request", signature=None):
    body = json.dumps(payload).encode()
    return client.post(
        "/github/webhooks",
        content=body,
        headers={
            "X-GitHub-Event": event,
            "X-Hub-Signature-256": signature or sign(body),
            "Content-Type": "application/json",
        },
    )


@pytest.fixture
def dispatcher():
    return MagicMock()


@pytest.fixture
def client(dispatcher):
    app = create_app(ServerConfig(webhook_secret=SECRET), dispatcher)
    return TestClient(app)


class TestSignature:
    """Test verify_signature."""

    def test_valid(self):
        assert verify_signature(SECRET, b"{}", sign(b"{}"))

    def test_wrong_secret(self):
        assert not verify_signature(SECRET, b"{}", sign(b"{}", "other"))

    def test_missing_or_malformed(self):
        assert not verify_signature(SECRET, b"{}", None)
        assert not verify_signature(SECRET, b"{}", "sha1=abc")


class TestEndpoints:
    """Test the HTTP endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_opened_dispatches_up(self, client, dispatcher):
        response = post(client, PAYLOAD)

        assert response.status_code == 202
        assert response.json() == {"status": "accepted", "app_name": "shop-pr-7", "verb": "up"}
        command = dispatcher.dispatch.call_args[0][0]
        assert command.verb == "up"
        assert command.source.branch == "feature/cart"

    def test_closed_dispatches_down(self, client, dispatcher):
        response = post(client, {**PAYLOAD, "action": "closed"})

        assert response.json()["verb"] == "down"
        assert dispatcher.dispatch.call_args[0][0].verb == "down"

    def test_bad_signature(self, client, dispatcher):
        response = post(client, PAYLOAD, signature="sha256=deadbeef")

        assert response.status_code == 401
        dispatcher.dispatch.assert_not_called()

    def test_other_event_ignored(self, client, dispatcher):
        response = post(client, {"zen": "Keep it simple"}, event="ping")

        assert response.status_code == 202
        assert response.json() == {"status": "ignored", "event": "ping"}
        dispatcher.dispatch.assert_not_called()

    def test_draft_ignored(self, client, dispatcher):
        payload = {**PAYLOAD, "pull_request": {**PAYLOAD["pull_request"], "draft": True}}
        response = post(client, payload)

        assert response.json()["status"] == "ignored"
        dispatcher.dispatch.assert_not_called()

    def test_invalid_payload(self, client):
        assert post(client, {"action": "opened"}).status_code == 422

    def test_no_secret_configured(self, dispatcher):
        client = TestClient(create_app(ServerConfig(), dispatcher))
        assert post(client, PAYLOAD).status_code == 500


class TestDispatchLogged:
    """Test the background task wrapper."""

    def test_failure_is_contained(self):
        dispatcher = MagicMock()
        dispatcher.dispatch.side_effect = RuntimeError("engine down")
        command = LifecycleCommand(
            "shop-pr-7", GitSource(repo_url="https://github.com/acme/shop", branch="main"), "up"
        )

        dispatch_logged(dispatcher, command)

        dispatcher.dispatch.assert_called_once_with(command)
