"""
tests/test_push_service.py — Toss Messenger Push Client
========================================================
Uses httpx.MockTransport in place of the partner API.
"""

from __future__ import annotations

import json

import httpx
import pytest

from gavel.config import PushConfig
from gavel.services.push_service import (
    SEND_MESSAGE_PATH,
    NullPushSender,
    TossPushClient,
    build_push_sender,
)

CONFIG = PushConfig(
    enabled=True,
    api_base="https://partner.test",
    client_id="gavel-client",
    template_set_code="case-closed",
)
CONTEXT = {"title": "Closed", "caseId": "c1", "url": "https://gavel.test/cases/c1"}


def _client(handler) -> TossPushClient:
    http = httpx.Client(base_url=CONFIG.api_base, transport=httpx.MockTransport(handler))
    return TossPushClient(CONFIG, client=http)


class TestTossPushClient:
    def test_request_shape(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"resultType": "SUCCESS"})

        assert _client(handler).send("user-123", CONTEXT) is True

        (request,) = captured
        assert request.method == "POST"
        assert request.url == f"https://partner.test{SEND_MESSAGE_PATH}"
        assert request.headers["x-toss-user-key"] == "user-123"
        assert request.headers["X-Client-Id"] == "gavel-client"
        assert json.loads(request.content) == {
            "templateSetCode": "case-closed",
            "context": CONTEXT,
        }

    @pytest.mark.parametrize("key", ["dev-user-1", "test-user-abc"])
    def test_sandbox_keys_are_skipped(self, key):
        def handler(request):
            raise AssertionError("sandbox users must not reach the API")

        assert _client(handler).send(key, CONTEXT) is True

    @pytest.mark.parametrize("status", [400, 403, 500])
    def test_error_status_is_a_failure(self, status):
        client = _client(lambda request: httpx.Response(status, text="nope"))
        assert client.send("user-123", CONTEXT) is False

    def test_transport_error_is_a_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert _client(handler).send("user-123", CONTEXT) is False

    def test_close_is_idempotent(self):
        client = _client(lambda request: httpx.Response(200))
        client.close()
        client.close()


class TestBuildPushSender:
    def test_disabled_uses_null_sender(self):
        sender = build_push_sender(PushConfig(enabled=False))
        assert isinstance(sender, NullPushSender)
        assert sender.send("user-123", CONTEXT) is True
        sender.close()

    def test_enabled_uses_toss_client(self):
        assert isinstance(build_push_sender(CONFIG), TossPushClient)
