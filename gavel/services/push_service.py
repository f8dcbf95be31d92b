"""
gavel.services.push_service — Toss Messenger Push Client
=========================================================

Best-effort delivery of "your case is closed" messages.  ``send`` never
raises: transport errors, non-2xx responses, and missing certificates are
logged and reported as ``False`` so one bad recipient cannot disturb the
scheduler's fan-out.

The partner API authenticates the *service* with an mTLS client
certificate and addresses the *recipient* by the ``x-toss-user-key``
header.  Sandbox keys (``dev-user-`` / ``test-user-``) are logged and
skipped.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from gavel.config import PushConfig

logger = logging.getLogger(__name__)

SEND_MESSAGE_PATH = "/api-partner/v1/apps-in-toss/messenger/send-message"
SANDBOX_PREFIXES = ("dev-user-", "test-user-")
REQUEST_TIMEOUT = 10.0


class PushSender(Protocol):
    def send(self, user_key: str, context: dict[str, str]) -> bool: ...

    def close(self) -> None: ...


class NullPushSender:
    """Logs instead of sending.  Used when push is disabled in config."""

    def send(self, user_key: str, context: dict[str, str]) -> bool:
        logger.info("Push disabled; would notify %s with %s", user_key, context)
        return True

    def close(self) -> None:
        pass


class TossPushClient:
    """Synchronous httpx client for the Toss messenger ``send-message`` API.

    Parameters
    ----------
    config : The ``push`` block of ``config.yaml``.
    client : Optional pre-built :class:`httpx.Client` (tests inject one
        backed by :class:`httpx.MockTransport`).
    """

    def __init__(self, config: PushConfig, client: httpx.Client | None = None) -> None:
        self._config = config
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            cert = None
            if self._config.cert_path and self._config.key_path:
                cert = (self._config.cert_path, self._config.key_path)
            self._client = httpx.Client(
                base_url=self._config.api_base,
                cert=cert,
                timeout=REQUEST_TIMEOUT,
            )
        return self._client

    def send(self, user_key: str, context: dict[str, str]) -> bool:
        if user_key.startswith(SANDBOX_PREFIXES):
            logger.info("Push skipped for sandbox user %s: %s", user_key, context)
            return True

        try:
            resp = self._get_client().post(
                SEND_MESSAGE_PATH,
                json={
                    "templateSetCode": self._config.template_set_code,
                    "context": context,
                },
                headers={
                    "x-toss-user-key": user_key,
                    "X-Client-Id": self._config.client_id,
                },
            )
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("Push to %s failed: %s", user_key, exc)
            return False

        if resp.status_code >= 400:
            logger.warning(
                "Push to %s rejected (%d): %s", user_key, resp.status_code, resp.text[:200]
            )
            return False

        logger.info("Push sent to %s", user_key)
        return True

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def build_push_sender(config: PushConfig) -> PushSender:
    """Pick the real client or the logging stand-in from config."""
    if not config.enabled:
        return NullPushSender()
    if not (config.cert_path and config.key_path):
        logger.warning("Push enabled without cert_path/key_path; mTLS will fail")
    return TossPushClient(config)
