"""
gavel.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for service tuning that is safe to commit (timezone,
vote window, scheduler intervals, push template).  Secrets such as
``DATABASE_URL`` and ``JWT_SECRET`` stay in ``.env``.

Usage::

    from gavel.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.timezone)          # "Asia/Seoul"
    print(cfg.tzinfo)            # ZoneInfo('Asia/Seoul')
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo

import yaml

from gavel.constants import (
    DEFAULT_CLOSE_INTERVAL_MINUTES,
    DEFAULT_NICKNAME_PREFIX,
    DEFAULT_PUSH_API_BASE,
    DEFAULT_PUSH_TITLE,
    DEFAULT_RECONCILE_INTERVAL_HOURS,
    DEFAULT_TIMEZONE,
    DEFAULT_TRANSACTION_ATTEMPTS,
    DEFAULT_VOTE_WINDOW_HOURS,
)


# ---------------------------------------------------------------------------
# Push notification settings
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PushConfig:
    """Toss messenger settings used by :mod:`gavel.services.push_service`."""

    enabled: bool = False
    api_base: str = DEFAULT_PUSH_API_BASE
    client_id: str = ""
    template_set_code: str = ""
    cert_path: str | None = None
    key_path: str | None = None
    title: str = DEFAULT_PUSH_TITLE


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GavelConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    service_name: str
    public_base_url: str

    # Calendar day boundaries for daily missions are computed in this zone
    timezone: str = DEFAULT_TIMEZONE

    # Case lifecycle
    vote_window_hours: int = DEFAULT_VOTE_WINDOW_HOURS
    close_interval_minutes: int = DEFAULT_CLOSE_INTERVAL_MINUTES
    reconcile_interval_hours: int = DEFAULT_RECONCILE_INTERVAL_HOURS

    # Optimistic transactions
    transaction_max_attempts: int = DEFAULT_TRANSACTION_ATTEMPTS

    nickname_prefix: str = DEFAULT_NICKNAME_PREFIX
    push: PushConfig = field(default_factory=PushConfig)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _load_push(raw: dict | None) -> PushConfig:
    if not raw:
        return PushConfig()
    return PushConfig(
        enabled=bool(raw.get("enabled", False)),
        api_base=raw.get("api_base", DEFAULT_PUSH_API_BASE),
        client_id=raw.get("client_id", ""),
        template_set_code=raw.get("template_set_code", ""),
        cert_path=raw.get("cert_path") or None,
        key_path=raw.get("key_path") or None,
        title=raw.get("title", DEFAULT_PUSH_TITLE),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> GavelConfig:
    """Read *path* and return a :class:`GavelConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    cfg = GavelConfig(
        service_name=raw["service_name"],
        public_base_url=str(raw["public_base_url"]).rstrip("/"),
        timezone=raw.get("timezone", DEFAULT_TIMEZONE),
        vote_window_hours=int(raw.get("vote_window_hours", DEFAULT_VOTE_WINDOW_HOURS)),
        close_interval_minutes=int(
            raw.get("close_interval_minutes", DEFAULT_CLOSE_INTERVAL_MINUTES)
        ),
        reconcile_interval_hours=int(
            raw.get("reconcile_interval_hours", DEFAULT_RECONCILE_INTERVAL_HOURS)
        ),
        transaction_max_attempts=int(
            raw.get("transaction_max_attempts", DEFAULT_TRANSACTION_ATTEMPTS)
        ),
        nickname_prefix=raw.get("nickname_prefix", DEFAULT_NICKNAME_PREFIX),
        push=_load_push(raw.get("push")),
    )
    # Unknown zone names fail here, not on the first request
    ZoneInfo(cfg.timezone)
    return cfg
