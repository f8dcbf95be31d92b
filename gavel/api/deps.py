"""
gavel.api.deps — FastAPI dependency injection
===============================================
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from gavel.config import GavelConfig, load_config
from gavel.database.engine import create_db_engine
from gavel.engine.change_feed import ChangeFeed, attach_feed
from gavel.errors import PermissionDenied, Unauthenticated
from gavel.services.hot_score_service import install_hot_score_handler
from gavel.services.push_service import PushSender, build_push_sender

_WEAK_SECRETS = frozenset({
    "gavel-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> GavelConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_push_sender() -> PushSender:
    return build_push_sender(get_config().push)


@lru_cache(maxsize=1)
def get_change_feed() -> ChangeFeed:
    """The API process's feed: hot score recompute on a small thread pool."""
    engine = get_engine()
    feed = ChangeFeed(
        executor=ThreadPoolExecutor(max_workers=2, thread_name_prefix="change-feed"),
    )
    install_hot_score_handler(feed, engine)
    return attach_feed(engine, feed)


def _decode_bearer(authorization: str | None) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated("Missing token.")
    token = authorization.split(" ", 1)[1]
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise Unauthenticated("Invalid token.")


def get_current_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the JWT and return the caller's user id (``sub``)."""
    payload = _decode_bearer(authorization)
    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise Unauthenticated("Token has no subject.")
    return user_id


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the JWT and require the ``is_admin`` claim."""
    payload = _decode_bearer(authorization)
    if not payload.get("is_admin"):
        raise PermissionDenied("Not admin.")
    return payload


EngineDep = Annotated[Engine, Depends(get_engine)]
ConfigDep = Annotated[GavelConfig, Depends(get_config)]
UserIdDep = Annotated[str, Depends(get_current_user_id)]
