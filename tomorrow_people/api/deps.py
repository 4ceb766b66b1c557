"""
tomorrow_people.api.deps — FastAPI dependency injection
========================================================

The identity provider issues HS256 access tokens; we only verify them.
``sub`` is the user id, ``email`` and ``user_metadata.full_name`` seed the
member profile the first time a user calls the API.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from tomorrow_people.config import TomorrowConfig, load_config
from tomorrow_people.database.engine import create_db_engine
from tomorrow_people.services import profile_service

logger = logging.getLogger(__name__)

_WEAK_SECRETS = frozenset({
    "super-secret-jwt-token-with-at-least-32-characters-long",
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
            "Use the JWT secret of your identity provider project."
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
JWT_AUDIENCE: str | None = os.getenv("JWT_AUDIENCE") or None


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> TomorrowConfig:
    return load_config()


@contextmanager
def service_errors():
    """Translate service exceptions into HTTP errors.

    ``PermissionError`` → 403, ``ValueError`` → 400.  Services signal "not
    found" by returning ``None``, which routes turn into 404 themselves.
    """
    try:
        yield
    except PermissionError as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc


def decode_token(token: str) -> dict:
    """Verify *token* and return its claims.  Raises 401 when invalid."""
    try:
        if JWT_AUDIENCE:
            payload = jwt.decode(
                token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE,
            )
        else:
            payload = jwt.decode(
                token, JWT_SECRET, algorithms=[JWT_ALGORITHM], options={"verify_aud": False},
            )
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    return payload


def _user_from_payload(payload: dict, engine: Engine) -> dict:
    metadata = payload.get("user_metadata") or {}
    profile = profile_service.ensure_profile(
        engine,
        str(payload["sub"]),
        email=payload.get("email"),
        full_name=metadata.get("full_name"),
    )
    return {
        "id": profile["id"],
        "email": payload.get("email"),
        "full_name": profile["full_name"],
    }


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> dict:
    """Validate the bearer token and return ``{id, email, full_name}``."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    payload = decode_token(authorization.split(" ", 1)[1])
    return _user_from_payload(payload, engine)


def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> dict | None:
    """Like :func:`get_current_user` but anonymous callers get ``None``."""
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    payload = decode_token(authorization.split(" ", 1)[1])
    return _user_from_payload(payload, engine)
