from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from labstock import security
from . import models, schemas

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AuthenticationError(Exception):
    """Raised when login credentials are invalid or the account is inactive."""


class RegistrationError(Exception):
    """Raised when a new account cannot be created (e.g. username taken)."""


class IdempotencyError(Exception):
    """Raised when an idempotency key is reused with conflicting payload."""


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------


def _normalise_username(value: str) -> str:
    return (value or "").strip().lower()


def get_user_by_username(db: Session, *, username: str) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.username == _normalise_username(username))
        .first()
    )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def authenticate_user(
    db: Session,
    *,
    login_req: schemas.LoginRequest,
) -> models.User:
    """
    Password login by username.

    The same error message is used for unknown users and bad passwords so
    the response does not reveal which usernames exist.
    """
    user = get_user_by_username(db, username=login_req.username)
    if user is None or not security.verify_password(login_req.password, user.hashed_password):
        logger.warning("Failed login for username=%r", _normalise_username(login_req.username))
        raise AuthenticationError("Incorrect username or password.")
    if not user.is_active:
        logger.warning("Login attempt for inactive user id=%s", user.id)
        raise AuthenticationError("Account is inactive.")

    user.last_login_at = datetime.utcnow()
    db.add(user)
    db.flush()
    return user


def register_user(
    db: Session,
    *,
    payload: schemas.RegisterRequest,
) -> models.User:
    if get_user_by_username(db, username=payload.username) is not None:
        raise RegistrationError("Username already exists.")

    user = models.User(
        username=_normalise_username(payload.username),
        email=str(payload.email).lower() if payload.email else None,
        hashed_password=security.get_password_hash(payload.password),
        is_active=True,
    )
    db.add(user)
    db.flush()
    logger.info("Registered user id=%s username=%s", user.id, user.username)
    return user


def issue_access_token_for_user(user: models.User) -> Tuple[str, int]:
    """
    Create a JWT access token for the user.

    Returns (token_string, expires_in_seconds).
    """
    expires_delta = timedelta(minutes=security.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = security.create_access_token(
        data={"sub": str(user.id), "username": user.username},
        expires_delta=expires_delta,
    )
    return token, int(expires_delta.total_seconds())


# ---------------------------------------------------------------------------
# Idempotency
# ---------------------------------------------------------------------------


def _hash_payload(payload: dict) -> str:
    return hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode("utf-8")).hexdigest()


def register_idempotency_key(
    db: Session,
    *,
    scope: str,
    key: str,
    payload: dict,
) -> models.IdempotencyKey:
    """
    Claim `key` within `scope` for this payload.

    Returns the existing record when the same key was already used with an
    identical payload; callers detect a replay through `resource_id`. The
    record is only flushed so it commits (or rolls back) with the write it
    guards.
    """
    if not key:
        raise ValueError("idempotency key is required")

    payload_hash = _hash_payload(payload)
    existing = (
        db.query(models.IdempotencyKey)
        .filter(
            models.IdempotencyKey.scope == scope,
            models.IdempotencyKey.key == key,
        )
        .first()
    )
    if existing:
        if existing.payload_hash != payload_hash:
            raise IdempotencyError("Idempotency key reuse with different payload.")
        return existing

    idem = models.IdempotencyKey(
        scope=scope,
        key=key,
        payload_hash=payload_hash,
    )
    db.add(idem)
    db.flush()
    return idem
