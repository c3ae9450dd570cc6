# backend/labstock/apps/accounts/models.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    String,
    UniqueConstraint,
    Index,
)

from labstock.database import Base
from labstock.ids import idempotency_key_id, user_id


def _utcnow() -> datetime:
    return datetime.utcnow()


class User(Base):
    """
    Staff account allowed to operate the inventory.

    Passwords are never stored in plaintext; `hashed_password` holds an
    Argon2id hash.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        Index("idx_users_active", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=user_id)
    username = Column(String(64), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class IdempotencyKey(Base):
    """
    Client-supplied request ids for retry-safe writes.

    `resource_id` points at whatever the first request created, so a replay
    can hand back the original record.
    """

    __tablename__ = "idempotency_keys"
    __table_args__ = (
        UniqueConstraint("scope", "key", name="uq_idempotency_scope_key"),
    )

    id = Column(String(36), primary_key=True, default=idempotency_key_id)
    scope = Column(String(128), nullable=False, index=True)
    key = Column(String(128), nullable=False)
    payload_hash = Column(String(64), nullable=False)
    resource_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
