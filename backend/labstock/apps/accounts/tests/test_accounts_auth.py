from __future__ import annotations

import pytest
from fastapi import HTTPException

from labstock.apps.accounts import router as accounts_router_module
from labstock.apps.accounts import schemas as account_schemas
from labstock.apps.accounts import services as account_services
from labstock.security import (
    create_access_token,
    get_current_active_user,
    get_current_user,
    get_password_hash,
    verify_password,
)


def _register(db, username="Admin", password="admin123!"):
    user = account_services.register_user(
        db,
        payload=account_schemas.RegisterRequest(username=username, email="admin@inventory.com", password=password),
    )
    db.commit()
    return user


def test_password_hash_is_argon2_and_verifies():
    hashed = get_password_hash("admin123!")

    assert hashed.startswith("$argon2")
    assert hashed != "admin123!"
    assert verify_password("admin123!", hashed)
    assert not verify_password("wrong", hashed)


def test_non_argon2_hash_is_rejected():
    # A bcrypt-shaped value is not a format this service ever writes.
    assert not verify_password("admin123!", "$2b$12$abcdefghijklmnopqrstuuQ0pXxXQhVt3sUoYQ5fZbY7sH8m1zq9e")


def test_plaintext_stored_password_is_never_accepted():
    assert not verify_password("admin123!", "admin123!")


def test_register_normalises_username_and_rejects_duplicates(db_session):
    user = _register(db_session, username="  Admin ")
    assert user.username == "admin"
    assert user.hashed_password.startswith("$argon2")

    with pytest.raises(account_services.RegistrationError):
        _register(db_session, username="ADMIN")


def test_authenticate_user(db_session):
    _register(db_session)

    user = account_services.authenticate_user(
        db_session, login_req=account_schemas.LoginRequest(username="admin", password="admin123!")
    )
    assert user.last_login_at is not None

    with pytest.raises(account_services.AuthenticationError):
        account_services.authenticate_user(
            db_session, login_req=account_schemas.LoginRequest(username="admin", password="nope")
        )
    with pytest.raises(account_services.AuthenticationError):
        account_services.authenticate_user(
            db_session, login_req=account_schemas.LoginRequest(username="ghost", password="admin123!")
        )


def test_inactive_user_cannot_log_in(db_session):
    user = _register(db_session)
    user.is_active = False
    db_session.commit()

    with pytest.raises(account_services.AuthenticationError):
        account_services.authenticate_user(
            db_session, login_req=account_schemas.LoginRequest(username="admin", password="admin123!")
        )


def test_issued_token_resolves_to_user(db_session):
    user = _register(db_session)
    token, expires_in = account_services.issue_access_token_for_user(user)

    assert expires_in > 0
    assert get_current_user(token=token, db=db_session).id == user.id


def test_invalid_token_is_rejected(db_session):
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(token="not-a-jwt", db=db_session)
    assert excinfo.value.status_code == 401

    token = create_access_token(data={"sub": "USR-UNKNOWN"})
    with pytest.raises(HTTPException):
        get_current_user(token=token, db=db_session)


def test_inactive_user_is_blocked_by_dependency(db_session):
    user = _register(db_session)
    user.is_active = False

    with pytest.raises(HTTPException) as excinfo:
        get_current_active_user(current_user=user)
    assert excinfo.value.status_code == 400


def test_login_route_returns_bearer_token(db_session):
    _register(db_session)

    token = accounts_router_module.login(
        payload=account_schemas.LoginRequest(username="admin", password="admin123!"),
        db=db_session,
    )
    assert token.token_type == "bearer"
    assert token.user.username == "admin"

    with pytest.raises(HTTPException) as excinfo:
        accounts_router_module.login(
            payload=account_schemas.LoginRequest(username="admin", password="bad"),
            db=db_session,
        )
    assert excinfo.value.status_code == 401


def test_idempotency_key_flow(db_session):
    first = account_services.register_idempotency_key(db_session, scope="s", key="k", payload={"a": 1})
    again = account_services.register_idempotency_key(db_session, scope="s", key="k", payload={"a": 1})
    assert first.id == again.id

    with pytest.raises(account_services.IdempotencyError):
        account_services.register_idempotency_key(db_session, scope="s", key="k", payload={"a": 2})
    with pytest.raises(ValueError):
        account_services.register_idempotency_key(db_session, scope="s", key="", payload={})
