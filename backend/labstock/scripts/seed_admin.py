"""
Create the initial admin account, or reset an existing one.

Re-running the script re-activates the account and replaces its password
with ADMIN_PASSWORD.

    ADMIN_USERNAME=admin ADMIN_PASSWORD='...' python -m labstock.scripts.seed_admin
"""

from __future__ import annotations

import os
import sys

from sqlalchemy.orm import Session

from labstock import security
from labstock.database import Base, SessionLocal, engine
from labstock.apps.accounts import models as account_models
from labstock.apps.accounts import schemas as account_schemas
from labstock.apps.accounts import services as account_services


def ensure_admin(db: Session, *, username: str, password: str, email: str | None = None) -> account_models.User:
    existing = account_services.get_user_by_username(db, username=username)
    if existing:
        existing.is_active = True
        existing.hashed_password = security.get_password_hash(password)
        if email:
            existing.email = email
        db.commit()
        db.refresh(existing)
        return existing

    user = account_services.register_user(
        db,
        payload=account_schemas.RegisterRequest(username=username, email=email, password=password),
    )
    db.commit()
    db.refresh(user)
    return user


def main() -> None:
    username = os.getenv("ADMIN_USERNAME", "admin")
    password = os.getenv("ADMIN_PASSWORD")
    email = os.getenv("ADMIN_EMAIL") or None
    if not password:
        print("[ERROR] ADMIN_PASSWORD must be set.", file=sys.stderr)
        raise SystemExit(1)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = ensure_admin(db, username=username, password=password, email=email)
        print("[OK] Admin user ready:")
        print(f"  id:       {user.id}")
        print(f"  username: {user.username}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
