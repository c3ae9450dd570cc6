# backend/labstock/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- Staff user accounts (Argon2id-hashed passwords)
- Public auth endpoints (login, register, current user)
- Idempotency keys for retry-safe writes

Submodules are imported explicitly by callers; `labstock.security` depends
on `models` and `services` depends on `labstock.security`.
"""
