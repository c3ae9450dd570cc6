# backend/labstock/__init__.py
"""
Import ORM models from each app so that Base.metadata.create_all() sees
all tables.

The actual model classes are kept in labstock/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # users + idempotency keys
from .apps.inventory import models as inventory_models        # products, ledger, stock events

__all__ = [
    "accounts_models",
    "inventory_models",
]
