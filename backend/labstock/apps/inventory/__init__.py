"""
Inventory module.

Handles the product catalog, the borrow/purchase ledger and the restock /
defect stock events the monthly report aggregates.
"""

from .router import router  # noqa: F401
from . import models  # noqa: F401
