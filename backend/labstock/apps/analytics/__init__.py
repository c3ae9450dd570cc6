"""
Analytics module.

Monthly stock/flow report, overall utilisation summary and CSV export.
"""

from .router import router  # noqa: F401
