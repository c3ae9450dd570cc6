from __future__ import annotations

from pydantic import BaseModel


class MonthlyStat(BaseModel):
    month: str
    year: int
    month_number: int
    opening_stock: int
    closing_stock: int
    utilized_items: int
    newly_purchased: int
    defective_removed: int


class InventorySummary(BaseModel):
    product_count: int
    total_master_count: int
    total_availability: int
    total_borrowed: int
    total_purchased: int
    utilization_rate: int
