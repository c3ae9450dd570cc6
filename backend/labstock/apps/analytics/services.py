from __future__ import annotations

import calendar
import csv
import io
import math
import os
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from labstock.apps.inventory import models as inventory_models
from labstock.apps.inventory.services import NotFoundError
from . import schemas

REPORT_MONTHS = int(os.getenv("REPORT_MONTHS", "6"))

MONTHLY_CSV_HEADER = ["Month", "Opening Stock", "Closing Stock", "Purchased", "Defective"]


def _month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    start = datetime(year, month, 1)
    if month == 12:
        return start, datetime(year + 1, 1, 1)
    return start, datetime(year, month + 1, 1)


def _sum_transactions(
    db: Session,
    *,
    type_: inventory_models.TransactionTypeEnum,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> int:
    query = db.query(func.coalesce(func.sum(inventory_models.Transaction.quantity), 0)).filter(
        inventory_models.Transaction.type == type_
    )
    if start is not None:
        query = query.filter(inventory_models.Transaction.created_at >= start)
    if end is not None:
        query = query.filter(inventory_models.Transaction.created_at < end)
    return int(query.scalar() or 0)


def _sum_stock_events(
    db: Session,
    *,
    event_type: inventory_models.StockEventTypeEnum,
    start: datetime,
    end: datetime,
) -> int:
    total = (
        db.query(func.coalesce(func.sum(inventory_models.StockEvent.quantity), 0))
        .filter(
            inventory_models.StockEvent.event_type == event_type,
            inventory_models.StockEvent.created_at >= start,
            inventory_models.StockEvent.created_at < end,
        )
        .scalar()
    )
    return int(total or 0)


def _catalog_totals(db: Session) -> tuple[int, int, int]:
    count, master, available = db.query(
        func.count(inventory_models.Product.id),
        func.coalesce(func.sum(inventory_models.Product.master_count), 0),
        func.coalesce(func.sum(inventory_models.Product.availability), 0),
    ).one()
    return int(count or 0), int(master or 0), int(available or 0)


def get_monthly_report(
    db: Session,
    *,
    year: Optional[int] = None,
    months: Optional[int] = None,
) -> List[schemas.MonthlyStat]:
    """
    Stock and flow figures for January onwards of `year`.

    Opening and closing stock are derived from the current catalog, not from
    point-in-time snapshots: opening adds the month's borrowed and purchased
    units back onto today's master count, closing is today's availability.
    """
    year = year or datetime.utcnow().year
    months = months or REPORT_MONTHS
    if not 1 <= months <= 12:
        raise ValueError("months must be between 1 and 12")

    _, total_master, total_available = _catalog_totals(db)

    report: List[schemas.MonthlyStat] = []
    for month in range(1, months + 1):
        start, end = _month_bounds(year, month)
        borrowed = _sum_transactions(
            db, type_=inventory_models.TransactionTypeEnum.BORROW, start=start, end=end
        )
        purchased_by_students = _sum_transactions(
            db, type_=inventory_models.TransactionTypeEnum.PURCHASE, start=start, end=end
        )
        report.append(
            schemas.MonthlyStat(
                month=calendar.month_name[month],
                year=year,
                month_number=month,
                opening_stock=total_master + borrowed + purchased_by_students,
                closing_stock=total_available,
                utilized_items=borrowed,
                newly_purchased=_sum_stock_events(
                    db, event_type=inventory_models.StockEventTypeEnum.RESTOCK, start=start, end=end
                ),
                defective_removed=_sum_stock_events(
                    db, event_type=inventory_models.StockEventTypeEnum.DEFECTIVE, start=start, end=end
                ),
            )
        )
    return report


def get_summary(db: Session) -> schemas.InventorySummary:
    product_count, total_master, total_available = _catalog_totals(db)
    if total_master:
        # Round half up
        utilization_rate = math.floor((total_master - total_available) / total_master * 100 + 0.5)
    else:
        utilization_rate = 0
    return schemas.InventorySummary(
        product_count=product_count,
        total_master_count=total_master,
        total_availability=total_available,
        total_borrowed=_sum_transactions(db, type_=inventory_models.TransactionTypeEnum.BORROW),
        total_purchased=_sum_transactions(db, type_=inventory_models.TransactionTypeEnum.PURCHASE),
        utilization_rate=utilization_rate,
    )


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def _write_rows(rows: Sequence[Sequence[object]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def find_month(report: Sequence[schemas.MonthlyStat], month: str) -> schemas.MonthlyStat:
    wanted = (month or "").strip().lower()
    for stat in report:
        if stat.month.lower() == wanted or str(stat.month_number) == wanted:
            return stat
    raise NotFoundError(f"No report for month {month!r}.")


def render_month_csv(stat: schemas.MonthlyStat) -> str:
    return _write_rows(
        [
            ["Month", stat.month],
            ["Opening Stock", stat.opening_stock],
            ["Closing Stock", stat.closing_stock],
            ["Purchased", stat.newly_purchased],
            ["Defective", stat.defective_removed],
        ]
    )


def render_all_months_csv(report: Sequence[schemas.MonthlyStat]) -> str:
    rows: List[List[object]] = [MONTHLY_CSV_HEADER]
    for stat in report:
        rows.append(
            [stat.month, stat.opening_stock, stat.closing_stock, stat.newly_purchased, stat.defective_removed]
        )
    return _write_rows(rows)
