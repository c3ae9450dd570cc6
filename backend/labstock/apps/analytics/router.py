from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from labstock.apps.inventory.services import NotFoundError
from labstock.database import get_read_db
from labstock.security import get_current_active_user

from . import schemas, services

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
    dependencies=[Depends(get_current_active_user)],
)


@router.get("/monthly-report", response_model=List[schemas.MonthlyStat])
def monthly_report(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    months: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_read_db),
):
    return services.get_monthly_report(db, year=year, months=months)


@router.get("/monthly-report.csv", response_class=Response)
def export_monthly_report(
    month: Optional[str] = Query(None, description="Month name or number; omit for all months"),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    months: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_read_db),
):
    report = services.get_monthly_report(db, year=year, months=months)
    if month:
        try:
            stat = services.find_month(report, month)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        body = services.render_month_csv(stat)
        filename = f"Analytics-{stat.month}-{stat.year}.csv"
    else:
        body = services.render_all_months_csv(report)
        filename = "Analytics-All-Months.csv"

    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/summary", response_model=schemas.InventorySummary)
def summary(db: Session = Depends(get_read_db)):
    return services.get_summary(db)
