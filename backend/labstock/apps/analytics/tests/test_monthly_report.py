from __future__ import annotations

import csv
import io
from datetime import datetime

import pytest

from labstock.apps.analytics import services as analytics_services
from labstock.apps.inventory import models as inventory_models
from labstock.apps.inventory import schemas as inventory_schemas
from labstock.apps.inventory import services as inventory_services


def _product(db, name, master_count, availability):
    product = inventory_services.add_product(
        db,
        payload=inventory_schemas.ProductCreate(name=name, master_count=master_count, availability=availability),
    )
    db.commit()
    return product


def _record(db, product, *, type_, quantity, created_at):
    entry = inventory_services.create_transaction(
        db,
        product_id=product.id,
        payload=inventory_schemas.TransactionCreate(
            student_name="John Doe",
            usn="1MS21CS001",
            phone_number="9876543210",
            section="A",
            taken_date=created_at.date(),
            type=type_,
            quantity=quantity,
        ),
    )
    entry.created_at = created_at
    db.commit()
    return entry


def _backdate_events(db, created_at):
    for event in db.query(inventory_models.StockEvent).all():
        event.created_at = created_at
    db.commit()


@pytest.fixture()
def seeded(db_session):
    arduino = _product(db_session, "Arduino Uno", 50, 45)
    pi = _product(db_session, "Raspberry Pi 4", 30, 25)

    _record(db_session, arduino, type_=inventory_models.TransactionTypeEnum.BORROW, quantity=2,
            created_at=datetime(2024, 3, 1, 10, 0))
    _record(db_session, arduino, type_=inventory_models.TransactionTypeEnum.BORROW, quantity=3,
            created_at=datetime(2024, 3, 31, 23, 59))
    _record(db_session, pi, type_=inventory_models.TransactionTypeEnum.PURCHASE, quantity=1,
            created_at=datetime(2024, 3, 5, 9, 0))
    _record(db_session, pi, type_=inventory_models.TransactionTypeEnum.BORROW, quantity=4,
            created_at=datetime(2024, 5, 2, 9, 0))
    # Same calendar month, different year: must not land in March 2024.
    _record(db_session, pi, type_=inventory_models.TransactionTypeEnum.BORROW, quantity=7,
            created_at=datetime(2023, 3, 15, 9, 0))

    inventory_services.add_purchased_items(db_session, product_id=arduino.id, quantity=10)
    inventory_services.mark_defective(db_session, product_id=pi.id, quantity=2)
    db_session.commit()
    _backdate_events(db_session, datetime(2024, 2, 10, 12, 0))
    return db_session


def test_report_covers_january_to_june_by_default(seeded):
    report = analytics_services.get_monthly_report(seeded, year=2024)

    assert [stat.month for stat in report] == ["January", "February", "March", "April", "May", "June"]
    assert all(stat.year == 2024 for stat in report)


def test_report_aggregates_per_year_and_month(seeded):
    report = {stat.month: stat for stat in analytics_services.get_monthly_report(seeded, year=2024)}

    # Catalog now: arduino 60/50, pi 29/11
    assert report["March"].utilized_items == 5
    assert report["March"].opening_stock == 89 + 5 + 1
    assert report["March"].closing_stock == 61
    assert report["May"].utilized_items == 4
    assert report["May"].opening_stock == 89 + 4
    assert report["January"].opening_stock == 89
    assert report["February"].newly_purchased == 10
    assert report["February"].defective_removed == 2
    assert report["March"].newly_purchased == 0


def test_utilized_items_sum_matches_borrow_total_in_window(seeded):
    report = analytics_services.get_monthly_report(seeded, year=2024)

    borrowed_2024 = sum(
        entry.quantity
        for entry in seeded.query(inventory_models.Transaction).all()
        if entry.type == inventory_models.TransactionTypeEnum.BORROW and entry.created_at.year == 2024
    )
    assert sum(stat.utilized_items for stat in report) == borrowed_2024 == 9


def test_previous_year_is_bucketed_separately(seeded):
    report = {stat.month: stat for stat in analytics_services.get_monthly_report(seeded, year=2023)}
    assert report["March"].utilized_items == 7


def test_report_window_length_is_configurable(seeded):
    assert len(analytics_services.get_monthly_report(seeded, year=2024, months=12)) == 12
    with pytest.raises(ValueError):
        analytics_services.get_monthly_report(seeded, year=2024, months=13)


def test_single_month_csv_has_five_two_field_rows(seeded):
    report = analytics_services.get_monthly_report(seeded, year=2024)
    body = analytics_services.render_month_csv(analytics_services.find_month(report, "march"))

    rows = list(csv.reader(io.StringIO(body)))
    assert [row[0] for row in rows] == ["Month", "Opening Stock", "Closing Stock", "Purchased", "Defective"]
    assert all(len(row) == 2 for row in rows)
    assert rows[0][1] == "March"


def test_all_months_csv_has_header_and_one_row_per_month(seeded):
    report = analytics_services.get_monthly_report(seeded, year=2024)
    rows = list(csv.reader(io.StringIO(analytics_services.render_all_months_csv(report))))

    assert rows[0] == ["Month", "Opening Stock", "Closing Stock", "Purchased", "Defective"]
    assert len(rows) == 7
    assert rows[2] == ["February", "89", "61", "10", "2"]


def test_unknown_month_raises_not_found(seeded):
    report = analytics_services.get_monthly_report(seeded, year=2024)
    with pytest.raises(inventory_services.NotFoundError):
        analytics_services.find_month(report, "December")


def test_summary_totals_and_utilization_rate(seeded):
    summary = analytics_services.get_summary(seeded)

    assert summary.product_count == 2
    assert summary.total_master_count == 89
    assert summary.total_availability == 61
    assert summary.total_borrowed == 16
    assert summary.total_purchased == 1
    assert summary.utilization_rate == 31


def test_summary_of_empty_catalog(db_session):
    summary = analytics_services.get_summary(db_session)
    assert summary.utilization_rate == 0
    assert summary.total_master_count == 0


def test_report_defaults_to_current_year(db_session):
    report = analytics_services.get_monthly_report(db_session)
    assert report[0].year == datetime.utcnow().year
