from __future__ import annotations

from labstock.apps.analytics import services as analytics_services
from labstock.apps.inventory import models as inventory_models
from labstock.scripts import seed_demo


def test_seed_demo_is_repeatable(db_session):
    seed_demo.seed(db_session)
    seed_demo.seed(db_session)

    products = {p.name: p for p in db_session.query(inventory_models.Product).all()}
    assert len(products) == 5
    assert db_session.query(inventory_models.Transaction).count() == 2
    assert products["Arduino Uno"].availability == 43
    assert (products["Raspberry Pi 4"].master_count, products["Raspberry Pi 4"].availability) == (29, 24)


def test_seed_demo_ledger_lands_in_march_report(db_session):
    seed_demo.seed(db_session)

    report = {stat.month: stat for stat in analytics_services.get_monthly_report(db_session, year=2024)}
    assert report["March"].utilized_items == 2
    assert sum(stat.utilized_items for stat in report.values()) == 2
