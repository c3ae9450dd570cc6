from __future__ import annotations

from datetime import date, datetime

from sqlalchemy.orm import Session

from labstock.database import Base, WriteSessionLocal, engine
from labstock.apps.inventory import models as inventory_models
from labstock.apps.inventory import schemas as inventory_schemas
from labstock.apps.inventory import services as inventory_services

DEMO_PRODUCTS = [
    ("Arduino Uno", 50, 45),
    ("Raspberry Pi 4", 30, 25),
    ("Breadboard", 100, 85),
    ("LED Pack (100pcs)", 20, 18),
    ("Multimeter", 15, 12),
]


def _get_or_create_product(db: Session, name: str, master_count: int, availability: int) -> inventory_models.Product:
    product = db.query(inventory_models.Product).filter(inventory_models.Product.name == name).first()
    if product:
        return product
    return inventory_services.add_product(
        db,
        payload=inventory_schemas.ProductCreate(name=name, master_count=master_count, availability=availability),
    )


def seed(db: Session) -> None:
    products = {name: _get_or_create_product(db, name, master, available) for name, master, available in DEMO_PRODUCTS}
    db.commit()

    if db.query(inventory_models.Transaction).count():
        return

    borrow = inventory_services.create_transaction(
        db,
        product_id=products["Arduino Uno"].id,
        payload=inventory_schemas.TransactionCreate(
            student_name="John Doe",
            usn="1MS21CS001",
            phone_number="9876543210",
            section="A",
            taken_date=date(2024, 3, 1),
            return_date=date(2024, 3, 15),
            type=inventory_models.TransactionTypeEnum.BORROW,
            quantity=2,
        ),
        idempotency_key="demo-borrow-1",
    )
    purchase = inventory_services.create_transaction(
        db,
        product_id=products["Raspberry Pi 4"].id,
        payload=inventory_schemas.TransactionCreate(
            student_name="Jane Smith",
            usn="1MS21CS002",
            phone_number="9876543211",
            section="B",
            taken_date=date(2024, 3, 5),
            type=inventory_models.TransactionTypeEnum.PURCHASE,
            quantity=1,
        ),
        idempotency_key="demo-purchase-1",
    )
    # Recorded on the day the items were taken, so they land in the March report.
    borrow.created_at = datetime(2024, 3, 1)
    purchase.created_at = datetime(2024, 3, 5)
    db.commit()


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = WriteSessionLocal()
    try:
        seed(db)
        print("[OK] Demo inventory seeded.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
