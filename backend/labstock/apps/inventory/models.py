from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from labstock.database import Base
from labstock.ids import product_id, stock_event_id, transaction_id


def _utcnow() -> datetime:
    return datetime.utcnow()


class TransactionTypeEnum(str, enum.Enum):
    BORROW = "borrow"
    PURCHASE = "purchase"


class StockEventTypeEnum(str, enum.Enum):
    RESTOCK = "restock"
    DEFECTIVE = "defective"


class Product(Base):
    __tablename__ = "inventory_products"
    __table_args__ = (
        CheckConstraint("master_count >= 0", name="ck_inventory_products_master_nonneg"),
        CheckConstraint("availability >= 0", name="ck_inventory_products_availability_nonneg"),
        CheckConstraint("availability <= master_count", name="ck_inventory_products_availability_le_master"),
        Index("ix_inventory_products_created", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=product_id)
    name = Column(String(255), nullable=False, index=True)
    master_count = Column(Integer, nullable=False, default=0)
    availability = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    # Stale concurrent writes fail with StaleDataError instead of over-subtracting.
    __mapper_args__ = {"version_id_col": version}


class Transaction(Base):
    """Borrow or purchase record. Rows are never updated once written."""

    __tablename__ = "inventory_transactions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_transactions_quantity_pos"),
        Index("ix_inventory_transactions_product", "product_id", "created_at"),
        Index("ix_inventory_transactions_created", "created_at"),
        UniqueConstraint("product_id", "idempotency_key", name="uq_inventory_transactions_idempotency"),
    )

    id = Column(String(36), primary_key=True, default=transaction_id)
    product_id = Column(String(36), ForeignKey("inventory_products.id", ondelete="CASCADE"), nullable=False)

    student_name = Column(String(255), nullable=False)
    usn = Column(String(10), nullable=False, index=True)
    phone_number = Column(String(10), nullable=False)
    section = Column(String(32), nullable=False)

    taken_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)

    type = Column(
        SAEnum(
            TransactionTypeEnum,
            name="inventory_transaction_type_enum",
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        index=True,
    )
    quantity = Column(Integer, nullable=False)
    idempotency_key = Column(String(128), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class StockEvent(Base):
    """Manager-side restock or defect removal, kept for the monthly report."""

    __tablename__ = "inventory_stock_events"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_stock_events_quantity_nonneg"),
        Index("ix_inventory_stock_events_product", "product_id", "created_at"),
        Index("ix_inventory_stock_events_type_created", "event_type", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=stock_event_id)
    product_id = Column(String(36), ForeignKey("inventory_products.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(
        SAEnum(
            StockEventTypeEnum,
            name="inventory_stock_event_type_enum",
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    # Units actually applied (a defect removal floored at zero records less than requested).
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
