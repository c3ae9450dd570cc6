from __future__ import annotations

import logging
import re
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from labstock.apps.accounts import services as account_services
from . import models, schemas

logger = logging.getLogger(__name__)

TRANSACTION_IDEMPOTENCY_SCOPE = "inventory-transaction"
USN_LENGTH = 10
PHONE_NUMBER_LENGTH = 10
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class InventoryValidationError(Exception):
    """Malformed or out-of-range input. Nothing has been written."""


class NotFoundError(Exception):
    """A product or transaction id does not exist."""


class InvariantViolation(Exception):
    """A mutation would leave availability outside 0..master_count."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check_invariant(*, master_count: int, availability: int) -> None:
    if master_count < 0 or availability < 0:
        raise InvariantViolation("Stock counts cannot be negative.")
    if availability > master_count:
        raise InvariantViolation(
            f"Availability ({availability}) cannot exceed master count ({master_count})."
        )


def _set_counts(product: models.Product, *, master_count: int, availability: int) -> None:
    # Every counter change goes through here.
    _check_invariant(master_count=master_count, availability=availability)
    product.master_count = master_count
    product.availability = availability


def _get_product_for_update(db: Session, *, product_id: str) -> models.Product:
    product = (
        db.query(models.Product)
        .filter(models.Product.id == product_id)
        .with_for_update()
        .first()
    )
    if product is None:
        raise NotFoundError("Product not found.")
    return product


def _record_stock_event(
    db: Session,
    *,
    product: models.Product,
    event_type: models.StockEventTypeEnum,
    quantity: int,
) -> models.StockEvent:
    event = models.StockEvent(product_id=product.id, event_type=event_type, quantity=quantity)
    db.add(event)
    return event


# ---------------------------------------------------------------------------
# Product catalog
# ---------------------------------------------------------------------------


def get_product(db: Session, *, product_id: str) -> models.Product:
    product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if product is None:
        raise NotFoundError("Product not found.")
    return product


def list_products(db: Session, *, q: Optional[str] = None) -> List[models.Product]:
    query = db.query(models.Product)
    term = (q or "").strip()
    if term:
        pattern = "%" + term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        query = query.filter(models.Product.name.ilike(pattern, escape="\\"))
    return query.order_by(models.Product.created_at.asc(), models.Product.id.asc()).all()


def add_product(db: Session, *, payload: schemas.ProductCreate) -> models.Product:
    """
    Register a product.

    Availability above the master count is clamped rather than rejected.
    """
    product = models.Product(name=payload.name.strip())
    _set_counts(
        product,
        master_count=payload.master_count,
        availability=min(payload.availability, payload.master_count),
    )
    db.add(product)
    db.flush()
    logger.info(
        "Added product id=%s name=%r master_count=%s availability=%s",
        product.id,
        product.name,
        product.master_count,
        product.availability,
    )
    return product


def update_product(
    db: Session,
    *,
    product_id: str,
    payload: schemas.ProductUpdate,
) -> models.Product:
    product = _get_product_for_update(db, product_id=product_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        return product

    master_count = changes.get("master_count", product.master_count)
    availability = changes.get("availability", product.availability)
    _set_counts(product, master_count=master_count, availability=availability)
    if "name" in changes:
        product.name = changes["name"]
    db.flush()
    logger.info("Updated product id=%s fields=%s", product.id, sorted(changes))
    return product


def delete_product(db: Session, *, product_id: str) -> None:
    """Delete a product together with its transactions and stock events."""
    product = _get_product_for_update(db, product_id=product_id)
    removed_transactions = (
        db.query(models.Transaction)
        .filter(models.Transaction.product_id == product.id)
        .delete(synchronize_session=False)
    )
    db.query(models.StockEvent).filter(models.StockEvent.product_id == product.id).delete(
        synchronize_session=False
    )
    db.delete(product)
    db.flush()
    logger.info("Deleted product id=%s with %s transaction(s)", product_id, removed_transactions)


def add_purchased_items(db: Session, *, product_id: str, quantity: int) -> models.Product:
    """New units arrived: both counters grow."""
    if quantity <= 0:
        raise InventoryValidationError("Quantity must be at least 1")
    product = _get_product_for_update(db, product_id=product_id)
    _set_counts(
        product,
        master_count=product.master_count + quantity,
        availability=product.availability + quantity,
    )
    _record_stock_event(db, product=product, event_type=models.StockEventTypeEnum.RESTOCK, quantity=quantity)
    db.flush()
    logger.info("Restocked product id=%s quantity=%s", product.id, quantity)
    return product


def mark_defective(db: Session, *, product_id: str, quantity: int) -> models.Product:
    """
    Pull units out of the lending pool.

    The units are still owned, so only availability drops (never below 0).
    """
    if quantity <= 0:
        raise InventoryValidationError("Quantity must be at least 1")
    product = _get_product_for_update(db, product_id=product_id)
    new_availability = max(0, product.availability - quantity)
    removed = product.availability - new_availability
    _set_counts(product, master_count=product.master_count, availability=new_availability)
    _record_stock_event(db, product=product, event_type=models.StockEventTypeEnum.DEFECTIVE, quantity=removed)
    db.flush()
    logger.info("Marked defective product id=%s requested=%s removed=%s", product.id, quantity, removed)
    return product


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _parse_quantity(value: Union[int, str, None]) -> Optional[int]:
    """Read the leading integer of a form value: "3", " 2.5" and "4 units" all count."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT_RE.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


def validate_transaction(product: models.Product, payload: schemas.TransactionCreate) -> int:
    """
    Apply the transaction rules in order and stop at the first failure.

    Returns the parsed quantity.
    """
    student_name = _clean(payload.student_name)
    usn = _clean(payload.usn)
    phone_number = _clean(payload.phone_number)
    section = _clean(payload.section)

    if not (student_name and usn and phone_number and section and payload.taken_date):
        raise InventoryValidationError("Please fill in all required fields")
    if len(usn) != USN_LENGTH:
        raise InventoryValidationError("USN must be exactly 10 characters")
    # Digits-only is filtered by the client form.
    if len(phone_number) != PHONE_NUMBER_LENGTH:
        raise InventoryValidationError("Phone number must be exactly 10 digits")
    if payload.return_date is not None and payload.return_date <= payload.taken_date:
        raise InventoryValidationError("Return date must be greater than taken date")

    quantity = _parse_quantity(payload.quantity)
    if quantity is None or quantity <= 0:
        raise InventoryValidationError("Quantity must be at least 1")

    if payload.type == models.TransactionTypeEnum.BORROW and quantity > product.availability:
        raise InventoryValidationError(f"Not enough available stock. Maximum: {product.availability}")
    if payload.type == models.TransactionTypeEnum.PURCHASE and quantity > product.master_count:
        raise InventoryValidationError(f"Not enough stock. Maximum: {product.master_count}")
    return quantity


def _apply_transaction(product: models.Product, *, type_: models.TransactionTypeEnum, quantity: int) -> None:
    if type_ == models.TransactionTypeEnum.PURCHASE:
        # Purchased units leave the organisation for good.
        _set_counts(
            product,
            master_count=max(0, product.master_count - quantity),
            availability=max(0, product.availability - quantity),
        )
    else:
        _set_counts(
            product,
            master_count=product.master_count,
            availability=max(0, product.availability - quantity),
        )


def create_transaction(
    db: Session,
    *,
    product_id: str,
    payload: schemas.TransactionCreate,
    idempotency_key: Optional[str] = None,
) -> models.Transaction:
    """
    Validate and record a borrow/purchase, adjusting the product's counters.

    The ledger row and the counter change are flushed in the same session
    and commit together. With an idempotency key, a retry of an already
    committed request returns the original record untouched.
    """
    product = _get_product_for_update(db, product_id=product_id)

    idem = None
    if idempotency_key:
        idem = account_services.register_idempotency_key(
            db,
            scope=f"{TRANSACTION_IDEMPOTENCY_SCOPE}:{product.id}",
            key=idempotency_key,
            payload=payload.model_dump(mode="json"),
        )
        if idem.resource_id:
            existing = db.query(models.Transaction).filter(models.Transaction.id == idem.resource_id).first()
            if existing is not None:
                logger.info("Replayed transaction id=%s for idempotency key=%s", existing.id, idempotency_key)
                return existing

    try:
        quantity = validate_transaction(product, payload)
    except InventoryValidationError as exc:
        logger.info("Rejected %s for product id=%s: %s", payload.type.value, product.id, exc)
        raise

    entry = models.Transaction(
        product_id=product.id,
        student_name=_clean(payload.student_name),
        usn=_clean(payload.usn).upper(),
        phone_number=_clean(payload.phone_number),
        section=_clean(payload.section).upper(),
        taken_date=payload.taken_date,
        return_date=payload.return_date,
        type=payload.type,
        quantity=quantity,
        idempotency_key=idempotency_key,
    )
    db.add(entry)
    _apply_transaction(product, type_=payload.type, quantity=quantity)
    db.flush()
    if idem is not None:
        idem.resource_id = entry.id
        db.flush()

    logger.info(
        "Recorded %s id=%s product id=%s quantity=%s master_count=%s availability=%s",
        entry.type.value,
        entry.id,
        product.id,
        quantity,
        product.master_count,
        product.availability,
    )
    return entry


def list_transactions(db: Session, *, product_id: str) -> List[models.Transaction]:
    get_product(db, product_id=product_id)
    return (
        db.query(models.Transaction)
        .filter(models.Transaction.product_id == product_id)
        .order_by(models.Transaction.created_at.desc(), models.Transaction.id.desc())
        .all()
    )


def list_all_transactions(db: Session, *, skip: int = 0, limit: int = 100) -> List[models.Transaction]:
    return (
        db.query(models.Transaction)
        .order_by(models.Transaction.created_at.desc(), models.Transaction.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
