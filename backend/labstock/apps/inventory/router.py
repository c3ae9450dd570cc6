from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from labstock.apps.accounts import services as account_services
from labstock.database import get_db
from labstock.security import get_current_active_user

from . import schemas, services

router = APIRouter(
    prefix="/inventory",
    tags=["inventory"],
    dependencies=[Depends(get_current_active_user)],
)


@contextmanager
def _service_errors(db: Session) -> Iterator[None]:
    """Translate service and commit failures into HTTP errors, rolling back."""
    try:
        yield
    except services.InventoryValidationError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except services.NotFoundError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except (services.InvariantViolation, account_services.IdempotencyError) as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except (StaleDataError, IntegrityError):
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The product was changed by another request. Reload and try again.",
        )


@router.get("/products", response_model=List[schemas.ProductRead])
def list_products(
    q: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return services.list_products(db, q=q)


@router.post(
    "/products",
    response_model=schemas.ProductRead,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    payload: schemas.ProductCreate,
    db: Session = Depends(get_db),
):
    with _service_errors(db):
        product = services.add_product(db, payload=payload)
        db.commit()
    db.refresh(product)
    return product


@router.get("/products/{product_id}", response_model=schemas.ProductRead)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
):
    with _service_errors(db):
        return services.get_product(db, product_id=product_id)


@router.patch("/products/{product_id}", response_model=schemas.ProductRead)
def update_product(
    product_id: str,
    payload: schemas.ProductUpdate,
    db: Session = Depends(get_db),
):
    with _service_errors(db):
        product = services.update_product(db, product_id=product_id, payload=payload)
        db.commit()
    db.refresh(product)
    return product


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
):
    with _service_errors(db):
        services.delete_product(db, product_id=product_id)
        db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/products/{product_id}/restock", response_model=schemas.ProductRead)
def restock_product(
    product_id: str,
    payload: schemas.StockQuantityRequest,
    db: Session = Depends(get_db),
):
    with _service_errors(db):
        product = services.add_purchased_items(db, product_id=product_id, quantity=payload.quantity)
        db.commit()
    db.refresh(product)
    return product


@router.post("/products/{product_id}/defective", response_model=schemas.ProductRead)
def mark_defective(
    product_id: str,
    payload: schemas.StockQuantityRequest,
    db: Session = Depends(get_db),
):
    with _service_errors(db):
        product = services.mark_defective(db, product_id=product_id, quantity=payload.quantity)
        db.commit()
    db.refresh(product)
    return product


@router.get(
    "/products/{product_id}/transactions",
    response_model=List[schemas.TransactionRead],
)
def list_product_transactions(
    product_id: str,
    db: Session = Depends(get_db),
):
    with _service_errors(db):
        return services.list_transactions(db, product_id=product_id)


@router.post(
    "/products/{product_id}/transactions",
    response_model=schemas.TransactionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(
    product_id: str,
    payload: schemas.TransactionCreate,
    db: Session = Depends(get_db),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    with _service_errors(db):
        entry = services.create_transaction(
            db,
            product_id=product_id,
            payload=payload,
            idempotency_key=idempotency_key,
        )
        db.commit()
    db.refresh(entry)
    return entry


@router.get("/transactions", response_model=List[schemas.TransactionRead])
def list_transactions(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return services.list_all_transactions(db, skip=skip, limit=limit)
