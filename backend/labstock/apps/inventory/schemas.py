from __future__ import annotations

from datetime import datetime, date
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from . import models


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    master_count: int = Field(..., ge=0)
    availability: int = Field(..., ge=0)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    master_count: Optional[int] = Field(None, ge=0)
    availability: Optional[int] = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class ProductRead(BaseModel):
    id: str
    name: str
    master_count: int
    availability: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StockQuantityRequest(BaseModel):
    quantity: int = Field(..., gt=0)


class TransactionCreate(BaseModel):
    """
    Borrow/purchase form as submitted by the client.

    Fields are deliberately loose: the service applies the business rules in
    a fixed order and reports only the first failure.
    """

    student_name: Optional[str] = None
    usn: Optional[str] = None
    phone_number: Optional[str] = None
    section: Optional[str] = None
    taken_date: Optional[date] = None
    return_date: Optional[date] = None
    type: models.TransactionTypeEnum = models.TransactionTypeEnum.BORROW
    quantity: Union[int, str, None] = None

    @field_validator("taken_date", "return_date", mode="before")
    @classmethod
    def _blank_date_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TransactionRead(BaseModel):
    id: str
    product_id: str
    student_name: str
    usn: str
    phone_number: str
    section: str
    taken_date: date
    return_date: Optional[date] = None
    type: models.TransactionTypeEnum
    quantity: int
    created_at: datetime

    class Config:
        from_attributes = True
