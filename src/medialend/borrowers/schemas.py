"""Pydantic schemas for borrower categories and borrowers."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    """Schema for creating a borrower category."""

    name: str = Field(..., min_length=1, max_length=100)
    max_loans: int = Field(..., ge=0)
    annual_fee: float = Field(0.0, ge=0)
    duration_multiplier: float = Field(1.0, gt=0)
    fee_multiplier: float = Field(1.0, ge=0)
    requires_discount_code: bool = False


class CategoryUpdate(BaseModel):
    """Schema for modifying a borrower category."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    max_loans: Optional[int] = Field(None, ge=0)
    annual_fee: Optional[float] = Field(None, ge=0)
    duration_multiplier: Optional[float] = Field(None, gt=0)
    fee_multiplier: Optional[float] = Field(None, ge=0)
    requires_discount_code: Optional[bool] = None


class BorrowerCreate(BaseModel):
    """Schema for enrolling a borrower."""

    last_name: str = Field(..., min_length=1, max_length=200)
    first_name: str = Field(..., min_length=1, max_length=200)
    address: str = Field("", max_length=500)
    category: str = Field(..., min_length=1)
    discount_code: Optional[int] = None


class BorrowerUpdate(BaseModel):
    """Schema for changing a borrower's name or address."""

    last_name: Optional[str] = Field(None, min_length=1, max_length=200)
    first_name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)


class BorrowerSummary(BaseModel):
    """Summary of a borrower for listing."""

    last_name: str
    first_name: str
    address: str
    category: str
    discount_code: Optional[int]
    enrolled_on: date
    renewal_on: date
    active_count: int
    overdue_count: int
    lifetime_loans: int
    may_borrow: bool
