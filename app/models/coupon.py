"""Discount coupon: percentage or fixed amount, validity window, usage cap."""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class Coupon(SQLModel, table=True):
    """Created by an admin, applied at checkout."""

    __tablename__ = "coupons"
    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=64)  # always uppercase, e.g. FLASH50
    discount_type: str = Field(default="fixed", max_length=16)  # "percentage" | "fixed"
    value: float = 0  # percentage: (0, 100], fixed: currency amount
    min_purchase: float = 0
    max_discount: float | None = None  # cap for percentage coupons
    valid_from: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))  # inclusive
    valid_until: datetime | None = None  # inclusive; None = no end
    max_usage: int | None = None  # None = unlimited
    used_count: int = 0
    is_active: bool = True
    description: str | None = None
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(timezone.utc))
