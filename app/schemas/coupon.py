from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CouponCreate(BaseModel):
    """Admin: new coupon. Business rules are checked in app/services/coupon.py (400, not 422)."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    code: str | None = None
    type: str | None = None  # "percentage" | "fixed"
    value: float | None = None
    min_purchase: float | None = Field(default=None, alias="minPurchase")
    max_discount: float | None = Field(default=None, alias="maxDiscount")
    start_date: datetime | None = Field(default=None, alias="startDate")
    end_date: datetime | None = Field(default=None, alias="endDate")
    max_uses: int | None = Field(default=None, alias="maxUses")
    description: str | None = None
    is_active: bool | None = Field(default=None, alias="isActive")


class CouponUpdate(CouponCreate):
    pass


class CouponValidateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    code: str | None = None
    cart_total: float | None = Field(default=None, alias="cartTotal")


class CouponApplyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    cart_total: float | None = Field(default=None, alias="cartTotal")


class CouponResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    discount_type: str
    value: float
    min_purchase: float
    max_discount: float | None = None
    valid_from: datetime
    valid_until: datetime | None = None
    max_usage: int | None = None
    used_count: int
    is_active: bool
    description: str | None = None
