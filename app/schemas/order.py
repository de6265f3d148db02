from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CartLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    product_id: int = Field(alias="productId")
    quantity: int = Field(default=1, ge=1)


class ShippingAddress(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    address: str
    city: str
    postal_code: str = Field(alias="postalCode")
    country: str


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    items: list[CartLine] = Field(min_length=1)
    shipping_address: ShippingAddress = Field(alias="shippingAddress")
    region: str
    shipping_method_id: int = Field(alias="shippingMethodId")
    coupon_code: str | None = Field(default=None, alias="couponCode")


class ProductCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    name: str = Field(min_length=1, max_length=200)
    price: float = Field(ge=0)
    weight_kg: float = Field(default=0, ge=0, alias="weightKg")
    count_in_stock: int = Field(default=0, ge=0, alias="countInStock")


class OrderItemResponse(BaseModel):
    product_id: int
    name: str
    quantity: int
    unit_price: float


class OrderResponse(BaseModel):
    id: int
    user_id: int
    items: list[OrderItemResponse]
    region: str
    shipping_method_id: int | None = None
    coupon_code: str | None = None
    items_price: float
    discount_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    is_paid: bool
    paid_at: datetime | None = None
    payment_result: dict | None = None
    refunded_amount: float = 0
    is_refunded: bool = False
    created_at: datetime
