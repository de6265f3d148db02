from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class Order(SQLModel, table=True):
    """
    Created unpaid at checkout. is_paid goes False -> True exactly once, through a
    conditional update (app/services/payments.py); nothing sets it back to False.
    """

    __tablename__ = "orders"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    # Shipping address
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""
    region: str = Field(default="", index=True)  # tax / shipping region, e.g. "USA"
    shipping_method_id: int | None = Field(default=None, foreign_key="shipping_methods.id")
    coupon_code: str | None = Field(default=None, max_length=64)
    # Totals: total_price == items_price - discount_price + tax_price + shipping_price
    items_price: float = 0
    discount_price: float = 0
    tax_price: float = 0
    shipping_price: float = 0
    total_price: float = 0
    is_paid: bool = Field(default=False, index=True)
    paid_at: datetime | None = None
    # Gateway result of the verified payment
    payment_tran_ref: str | None = Field(default=None, index=True)
    payment_status: str | None = None  # approved outcome name
    payment_amount: str | None = None  # "99.99"
    payment_details: dict | None = Field(default=None, sa_column=Column(JSON))
    refunded_amount: float = 0  # sum of approved refunds
    is_refunded: bool = False  # true once refunded_amount reaches total_price
    refunded_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"
    id: int | None = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    product_id: int = Field(foreign_key="product.id")
    name: str
    quantity: int
    unit_price: float  # price at checkout time
