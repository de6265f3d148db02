from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class PaymentAttempt(SQLModel, table=True):
    """One hosted payment page opened at the gateway for an order."""

    __tablename__ = "payment_attempts"
    id: int | None = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    transaction_ref: str = Field(index=True)
    amount: str  # formatted, e.g. "99.99"
    idempotency_key: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PaymentEvent(SQLModel, table=True):
    """
    Processed gateway confirmation. The unique transaction_ref makes the storage layer
    refuse a second finalization for the same transaction (verify and webhook racing).
    """

    __tablename__ = "payment_events"
    id: int | None = Field(default=None, primary_key=True)
    transaction_ref: str = Field(unique=True, index=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    source: str  # verify | webhook
    outcome: str
    amount: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
