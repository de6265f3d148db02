from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class ShippingMethod(SQLModel, table=True):
    __tablename__ = "shipping_methods"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    carrier: str | None = None
    base_rate: float = Field(default=0, ge=0)
    rate_per_kg: float = Field(default=0, ge=0)
    estimated_days: str | None = None  # e.g. "3-5"
    regions: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = True
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(timezone.utc))
