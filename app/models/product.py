from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class Product(SQLModel, table=True):
    """Catalog entry; checkout snapshots its price into the order line."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, max_length=200)
    price: float = Field(ge=0)
    weight_kg: float = Field(default=0, ge=0)  # per unit, shipping cost input
    count_in_stock: int = 0
    is_active: bool = True
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(timezone.utc))
