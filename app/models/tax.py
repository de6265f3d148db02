from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Index, text
from sqlmodel import Field, SQLModel


class TaxRule(SQLModel, table=True):
    __tablename__ = "tax_rules"
    # At most one default rule per region
    __table_args__ = (
        Index(
            "uq_tax_rules_region_default",
            "region",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default"),
        ),
    )
    id: int | None = Field(default=None, primary_key=True)
    name: str | None = None
    region: str = Field(index=True)
    rate: float = Field(ge=0)
    tax_type: str = "percentage"  # "percentage" | "flat"
    is_default: bool = False
    threshold: float | None = None  # subtotal below this -> no tax
    # [{"condition": "minimum_amount" | "customer_type", "value": ..., "rate": 5}]
    exemption_rules: list[dict] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = True
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(timezone.utc))
