from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    full_name: str = ""
    is_admin: bool = False  # admin: coupons, tax rules, shipping methods, products
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(timezone.utc))
