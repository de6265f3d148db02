"""Shipping method administration."""
from sqlmodel import Session, select

from app.core.errors import NotFoundError, ValidationError
from app.models import ShippingMethod
from app.schemas.pricing import ShippingMethodCreate, ShippingMethodUpdate


def _clean_regions(regions: list[str]) -> list[str]:
    out: list[str] = []
    for r in regions:
        r = (r or "").strip()
        if r and r not in out:
            out.append(r)
    return out


def create_shipping_method(db: Session, body: ShippingMethodCreate) -> ShippingMethod:
    if not body.name.strip():
        raise ValidationError("Name is required")
    method = ShippingMethod(
        name=body.name.strip(),
        carrier=body.carrier,
        base_rate=body.base_rate,
        rate_per_kg=body.rate_per_kg,
        estimated_days=body.estimated_days,
        regions=_clean_regions(body.regions),
        is_active=body.is_active,
    )
    db.add(method)
    db.commit()
    db.refresh(method)
    return method


def get_shipping_method(db: Session, method_id: int) -> ShippingMethod:
    method = db.get(ShippingMethod, method_id)
    if not method:
        raise NotFoundError("Shipping method not found")
    return method


def list_shipping_methods(db: Session, region: str | None = None) -> list[ShippingMethod]:
    methods = db.exec(
        select(ShippingMethod).where(ShippingMethod.is_active == True).order_by(ShippingMethod.id)  # noqa: E712
    ).all()
    # regions is a JSON list; filtered here to stay portable across SQLite/Postgres
    if region:
        return [m for m in methods if region in (m.regions or [])]
    return list(methods)


def update_shipping_method(db: Session, method_id: int, body: ShippingMethodUpdate) -> ShippingMethod:
    method = get_shipping_method(db, method_id)
    fields = body.model_dump(exclude_unset=True)
    for key in ("name", "carrier", "base_rate", "rate_per_kg", "estimated_days", "is_active"):
        if fields.get(key) is not None:
            setattr(method, key, fields[key])
    if fields.get("regions") is not None:
        method.regions = _clean_regions(fields["regions"])
    db.add(method)
    db.commit()
    db.refresh(method)
    return method


def delete_shipping_method(db: Session, method_id: int) -> None:
    method = get_shipping_method(db, method_id)
    db.delete(method)
    db.commit()
