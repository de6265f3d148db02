"""Coupon validation, discount calculation and usage counting."""
import logging
from datetime import datetime, timezone

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models import Coupon
from app.schemas.coupon import CouponCreate, CouponUpdate
from app.services.pricing import discount_breakdown

logger = logging.getLogger(__name__)

COUPON_TYPES = ("percentage", "fixed")


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def get_coupon_by_code(db: Session, code: str) -> Coupon | None:
    return db.exec(select(Coupon).where(Coupon.code == normalize_code(code))).first()


def _aware(value: datetime | None) -> datetime | None:
    """Datetimes are stored as UTC. SQLite hands them back naive."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_min_purchase(coupon: Coupon, cart_total: float) -> None:
    if coupon.min_purchase and cart_total < coupon.min_purchase:
        raise ValidationError(f"Minimum purchase amount of {coupon.min_purchase:g} required")


def _check_usage(coupon: Coupon) -> None:
    if coupon.max_usage is not None and coupon.used_count >= coupon.max_usage:
        raise ValidationError("Coupon has reached maximum usage limit")


def validate_coupon(db: Session, code: str | None, cart_total: float | None) -> dict:
    """
    Discount a coupon would give on cart_total. Does not count a use:
    apply_coupon does, after re-checking everything.
    """
    if not normalize_code(code) or cart_total is None:
        raise ValidationError("Please provide coupon code and cart total")
    if cart_total <= 0:
        raise ValidationError("Cart total must be greater than 0")
    coupon = get_coupon_by_code(db, code)
    if not coupon:
        raise NotFoundError("Invalid or expired coupon")
    _check_min_purchase(coupon, cart_total)
    _check_usage(coupon)
    return {"valid": True, "coupon": discount_breakdown(coupon, cart_total)}


def apply_coupon(db: Session, coupon_id: int, cart_total: float | None, now: datetime | None = None) -> dict:
    """
    Re-validates the coupon and counts one use.
    The counter moves through a single conditional UPDATE, so concurrent applies
    on the last free use cannot both pass the cap.
    """
    if cart_total is None or cart_total <= 0:
        raise ValidationError("Cart total must be greater than 0")
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")
    if not coupon.is_active:
        raise ValidationError("Coupon is not active")
    now = _aware(now) or datetime.now(timezone.utc)
    if coupon.valid_from and _aware(coupon.valid_from) > now:
        raise ValidationError("Coupon is not yet valid")
    if coupon.valid_until and _aware(coupon.valid_until) < now:
        raise ValidationError("Coupon has expired")
    _check_usage(coupon)
    _check_min_purchase(coupon, cart_total)

    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon_id)
        .where(Coupon.is_active == True)  # noqa: E712
        .where(or_(Coupon.max_usage.is_(None), Coupon.used_count < Coupon.max_usage))
        .values(used_count=Coupon.used_count + 1)
    )
    result = db.exec(stmt)
    if result.rowcount != 1:
        db.rollback()
        logger.info("Coupon %s usage cap hit under contention", coupon.code)
        raise ValidationError("Coupon has reached maximum usage limit")
    db.commit()
    db.refresh(coupon)
    return {"success": True, "coupon": discount_breakdown(coupon, cart_total)}


def _validate_fields(
    discount_type: str,
    value: float,
    min_purchase: float | None,
    max_discount: float | None,
    valid_from: datetime | None,
    valid_until: datetime | None,
    max_usage: int | None = None,
    used_count: int = 0,
) -> None:
    if discount_type not in COUPON_TYPES:
        raise ValidationError("Coupon type must be either percentage or fixed")
    if discount_type == "percentage" and (value <= 0 or value > 100):
        raise ValidationError("Percentage discount must be between 0 and 100")
    if discount_type == "fixed" and value <= 0:
        raise ValidationError("Fixed discount value must be greater than 0")
    if valid_from and valid_until and valid_until <= valid_from:
        raise ValidationError("End date must be after start date")
    if min_purchase is not None and min_purchase < 0:
        raise ValidationError("Minimum purchase amount cannot be negative")
    if max_discount is not None and max_discount < 0:
        raise ValidationError("Maximum discount amount cannot be negative")
    if max_usage is not None and max_usage < 0:
        raise ValidationError("Maximum usage cannot be negative")
    if max_usage is not None and max_usage < used_count:
        raise ValidationError(f"Maximum usage cannot be lower than the current usage count ({used_count})")


def _ensure_code_free(db: Session, code: str, exclude_id: int | None = None) -> None:
    stmt = select(Coupon).where(Coupon.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Coupon.id != exclude_id)
    if db.exec(stmt).first():
        raise ConflictError("Coupon code already exists")


def _commit_coupon(db: Session, coupon: Coupon) -> Coupon:
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        # Unique index on code: a concurrent create won
        db.rollback()
        raise ConflictError("Coupon code already exists")
    db.refresh(coupon)
    return coupon


def create_coupon(db: Session, body: CouponCreate) -> Coupon:
    code = normalize_code(body.code)
    if not code or body.type is None or body.value is None:
        raise ValidationError("Please provide code, type and value for the coupon")
    valid_from = _aware(body.start_date) or datetime.now(timezone.utc)
    valid_until = _aware(body.end_date)
    _validate_fields(
        body.type, body.value, body.min_purchase, body.max_discount, valid_from, valid_until, body.max_uses
    )
    _ensure_code_free(db, code)
    coupon = Coupon(
        code=code,
        discount_type=body.type,
        value=body.value,
        min_purchase=body.min_purchase or 0,
        max_discount=body.max_discount,
        valid_from=valid_from,
        valid_until=valid_until,
        max_usage=body.max_uses,
        description=body.description,
        is_active=True if body.is_active is None else body.is_active,
    )
    coupon = _commit_coupon(db, coupon)
    logger.info("Coupon created: %s (%s %s)", coupon.code, coupon.discount_type, coupon.value)
    return coupon


def get_coupon(db: Session, coupon_id: int) -> Coupon:
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")
    return coupon


def list_coupons(db: Session, is_active: bool | None = None, page: int = 1, limit: int = 10) -> list[Coupon]:
    stmt = select(Coupon)
    if is_active is not None:
        stmt = stmt.where(Coupon.is_active == is_active)
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    stmt = stmt.order_by(Coupon.id.desc()).offset((page - 1) * limit).limit(limit)
    return list(db.exec(stmt).all())


def update_coupon(db: Session, coupon_id: int, body: CouponUpdate) -> Coupon:
    """Partial update: only the fields sent are changed, then the merged coupon is validated."""
    coupon = get_coupon(db, coupon_id)
    fields = body.model_dump(exclude_unset=True)

    code = normalize_code(fields["code"]) if fields.get("code") else coupon.code
    discount_type = fields.get("type") or coupon.discount_type
    value = fields["value"] if fields.get("value") is not None else coupon.value
    min_purchase = fields["min_purchase"] if "min_purchase" in fields else coupon.min_purchase
    max_discount = fields["max_discount"] if "max_discount" in fields else coupon.max_discount
    valid_from = _aware(fields.get("start_date") or coupon.valid_from)
    valid_until = _aware(fields["end_date"] if "end_date" in fields else coupon.valid_until)
    max_usage = fields["max_uses"] if "max_uses" in fields else coupon.max_usage

    _validate_fields(
        discount_type, value, min_purchase, max_discount, valid_from, valid_until, max_usage, coupon.used_count
    )
    if code != coupon.code:
        _ensure_code_free(db, code, exclude_id=coupon.id)

    coupon.code = code
    coupon.discount_type = discount_type
    coupon.value = value
    coupon.min_purchase = min_purchase or 0
    coupon.max_discount = max_discount
    coupon.valid_from = valid_from
    coupon.valid_until = valid_until
    coupon.max_usage = max_usage
    if "description" in fields:
        coupon.description = fields["description"]
    if fields.get("is_active") is not None:
        coupon.is_active = fields["is_active"]
    return _commit_coupon(db, coupon)


def delete_coupon(db: Session, coupon_id: int) -> Coupon:
    coupon = get_coupon(db, coupon_id)
    db.delete(coupon)
    db.commit()
    return coupon
