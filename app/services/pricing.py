"""Tax, shipping and coupon discount calculation. Read-only: nothing here writes to the DB."""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlmodel import Session, select

from app.core.errors import NotFoundError, ValidationError
from app.models import Coupon, ShippingMethod, TaxRule

_CENT = Decimal("0.01")


def format_amount(amount) -> str:
    """Fixed 2-decimal string ("99.99"). Gateway amounts are only ever compared in this form."""
    if amount is None or isinstance(amount, bool):
        raise ValidationError("Invalid amount format")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid amount format")
    if not value.is_finite():
        raise ValidationError("Invalid amount format")
    return str(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def round_money(amount: float) -> float:
    return float(format_amount(amount))


def amounts_match(a, b) -> bool:
    return format_amount(a) == format_amount(b)


def _exemption_tax(rule: TaxRule, subtotal: float, customer_type: str | None) -> float | None:
    """First matching exemption rule wins; None when no rule applies."""
    for ex in rule.exemption_rules or []:
        condition = ex.get("condition")
        value = ex.get("value")
        rate = ex.get("rate")
        if rate is None:
            continue
        if condition == "minimum_amount":
            try:
                if subtotal >= float(value):
                    return subtotal * float(rate) / 100
            except (TypeError, ValueError):
                continue
        elif condition == "customer_type":
            if customer_type is not None and customer_type == value:
                return subtotal * float(rate) / 100
    return None


def calculate_tax(
    db: Session,
    region: str | None,
    subtotal: float | None,
    customer_type: str | None = None,
) -> dict:
    if not region:
        raise ValidationError("Region is required")
    if subtotal is None:
        raise ValidationError("Subtotal is required")
    if subtotal < 0:
        raise ValidationError("Subtotal cannot be negative")
    stmt = select(TaxRule).where(
        TaxRule.region == region,
        TaxRule.is_active == True,  # noqa: E712
        TaxRule.is_default == True,  # noqa: E712
    )
    rule = db.exec(stmt).first()
    if not rule:
        raise NotFoundError("No tax rate found for this region")

    if rule.threshold is not None and subtotal < rule.threshold:
        tax_amount = 0.0
    else:
        tax_amount = _exemption_tax(rule, subtotal, customer_type)
        if tax_amount is None:
            if rule.tax_type == "flat":
                tax_amount = float(rule.rate)
            else:
                tax_amount = subtotal * rule.rate / 100
    return {
        "taxRate": rule.rate,
        "taxableAmount": subtotal,
        "taxAmount": tax_amount,
        "total": subtotal + tax_amount,
    }


def calculate_shipping(
    db: Session,
    method_id: int | str | None,
    weight: float | None,
    region: str | None,
) -> dict:
    if method_id is None or not region:
        raise ValidationError("methodId and region are required")
    try:
        method_pk = int(method_id)
    except (TypeError, ValueError):
        raise NotFoundError("Shipping method not available for this region")
    method = db.get(ShippingMethod, method_pk)
    # Inactive, unknown and wrong-region methods are indistinguishable to the caller
    if not method or not method.is_active or region not in (method.regions or []):
        raise NotFoundError("Shipping method not available for this region")
    if weight is None or weight < 0:
        raise ValidationError("Invalid weight")
    cost = method.base_rate + weight * method.rate_per_kg
    return {
        "cost": cost,
        "estimatedDays": method.estimated_days,
        "method": {
            "id": method.id,
            "name": method.name,
            "carrier": method.carrier,
        },
    }


def compute_discount(coupon: Coupon, cart_total: float) -> tuple[float, float]:
    """(discount, final_total). Capped by max_discount, then by the cart total itself."""
    if coupon.discount_type == "percentage":
        discount = cart_total * coupon.value / 100
    else:
        discount = float(coupon.value)
    if coupon.max_discount is not None and discount > coupon.max_discount:
        discount = float(coupon.max_discount)
    if discount > cart_total:
        discount = cart_total
    discount = max(discount, 0.0)
    return discount, cart_total - discount


def discount_breakdown(coupon: Coupon, cart_total: float) -> dict:
    discount, final_total = compute_discount(coupon, cart_total)
    return {
        "code": coupon.code,
        "type": coupon.discount_type,
        "value": coupon.value,
        "discountAmount": discount,
        "finalTotal": final_total,
    }
