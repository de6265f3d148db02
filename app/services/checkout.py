"""Checkout: cart lines -> priced, unpaid Order."""
import logging

from sqlmodel import Session, select

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models import Order, OrderItem, Product, User
from app.schemas.order import CheckoutRequest
from app.services.coupon import apply_coupon, get_coupon_by_code, validate_coupon
from app.services.pricing import calculate_shipping, calculate_tax, round_money

logger = logging.getLogger(__name__)


def create_order(db: Session, user: User, body: CheckoutRequest) -> Order:
    """
    items -> (coupon discount) -> tax on the discounted subtotal -> shipping by weight.
    The coupon use is counted only after every other price component succeeded.
    """
    lines: list[tuple[Product, int]] = []
    for line in body.items:
        product = db.get(Product, line.product_id)
        if not product or not product.is_active:
            raise NotFoundError(f"Product {line.product_id} not found")
        if product.count_in_stock < line.quantity:
            raise ValidationError(f"Not enough stock for {product.name}")
        lines.append((product, line.quantity))

    items_price = round_money(sum(p.price * qty for p, qty in lines))
    weight = sum(p.weight_kg * qty for p, qty in lines)

    coupon = None
    discount = 0.0
    if body.coupon_code:
        preview = validate_coupon(db, body.coupon_code, items_price)
        discount = round_money(preview["coupon"]["discountAmount"])
        coupon = get_coupon_by_code(db, body.coupon_code)

    taxable = round_money(items_price - discount)
    tax = calculate_tax(db, body.region, taxable)
    shipping = calculate_shipping(db, body.shipping_method_id, weight, body.region)
    tax_price = round_money(tax["taxAmount"])
    shipping_price = round_money(shipping["cost"])

    if coupon is not None:
        applied = apply_coupon(db, coupon.id, items_price)
        discount = round_money(applied["coupon"]["discountAmount"])
        taxable = round_money(items_price - discount)
        tax_price = round_money(calculate_tax(db, body.region, taxable)["taxAmount"])

    address = body.shipping_address
    order = Order(
        user_id=user.id,
        address=address.address,
        city=address.city,
        postal_code=address.postal_code,
        country=address.country,
        region=body.region,
        shipping_method_id=body.shipping_method_id,
        coupon_code=coupon.code if coupon else None,
        items_price=items_price,
        discount_price=discount,
        tax_price=tax_price,
        shipping_price=shipping_price,
        total_price=round_money(items_price - discount + tax_price + shipping_price),
    )
    db.add(order)
    db.flush()
    for product, qty in lines:
        db.add(
            OrderItem(
                order_id=order.id,
                product_id=product.id,
                name=product.name,
                quantity=qty,
                unit_price=product.price,
            )
        )
        product.count_in_stock -= qty
        db.add(product)
    db.commit()
    db.refresh(order)
    logger.info("Order %s created: user=%s total=%s coupon=%s", order.id, user.id, order.total_price, order.coupon_code)
    return order


def get_order_items(db: Session, order_id: int) -> list[OrderItem]:
    return list(db.exec(select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)).all())


def get_order_for_user(db: Session, order_id: int, user: User) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.user_id != user.id and not user.is_admin:
        raise ForbiddenError("Not authorized to access this order")
    return order


def list_user_orders(db: Session, user: User) -> list[Order]:
    return list(db.exec(select(Order).where(Order.user_id == user.id).order_by(Order.id.desc())).all())


def order_to_dict(db: Session, order: Order) -> dict:
    payment_result = None
    if order.payment_tran_ref:
        payment_result = {
            "tran_ref": order.payment_tran_ref,
            "status": order.payment_status,
            "amount": order.payment_amount,
        }
    return {
        "id": order.id,
        "user_id": order.user_id,
        "items": [
            {"product_id": i.product_id, "name": i.name, "quantity": i.quantity, "unit_price": i.unit_price}
            for i in get_order_items(db, order.id)
        ],
        "region": order.region,
        "shipping_method_id": order.shipping_method_id,
        "coupon_code": order.coupon_code,
        "items_price": order.items_price,
        "discount_price": order.discount_price,
        "tax_price": order.tax_price,
        "shipping_price": order.shipping_price,
        "total_price": order.total_price,
        "is_paid": order.is_paid,
        "paid_at": order.paid_at,
        "payment_result": payment_result,
        "refunded_amount": order.refunded_amount,
        "is_refunded": order.is_refunded,
        "created_at": order.created_at,
    }
