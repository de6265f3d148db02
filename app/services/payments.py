"""
Order payment reconciliation: opens gateway sessions, finalizes orders from gateway
verification or webhooks, refunds.

An order moves Unpaid -> Paid once. The move is a conditional UPDATE on is_paid = false
plus a PaymentEvent row with a unique transaction_ref, committed together; whoever
loses that race (webhook vs. client verify) sees the stored result and does not
write again.
"""
import json
import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.config import settings
from app.core.errors import (
    ConflictError,
    ForbiddenError,
    GatewayError,
    NotFoundError,
    ValidationError,
    VerificationFailedError,
)
from app.models import Order, PaymentAttempt, PaymentEvent, User
from app.services.gateway import GatewayResponse, PaymentGateway
from app.services.pricing import amounts_match, format_amount, round_money

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "Payment already processed"


def _parse_order_id(order_id, malformed: type[Exception] = ValidationError) -> int:
    try:
        value = int(str(order_id).strip())
    except (TypeError, ValueError):
        value = 0
    if value <= 0:
        if malformed is NotFoundError:
            raise NotFoundError("Order not found")
        raise ValidationError("Invalid order ID format", code="INVALID_ID_FORMAT")
    return value


def _load_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def _ensure_owner(order: Order, user: User, message: str) -> None:
    if order.user_id != user.id:
        raise ForbiddenError(message)


def _amount_matches(response: GatewayResponse, order: Order) -> bool:
    """No amount in the response -> nothing to compare. Unparseable amount -> mismatch."""
    if response.amount is None:
        return True
    try:
        return amounts_match(response.amount, order.total_price)
    except ValidationError:
        return False


def _paid_with_other_transaction(order: Order, tran_ref: str) -> dict:
    """An approved tran_ref arrived for an order already paid by a different one."""
    if settings.paid_order_conflict_policy == "ignore":
        logger.warning(
            "Ignoring approved tran_ref=%s for order=%s already paid by tran_ref=%s",
            tran_ref,
            order.id,
            order.payment_tran_ref,
        )
        return {"success": True, "message": ALREADY_PROCESSED}
    logger.warning(
        "Rejecting approved tran_ref=%s for order=%s already paid by tran_ref=%s",
        tran_ref,
        order.id,
        order.payment_tran_ref,
    )
    raise ConflictError("Order already paid with a different transaction", code="ALREADY_PAID_OTHER_TRANSACTION")


def _mark_paid(db: Session, order: Order, tran_ref: str, response: GatewayResponse, source: str) -> bool:
    """
    Compare-and-set Unpaid -> Paid. True if this call made the transition,
    False if the order was already paid by the same transaction.
    """
    amount = format_amount(response.amount) if response.amount is not None else format_amount(order.total_price)
    stmt = (
        update(Order)
        .where(Order.id == order.id)
        .where(Order.is_paid == False)  # noqa: E712
        .values(
            is_paid=True,
            paid_at=datetime.now(timezone.utc),
            payment_tran_ref=tran_ref,
            payment_status=response.outcome.value,
            payment_amount=amount,
            payment_details={"source": source, "gateway": response.raw},
        )
    )
    result = db.exec(stmt)
    if result.rowcount == 1:
        db.add(
            PaymentEvent(
                transaction_ref=tran_ref,
                order_id=order.id,
                source=source,
                outcome=response.outcome.value,
                amount=amount,
            )
        )
        try:
            db.commit()
        except IntegrityError:
            # tran_ref already finalized elsewhere; the order update rolls back with it
            db.rollback()
            db.refresh(order)
            if order.is_paid and order.payment_tran_ref == tran_ref:
                return False
            logger.warning("tran_ref=%s already used to pay another order (order=%s)", tran_ref, order.id)
            raise ConflictError("Transaction already used for another order", code="TRANSACTION_REUSED")
        db.refresh(order)
        logger.info("Order %s paid: tran_ref=%s amount=%s source=%s", order.id, tran_ref, amount, source)
        return True

    db.rollback()
    db.refresh(order)
    if order.payment_tran_ref == tran_ref:
        return False
    _paid_with_other_transaction(order, tran_ref)
    return False


def create_payment(
    db: Session,
    gateway: PaymentGateway,
    order_id,
    return_url: str | None,
    user: User,
) -> dict:
    if not order_id or not return_url:
        raise ValidationError("Order ID and return URL are required")
    order = _load_order(db, _parse_order_id(order_id, malformed=NotFoundError))
    _ensure_owner(order, user, "Not authorized to access this order")
    if order.is_paid:
        raise ConflictError("Order is already paid", status_code=400, code="ALREADY_PAID")

    idempotency_key = secrets.token_hex(16)
    amount = format_amount(order.total_price)
    customer = {
        "name": user.full_name or user.email,
        "email": user.email,
        "street1": order.address,
        "city": order.city,
        "country": order.country,
        "zip": order.postal_code,
    }
    try:
        session = gateway.create_payment_page(
            cart_id=str(order.id),
            amount=amount,
            description=f"Payment for order {order.id}",
            customer=customer,
            return_url=return_url,
            callback_url=f"{settings.backend_url.rstrip('/')}/payments/webhook",
            idempotency_key=idempotency_key,
        )
    except GatewayError as e:
        raise GatewayError(f"Error creating payment: {e.message}")
    except Exception as e:
        logger.exception("Payment session failed: order=%s", order.id)
        raise GatewayError(f"Error creating payment: {str(e)[:120]}")

    db.add(
        PaymentAttempt(
            order_id=order.id,
            transaction_ref=session.transaction_ref,
            amount=amount,
            idempotency_key=idempotency_key,
        )
    )
    db.commit()
    logger.info("Payment session opened: order=%s tran_ref=%s amount=%s", order.id, session.transaction_ref, amount)
    return {"success": True, "payment_url": session.redirect_url, "tran_ref": session.transaction_ref}


def verify_payment(db: Session, gateway: PaymentGateway, tran_ref: str | None, order_id) -> dict:
    """Client-initiated verification after the gateway redirect."""
    if not tran_ref or not order_id:
        raise ValidationError("tran_ref and orderId are required")
    order = _load_order(db, _parse_order_id(order_id))

    if order.is_paid:
        if order.payment_tran_ref == tran_ref:
            return {"success": True, "message": ALREADY_PROCESSED}
        # Different ref: only an approved one matters, so ask the gateway first

    try:
        response = gateway.verify_payment(tran_ref=tran_ref, cart_id=str(order.id))
    except Exception:
        logger.exception("Gateway verify failed: order=%s tran_ref=%s", order.id, tran_ref)
        raise VerificationFailedError("Payment verification failed")

    if not response.approved:
        logger.warning("Payment not approved: order=%s tran_ref=%s outcome=%s", order.id, tran_ref, response.outcome.value)
        raise VerificationFailedError("Payment verification failed")
    if response.transaction_ref and response.transaction_ref != tran_ref:
        logger.warning("Gateway returned tran_ref=%s for requested %s", response.transaction_ref, tran_ref)
        raise VerificationFailedError("Payment verification failed")
    if not _amount_matches(response, order):
        logger.warning("Amount mismatch: order=%s expected=%s got=%s", order.id, order.total_price, response.amount)
        raise VerificationFailedError("Payment amount mismatch", code="AMOUNT_MISMATCH")

    if order.is_paid:
        return _paid_with_other_transaction(order, tran_ref)
    _mark_paid(db, order, tran_ref, response, source="verify")
    return {"success": True}


def handle_webhook(db: Session, gateway: PaymentGateway, raw_body: bytes, signature: str | None) -> dict:
    """Gateway callback (server to server). The order is resolved only by the cart_id in the payload."""
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        raise ValidationError("Invalid webhook payload")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid webhook payload")

    tran_ref = payload.get("tran_ref")
    if not tran_ref:
        raise ValidationError("Transaction reference is required")
    if settings.paytabs_verify_webhook_signature and not gateway.verify_signature(raw_body, signature):
        logger.warning("Webhook signature mismatch: tran_ref=%s", tran_ref)
        raise ValidationError("Invalid signature", code="INVALID_SIGNATURE")

    response = gateway.parse_callback(payload)
    if not response.cart_id:
        raise ValidationError("cart_id is required")
    order = _load_order(db, _parse_order_id(response.cart_id))

    if order.payment_tran_ref == tran_ref:
        return {"message": ALREADY_PROCESSED}
    if not _amount_matches(response, order):
        logger.warning("Webhook amount mismatch: order=%s expected=%s got=%s", order.id, order.total_price, response.amount)
        raise VerificationFailedError("Payment amount mismatch", code="AMOUNT_MISMATCH")
    if not response.approved:
        logger.warning("Webhook not approved: order=%s tran_ref=%s outcome=%s", order.id, tran_ref, response.outcome.value)
        raise VerificationFailedError("Payment verification failed")

    if order.is_paid:
        return _paid_with_other_transaction(order, tran_ref)
    if not _mark_paid(db, order, tran_ref, response, source="webhook"):
        return {"message": ALREADY_PROCESSED}
    return {"received": True}


def refund_payment(
    db: Session,
    gateway: PaymentGateway,
    order_id,
    refund_amount: float | None,
    reason: str | None,
    user: User,
) -> dict:
    if not order_id or refund_amount is None:
        raise ValidationError("orderId and refundAmount are required")
    order = _load_order(db, _parse_order_id(order_id))
    if not order.is_paid:
        raise ConflictError("Order is not paid", status_code=400, code="NOT_PAID")
    _ensure_owner(order, user, "Not authorized to refund this order")
    if order.is_refunded:
        raise ConflictError("Order is already refunded", status_code=400, code="ALREADY_REFUNDED")
    refundable = round_money(order.total_price - (order.refunded_amount or 0))
    if refund_amount <= 0 or round_money(refund_amount) > refundable:
        raise ValidationError(f"Refund amount must be greater than 0 and at most {format_amount(refundable)}")

    try:
        response = gateway.refund_payment(
            tran_ref=order.payment_tran_ref or "",
            cart_id=str(order.id),
            amount=format_amount(refund_amount),
            reason=reason or "",
        )
    except Exception:
        logger.exception("Gateway refund failed: order=%s tran_ref=%s", order.id, order.payment_tran_ref)
        raise GatewayError("Error processing refund", code="REFUND_ERROR")

    if not response.approved:
        logger.warning("Refund declined: order=%s outcome=%s", order.id, response.outcome.value)
        raise VerificationFailedError("Refund failed", code="REFUND_FAILED")
    order.refunded_amount = round_money((order.refunded_amount or 0) + refund_amount)
    order.is_refunded = order.refunded_amount >= round_money(order.total_price)
    order.refunded_at = datetime.now(timezone.utc)
    db.add(order)
    db.commit()
    logger.info(
        "Order %s refunded: amount=%s total_refunded=%s reason=%s",
        order.id,
        format_amount(refund_amount),
        format_amount(order.refunded_amount),
        reason,
    )
    return {
        "success": True,
        "refunded_amount": order.refunded_amount,
        "fully_refunded": order.is_refunded,
    }


def get_payment_status(db: Session, gateway: PaymentGateway, order_id, user: User) -> dict:
    order = _load_order(db, _parse_order_id(order_id))
    _ensure_owner(order, user, "Not authorized")
    tran_ref = order.payment_tran_ref
    if not tran_ref:
        attempt = db.exec(
            select(PaymentAttempt)
            .where(PaymentAttempt.order_id == order.id)
            .order_by(PaymentAttempt.id.desc())
        ).first()
        tran_ref = attempt.transaction_ref if attempt else None
    if not tran_ref:
        raise ValidationError("No payment has been started for this order")
    try:
        response = gateway.verify_payment(tran_ref=tran_ref, cart_id=str(order.id))
    except Exception as e:
        logger.exception("Gateway status query failed: order=%s", order.id)
        raise GatewayError(f"Error verifying payment: {getattr(e, 'message', None) or str(e)[:120]}")
    return {
        "success": True,
        "payment_status": response.outcome.value,
        "transaction_details": response.raw,
    }
