from fastapi import APIRouter, Depends, Header, Request
from sqlmodel import Session

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.database import get_db
from app.models import User
from app.schemas.payment import CreatePaymentRequest, RefundRequest, VerifyPaymentRequest
from app.services import payments
from app.services.gateway import PaymentGateway, get_gateway

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-payment")
def create_payment(
    body: CreatePaymentRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """Opens a PayTabs hosted payment page for the order; the client is redirected to payment_url."""
    return payments.create_payment(db, gateway, body.order_id, body.return_url, user)


@router.post("/verify-payment")
def verify_payment(
    body: VerifyPaymentRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """Called by the client after the gateway redirect with the tran_ref it received."""
    return payments.verify_payment(db, gateway, body.tran_ref, body.order_id)


async def _webhook(request: Request, signature: str | None, db: Session, gateway: PaymentGateway):
    raw_body = await request.body()
    return payments.handle_webhook(db, gateway, raw_body, signature)


@router.post("/webhook")
async def webhook(
    request: Request,
    signature: str | None = Header(None, alias="Signature"),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """PayTabs callback URL: payment result is POSTed here server to server."""
    return await _webhook(request, signature, db, gateway)


@router.post("/ipn")
async def ipn(
    request: Request,
    signature: str | None = Header(None, alias="Signature"),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """IPN (alias): same handling, can be configured in the PayTabs dashboard as well."""
    return await _webhook(request, signature, db, gateway)


@router.post("/refund")
def refund(
    body: RefundRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return payments.refund_payment(db, gateway, body.order_id, body.refund_amount, body.reason, user)


@router.get("/verify/{order_id}")
def payment_status(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return payments.get_payment_status(db, gateway, order_id, user)


@router.get("/config")
def payment_config():
    """Public, non-secret gateway settings for the frontend."""
    return {
        "profile_id": settings.paytabs_profile_id,
        "currency": settings.paytabs_currency,
        "region": settings.paytabs_region,
    }
