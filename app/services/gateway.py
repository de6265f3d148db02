"""
PayTabs hosted payment page client.

Raw gateway status codes ("A", "D", ...) are mapped to PaymentOutcome here and nowhere
else; the rest of the app only ever sees PaymentOutcome.
"""
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request as UrlRequest
from urllib.request import urlopen

from app.core.config import settings
from app.core.errors import GatewayError

logger = logging.getLogger(__name__)


class PaymentOutcome(str, Enum):
    APPROVED = "approved"
    DECLINED = "declined"
    PENDING = "pending"
    UNKNOWN = "unknown"


# PayTabs response_status codes
_STATUS_MAP = {
    "A": PaymentOutcome.APPROVED,
    "D": PaymentOutcome.DECLINED,
    "E": PaymentOutcome.DECLINED,  # error
    "V": PaymentOutcome.DECLINED,  # voided
    "X": PaymentOutcome.DECLINED,  # expired
    "H": PaymentOutcome.PENDING,   # on hold
    "P": PaymentOutcome.PENDING,
}


def outcome_from_status(status) -> PaymentOutcome:
    if not isinstance(status, str):
        return PaymentOutcome.UNKNOWN
    return _STATUS_MAP.get(status.strip().upper(), PaymentOutcome.UNKNOWN)


@dataclass(frozen=True)
class GatewayResponse:
    outcome: PaymentOutcome
    transaction_ref: str | None = None
    cart_id: str | None = None
    amount: str | None = None  # as sent by the gateway, unformatted
    redirect_url: str | None = None
    message: str | None = None
    raw: dict = field(default_factory=dict)

    @property
    def approved(self) -> bool:
        return self.outcome is PaymentOutcome.APPROVED


def response_from_payload(data) -> GatewayResponse:
    """
    Query responses and callbacks carry the status either at the top level or
    under payment_result; both shapes are accepted.
    """
    if not isinstance(data, dict):
        return GatewayResponse(outcome=PaymentOutcome.UNKNOWN)
    if isinstance(data.get("data"), dict):
        data = data["data"]
    result = data.get("payment_result") if isinstance(data.get("payment_result"), dict) else {}
    status = result.get("response_status", data.get("response_status"))
    amount = data.get("cart_amount", result.get("cart_amount"))
    return GatewayResponse(
        outcome=outcome_from_status(status),
        transaction_ref=data.get("tran_ref"),
        cart_id=str(data["cart_id"]) if data.get("cart_id") is not None else None,
        amount=str(amount) if amount not in (None, "") else None,
        message=result.get("response_message") or data.get("message"),
        raw=data,
    )


class PaymentGateway(Protocol):
    def create_payment_page(
        self,
        *,
        cart_id: str,
        amount: str,
        description: str,
        customer: dict,
        return_url: str,
        callback_url: str,
        idempotency_key: str,
    ) -> GatewayResponse: ...

    def verify_payment(self, *, tran_ref: str, cart_id: str) -> GatewayResponse: ...

    def refund_payment(self, *, tran_ref: str, cart_id: str, amount: str, reason: str) -> GatewayResponse: ...

    def parse_callback(self, payload: dict) -> GatewayResponse: ...

    def verify_signature(self, raw_body: bytes, signature: str | None) -> bool: ...


class PayTabsGateway:
    def __init__(
        self,
        profile_id: str,
        server_key: str,
        base_url: str,
        currency: str = "USD",
        timeout: float = 20.0,
    ):
        self.profile_id = profile_id
        self.server_key = server_key
        self.base_url = base_url.rstrip("/")
        self.currency = currency
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "PayTabsGateway":
        return cls(
            profile_id=settings.paytabs_profile_id,
            server_key=settings.paytabs_server_key,
            base_url=settings.paytabs_base_url,
            currency=settings.paytabs_currency,
            timeout=settings.paytabs_timeout_seconds,
        )

    def _post(self, path: str, payload: dict, headers: dict | None = None) -> dict:
        req = UrlRequest(
            f"{self.base_url}{path}",
            data=json.dumps(payload).encode(),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Authorization": self.server_key,
                **(headers or {}),
            },
        )
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode())
        except HTTPError as e:
            try:
                message = json.loads(e.read().decode()).get("message") or str(e)
            except (ValueError, AttributeError):
                message = str(e)
            logger.warning("PayTabs %s rejected: status=%s message=%s", path, e.code, message)
            raise GatewayError(message[:200])
        except (URLError, OSError, ValueError) as e:
            logger.exception("PayTabs %s connection error", path)
            raise GatewayError(f"PayTabs connection error: {str(e)[:80]}")

    def create_payment_page(
        self,
        *,
        cart_id: str,
        amount: str,
        description: str,
        customer: dict,
        return_url: str,
        callback_url: str,
        idempotency_key: str,
    ) -> GatewayResponse:
        payload = {
            "profile_id": self.profile_id,
            "tran_type": "sale",
            "tran_class": "ecom",
            "cart_id": cart_id,
            "cart_currency": self.currency,
            "cart_amount": amount,
            "cart_description": description,
            "paypage_lang": "en",
            "customer_details": customer,
            "shipping_details": customer,
            "return": return_url,
            "callback": callback_url,
            "hide_shipping": True,
            "framed": False,
            "user_defined": {"udf1": idempotency_key},
        }
        data = self._post("/payment/request", payload, headers={"Idempotency-Key": idempotency_key})
        tran_ref = data.get("tran_ref")
        redirect_url = data.get("redirect_url") or data.get("payment_url")
        if not tran_ref or not redirect_url:
            raise GatewayError(data.get("message") or "No payment page returned")
        return GatewayResponse(
            outcome=PaymentOutcome.PENDING,
            transaction_ref=tran_ref,
            cart_id=cart_id,
            amount=amount,
            redirect_url=redirect_url,
            raw=data,
        )

    def verify_payment(self, *, tran_ref: str, cart_id: str) -> GatewayResponse:
        data = self._post("/payment/query", {"profile_id": self.profile_id, "tran_ref": tran_ref})
        return response_from_payload(data)

    def refund_payment(self, *, tran_ref: str, cart_id: str, amount: str, reason: str) -> GatewayResponse:
        payload = {
            "profile_id": self.profile_id,
            "tran_type": "refund",
            "tran_class": "ecom",
            "tran_ref": tran_ref,
            "cart_id": cart_id,
            "cart_currency": self.currency,
            "cart_amount": amount,
            "cart_description": reason or f"Refund for order {cart_id}",
        }
        return response_from_payload(self._post("/payment/request", payload))

    def parse_callback(self, payload: dict) -> GatewayResponse:
        return response_from_payload(payload)

    def verify_signature(self, raw_body: bytes, signature: str | None) -> bool:
        """HMAC-SHA256 (hex) of the raw callback body with the server key."""
        if not signature or not self.server_key:
            return False
        expected = hmac.new(self.server_key.encode(), raw_body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature.strip().lower())


def get_gateway() -> PaymentGateway:
    """FastAPI dependency; tests override it with a scripted gateway."""
    return PayTabsGateway.from_settings()
