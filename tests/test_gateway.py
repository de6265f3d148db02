"""PayTabs client: status mapping, response shapes, HMAC, HTTP error handling."""
import io
import json
from urllib.error import HTTPError, URLError

import pytest

from app.core.errors import GatewayError
from app.services import gateway as gateway_module
from app.services.gateway import PaymentOutcome, PayTabsGateway, outcome_from_status, response_from_payload

from tests.conftest import sign


@pytest.mark.parametrize(
    "status, outcome",
    [
        ("A", PaymentOutcome.APPROVED),
        ("a", PaymentOutcome.APPROVED),
        ("D", PaymentOutcome.DECLINED),
        ("E", PaymentOutcome.DECLINED),
        ("V", PaymentOutcome.DECLINED),
        ("X", PaymentOutcome.DECLINED),
        ("H", PaymentOutcome.PENDING),
        ("P", PaymentOutcome.PENDING),
        ("Q", PaymentOutcome.UNKNOWN),
        ("", PaymentOutcome.UNKNOWN),
        (None, PaymentOutcome.UNKNOWN),
    ],
)
def test_outcome_from_status(status, outcome):
    assert outcome_from_status(status) is outcome


def test_response_shapes():
    nested = response_from_payload({
        "tran_ref": "TST1",
        "cart_id": 7,
        "cart_amount": 99.99,
        "payment_result": {"response_status": "A", "response_message": "Authorised"},
    })
    assert nested.approved
    assert nested.cart_id == "7"
    assert nested.amount == "99.99"
    assert nested.message == "Authorised"

    flat = response_from_payload({"data": {"tran_ref": "TST2", "response_status": "D"}})
    assert flat.outcome is PaymentOutcome.DECLINED
    assert flat.transaction_ref == "TST2"
    assert flat.amount is None

    assert response_from_payload(["not", "a", "dict"]).outcome is PaymentOutcome.UNKNOWN


def test_verify_signature():
    gw = PayTabsGateway(profile_id="1", server_key="test-server-key", base_url="https://paytabs.test")
    body = b'{"tran_ref": "TST1"}'
    assert gw.verify_signature(body, sign(body))
    assert gw.verify_signature(body, sign(body).upper())
    assert not gw.verify_signature(body + b" ", sign(body))
    assert not gw.verify_signature(body, None)
    assert not PayTabsGateway("1", "", "https://paytabs.test").verify_signature(body, sign(body))


class _Resp(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def test_create_payment_page_request(monkeypatch):
    seen = {}

    def fake_urlopen(req, timeout):
        seen["url"] = req.full_url
        seen["headers"] = dict(req.header_items())
        seen["body"] = json.loads(req.data)
        return _Resp(json.dumps({"tran_ref": "TST9", "redirect_url": "https://paytabs.test/pay/TST9"}).encode())

    monkeypatch.setattr(gateway_module, "urlopen", fake_urlopen)
    gw = PayTabsGateway(profile_id="42", server_key="sk", base_url="https://paytabs.test/")
    res = gw.create_payment_page(
        cart_id="5",
        amount="99.99",
        description="Payment for order 5",
        customer={"name": "A", "email": "a@example.com"},
        return_url="https://shop.test/return",
        callback_url="https://api.test/payments/webhook",
        idempotency_key="key-1",
    )
    assert res.transaction_ref == "TST9"
    assert res.redirect_url == "https://paytabs.test/pay/TST9"
    assert res.outcome is PaymentOutcome.PENDING
    assert seen["url"] == "https://paytabs.test/payment/request"
    assert seen["headers"]["Authorization"] == "sk"
    assert seen["headers"]["Idempotency-key"] == "key-1"
    assert seen["body"]["cart_amount"] == "99.99"
    assert seen["body"]["profile_id"] == "42"


def test_create_payment_page_without_redirect(monkeypatch):
    monkeypatch.setattr(gateway_module, "urlopen", lambda req, timeout: _Resp(b'{"message": "Invalid profile"}'))
    gw = PayTabsGateway(profile_id="42", server_key="sk", base_url="https://paytabs.test")
    with pytest.raises(GatewayError, match="Invalid profile"):
        gw.create_payment_page(
            cart_id="5", amount="1.00", description="d", customer={}, return_url="r", callback_url="c", idempotency_key="k"
        )


def test_http_and_network_errors(monkeypatch):
    gw = PayTabsGateway(profile_id="42", server_key="sk", base_url="https://paytabs.test")

    def rejected(req, timeout):
        raise HTTPError(req.full_url, 401, "Unauthorized", {}, io.BytesIO(b'{"message": "Authentication failed"}'))

    monkeypatch.setattr(gateway_module, "urlopen", rejected)
    with pytest.raises(GatewayError, match="Authentication failed"):
        gw.verify_payment(tran_ref="TST1", cart_id="1")

    def offline(req, timeout):
        raise URLError("Name or service not known")

    monkeypatch.setattr(gateway_module, "urlopen", offline)
    with pytest.raises(GatewayError, match="connection error"):
        gw.refund_payment(tran_ref="TST1", cart_id="1", amount="5.00", reason="")
