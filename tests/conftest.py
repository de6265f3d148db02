"""Pytest fixtures: test client, test DB (in-memory SQLite), scripted payment gateway."""
import hashlib
import hmac
import json
import os

import pytest
from fastapi.testclient import TestClient

# In-memory SQLite for tests (must be set before the app is imported)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PAYTABS_PROFILE_ID", "12345")
os.environ.setdefault("PAYTABS_SERVER_KEY", "test-server-key")
# High limits so the whole suite stays under them
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("RATE_LIMIT_REGISTER_PER_MINUTE", "1000")

from sqlmodel import Session, SQLModel

from app.core.database import engine
from app.core.errors import GatewayError
from app.core.security import create_access_token, hash_password
from app.main import app
from app.models import Order, Product, ShippingMethod, TaxRule, User
from app.services.gateway import GatewayResponse, PaymentOutcome, PayTabsGateway, get_gateway, response_from_payload

SERVER_KEY = "test-server-key"


class FakeGateway(PayTabsGateway):
    """PayTabs client with the HTTP calls replaced by scripted answers; callback parsing and HMAC are real."""

    def __init__(self):
        super().__init__(profile_id="12345", server_key=SERVER_KEY, base_url="https://paytabs.test")
        self.queries: dict[str, dict] = {}
        self.query_error: Exception | None = None
        self.refund_status = "A"
        self.refund_error: Exception | None = None
        self.create_error: Exception | None = None
        self.calls: list[tuple[str, dict]] = []
        self._seq = 0

    def script_query(self, tran_ref: str, status: str, amount: str, cart_id) -> None:
        self.queries[tran_ref] = {
            "tran_ref": tran_ref,
            "cart_id": str(cart_id),
            "cart_amount": amount,
            "payment_result": {"response_status": status, "response_message": "scripted"},
        }

    def create_payment_page(self, **kwargs) -> GatewayResponse:
        self.calls.append(("create", kwargs))
        if self.create_error:
            raise self.create_error
        self._seq += 1
        tran_ref = f"TST{self._seq:04d}"
        return GatewayResponse(
            outcome=PaymentOutcome.PENDING,
            transaction_ref=tran_ref,
            cart_id=kwargs["cart_id"],
            amount=kwargs["amount"],
            redirect_url=f"https://paytabs.test/payment/page/{tran_ref}",
        )

    def verify_payment(self, *, tran_ref: str, cart_id: str) -> GatewayResponse:
        self.calls.append(("verify", {"tran_ref": tran_ref, "cart_id": cart_id}))
        if self.query_error:
            raise self.query_error
        if tran_ref not in self.queries:
            raise GatewayError("Transaction not found")
        return response_from_payload(self.queries[tran_ref])

    def refund_payment(self, *, tran_ref: str, cart_id: str, amount: str, reason: str) -> GatewayResponse:
        self.calls.append(("refund", {"tran_ref": tran_ref, "cart_id": cart_id, "amount": amount}))
        if self.refund_error:
            raise self.refund_error
        return response_from_payload({
            "tran_ref": f"R-{tran_ref}",
            "cart_id": cart_id,
            "cart_amount": amount,
            "payment_result": {"response_status": self.refund_status},
        })

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)


def sign(body: bytes) -> str:
    return hmac.new(SERVER_KEY.encode(), body, hashlib.sha256).hexdigest()


def webhook_body(tran_ref: str, cart_id, amount: str, status: str = "A") -> bytes:
    return json.dumps({
        "tran_ref": tran_ref,
        "cart_id": str(cart_id),
        "cart_amount": amount,
        "payment_result": {"response_status": status, "response_message": "Authorised"},
    }).encode()


@pytest.fixture(autouse=True)
def _reset_db():
    """Fresh tables for every test."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture(scope="function")
def client(gateway):
    """TestClient with the PayTabs dependency replaced by the scripted gateway."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_gateway, None)


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


def create_user(email: str, is_admin: bool = False) -> int:
    with Session(engine) as s:
        user = User(email=email, hashed_password=hash_password("secret123"), full_name=email.split("@")[0], is_admin=is_admin)
        s.add(user)
        s.commit()
        s.refresh(user)
        return user.id


def headers_for(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def create_order(user_id: int, total: float = 99.99, is_paid: bool = False, tran_ref: str | None = None) -> int:
    """Unpaid order with a fixed total, bypassing checkout."""
    with Session(engine) as s:
        order = Order(
            user_id=user_id,
            address="1 Main St",
            city="Springfield",
            postal_code="12345",
            country="US",
            region="USA",
            items_price=total,
            total_price=total,
            is_paid=is_paid,
            payment_tran_ref=tran_ref,
        )
        s.add(order)
        s.commit()
        s.refresh(order)
        return order.id


def get_row(model, pk):
    with Session(engine) as s:
        return s.get(model, pk)


@pytest.fixture
def user_id():
    return create_user("buyer@example.com")


@pytest.fixture
def user_headers(user_id):
    return headers_for(user_id)


@pytest.fixture
def other_headers():
    return headers_for(create_user("other@example.com"))


@pytest.fixture
def admin_headers():
    return headers_for(create_user("admin@example.com", is_admin=True))


@pytest.fixture
def usa_pricing():
    """Region USA: default 10% tax above 100, one shipping method 5 + 2/kg."""
    with Session(engine) as s:
        s.add(TaxRule(name="US sales tax", region="USA", rate=10, tax_type="percentage", is_default=True, threshold=100))
        method = ShippingMethod(name="Ground", carrier="UPS", base_rate=5, rate_per_kg=2, estimated_days="3-5", regions=["USA"])
        s.add(method)
        s.add(Product(name="Keyboard", price=150, weight_kg=1, count_in_stock=10))
        s.add(Product(name="Mouse", price=25, weight_kg=0.5, count_in_stock=1))
        s.commit()
        s.refresh(method)
        return {"shipping_method_id": method.id}
