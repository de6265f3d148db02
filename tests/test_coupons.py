"""Coupons: validation, discount caps, usage counting under contention, admin CRUD."""
import threading
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from app.core.database import make_engine
from app.core.errors import ValidationError
from app.models import Coupon
from app.services.coupon import apply_coupon, validate_coupon


def _coupon(db, **kw) -> Coupon:
    fields = {"code": "FLASH50", "discount_type": "percentage", "value": 50, "min_purchase": 200}
    fields.update(kw)
    coupon = Coupon(**fields)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


def test_validate_percentage(client: TestClient, user_headers, db):
    _coupon(db)
    r = client.post("/coupons/validate", json={"code": "flash50", "cartTotal": 300}, headers=user_headers)
    assert r.status_code == 200
    j = r.json()
    assert j["valid"] is True
    assert j["coupon"]["code"] == "FLASH50"
    assert j["coupon"]["discountAmount"] == pytest.approx(150)
    assert j["coupon"]["finalTotal"] == pytest.approx(150)


def test_validate_below_min_purchase(client: TestClient, user_headers, db):
    _coupon(db)
    r = client.post("/coupons/validate", json={"code": "FLASH50", "cartTotal": 100}, headers=user_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Minimum purchase amount of 200 required"


def test_validate_errors(client: TestClient, user_headers, db):
    _coupon(db, max_usage=1, used_count=1)
    r = client.post("/coupons/validate", json={"code": "NOPE", "cartTotal": 100}, headers=user_headers)
    assert r.status_code == 404
    r = client.post("/coupons/validate", json={"code": "FLASH50", "cartTotal": 0}, headers=user_headers)
    assert r.status_code == 400
    r = client.post("/coupons/validate", json={"cartTotal": 10}, headers=user_headers)
    assert r.status_code == 400
    r = client.post("/coupons/validate", json={"code": "FLASH50", "cartTotal": 300}, headers=user_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Coupon has reached maximum usage limit"


def test_discount_caps(db):
    _coupon(db, code="BIG", max_discount=40, min_purchase=0)
    _coupon(db, code="TENOFF", discount_type="fixed", value=10, min_purchase=0)
    assert validate_coupon(db, "BIG", 300)["coupon"]["discountAmount"] == 40
    fixed = validate_coupon(db, "TENOFF", 6)["coupon"]
    assert fixed["discountAmount"] == 6
    assert fixed["finalTotal"] == 0


def test_apply_counts_use(client: TestClient, user_headers, db):
    coupon = _coupon(db, max_usage=2)
    r = client.post(f"/coupons/{coupon.id}/apply", json={"cartTotal": 300}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["success"] is True
    db.refresh(coupon)
    assert coupon.used_count == 1


def test_apply_stops_at_cap(db):
    coupon = _coupon(db, max_usage=1)
    apply_coupon(db, coupon.id, 300)
    with pytest.raises(ValidationError, match="maximum usage"):
        apply_coupon(db, coupon.id, 300)
    db.refresh(coupon)
    assert coupon.used_count == 1


def test_apply_validity_window(db):
    now = datetime.now(timezone.utc)
    future = _coupon(db, code="SOON", valid_from=now + timedelta(days=1))
    past = _coupon(db, code="OLD", valid_from=now - timedelta(days=10), valid_until=now - timedelta(days=1))
    off = _coupon(db, code="OFF", is_active=False)
    with pytest.raises(ValidationError, match="not yet valid"):
        apply_coupon(db, future.id, 300)
    with pytest.raises(ValidationError, match="expired"):
        apply_coupon(db, past.id, 300)
    with pytest.raises(ValidationError, match="not active"):
        apply_coupon(db, off.id, 300)
    # valid_until is inclusive
    edge = _coupon(db, code="EDGE", valid_from=now - timedelta(days=1), valid_until=now)
    assert apply_coupon(db, edge.id, 300, now=now)["success"] is True


def test_concurrent_apply_admits_one(tmp_path):
    """Several sessions race for the last free use; exactly one wins."""
    engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}")
    SQLModel.metadata.create_all(engine)
    with Session(engine) as s:
        coupon = _coupon(s, max_usage=5, used_count=4)
        coupon_id = coupon.id

    barrier = threading.Barrier(6)
    results: list[str] = []
    lock = threading.Lock()

    def worker():
        with Session(engine) as s:
            barrier.wait()
            try:
                apply_coupon(s, coupon_id, 300)
                outcome = "ok"
            except ValidationError:
                outcome = "rejected"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("rejected") == 5
    with Session(engine) as s:
        assert s.get(Coupon, coupon_id).used_count == 5
    engine.dispose()


def test_admin_crud(client: TestClient, admin_headers):
    r = client.post(
        "/coupons",
        json={"code": " summer10 ", "type": "percentage", "value": 10, "maxUses": 100, "maxDiscount": 25},
        headers=admin_headers,
    )
    assert r.status_code == 201
    created = r.json()
    assert created["code"] == "SUMMER10"
    assert created["used_count"] == 0

    dup = client.post("/coupons", json={"code": "SUMMER10", "type": "fixed", "value": 5}, headers=admin_headers)
    assert dup.status_code == 409

    r = client.put(f"/coupons/{created['id']}", json={"value": 15}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["value"] == 15
    assert r.json()["max_discount"] == 25

    listed = client.get("/coupons", headers=admin_headers).json()
    assert [c["code"] for c in listed] == ["SUMMER10"]
    assert client.delete(f"/coupons/{created['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/coupons/{created['id']}", headers=admin_headers).status_code == 404


@pytest.mark.parametrize(
    "body",
    [
        {"code": "X1", "type": "bogus", "value": 5},
        {"code": "X2", "type": "percentage", "value": 120},
        {"code": "X3", "type": "fixed", "value": 0},
        {"code": "X4", "type": "fixed", "value": 5, "startDate": "2030-01-02T00:00:00", "endDate": "2030-01-01T00:00:00"},
        {"code": "X5", "type": "fixed", "value": 5, "minPurchase": -1},
        {"type": "fixed", "value": 5},
    ],
)
def test_create_validation(client: TestClient, admin_headers, body):
    r = client.post("/coupons", json=body, headers=admin_headers)
    assert r.status_code == 400


def test_max_uses_validation(client: TestClient, admin_headers, db):
    r = client.post("/coupons", json={"code": "NEG", "type": "fixed", "value": 5, "maxUses": -3}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Maximum usage cannot be negative"

    coupon = _coupon(db, code="BUSY", max_usage=10, used_count=4)
    r = client.put(f"/coupons/{coupon.id}", json={"maxUses": 1}, headers=admin_headers)
    assert r.status_code == 400
    assert "(4)" in r.json()["message"]
    r = client.put(f"/coupons/{coupon.id}", json={"maxUses": 4}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["max_usage"] == 4
    r = client.put(f"/coupons/{coupon.id}", json={"maxUses": None}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["max_usage"] is None


def test_non_finite_cart_total_rejected(client: TestClient, user_headers, admin_headers, db):
    _coupon(db)
    raw = b'{"code": "FLASH50", "cartTotal": Infinity}'
    headers = {**user_headers, "Content-Type": "application/json"}
    r = client.post("/coupons/validate", content=raw, headers=headers)
    assert r.status_code == 422
    raw = b'{"code": "NAN1", "type": "fixed", "value": NaN}'
    r = client.post("/coupons", content=raw, headers={**admin_headers, "Content-Type": "application/json"})
    assert r.status_code == 422


def test_timestamps_are_utc_aware():
    coupon = Coupon(code="TZ")
    assert coupon.valid_from.tzinfo is not None
    assert coupon.created_at.tzinfo is not None


@pytest.mark.parametrize(
    "start, end",
    [
        ("2020-01-01T00:00:00", "2099-01-01T00:00:00"),
        ("2020-01-01T00:00:00+00:00", "2099-01-01T00:00:00+00:00"),
        ("2020-01-01T00:00:00", "2099-01-01T00:00:00+03:00"),
    ],
)
def test_apply_coupon_with_api_dates(client: TestClient, admin_headers, user_headers, start, end):
    r = client.post(
        "/coupons",
        json={"code": "WINDOW", "type": "fixed", "value": 5, "startDate": start, "endDate": end},
        headers=admin_headers,
    )
    assert r.status_code == 201
    r = client.post(f"/coupons/{r.json()['id']}/apply", json={"cartTotal": 50}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["coupon"]["discountAmount"] == 5
