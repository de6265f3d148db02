from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.api.deps import require_admin
from app.core.database import get_db
from app.models import ShippingMethod
from app.schemas.pricing import ShippingCalculateRequest, ShippingMethodCreate, ShippingMethodUpdate
from app.services import shipping as shipping_service
from app.services.pricing import calculate_shipping

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.post("/calculate")
def calculate(body: ShippingCalculateRequest, db: Session = Depends(get_db)):
    return calculate_shipping(db, body.method_id, body.weight, body.region)


@router.get("", response_model=list[ShippingMethod])
def list_methods(region: str | None = None, db: Session = Depends(get_db)):
    return shipping_service.list_shipping_methods(db, region)


@router.post("", response_model=ShippingMethod, status_code=201)
def create_method(body: ShippingMethodCreate, _=Depends(require_admin), db: Session = Depends(get_db)):
    return shipping_service.create_shipping_method(db, body)


@router.get("/{method_id:int}", response_model=ShippingMethod)
def get_method(method_id: int, db: Session = Depends(get_db)):
    return shipping_service.get_shipping_method(db, method_id)


@router.put("/{method_id:int}", response_model=ShippingMethod)
def update_method(method_id: int, body: ShippingMethodUpdate, _=Depends(require_admin), db: Session = Depends(get_db)):
    return shipping_service.update_shipping_method(db, method_id, body)


@router.delete("/{method_id:int}")
def delete_method(method_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    shipping_service.delete_shipping_method(db, method_id)
    return {"message": "Shipping method removed"}
