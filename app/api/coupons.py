from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.api.deps import get_current_user, require_admin
from app.core.database import get_db
from app.schemas.coupon import CouponApplyRequest, CouponCreate, CouponResponse, CouponUpdate, CouponValidateRequest
from app.services import coupon as coupon_service

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/validate")
def validate(body: CouponValidateRequest, _=Depends(get_current_user), db: Session = Depends(get_db)):
    return coupon_service.validate_coupon(db, body.code, body.cart_total)


@router.post("/{coupon_id:int}/apply")
def apply(coupon_id: int, body: CouponApplyRequest, _=Depends(get_current_user), db: Session = Depends(get_db)):
    return coupon_service.apply_coupon(db, coupon_id, body.cart_total)


@router.get("", response_model=list[CouponResponse])
def list_coupons(
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 10,
    _=Depends(require_admin),
    db: Session = Depends(get_db),
):
    return coupon_service.list_coupons(db, is_active, page, limit)


@router.post("", response_model=CouponResponse, status_code=201)
def create(body: CouponCreate, _=Depends(require_admin), db: Session = Depends(get_db)):
    return coupon_service.create_coupon(db, body)


@router.get("/{coupon_id:int}", response_model=CouponResponse)
def get(coupon_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    return coupon_service.get_coupon(db, coupon_id)


@router.put("/{coupon_id:int}", response_model=CouponResponse)
def update(coupon_id: int, body: CouponUpdate, _=Depends(require_admin), db: Session = Depends(get_db)):
    return coupon_service.update_coupon(db, coupon_id, body)


@router.delete("/{coupon_id:int}")
def delete(coupon_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    coupon = coupon_service.delete_coupon(db, coupon_id)
    return {"message": "Coupon removed successfully", "code": coupon.code}
