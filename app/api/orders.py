from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from app.api.deps import get_current_user, require_admin
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.models import Product, User
from app.schemas.order import CheckoutRequest, OrderResponse, ProductCreate
from app.services import checkout

router = APIRouter(tags=["orders"])


@router.post("/orders", response_model=OrderResponse, status_code=201)
def create_order(body: CheckoutRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = checkout.create_order(db, user, body)
    return checkout.order_to_dict(db, order)


@router.get("/orders/mine", response_model=list[OrderResponse])
def my_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [checkout.order_to_dict(db, o) for o in checkout.list_user_orders(db, user)]


@router.get("/orders/{order_id:int}", response_model=OrderResponse)
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return checkout.order_to_dict(db, checkout.get_order_for_user(db, order_id, user))


@router.get("/products", response_model=list[Product])
def list_products(db: Session = Depends(get_db)):
    return list(db.exec(select(Product).where(Product.is_active == True).order_by(Product.id)).all())  # noqa: E712


@router.get("/products/{product_id:int}", response_model=Product)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = db.get(Product, product_id)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")
    return product


@router.post("/products", response_model=Product, status_code=201)
def create_product(body: ProductCreate, _=Depends(require_admin), db: Session = Depends(get_db)):
    product = Product(
        name=body.name.strip(),
        price=body.price,
        weight_kg=body.weight_kg,
        count_in_stock=body.count_in_stock,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product
