from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.api.deps import require_admin
from app.core.database import get_db
from app.models import TaxRule
from app.schemas.pricing import TaxCalculateRequest, TaxRuleCreate, TaxRuleUpdate
from app.services import tax as tax_service
from app.services.pricing import calculate_tax

router = APIRouter(prefix="/tax", tags=["tax"])


@router.post("/calculate")
def calculate(body: TaxCalculateRequest, db: Session = Depends(get_db)):
    return calculate_tax(db, body.region, body.subtotal, body.customer_type)


@router.get("", response_model=list[TaxRule])
def list_rules(region: str | None = None, _=Depends(require_admin), db: Session = Depends(get_db)):
    return tax_service.list_tax_rules(db, region)


@router.post("", response_model=TaxRule, status_code=201)
def create_rule(body: TaxRuleCreate, _=Depends(require_admin), db: Session = Depends(get_db)):
    return tax_service.create_tax_rule(db, body)


@router.get("/{rule_id:int}", response_model=TaxRule)
def get_rule(rule_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    return tax_service.get_tax_rule(db, rule_id)


@router.put("/{rule_id:int}", response_model=TaxRule)
def update_rule(rule_id: int, body: TaxRuleUpdate, _=Depends(require_admin), db: Session = Depends(get_db)):
    return tax_service.update_tax_rule(db, rule_id, body)


@router.delete("/{rule_id:int}")
def delete_rule(rule_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    tax_service.delete_tax_rule(db, rule_id)
    return {"message": "Tax rate removed"}
