"""Tax rule administration. One default rule per region."""
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models import TaxRule
from app.schemas.pricing import TaxRuleCreate, TaxRuleUpdate

logger = logging.getLogger(__name__)

TAX_TYPES = ("percentage", "flat")
EXEMPTION_CONDITIONS = ("minimum_amount", "customer_type")


def _validate(tax_type: str, rate: float, exemption_rules: list[dict]) -> None:
    if tax_type not in TAX_TYPES:
        raise ValidationError("Tax type must be either percentage or flat")
    if tax_type == "percentage" and rate > 100:
        raise ValidationError("Percentage tax rate cannot exceed 100")
    for rule in exemption_rules:
        if rule.get("condition") not in EXEMPTION_CONDITIONS:
            raise ValidationError(f"Unknown exemption condition: {rule.get('condition')}")
        try:
            if float(rule.get("rate")) < 0:
                raise ValidationError("Exemption rate cannot be negative")
        except (TypeError, ValueError):
            raise ValidationError("Exemption rule needs a numeric rate")


def _clear_region_default(db: Session, region: str, keep_id: int | None = None) -> None:
    """Unsets the current default of the region. Runs in the caller's transaction."""
    stmt = update(TaxRule).where(TaxRule.region == region).where(TaxRule.is_default == True)  # noqa: E712
    if keep_id is not None:
        stmt = stmt.where(TaxRule.id != keep_id)
    db.exec(stmt.values(is_default=False))


def _commit(db: Session, rule: TaxRule) -> TaxRule:
    db.add(rule)
    try:
        db.commit()
    except IntegrityError:
        # Partial unique index (region) WHERE is_default: another default slipped in
        db.rollback()
        raise ConflictError("Another default tax rule was set for this region concurrently")
    db.refresh(rule)
    return rule


def create_tax_rule(db: Session, body: TaxRuleCreate) -> TaxRule:
    region = body.region.strip()
    if not region:
        raise ValidationError("Region is required")
    _validate(body.type, body.rate, body.exemption_rules)
    if body.is_default:
        _clear_region_default(db, region)
    rule = TaxRule(
        name=body.name,
        region=region,
        rate=body.rate,
        tax_type=body.type,
        is_default=body.is_default,
        threshold=body.threshold,
        exemption_rules=body.exemption_rules,
        is_active=body.is_active,
    )
    rule = _commit(db, rule)
    logger.info("Tax rule %s created for %s (default=%s)", rule.id, rule.region, rule.is_default)
    return rule


def get_tax_rule(db: Session, rule_id: int) -> TaxRule:
    rule = db.get(TaxRule, rule_id)
    if not rule:
        raise NotFoundError("Tax rate not found")
    return rule


def list_tax_rules(db: Session, region: str | None = None) -> list[TaxRule]:
    stmt = select(TaxRule).where(TaxRule.is_active == True)  # noqa: E712
    if region:
        stmt = stmt.where(TaxRule.region == region)
    return list(db.exec(stmt.order_by(TaxRule.id)).all())


def update_tax_rule(db: Session, rule_id: int, body: TaxRuleUpdate) -> TaxRule:
    rule = get_tax_rule(db, rule_id)
    fields = body.model_dump(exclude_unset=True)
    region = (fields.get("region") or rule.region).strip()
    tax_type = fields.get("type") or rule.tax_type
    rate = fields["rate"] if fields.get("rate") is not None else rule.rate
    exemption_rules = fields["exemption_rules"] if fields.get("exemption_rules") is not None else (rule.exemption_rules or [])
    is_default = fields["is_default"] if fields.get("is_default") is not None else rule.is_default
    _validate(tax_type, rate, exemption_rules)

    if is_default and (not rule.is_default or region != rule.region):
        _clear_region_default(db, region, keep_id=rule.id)

    rule.name = fields.get("name", rule.name)
    rule.region = region
    rule.tax_type = tax_type
    rule.rate = rate
    rule.exemption_rules = list(exemption_rules)
    rule.is_default = is_default
    if "threshold" in fields:
        rule.threshold = fields["threshold"]
    if fields.get("is_active") is not None:
        rule.is_active = fields["is_active"]
    return _commit(db, rule)


def delete_tax_rule(db: Session, rule_id: int) -> None:
    rule = get_tax_rule(db, rule_id)
    db.delete(rule)
    db.commit()
