from pydantic import BaseModel, ConfigDict, Field


class TaxCalculateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    region: str | None = None
    subtotal: float | None = None
    customer_type: str | None = Field(default=None, alias="customerType")


class TaxRuleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    name: str | None = None
    region: str
    rate: float = Field(ge=0)
    type: str = "percentage"  # "percentage" | "flat"
    is_default: bool = Field(default=False, alias="isDefault")
    threshold: float | None = Field(default=None, ge=0)
    exemption_rules: list[dict] = Field(default_factory=list, alias="exemptionRules")
    is_active: bool = Field(default=True, alias="isActive")


class TaxRuleUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    name: str | None = None
    region: str | None = None
    rate: float | None = Field(default=None, ge=0)
    type: str | None = None
    is_default: bool | None = Field(default=None, alias="isDefault")
    threshold: float | None = Field(default=None, ge=0)
    exemption_rules: list[dict] | None = Field(default=None, alias="exemptionRules")
    is_active: bool | None = Field(default=None, alias="isActive")


class ShippingCalculateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    method_id: int | str | None = Field(default=None, alias="methodId")
    weight: float | None = None
    region: str | None = None


class ShippingMethodCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    name: str
    carrier: str | None = None
    base_rate: float = Field(default=0, ge=0, alias="baseRate")
    rate_per_kg: float = Field(default=0, ge=0, alias="ratePerKg")
    estimated_days: str | None = Field(default=None, alias="estimatedDays")
    regions: list[str] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")


class ShippingMethodUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    name: str | None = None
    carrier: str | None = None
    base_rate: float | None = Field(default=None, ge=0, alias="baseRate")
    rate_per_kg: float | None = Field(default=None, ge=0, alias="ratePerKg")
    estimated_days: str | None = Field(default=None, alias="estimatedDays")
    regions: list[str] | None = None
    is_active: bool | None = Field(default=None, alias="isActive")
