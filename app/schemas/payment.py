from pydantic import BaseModel, ConfigDict, Field


class CreatePaymentRequest(BaseModel):
    """Opens a hosted payment page; the order is marked paid later by verify or webhook."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    order_id: str | int | None = Field(default=None, alias="orderId")
    return_url: str | None = Field(default=None, alias="returnUrl")


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    tran_ref: str | None = None
    order_id: str | int | None = Field(default=None, alias="orderId")


class RefundRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    order_id: str | int | None = Field(default=None, alias="orderId")
    refund_amount: float | None = Field(default=None, alias="refundAmount")
    reason: str | None = None
