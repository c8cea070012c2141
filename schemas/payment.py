from typing import Optional

from pydantic import BaseModel, Field


class PaymentIntentInfo(BaseModel):
    """Provider view of a PaymentIntent (amount in minor units)."""
    id: str
    client_secret: Optional[str] = None
    status: str
    amount: int
    currency: str
    description: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    transfer_succeeded: bool = False


class PaymentIntentCreate(BaseModel):
    submission_version: int = Field(..., alias="submissionVersion", ge=1)

    model_config = {"populate_by_name": True}


class ApproveAfterPayment(BaseModel):
    payment_intent_id: str = Field(..., alias="paymentIntentId", min_length=1)
    review_notes: Optional[str] = Field(None, alias="reviewNotes")
    submission_version: int = Field(..., alias="submissionVersion", ge=1)

    model_config = {"populate_by_name": True}
