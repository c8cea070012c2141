from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ContractCreate(BaseModel):
    contractor_id: str = Field(..., alias="contractorId")
    name: str = Field(..., min_length=1)
    project_id: Optional[str] = Field(None, alias="projectId")
    value: Decimal = Field(Decimal("0"), ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    model_config = {"populate_by_name": True}


class MilestoneCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    payment_amount: Decimal = Field(..., alias="paymentAmount", gt=0, decimal_places=2)
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    auto_pay_enabled: bool = Field(True, alias="autoPayEnabled")

    model_config = {"populate_by_name": True}


class MilestoneSubmit(BaseModel):
    deliverable_url: Optional[str] = Field(None, alias="deliverableUrl")

    model_config = {"populate_by_name": True}


class MilestoneApprove(BaseModel):
    approval_notes: Optional[str] = Field(None, alias="approvalNotes")

    model_config = {"populate_by_name": True}


class MilestoneReject(BaseModel):
    notes: str = Field(..., min_length=1)
