from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    budget: Optional[Decimal] = Field(None, ge=0)


class WorkRequestCreate(BaseModel):
    contractor_user_id: str = Field(..., alias="contractorUserId")
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    deliverable_description: Optional[str] = Field(None, alias="deliverableDescription")
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    due_date: Optional[datetime] = Field(None, alias="dueDate")

    model_config = {"populate_by_name": True}

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class SubmissionCreate(BaseModel):
    submission_type: Literal["digital", "physical"] = Field("digital", alias="submissionType")
    artifact_url: Optional[str] = Field(None, alias="artifactUrl")
    deliverable_files: Optional[list[str]] = Field(None, alias="deliverableFiles")
    deliverable_description: Optional[str] = Field(None, alias="deliverableDescription")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class ReviewRequest(BaseModel):
    """Reject or request changes; approval goes through the payment flow."""
    action: Literal["approve", "reject", "request-changes"]
    review_notes: Optional[str] = Field(None, alias="reviewNotes")
    submission_version: int = Field(..., alias="submissionVersion", ge=1)

    model_config = {"populate_by_name": True}
