from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class BudgetCheckResult(BaseModel):
    ok: bool
    message: Optional[str] = None
    remaining: Optional[Decimal] = None
    shortfall: Optional[Decimal] = None


class BudgetCheckRequest(BaseModel):
    proposed_value: Decimal = Field(..., alias="proposedValue")

    model_config = {"populate_by_name": True}


class BudgetUpdate(BaseModel):
    budget_cap: Optional[Decimal] = Field(None, alias="budgetCap", ge=0)
    budget_period: Optional[Literal["monthly", "quarterly", "yearly"]] = Field(None, alias="budgetPeriod")
    budget_reset_enabled: Optional[bool] = Field(None, alias="budgetResetEnabled")

    model_config = {"populate_by_name": True}
