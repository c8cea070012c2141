"""
Budget guard and business budget bookkeeping.

``check_budget`` is the pure pre-check shared by the API and the client; the
async helpers below compute what a business has already committed and record
spend once a payment exists.
"""
from __future__ import annotations

import calendar
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Contract, Milestone, User, WorkRequest
from schemas.budget import BudgetCheckResult
from services.errors import BudgetExceededError, ValidationFailedError
from services.workflow import MilestoneStatus, WorkRequestStatus
from utils.logger import get_logger

log = get_logger("budget")

Number = Union[int, float, str, Decimal]

CENT = Decimal("0.01")

PERIOD_MONTHS = {"monthly": 1, "quarterly": 3, "yearly": 12}

# Work requests whose amount is promised but not yet paid out
COMMITTED_STATUSES = (
    WorkRequestStatus.PENDING.value,
    WorkRequestStatus.ACCEPTED.value,
    WorkRequestStatus.SUBMITTED.value,
    WorkRequestStatus.NEEDS_REVISION.value,
)

COMMITTED_MILESTONE_STATUSES = (
    MilestoneStatus.PENDING.value,
    MilestoneStatus.SUBMITTED.value,
    MilestoneStatus.REJECTED.value,
)


def _to_decimal(value: Number) -> Decimal:
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationFailedError(f"Invalid amount: {value!r}") from e
    if not d.is_finite():
        raise ValidationFailedError(f"Invalid amount: {value!r}")
    return d


def check_budget(
    proposed_value: Number,
    total_cap: Optional[Number],
    already_allocated: Number = 0,
) -> BudgetCheckResult:
    """
    Would allocating ``proposed_value`` on top of ``already_allocated`` stay within ``total_cap``?
    A cap of None means the business has no cap configured.
    """
    try:
        proposed = _to_decimal(proposed_value)
        allocated = _to_decimal(already_allocated)
    except ValidationFailedError as e:
        return BudgetCheckResult(ok=False, message=e.message)
    if proposed <= 0:
        return BudgetCheckResult(ok=False, message="Amount must be greater than zero")
    if total_cap is None:
        return BudgetCheckResult(ok=True)

    cap = _to_decimal(total_cap)
    remaining = (cap - allocated).quantize(CENT)
    # The cap must stay strictly above what is spent or committed
    if allocated + proposed < cap:
        return BudgetCheckResult(ok=True, remaining=remaining)
    shortfall = (allocated + proposed - cap + CENT).quantize(CENT)
    if allocated + proposed == cap:
        message = (
            f"This allocation of {proposed.quantize(CENT)} would use all of your remaining budget of "
            f"{remaining}. The cap must stay above what is spent or committed, so lower the amount by "
            f"{shortfall} or increase your budget cap."
        )
    else:
        message = (
            f"This allocation of {proposed.quantize(CENT)} exceeds your remaining budget of "
            f"{remaining} by {shortfall}. Increase your budget cap or lower the amount."
        )
    return BudgetCheckResult(ok=False, remaining=remaining, shortfall=shortfall, message=message)


async def outstanding_commitments(session: AsyncSession, business_id: str) -> Decimal:
    """Sum of work request and milestone amounts that are assigned but not yet paid."""
    work_requests = await session.execute(
        select(func.coalesce(func.sum(WorkRequest.amount), 0)).where(
            WorkRequest.business_id == business_id,
            WorkRequest.status.in_(COMMITTED_STATUSES),
        )
    )
    milestones = await session.execute(
        select(func.coalesce(func.sum(Milestone.payment_amount), 0))
        .join(Contract, Milestone.contract_id == Contract.id)
        .where(
            Contract.business_id == business_id,
            Milestone.status.in_(COMMITTED_MILESTONE_STATUSES),
        )
    )
    return _to_decimal(work_requests.scalar_one()) + _to_decimal(milestones.scalar_one())


def _add_months(moment: datetime, months: int) -> datetime:
    month = moment.month - 1 + months
    year = moment.year + month // 12
    month = month % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_end(start: datetime, period: Optional[str]) -> datetime:
    return _add_months(start, PERIOD_MONTHS.get(period or "yearly", 12))


def start_budget_period(business: User, now: Optional[datetime] = None) -> None:
    business.budget_start_date = now or datetime.now(timezone.utc)
    business.budget_end_date = period_end(business.budget_start_date, business.budget_period)


def roll_budget_period(business: User, now: Optional[datetime] = None) -> bool:
    """
    Start a fresh period with nothing spent once the current one has ended,
    for businesses that opted into automatic resets. Returns True if it rolled.
    """
    if not business.budget_reset_enabled or business.budget_end_date is None:
        return False
    now = now or datetime.now(timezone.utc)
    end = business.budget_end_date
    if end.tzinfo is None:
        # SQLite hands back naive datetimes
        end = end.replace(tzinfo=timezone.utc)
    if now <= end:
        return False
    business.budget_used = Decimal("0.00")
    start_budget_period(business, now)
    log.info("[BUDGET] period rolled businessId=%s until=%s", business.id, business.budget_end_date.isoformat())
    return True


async def allocated_for(session: AsyncSession, business: User) -> Decimal:
    """Everything already spent or promised by a business in the current period."""
    roll_budget_period(business)
    used = _to_decimal(business.budget_used or 0)
    return used + await outstanding_commitments(session, business.id)


async def ensure_within_budget(session: AsyncSession, business: User, amount: Number) -> BudgetCheckResult:
    """Authoritative server-side guard; raises BudgetExceededError on violation."""
    result = check_budget(amount, business.budget_cap, await allocated_for(session, business))
    if not result.ok:
        raise BudgetExceededError(result.message or "Budget exceeded", extra={"shortfall": str(result.shortfall)})
    return result


def ensure_can_spend(business: User, amount: Number) -> None:
    """
    Guard for paying out work that is already committed: the amount moves from
    committed to spent, so it is checked against what has been spent so far.
    """
    roll_budget_period(business)
    result = check_budget(amount, business.budget_cap, business.budget_used or 0)
    if not result.ok:
        raise BudgetExceededError(
            f"{result.message} Work cannot be approved until the budget is increased.",
            extra={"shortfall": str(result.shortfall)},
        )


def record_spend(business: User, amount: Number) -> None:
    business.budget_used = (_to_decimal(business.budget_used or 0) + _to_decimal(amount)).quantize(CENT)


async def update_budget_settings(
    session: AsyncSession,
    business: User,
    budget_cap: Optional[Number] = None,
    budget_period: Optional[str] = None,
    budget_reset_enabled: Optional[bool] = None,
) -> User:
    roll_budget_period(business)
    if budget_cap is not None:
        cap = _to_decimal(budget_cap)
        pending = await outstanding_commitments(session, business.id)
        floor = pending + _to_decimal(business.budget_used or 0)
        if cap <= floor:
            raise ValidationFailedError(
                f"Your budget limit cannot be lower than your outstanding commitments. "
                f"You currently have {floor.quantize(CENT)} spent or committed in active work requests. "
                f"Please set your budget to at least {(floor + CENT).quantize(CENT)}.",
                extra={"minimumRequired": str((floor + CENT).quantize(CENT))},
            )
        business.budget_cap = cap.quantize(CENT)
    if budget_period is not None and budget_period != business.budget_period:
        business.budget_period = budget_period
        start_budget_period(business)
    elif business.budget_end_date is None:
        start_budget_period(business)
    if budget_reset_enabled is not None:
        business.budget_reset_enabled = budget_reset_enabled
    await session.flush()
    return business


async def reset_budget(session: AsyncSession, business: User) -> User:
    """Manual reset; allowed whether or not automatic resets are enabled."""
    business.budget_used = Decimal("0.00")
    await session.flush()
    return business
