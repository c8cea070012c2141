from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func

from database import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(64), primary_key=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(32), nullable=False, default="processing", index=True)
    transfer_id = Column(String(128), nullable=True, index=True)
    business_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    contractor_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    # Exactly one of these is set; unique so an approval can never pay twice
    related_milestone_id = Column(String(64), ForeignKey("milestones.id"), nullable=True, unique=True)
    related_submission_id = Column(String(64), ForeignKey("work_request_submissions.id"), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class PaymentAttempt(Base):
    """Durable record of the pay-then-finalize flow for a work request approval."""

    __tablename__ = "payment_attempts"

    id = Column(String(64), primary_key=True, index=True)
    work_request_id = Column(String(64), ForeignKey("work_requests.id"), nullable=False, index=True)
    submission_id = Column(String(64), ForeignKey("work_request_submissions.id"), nullable=False, index=True)
    submission_version = Column(Integer, nullable=False)
    payment_intent_id = Column(String(128), unique=True, nullable=False, index=True)
    amount_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    # awaiting_confirmation | finalized
    status = Column(String(32), nullable=False, default="awaiting_confirmation", index=True)
    review_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
