from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from database import Base


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(String(64), primary_key=True, index=True)
    business_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    contractor_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(String(64), ForeignKey("projects.id"), nullable=True)
    name = Column(String(256), nullable=False)
    value = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="gbp")
    status = Column(String(32), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    milestones = relationship("Milestone", back_populates="contract", cascade="all, delete-orphan")


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(String(64), primary_key=True, index=True)
    contract_id = Column(String(64), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    payment_amount = Column(Numeric(12, 2), nullable=False)
    # pending | submitted | approved | rejected
    status = Column(String(32), nullable=False, default="pending", index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    auto_pay_enabled = Column(Boolean, nullable=False, default=True)
    deliverable_url = Column(String(1024), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    # Set exactly once; doubles as the payment idempotency marker
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approval_notes = Column(Text, nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_notes = Column(Text, nullable=True)

    contract = relationship("Contract", back_populates="milestones")
