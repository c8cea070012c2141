from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from database import Base


class WorkRequest(Base):
    __tablename__ = "work_requests"

    id = Column(String(64), primary_key=True, index=True)
    project_id = Column(String(64), ForeignKey("projects.id"), nullable=False, index=True)
    business_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    contractor_user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    contract_id = Column(String(64), ForeignKey("contracts.id"), nullable=True)
    title = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    deliverable_description = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="gbp")
    due_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(32), nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    declined_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    project = relationship("Project", back_populates="work_requests")
    submissions = relationship(
        "WorkRequestSubmission",
        back_populates="work_request",
        order_by="WorkRequestSubmission.version",
        cascade="all, delete-orphan",
    )


class WorkRequestSubmission(Base):
    __tablename__ = "work_request_submissions"
    __table_args__ = (UniqueConstraint("work_request_id", "version", name="uq_submission_version"),)

    id = Column(String(64), primary_key=True, index=True)
    work_request_id = Column(String(64), ForeignKey("work_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    submitted_by = Column(String(64), ForeignKey("users.id"), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    submission_type = Column(String(16), nullable=False, default="digital")
    artifact_url = Column(String(1024), nullable=True)
    deliverable_files = Column(JSON, nullable=True)
    deliverable_description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    # submitted | approved | rejected | needs_revision
    status = Column(String(32), nullable=False, default="submitted", index=True)
    review_notes = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    work_request = relationship("WorkRequest", back_populates="submissions")
