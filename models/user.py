from sqlalchemy import Boolean, Column, DateTime, Numeric, String, func

from database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    username = Column(String(128), unique=True, nullable=False)
    email = Column(String(256), nullable=True)
    role = Column(String(16), nullable=False, default="business", index=True)
    stripe_connect_account_id = Column(String(128), nullable=True)
    # Budget (business users only); a null cap means no cap
    budget_cap = Column(Numeric(12, 2), nullable=True)
    budget_used = Column(Numeric(12, 2), nullable=False, default=0)
    budget_period = Column(String(16), nullable=False, default="yearly")
    budget_reset_enabled = Column(Boolean, nullable=False, default=False)
    # Current budget period; rolled forward once the end has passed and reset is enabled
    budget_start_date = Column(DateTime(timezone=True), nullable=True)
    budget_end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
