"""SQLAlchemy ORM models for the authorization decision history"""

import uuid
from sqlalchemy import Column, String, BigInteger, Boolean, Float, DateTime, Text, Uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class AuthorizationDecisionRecord(Base):
    """One evaluated authorization request and its provider callback result"""

    __tablename__ = "authorization_decision"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    authorization_id = Column(Text, nullable=True, index=True)
    event_id = Column(Text, nullable=True)
    account = Column(Text, nullable=True)
    amount = Column(BigInteger, nullable=True)
    currency = Column(String(3), nullable=True)
    merchant_name = Column(Text, nullable=True)
    merchant_category_code = Column(Text, nullable=True)
    is_amount_controllable = Column(Boolean, nullable=True)
    approved = Column(Boolean, nullable=False)
    approved_amount = Column(BigInteger, nullable=False)
    outcome = Column(Text, nullable=False)
    reason = Column(Text, nullable=True)
    rule = Column(Text, nullable=True)
    delivery_status = Column(Text, nullable=False)
    delivery_error = Column(Text, nullable=True)
    duration_ms = Column(Float, nullable=False)
    evaluated_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
