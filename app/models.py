"""
AIVox Dashboard - Database Models
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"


class UserStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class AgentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(120), nullable=True)
    role = Column(String(20), default=UserRole.USER.value, nullable=False)
    status = Column(String(20), default=UserStatus.APPROVED.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Agent(Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(String(255), unique=True, index=True, nullable=False)  # Retell agent id
    agent_name = Column(String(200), nullable=False)
    status = Column(String(20), default=AgentStatus.ACTIVE.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Agents are never deleted, only deactivated, so calls keep their reference
    calls = relationship("Call", back_populates="agent")


class Call(Base):
    __tablename__ = "calls"
    __table_args__ = (CheckConstraint("cost >= 0", name="ck_calls_cost_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    call_id = Column(String(255), unique=True, index=True, nullable=False)  # Retell call id
    agent_id = Column(String(255), ForeignKey("agents.agent_id"), nullable=False, index=True)
    caller_info = Column(Text, nullable=True)
    start_timestamp = Column(BigInteger, nullable=False, index=True)  # epoch ms
    end_timestamp = Column(BigInteger, nullable=False)  # epoch ms
    duration_ms = Column(BigInteger, nullable=False, default=0)
    duration_seconds = Column(Integer, nullable=False, default=0)
    transcript = Column(Text, nullable=True)
    call_status = Column(String(50), nullable=True, index=True)
    disconnection_reason = Column(String(100), nullable=True)
    cost = Column(Float, nullable=False, default=0)
    call_summary = Column(Text, nullable=True)
    user_sentiment = Column(String(50), nullable=True)
    call_successful = Column(Boolean, nullable=False, default=False)
    recording_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    agent = relationship("Agent", back_populates="calls")
