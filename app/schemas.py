"""
AIVox Dashboard - Pydantic Schemas
Request bodies are validated here; responses are shaped here too
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer, field_validator

from app.models import AgentStatus, UserRole


def ticks_to_number(value) -> Optional[int]:
    """Narrow a stored 64-bit millisecond tick to a plain JSON number.

    JavaScript consumers lose precision above 2**53; millisecond timestamps
    are far below that, so the value is passed through unchanged.
    """
    if value is None:
        return None
    return int(value)


class SortBy(str, Enum):
    date = "date"
    duration = "duration"
    cost = "cost"


# Pagination
class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    hasMore: bool

    @classmethod
    def build(cls, total: int, limit: int, offset: int) -> "Pagination":
        return cls(total=total, limit=limit, offset=offset, hasMore=offset + limit < total)


# User Schemas
class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(None, max_length=120)

    @field_validator("name")
    @classmethod
    def blank_name_is_none(cls, value):
        if value is None or not value.strip():
            return None
        return value.strip()


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=120)
    role: Optional[UserRole] = None

    @field_validator("role")
    @classmethod
    def role_is_assignable(cls, value):
        # SUPERADMIN is only ever granted by the bootstrap step
        if value == UserRole.SUPERADMIN:
            raise ValueError("role must be one of USER, ADMIN")
        return value


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    role: str
    created_at: datetime
    updated_at: Optional[datetime] = None


# Agent Schemas
class AgentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    agent_id: str = Field(..., min_length=1)
    agent_name: str = Field(..., min_length=1, max_length=200)
    status: AgentStatus = AgentStatus.ACTIVE


class AgentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    agent_name: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[AgentStatus] = None


class Agent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    agent_id: str
    agent_name: str
    status: str
    created_at: datetime
    updated_at: datetime


class AgentRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    agent_id: str
    agent_name: str
    status: Optional[str] = None


# Call Schemas
class Call(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    call_id: str
    agent_id: str
    caller_info: Optional[str] = None
    start_timestamp: int
    end_timestamp: int
    duration_ms: int
    duration_seconds: int
    transcript: Optional[str] = None
    call_status: Optional[str] = None
    disconnection_reason: Optional[str] = None
    cost: float
    call_summary: Optional[str] = None
    user_sentiment: Optional[str] = None
    call_successful: bool
    recording_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("start_timestamp", "end_timestamp", "duration_ms")
    def serialize_ticks(self, value):
        return ticks_to_number(value)


class CallWithAgent(Call):
    agent: Optional[AgentRef] = None


# Sync Schemas
class SyncCallsRequest(BaseModel):
    days: int = Field(30, ge=1, le=90)
    agentId: Optional[str] = None


def dump(schema, obj) -> Dict[str, Any]:
    """Serialize an ORM object through a response schema"""
    return schema.model_validate(obj).model_dump(mode="json")


def dump_many(schema, objs) -> List[Dict[str, Any]]:
    return [dump(schema, obj) for obj in objs]
