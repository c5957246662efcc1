"""
Helpdesk Ticket Model

Flat records synced as whole collections:
1. Ticket = one support request, submission to sign-off
2. Engineer roster = staff eligible for assignment + explicit default
3. Contact = directory entry used to autofill requester details
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps are taken to be UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class Urgency(str, Enum):
    HIGH = "high"      # Rank 3
    MEDIUM = "medium"  # Rank 2
    LOW = "low"        # Rank 1

    @property
    def rank(self) -> int:
        return URGENCY_RANK[self]


URGENCY_RANK = {
    Urgency.HIGH: 3,
    Urgency.MEDIUM: 2,
    Urgency.LOW: 1,
}


class TicketStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Labels and field names used by stored documents from the first release
_LEGACY_URGENCY = {"高": "high", "中": "medium", "低": "low"}
_LEGACY_STATUS = {"等待處理": "pending", "處理中": "in_progress", "已完修": "completed"}
_LEGACY_FIELDS = {
    "requestTime": "request_time",
    "completionTime": "completion_time",
    "processNote": "process_note",
    "assignedEngineer": "assigned_engineer",
}


# =============================================================================
# CORE MODELS
# =============================================================================

class Ticket(BaseModel):
    """
    A single support request.

    id and request_time are set once at creation.
    completion_time follows status: set on COMPLETED, cleared otherwise.
    revision is bumped on every stored update (conditional writes).
    """
    id: str = Field(default_factory=new_id)

    # Requester
    name: str
    department: str
    phone: str = ""

    # Request
    requirement: str
    urgency: Urgency = Urgency.MEDIUM
    request_time: datetime = Field(default_factory=utcnow)

    # Processing
    status: TicketStatus = TicketStatus.PENDING
    process_note: Optional[str] = None
    completion_time: Optional[datetime] = None
    assigned_engineer: Optional[str] = None  # Free text, not a reference
    signature: Optional[str] = None  # Encoded image (data URL)

    revision: int = 0

    @model_validator(mode="before")
    @classmethod
    def _from_legacy_record(cls, data):
        if not isinstance(data, dict):
            return data
        data = {_LEGACY_FIELDS.get(key, key): value for key, value in data.items()}
        for key, labels in (("urgency", _LEGACY_URGENCY), ("status", _LEGACY_STATUS)):
            value = data.get(key)
            if isinstance(value, str):
                data[key] = labels.get(value, value)
        return data

    @field_validator("request_time", "completion_time")
    @classmethod
    def _tz_aware(cls, value):
        return _as_utc(value)

    @property
    def is_completed(self) -> bool:
        return self.status == TicketStatus.COMPLETED


# =============================================================================
# SUPPORTING MODELS
# =============================================================================

class Engineer(BaseModel):
    """Support staff member."""
    id: str = Field(default_factory=new_id)
    name: str


class EngineerRoster(BaseModel):
    """
    Engineers plus an explicit default-assignee reference.

    default_engineer_id, when set, must name a member of the roster.
    Legacy input (a bare list with per-engineer is_default flags) is
    normalized: the first flagged engineer becomes the default.
    """
    engineers: List[Engineer] = Field(default_factory=list)
    default_engineer_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_legacy_list(cls, data):
        if not isinstance(data, list):
            return data
        default_id = None
        for item in data:
            if not isinstance(item, dict):
                continue
            flagged = item.get("is_default", item.get("isDefault", False))
            if flagged and default_id is None:
                default_id = item.get("id")
        return {"engineers": data, "default_engineer_id": default_id}

    @model_validator(mode="after")
    def _default_is_member(self):
        if self.default_engineer_id is not None and self.find(self.default_engineer_id) is None:
            raise ValueError(
                f"default engineer {self.default_engineer_id!r} is not on the roster"
            )
        return self

    def find(self, engineer_id: str) -> Optional[Engineer]:
        for engineer in self.engineers:
            if engineer.id == engineer_id:
                return engineer
        return None

    @property
    def default_engineer(self) -> Optional[Engineer]:
        if self.default_engineer_id is None:
            return None
        return self.find(self.default_engineer_id)


class Contact(BaseModel):
    """Directory entry (lookup by extension)."""
    id: str = Field(default_factory=new_id)
    name: str
    department: str
    extension: str


class AppConfig(BaseModel):
    """Small config object handed to clients on connect."""
    app_url: str = ""
    shared_app_url: str = ""
    version: str
    kv_enabled: bool = False
    env: str = "development"
    timestamp: int  # Epoch milliseconds
