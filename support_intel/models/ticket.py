"""
Ticket data models

Freshdesk encodes status and priority as integers. Records keep the raw
code so an unexpected value from the API never fails validation; it simply
matches none of the known enum members during aggregation.
"""
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from support_intel.utils.datetime_utils import ensure_aware

UNKNOWN_CODE = 0


class TicketStatus(IntEnum):
    """Freshdesk ticket status codes"""
    OPEN = 2
    PENDING = 3
    RESOLVED = 4
    CLOSED = 5


class Priority(IntEnum):
    """Freshdesk ticket priority codes"""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    URGENT = 4


TERMINAL_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})


def _coerce_code(value: Any, enum_cls) -> int:
    """Accept ints, numeric strings and enum names ("open", "URGENT")"""
    if value is None:
        return UNKNOWN_CODE
    if isinstance(value, bool):
        return UNKNOWN_CODE
    if isinstance(value, int):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        member = enum_cls.__members__.get(text.upper())
        if member is not None:
            return int(member)
    return UNKNOWN_CODE


def status_label(code: int) -> str:
    try:
        return TicketStatus(code).name.lower()
    except ValueError:
        return f"unknown ({code})"


def priority_label(code: int) -> str:
    try:
        return Priority(code).name.lower()
    except ValueError:
        return f"unknown ({code})"


class TicketRecord(BaseModel):
    """
    One support ticket as fetched from Freshdesk.

    Validates both raw Freshdesk payloads (`description_text`, `type`) and
    documents previously written by the ticket repository.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    subject: str = ""
    description: str = Field(
        "",
        validation_alias=AliasChoices("description_text", "description")
    )
    status: int = UNKNOWN_CODE
    priority: int = UNKNOWN_CODE
    ticket_type: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("type", "ticket_type")
    )
    group_id: Optional[int] = None
    company_id: Optional[int] = None
    responder_id: Optional[int] = None
    requester_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    tags: List[str] = Field(default_factory=list)
    is_escalated: bool = False

    @field_validator("subject", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else v

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> int:
        return _coerce_code(v, TicketStatus)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v: Any) -> int:
        return _coerce_code(v, Priority)

    @field_validator("created_at", "updated_at")
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @field_validator("tags", mode="before")
    @classmethod
    def dedupe_tags(cls, v: Any) -> List[str]:
        if not v:
            return []
        seen: Dict[str, None] = {}
        for tag in v:
            if tag is not None:
                seen.setdefault(str(tag), None)
        return list(seen)

    @classmethod
    def from_freshdesk(cls, raw: Dict[str, Any]) -> "TicketRecord":
        return cls.model_validate(raw)

    @property
    def is_resolved_or_closed(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def resolution_hours(self) -> float:
        return (self.updated_at - self.created_at).total_seconds() / 3600.0

    def to_document(self) -> Dict[str, Any]:
        """JSON-safe representation for the durable store"""
        return self.model_dump(mode="json")


class GroupRecord(BaseModel):
    """Freshdesk agent group"""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class CompanyRecord(BaseModel):
    """Freshdesk company (customer organisation)"""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
