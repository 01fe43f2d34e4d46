from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TicketStatus(str, Enum):
    NEW = "new"
    OPEN = "open"
    OTHER = "other"


PENDING_STATUSES = {TicketStatus.NEW, TicketStatus.OPEN}


# ---- Zendesk ticket ----------------------------------------------------------

class TicketRecord(BaseModel):
    """A helpdesk ticket as returned by Zendesk. Never mutated after fetch."""
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: int
    status: TicketStatus = TicketStatus.OTHER
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    subject: str = ""
    form_id: Optional[int] = Field(default=None, alias="ticket_form_id")
    custom_fields: Dict[int, Any] = Field(default_factory=dict)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, v: Any) -> TicketStatus:
        # pending, hold, solved, closed, ... all collapse to OTHER
        try:
            return TicketStatus(str(v or "").strip().lower())
        except ValueError:
            return TicketStatus.OTHER

    @field_validator("subject", mode="before")
    @classmethod
    def _coerce_subject(cls, v: Any) -> str:
        return v or ""

    @field_validator("custom_fields", mode="before")
    @classmethod
    def _coerce_custom_fields(cls, v: Any) -> Dict[int, Any]:
        # Zendesk sends [{"id": 123, "value": "x"}, ...]
        if isinstance(v, list):
            return {int(item["id"]): item.get("value") for item in v if item.get("id") is not None}
        return v or {}

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES

    def field(self, field_id: Optional[int]) -> Any:
        if field_id is None:
            return None
        return self.custom_fields.get(int(field_id))


class CommentCount(BaseModel):
    public: int = 0
    private: int = 0

    @property
    def total(self) -> int:
        return self.public + self.private


__all__ = ["TicketStatus", "PENDING_STATUSES", "TicketRecord", "CommentCount"]
