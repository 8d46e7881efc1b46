"""Audit domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AuditResult(BaseModel):
    """Outcome of a best-effort audit write"""

    entry_id: Optional[str] = None
    warning: Optional[str] = None

    @property
    def recorded(self) -> bool:
        return self.entry_id is not None


class AdminLogResponse(BaseModel):
    """Schema for audit entry response"""

    id: str
    adminId: str
    action: str
    details: Optional[str] = None
    timestamp: datetime

    @classmethod
    def from_model(cls, entry) -> "AdminLogResponse":
        return cls(
            id=entry.id,
            adminId=entry.admin_id,
            action=entry.action,
            details=entry.details,
            timestamp=entry.timestamp,
        )
