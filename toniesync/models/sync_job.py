"""
Sync job record and its status state machine.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class SyncStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.COMPLETED, SyncStatus.FAILED)


_ALLOWED_TRANSITIONS = {
    SyncStatus.PENDING: {SyncStatus.IN_PROGRESS, SyncStatus.FAILED},
    SyncStatus.IN_PROGRESS: {SyncStatus.COMPLETED, SyncStatus.FAILED},
    SyncStatus.COMPLETED: set(),
    SyncStatus.FAILED: set(),
}


def can_transition(current: SyncStatus, target: SyncStatus) -> bool:
    return target in _ALLOWED_TRANSITIONS[current]


class SyncJob(BaseModel):
    """One attempt to push content to a device. Retries create a new job."""

    id: int
    household_id: int
    device_id: int
    content_id: Optional[int] = None
    requested_by: Optional[str] = None
    status: SyncStatus = SyncStatus.PENDING
    job_type: str = "Upload"
    error_message: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


__all__ = ["SyncJob", "SyncStatus", "can_transition"]
