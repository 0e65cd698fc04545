"""
Domain model for linked Tonie Cloud accounts.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TonieCredential(BaseModel):
    """A Tonie Cloud login owned by one local user; the password stays encrypted."""

    id: int
    owner_id: str = Field(..., description="Local user that linked the account.")
    username: str = Field(..., description="Tonie Cloud username (email).")
    encrypted_password: str = Field(..., exclude=True)
    display_name: Optional[str] = None
    is_default: bool = False
    last_authenticated: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


__all__ = ["TonieCredential"]
