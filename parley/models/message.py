"""
Chat message models.

Messages are append-only; the only mutation is the retention trim that
drops the oldest rows of a chat once it holds more than the cap.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    """Schema for appending a message."""

    chat_id: str
    sender_id: str
    sender_name: str
    text: Optional[str] = None
    attachment_ref: Optional[str] = None


class Message(BaseModel):
    """Persisted chat message."""

    id: str
    chat_id: str
    sender_id: str = Field(..., description="User id, or 'system' for server-authored messages")
    sender_name: str = Field(..., description="Sender's username at send time")
    text: Optional[str] = None
    attachment_ref: Optional[str] = Field(None, description="Reference returned by the upload endpoint")
    timestamp: datetime
