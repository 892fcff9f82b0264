"""Pydantic models for email data structures"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EmailContext(BaseModel):
    """Read-only view of the email a workflow is started for"""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "subject": "Quarterly report",
                "sender": "anna@example.com",
                "body": "Could you send me the Q3 numbers by Friday?",
                "recipient": "me@example.com",
                "timestamp": "2025-01-15T10:30:00",
                "message_id": "<123@example.com>",
            }
        },
    )

    subject: str = Field(..., description="Email subject line")
    sender: str = Field(..., description="Email sender address")
    body: str = Field(..., description="Plain text email body")
    recipient: Optional[str] = Field(None, description="Primary recipient address")
    timestamp: Optional[datetime] = Field(None, description="Email sent date")
    message_id: Optional[str] = Field(None, description="Unique message identifier")

    def to_payload(self) -> dict:
        """Serialize for the workflow start request"""
        return self.model_dump(mode="json", exclude_none=True)
