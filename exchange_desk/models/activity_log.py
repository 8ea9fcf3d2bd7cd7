"""
Activity log model for the audit trail.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class ActivityLogEntry(BaseModel):
    """
    One audit trail entry.

    Attributes:
        id: Timestamp-derived identifier
        actor: Name of the acting user (older entries stored it as current_user)
        action_type: Create, Update, Delete or Void
        module_name: Module that produced the entry (exchange, admin, ...)
        details: Human readable description
        timestamp: When the action happened
    """

    id: int
    actor: str = Field(validation_alias=AliasChoices("actor", "current_user"))
    action_type: str
    module_name: str
    details: str = ""
    timestamp: datetime

    class Config:
        """Pydantic configuration."""

        frozen = True
        extra = "ignore"
