"""Decision record persistence schemas.

Defines the DecisionRecord written after every consensus run (the
learning record), the DecisionQuery filter used when listing records,
and the PersistenceConfig that controls where records go.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class DecisionRecord(BaseModel):
    """Summary of a consensus run, stored for later learning and audit."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Record ID (UUID)")
    agent_id: str = Field(default="kincho", description="Agent that made the decision")
    user_id: str = Field(description="Donor the request belongs to")
    allocation_request_id: str = Field(description="The evaluated request")
    content: str = Field(description="JSON summary of the decision")
    memory_type: str = Field(default="allocation_decision", description="Record category")
    importance: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Importance weight (the run's confidence)",
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="Indexed metadata")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the record was built",
    )

    @property
    def decision(self) -> str:
        return str(self.metadata.get("decision", ""))

    def content_data(self) -> dict[str, Any]:
        """Decode the JSON content payload."""
        return json.loads(self.content)


class DecisionQuery(BaseModel):
    """Filter parameters for listing decision records."""

    decision: str | None = Field(default=None, description="Only this decision value")
    user_id: str | None = Field(default=None, description="Only this donor's records")
    limit: int = Field(default=20, gt=0, description="Maximum records to return")


class PersistenceConfig(BaseModel):
    """Where and whether decision records are stored."""

    enabled: bool = Field(default=True, description="Persist decision records")
    db_path: str = Field(
        default="~/.kincho/decisions.db", description="Path to the decision database",
    )
    queue_size: int = Field(
        default=100, gt=0, description="Pending records held before new ones are dropped",
    )
