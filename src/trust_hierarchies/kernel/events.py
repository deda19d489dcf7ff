"""
Base Event model for event sourcing

Every successful federation operation is recorded as one or more immutable
events. Federation state is never stored directly - it is whatever replaying
the federation's event stream produces.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Event(BaseModel):
    """
    Base event class - all domain events are stored in this envelope

    Events are:
    - Immutable (frozen after creation)
    - Append-only (never deleted, revocations are new events)
    - Versioned per stream (one stream per federation)
    - Replayable (projections rebuild deterministically from them)
    """

    event_id: str = Field(
        ...,
        description="Unique event identifier (time-ordered)",
    )

    stream_id: str = Field(
        ...,
        description="Aggregate root identifier - the federation id",
    )

    stream_type: str = Field(
        ...,
        description="Type of aggregate: 'federation'",
    )

    event_type: str = Field(
        ...,
        description="Specific event type: 'FederationCreated', 'StatementAdded', etc.",
    )

    occurred_at: datetime = Field(
        ...,
        description="UTC timestamp when event occurred",
    )

    actor_id: str | None = Field(
        default=None,
        description="Account that triggered this event (capability holder)",
    )

    command_id: str = Field(
        ...,
        description="ID of command that caused this event (idempotency key)",
    )

    payload: dict = Field(
        default_factory=dict,
        description="Event-specific data (must be JSON-serializable)",
    )

    version: int = Field(
        ...,
        description="Stream version after this event (monotonically increasing)",
        ge=1,
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "event_id": "evt-01908e9a-3b87-7000-8000-123456789abc",
                    "stream_id": "fed-01908e9a-3b87-7000-8000-0000000000aa",
                    "stream_type": "federation",
                    "event_type": "StatementAdded",
                    "occurred_at": "2025-01-15T10:30:00Z",
                    "actor_id": "alice",
                    "command_id": "cmd-123",
                    "payload": {"constraint": {"name": {"segments": ["org", "name"]}}},
                    "version": 2,
                }
            ]
        },
    }


def create_event(
    *,
    event_id: str,
    stream_id: str,
    stream_type: str,
    event_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    actor_id: str | None = None,
    payload: dict | None = None,
) -> Event:
    """Factory function for creating events with all required fields"""
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload or {},
        version=version,
    )
