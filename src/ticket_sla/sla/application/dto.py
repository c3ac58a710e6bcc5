"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Following YAGNI - only what's needed.
"""

from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ticket_sla.config import ClockStatus, ClockType


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps from the ticketing collaborator are UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ========== Lifecycle Event DTOs ==========

class _LifecycleEvent(BaseModel):
    ticket_id: str = Field(..., min_length=1, description="Ticket ID in the ticketing system")

    @field_validator("*")
    @classmethod
    def assume_utc(cls, v):
        if isinstance(v, datetime):
            return _utc(v)
        return v


class TicketCreatedEvent(_LifecycleEvent):
    """A ticket was opened."""
    type: Literal["ticket_created"] = "ticket_created"
    priority: str = Field(..., min_length=1)
    created_at: datetime


class TicketPriorityChangedEvent(_LifecycleEvent):
    """A ticket's priority changed."""
    type: Literal["ticket_priority_changed"] = "ticket_priority_changed"
    old_priority: Optional[str] = None
    new_priority: str = Field(..., min_length=1)
    at: datetime


class TicketFirstResponseEvent(_LifecycleEvent):
    """An agent replied to the ticket for the first time."""
    type: Literal["ticket_first_response"] = "ticket_first_response"
    responded_at: datetime


class TicketResolvedOrClosedEvent(_LifecycleEvent):
    """The ticket was resolved or closed."""
    type: Literal["ticket_resolved_or_closed"] = "ticket_resolved_or_closed"
    at: datetime


class TicketReopenedEvent(_LifecycleEvent):
    """A resolved or closed ticket was reopened."""
    type: Literal["ticket_reopened"] = "ticket_reopened"
    at: datetime


LifecycleEventDTO = Annotated[
    Union[
        TicketCreatedEvent,
        TicketPriorityChangedEvent,
        TicketFirstResponseEvent,
        TicketResolvedOrClosedEvent,
        TicketReopenedEvent,
    ],
    Field(discriminator="type")
]


class EventBatchRequest(BaseModel):
    """Request model for lifecycle event ingestion."""
    events: List[LifecycleEventDTO] = Field(
        ...,
        min_length=1,
        description="Lifecycle events, processed in order"
    )


class EventBatchResponse(BaseModel):
    """Response model for lifecycle event ingestion."""
    processed: int = Field(..., description="Events applied")
    failed: int = Field(default=0, description="Events that raised an error")
    clocks_touched: int = Field(default=0, description="Clock evaluations recorded")
    errors: List[str] = Field(default_factory=list, description="Error messages")


# ========== Pause Window DTOs ==========

class PauseWindowCreateDTO(BaseModel):
    """DTO for creating a pause window."""
    name: str = Field(..., min_length=1, max_length=255)
    start: datetime
    end: datetime
    reason: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)

    @model_validator(mode="after")
    def validate_range(self) -> "PauseWindowCreateDTO":
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class PauseWindowUpdateDTO(BaseModel):
    """DTO for updating a pause window; omitted fields keep their value."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    reason: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)


class PauseWindowResponse(BaseModel):
    """Response model for a pause window."""
    id: str
    name: str
    start: datetime
    end: datetime
    reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ========== Reporting DTOs ==========

class ClockStateResponse(BaseModel):
    """Response model for a single SLA clock."""
    ticket_id: str
    clock_type: ClockType
    cycle: int
    status: ClockStatus
    rule_id: str
    priority_key: str
    started_at: datetime
    stopped_at: Optional[datetime] = None
    target_minutes: int
    elapsed_minutes: float
    percent_elapsed: float
    business_hours_only: bool
    last_evaluated_at: Optional[datetime] = None
    escalated_threshold_pct: float = 0.0

    @classmethod
    def from_domain(cls, clock) -> "ClockStateResponse":
        return cls(
            ticket_id=clock.ticket_id,
            clock_type=clock.clock_type,
            cycle=clock.cycle,
            status=clock.status,
            rule_id=clock.rule_id,
            priority_key=clock.priority_key,
            started_at=clock.started_at,
            stopped_at=clock.stopped_at,
            target_minutes=clock.target_minutes,
            elapsed_minutes=round(clock.elapsed_minutes, 2),
            percent_elapsed=round(clock.percent_elapsed, 1),
            business_hours_only=clock.business_hours_only,
            last_evaluated_at=clock.last_evaluated_at,
            escalated_threshold_pct=clock.escalated_threshold_pct,
        )


class TicketClocksResponse(BaseModel):
    """All clocks of a ticket."""
    ticket_id: str
    clocks: List[ClockStateResponse] = Field(default_factory=list)


class HistoryEntryResponse(BaseModel):
    """One row of the SLA history."""
    ticket_id: str
    clock_type: ClockType
    cycle: int
    status: ClockStatus
    elapsed_minutes: float
    target_minutes: int
    recorded_at: datetime


class TicketHistoryResponse(BaseModel):
    ticket_id: str
    entries: List[HistoryEntryResponse] = Field(default_factory=list)


class DashboardSummary(BaseModel):
    """Summary statistics over current clocks."""
    total_clocks: int
    ok_count: int
    warning_count: int
    overdue_count: int
    met_count: int
    stopped_count: int
    compliance_rate: float = Field(..., description="Percentage of clocks neither at risk nor missed")


class SweepResponse(BaseModel):
    """Result of a periodic sweep."""
    started_at: datetime
    evaluated: int
    failed: int
    status_changes: int
    escalations: int
    errors: List[str] = Field(default_factory=list)
