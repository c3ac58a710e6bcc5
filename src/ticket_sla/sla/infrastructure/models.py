"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the SLA engine.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean, DateTime, Float, Index, Integer, String, Text, TypeDecorator,
    UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from ticket_sla.config import ClockStatus, ClockType
from ticket_sla.infrastructure.database import Base


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp stored as UTC.

    SQLite drops tzinfo on the way back; values are re-tagged as UTC so the
    domain only ever sees aware datetimes.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None:
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackedTicketModel(Base):
    """
    Lifecycle facts of a ticket seen by the engine.

    Maps to the 'sla_tracked_tickets' table. Every lifecycle event rewrites
    the row, so `version` serializes events on the same ticket.
    """
    __tablename__ = "sla_tracked_tickets"

    ticket_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    priority_key: Mapped[str] = mapped_column(String(50), nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    first_responded_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    reopened_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ClockStateModel(Base):
    """
    Database model for ClockState entity.

    Maps to the 'sla_clock_states' table. One row per
    (ticket, clock type, cycle); `version` guards concurrent writers.
    """
    __tablename__ = "sla_clock_states"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    ticket_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    clock_type: Mapped[ClockType] = mapped_column(String(20), nullable=False)
    cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Rule binding
    rule_id: Mapped[str] = mapped_column(String(100), nullable=False)
    priority_key: Mapped[str] = mapped_column(String(50), nullable=False)
    target_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    warning_threshold_pct: Mapped[float] = mapped_column(Float, nullable=False)
    business_hours_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Clock state
    status: Mapped[ClockStatus] = mapped_column(String(20), nullable=False, default=ClockStatus.RUNNING_OK)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    stopped_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    elapsed_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_evaluated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Highest escalation threshold already notified in this cycle
    escalated_threshold_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("ticket_id", "clock_type", "cycle", name="uq_sla_clock_cycle"),
        Index("ix_sla_clock_states_status", "status"),
    )
    __mapper_args__ = {"version_id_col": version}


class SLAHistoryModel(Base):
    """
    Append-only evaluation log.

    Maps to the 'sla_history' table.
    """
    __tablename__ = "sla_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    ticket_id: Mapped[str] = mapped_column(String(255), nullable=False)
    clock_type: Mapped[ClockType] = mapped_column(String(20), nullable=False)
    cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[ClockStatus] = mapped_column(String(20), nullable=False)
    elapsed_minutes: Mapped[float] = mapped_column(Float, nullable=False)
    target_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        Index("ix_sla_history_ticket_clock_recorded", "ticket_id", "clock_type", "recorded_at"),
    )


class PauseWindowModel(Base):
    """
    Organization-wide pause window.

    Maps to the 'sla_pause_windows' table.
    """
    __tablename__ = "sla_pause_windows"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)
