"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ticket_sla.config import ClockStatus, ClockType, TERMINAL_STATUSES
from ticket_sla.core import DomainException
from ticket_sla.sla.domain.value_objects import SLARule


@dataclass
class TrackedTicket:
    """
    The engine's record of the lifecycle facts it has seen for a ticket.

    The ticket itself lives in the ticketing collaborator; this only keeps
    what is needed to (re)start clocks.
    """

    ticket_id: str
    priority_key: str
    created_at: datetime
    first_responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    reopened_at: Optional[datetime] = None

    # Optimistic concurrency counter of the ticket row
    version: Optional[int] = None

    @property
    def resolution_started_at(self) -> datetime:
        """Instant the current resolution cycle counts from."""
        return self.reopened_at or self.created_at

    def has_stopped(self, clock_type: ClockType) -> bool:
        if clock_type == ClockType.RESPONSE:
            return self.first_responded_at is not None
        return self.resolved_at is not None


@dataclass
class ClockState:
    """
    SLA clock for one (ticket, clock type, cycle).

    Mutated only by the evaluator. MET and STOPPED are terminal: a frozen
    clock never changes again, a reopen starts a new cycle instead.
    """

    ticket_id: str
    clock_type: ClockType
    rule_id: str
    priority_key: str
    started_at: datetime
    target_minutes: int
    warning_threshold_pct: float
    business_hours_only: bool
    cycle: int = 1
    status: ClockStatus = ClockStatus.RUNNING_OK
    elapsed_minutes: float = 0.0
    stopped_at: Optional[datetime] = None
    last_evaluated_at: Optional[datetime] = None
    escalated_threshold_pct: float = 0.0

    # Persistence identity / optimistic concurrency counter
    id: Optional[str] = None
    version: Optional[int] = None

    def __post_init__(self):
        if self.elapsed_minutes < 0:
            raise DomainException("elapsed_minutes cannot be negative")
        if self.target_minutes <= 0:
            raise DomainException("target_minutes must be positive")

    @classmethod
    def start(
        cls,
        ticket_id: str,
        clock_type: ClockType,
        rule: SLARule,
        started_at: datetime,
        cycle: int = 1
    ) -> "ClockState":
        """Create a running clock bound to a rule."""
        target = rule.target_for(clock_type)
        if target is None:
            raise DomainException(f"rule '{rule.id}' defines no {clock_type.value} target")
        return cls(
            ticket_id=ticket_id,
            clock_type=clock_type,
            rule_id=rule.id,
            priority_key=rule.priority_key,
            started_at=started_at,
            target_minutes=target,
            warning_threshold_pct=rule.warning_threshold_pct,
            business_hours_only=rule.business_hours_only,
            cycle=cycle,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_running(self) -> bool:
        return not self.is_terminal

    @property
    def percent_elapsed(self) -> float:
        """Elapsed minutes as a percentage of the target."""
        return self.elapsed_minutes / self.target_minutes * 100

    def bind(self, rule: SLARule) -> bool:
        """
        Re-bind a running clock to a rule, keeping started_at.

        Returns False when the rule has no target for this clock type, in
        which case the clock keeps its current binding.
        """
        target = rule.target_for(self.clock_type)
        if target is None:
            return False
        self.rule_id = rule.id
        self.priority_key = rule.priority_key
        self.target_minutes = target
        self.warning_threshold_pct = rule.warning_threshold_pct
        self.business_hours_only = rule.business_hours_only
        return True


@dataclass(frozen=True)
class SLAHistoryEntry:
    """Append-only record of one evaluation."""

    ticket_id: str
    clock_type: ClockType
    cycle: int
    status: ClockStatus
    elapsed_minutes: float
    target_minutes: int
    recorded_at: datetime
    id: Optional[int] = None

    @classmethod
    def from_clock(cls, clock: ClockState, recorded_at: datetime) -> "SLAHistoryEntry":
        return cls(
            ticket_id=clock.ticket_id,
            clock_type=clock.clock_type,
            cycle=clock.cycle,
            status=clock.status,
            elapsed_minutes=clock.elapsed_minutes,
            target_minutes=clock.target_minutes,
            recorded_at=recorded_at,
        )
