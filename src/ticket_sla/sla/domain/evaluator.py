"""
SLA Status Evaluator
====================

State machine for a single clock:

    RUNNING_OK -> RUNNING_WARNING -> OVERDUE      (running, recomputed each call)
    any running state -> MET | STOPPED            (terminal, on stop)

OVERDUE is sticky while the clock runs. Every call recomputes elapsed time
from started_at, never from a delta, so repeated or racing evaluations
converge on the same answer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from ticket_sla.config import ClockStatus
from ticket_sla.sla.domain.entities import ClockState, SLAHistoryEntry
from ticket_sla.sla.domain.escalation import EscalationDispatcher
from ticket_sla.sla.domain.events import SLAStatusChanged, SLAThresholdCrossed
from ticket_sla.sla.domain.value_objects import SLASnapshot

SLAEvent = Union[SLAStatusChanged, SLAThresholdCrossed]


@dataclass
class ClockEvaluation:
    """Outcome of one evaluation: the mutated clock, its history row and events."""

    clock: ClockState
    previous_status: ClockStatus
    history_entry: SLAHistoryEntry
    status_changed: Optional[SLAStatusChanged] = None
    threshold_crossings: List[SLAThresholdCrossed] = field(default_factory=list)

    @property
    def events(self) -> List[SLAEvent]:
        events: List[SLAEvent] = []
        if self.status_changed is not None:
            events.append(self.status_changed)
        events.extend(self.threshold_crossings)
        return events


class ClockEvaluator:
    """
    Pure evaluation logic; persistence and publishing belong to the
    application layer.
    """

    def __init__(self, dispatcher: Optional[EscalationDispatcher] = None):
        self._dispatcher = dispatcher or EscalationDispatcher()

    @staticmethod
    def derive_status(
        elapsed_minutes: float,
        target_minutes: int,
        warning_threshold_pct: float,
        previous_status: Optional[ClockStatus] = None
    ) -> ClockStatus:
        """Status of a running clock."""
        if previous_status == ClockStatus.OVERDUE:
            return ClockStatus.OVERDUE
        if elapsed_minutes >= target_minutes:
            return ClockStatus.OVERDUE
        if elapsed_minutes >= target_minutes * warning_threshold_pct / 100:
            return ClockStatus.RUNNING_WARNING
        return ClockStatus.RUNNING_OK

    @staticmethod
    def refresh_binding(clock: ClockState, snapshot: SLASnapshot) -> None:
        """Pick up edits to the bound rule; a rule missing from the snapshot keeps the stored binding."""
        rule = snapshot.config.rule_by_id(clock.rule_id)
        if rule is not None:
            clock.bind(rule)

    def evaluate(
        self,
        clock: ClockState,
        snapshot: SLASnapshot,
        now: datetime
    ) -> Optional[ClockEvaluation]:
        """
        Recompute a running clock at `now`.

        Returns None for a terminal clock (no-op, nothing recorded).
        """
        if clock.is_terminal:
            return None

        previous = clock.status
        self.refresh_binding(clock, snapshot)

        clock.elapsed_minutes = snapshot.elapsed_minutes(
            clock.started_at, now, clock.business_hours_only
        )
        clock.status = self.derive_status(
            clock.elapsed_minutes,
            clock.target_minutes,
            clock.warning_threshold_pct,
            previous
        )
        clock.last_evaluated_at = now

        crossings = self._dispatcher.dispatch(
            clock,
            snapshot.config.escalation_rules_for(clock.rule_id),
            occurred_at=now
        )
        return self._result(clock, previous, now, crossings)

    def stop(
        self,
        clock: ClockState,
        snapshot: SLASnapshot,
        at: datetime
    ) -> Optional[ClockEvaluation]:
        """
        Freeze a clock at `at`: MET when under target, STOPPED otherwise.

        Stopping an already-stopped clock is a silent no-op (None).
        """
        if clock.is_terminal:
            return None

        previous = clock.status
        self.refresh_binding(clock, snapshot)

        clock.elapsed_minutes = snapshot.elapsed_minutes(
            clock.started_at, at, clock.business_hours_only
        )
        if clock.elapsed_minutes < clock.target_minutes:
            clock.status = ClockStatus.MET
        else:
            clock.status = ClockStatus.STOPPED
        clock.stopped_at = at
        clock.last_evaluated_at = at

        return self._result(clock, previous, at, [])

    @staticmethod
    def _result(
        clock: ClockState,
        previous: ClockStatus,
        recorded_at: datetime,
        crossings: List[SLAThresholdCrossed]
    ) -> ClockEvaluation:
        status_changed = None
        if clock.status != previous:
            status_changed = SLAStatusChanged(
                ticket_id=clock.ticket_id,
                clock_type=clock.clock_type,
                old_status=previous,
                new_status=clock.status,
                elapsed_minutes=clock.elapsed_minutes,
                target_minutes=clock.target_minutes,
                occurred_at=recorded_at,
            )
        return ClockEvaluation(
            clock=clock,
            previous_status=previous,
            history_entry=SLAHistoryEntry.from_clock(clock, recorded_at),
            status_changed=status_changed,
            threshold_crossings=crossings,
        )
