"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations

Every lifecycle event and every evaluation runs inside one unit of work:
the clock update and its history row commit together or not at all.
Events are published only after the commit succeeds.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ticket_sla.config import ClockStatus, ClockType, LifecycleEventType, VALID_CLOCK_TYPES
from ticket_sla.core import (
    ConcurrentUpdateException,
    ExternalServiceException,
    NoActiveRuleException,
    ResourceNotFoundException,
)
from ticket_sla.shared.infrastructure.logging import get_logger, log_latency
from ticket_sla.sla.application.dto import (
    DashboardSummary,
    LifecycleEventDTO,
    PauseWindowCreateDTO,
    PauseWindowUpdateDTO,
)
from ticket_sla.sla.domain import (
    ClockEvaluation,
    ClockEvaluator,
    ClockState,
    PauseWindow,
    SLAConfig,
    SLAEvent,
    SLAHistoryEntry,
    SLARule,
    SLASnapshot,
    TrackedTicket,
)
from ticket_sla.sla.domain.calculator import as_utc

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IClockRepository(ABC):
    """Interface for clock state data access."""

    @abstractmethod
    async def get_latest(self, ticket_id: str, clock_type: ClockType) -> Optional[ClockState]:
        """Get the clock of the highest cycle for (ticket, clock type)."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str, all_cycles: bool = False) -> List[ClockState]:
        """List a ticket's clocks, current cycles only unless all_cycles."""

    @abstractmethod
    async def add(self, clock: ClockState) -> ClockState:
        """Insert a new clock."""

    @abstractmethod
    async def save(self, clock: ClockState) -> ClockState:
        """Update a clock; raises ConcurrentUpdateException on a version conflict."""

    @abstractmethod
    async def list_running_keys(self, limit: int = 1000) -> List[Tuple[str, ClockType]]:
        """(ticket_id, clock_type) of every running clock."""

    @abstractmethod
    async def count_current_by_status(self) -> Dict[ClockStatus, int]:
        """Count current-cycle clocks per status."""


class ISLAHistoryRepository(ABC):
    """Interface for the append-only SLA history."""

    @abstractmethod
    async def append(self, entry: SLAHistoryEntry) -> SLAHistoryEntry:
        """Append one history row."""

    @abstractmethod
    async def list(
        self,
        ticket_id: str,
        clock_type: Optional[ClockType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[SLAHistoryEntry]:
        """History of a ticket in recording order."""


class ITrackedTicketRepository(ABC):
    """Interface for tracked ticket data access."""

    @abstractmethod
    async def get(self, ticket_id: str) -> Optional[TrackedTicket]:
        """Get a tracked ticket."""

    @abstractmethod
    async def add(self, ticket: TrackedTicket) -> TrackedTicket:
        """Start tracking a ticket."""

    @abstractmethod
    async def save(self, ticket: TrackedTicket) -> TrackedTicket:
        """
        Persist lifecycle facts of a tracked ticket.

        Always writes the row; raises ConcurrentUpdateException when another
        writer saved it since it was read.
        """


class IPauseWindowRepository(ABC):
    """Interface for pause window data access."""

    @abstractmethod
    async def add(self, window: PauseWindow) -> PauseWindow:
        """Create a pause window."""

    @abstractmethod
    async def get(self, window_id: str) -> Optional[PauseWindow]:
        """Get a pause window by ID."""

    @abstractmethod
    async def update(self, window: PauseWindow) -> PauseWindow:
        """Replace a pause window."""

    @abstractmethod
    async def delete(self, window_id: str) -> bool:
        """Delete a pause window; False if it did not exist."""

    @abstractmethod
    async def list_all(self) -> List[PauseWindow]:
        """All pause windows ordered by start."""

    @abstractmethod
    async def list_overlapping(self, start: datetime, end: datetime) -> List[PauseWindow]:
        """Pause windows intersecting [start, end)."""


class ISLAUnitOfWork(ABC):
    """
    One transaction spanning every SLA repository.

    Leaving the context without commit() rolls back.
    """

    clocks: IClockRepository
    history: ISLAHistoryRepository
    tickets: ITrackedTicketRepository
    pause_windows: IPauseWindowRepository

    @abstractmethod
    async def __aenter__(self) -> "ISLAUnitOfWork":
        """Open the transaction."""

    @abstractmethod
    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Close the transaction, rolling back anything uncommitted."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit; raises ConcurrentUpdateException on a version conflict."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard pending changes."""


class ISLAConfigProvider(ABC):
    """Interface for SLA configuration access."""

    @abstractmethod
    def get_config(self) -> SLAConfig:
        """Get current SLA configuration."""


class IEventPublisher(ABC):
    """Interface for the messaging collaborator."""

    @abstractmethod
    async def publish(self, event: SLAEvent) -> None:
        """Deliver one SLA event; raises ExternalServiceException when delivery fails."""


UnitOfWorkFactory = Callable[[], ISLAUnitOfWork]


# ========== Application Services ==========

@dataclass
class SweepResult:
    """Counters of one sweep run."""
    started_at: datetime
    evaluated: int = 0
    failed: int = 0
    status_changes: int = 0
    escalations: int = 0
    errors: List[str] = field(default_factory=list)


class SLAEngine:
    """
    Applies ticket lifecycle events to SLA clocks and evaluates running clocks.

    Coordinates the evaluator, the repositories and the event publisher.
    Stateless between calls; all state lives in the database, so any number
    of engines may run against the same store.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        config_provider: ISLAConfigProvider,
        publisher: IEventPublisher,
        evaluator: Optional[ClockEvaluator] = None,
        max_retries: int = 3,
        sweep_concurrency: int = 10,
        sweep_batch_size: int = 1000,
        now_provider: Optional[Callable[[], datetime]] = None
    ):
        self._uow_factory = uow_factory
        self._config_provider = config_provider
        self._publisher = publisher
        self._evaluator = evaluator or ClockEvaluator()
        self._max_retries = max(1, max_retries)
        self._sweep_concurrency = max(1, sweep_concurrency)
        self._sweep_batch_size = sweep_batch_size
        self._now = now_provider or (lambda: datetime.now(timezone.utc))

    # ----- Lifecycle events -----

    async def handle(self, event: LifecycleEventDTO) -> List[ClockEvaluation]:
        """Dispatch a lifecycle event DTO to its handler."""
        event_type = LifecycleEventType(event.type)
        if event_type == LifecycleEventType.TICKET_CREATED:
            return await self.on_ticket_created(event.ticket_id, event.priority, event.created_at)
        if event_type == LifecycleEventType.TICKET_PRIORITY_CHANGED:
            return await self.on_priority_changed(
                event.ticket_id, event.old_priority, event.new_priority, event.at
            )
        if event_type == LifecycleEventType.TICKET_FIRST_RESPONSE:
            return await self.on_first_response(event.ticket_id, event.responded_at)
        if event_type == LifecycleEventType.TICKET_RESOLVED_OR_CLOSED:
            return await self.on_resolved_or_closed(event.ticket_id, event.at)
        return await self.on_reopened(event.ticket_id, event.at)

    async def on_ticket_created(
        self,
        ticket_id: str,
        priority: str,
        created_at: datetime
    ) -> List[ClockEvaluation]:
        """
        Start the response and resolution clocks of a new ticket.

        A ticket whose priority has no active rule is tracked without clocks.
        Replaying the event for a known ticket is a no-op.
        """
        created_at = as_utc(created_at)

        async def operation(uow: ISLAUnitOfWork) -> List[ClockEvaluation]:
            if await uow.tickets.get(ticket_id) is not None:
                logger.info("Duplicate ticket_created ignored", extra={"ticket_id": ticket_id})
                return []

            ticket = TrackedTicket(
                ticket_id=ticket_id,
                priority_key=priority.strip().lower(),
                created_at=created_at
            )
            await uow.tickets.add(ticket)

            rule = self._resolve_rule(ticket)
            if rule is None:
                return []
            return await self._start_clocks(uow, ticket, rule, VALID_CLOCK_TYPES, created_at)

        return await self._atomically(ticket_id, operation)

    async def on_priority_changed(
        self,
        ticket_id: str,
        old_priority: Optional[str],
        new_priority: str,
        at: datetime
    ) -> List[ClockEvaluation]:
        """
        Re-bind running clocks to the rule of the new priority.

        started_at and elapsed time carry over; the new target applies from
        here on. Stopped clocks are untouched.
        """
        at = as_utc(at)
        new_key = new_priority.strip().lower()

        async def operation(uow: ISLAUnitOfWork) -> List[ClockEvaluation]:
            ticket = await uow.tickets.get(ticket_id)
            if ticket is None:
                logger.info(
                    "Priority change for unknown ticket, tracking from change instant",
                    extra={"ticket_id": ticket_id, "new_priority": new_key}
                )
                ticket = TrackedTicket(ticket_id=ticket_id, priority_key=new_key, created_at=at)
                await uow.tickets.add(ticket)
            else:
                ticket.priority_key = new_key
                await uow.tickets.save(ticket)

            rule = self._resolve_rule(ticket)
            evaluations: List[ClockEvaluation] = []
            missing: List[ClockType] = []

            for clock_type in VALID_CLOCK_TYPES:
                clock = await uow.clocks.get_latest(ticket_id, clock_type)
                if self._needs_clock(ticket, clock_type, clock):
                    missing.append(clock_type)
                    continue
                if clock is None or clock.is_terminal:
                    continue

                if rule is not None and not clock.bind(rule):
                    logger.warning(
                        "Rule has no target for clock type, keeping previous binding",
                        extra={"ticket_id": ticket_id, "rule_id": rule.id,
                               "clock_type": clock_type.value}
                    )
                evaluation = await self._evaluate(uow, clock, at)
                if evaluation is not None:
                    evaluations.append(evaluation)

            if rule is not None and missing:
                evaluations.extend(await self._start_clocks(uow, ticket, rule, missing, at))

            logger.info(
                "Ticket priority changed",
                extra={"ticket_id": ticket_id, "old_priority": old_priority,
                       "new_priority": new_key, "clocks": len(evaluations)}
            )
            return evaluations

        return await self._atomically(ticket_id, operation)

    async def on_first_response(self, ticket_id: str, responded_at: datetime) -> List[ClockEvaluation]:
        """Stop the response clock."""
        responded_at = as_utc(responded_at)

        async def operation(uow: ISLAUnitOfWork) -> List[ClockEvaluation]:
            ticket = await uow.tickets.get(ticket_id)
            if ticket is None:
                logger.debug("First response for untracked ticket", extra={"ticket_id": ticket_id})
                return []
            if ticket.first_responded_at is None:
                ticket.first_responded_at = responded_at
            await uow.tickets.save(ticket)
            return await self._stop_clock(uow, ticket_id, ClockType.RESPONSE, responded_at)

        return await self._atomically(ticket_id, operation)

    async def on_resolved_or_closed(self, ticket_id: str, at: datetime) -> List[ClockEvaluation]:
        """Stop the resolution clock of the current cycle."""
        at = as_utc(at)

        async def operation(uow: ISLAUnitOfWork) -> List[ClockEvaluation]:
            ticket = await uow.tickets.get(ticket_id)
            if ticket is None:
                logger.debug("Resolution for untracked ticket", extra={"ticket_id": ticket_id})
                return []
            if ticket.resolved_at is None:
                ticket.resolved_at = at
            await uow.tickets.save(ticket)
            return await self._stop_clock(uow, ticket_id, ClockType.RESOLUTION, at)

        return await self._atomically(ticket_id, operation)

    async def on_reopened(self, ticket_id: str, at: datetime) -> List[ClockEvaluation]:
        """
        Start a new resolution cycle from the reopen instant.

        The stopped clock of the previous cycle stays as it was. A reopen
        while the resolution clock still runs is ignored.
        """
        at = as_utc(at)

        async def operation(uow: ISLAUnitOfWork) -> List[ClockEvaluation]:
            ticket = await uow.tickets.get(ticket_id)
            if ticket is None:
                logger.debug("Reopen for untracked ticket", extra={"ticket_id": ticket_id})
                return []

            latest = await uow.clocks.get_latest(ticket_id, ClockType.RESOLUTION)
            if latest is not None and latest.is_running:
                logger.info(
                    "Reopen ignored, resolution clock still running",
                    extra={"ticket_id": ticket_id, "cycle": latest.cycle}
                )
                return []

            ticket.resolved_at = None
            ticket.reopened_at = at
            await uow.tickets.save(ticket)

            rule = self._resolve_rule(ticket)
            if rule is None:
                return []
            return await self._start_clocks(uow, ticket, rule, [ClockType.RESOLUTION], at)

        return await self._atomically(ticket_id, operation)

    # ----- Evaluation -----

    async def evaluate_clock(
        self,
        ticket_id: str,
        clock_type: ClockType,
        now: Optional[datetime] = None
    ) -> Optional[ClockEvaluation]:
        """Re-evaluate one running clock; None when there is nothing running."""
        now = as_utc(now) if now else self._now()

        async def operation(uow: ISLAUnitOfWork) -> List[ClockEvaluation]:
            clock = await uow.clocks.get_latest(ticket_id, clock_type)
            if clock is None:
                return []
            evaluation = await self._evaluate(uow, clock, now)
            return [evaluation] if evaluation else []

        evaluations = await self._atomically(ticket_id, operation)
        return evaluations[0] if evaluations else None

    async def evaluate_ticket(
        self,
        ticket_id: str,
        now: Optional[datetime] = None
    ) -> List[ClockEvaluation]:
        """Re-evaluate every running clock of a ticket."""
        now = as_utc(now) if now else self._now()

        async def operation(uow: ISLAUnitOfWork) -> List[ClockEvaluation]:
            evaluations = []
            for clock_type in VALID_CLOCK_TYPES:
                clock = await uow.clocks.get_latest(ticket_id, clock_type)
                if clock is None:
                    continue
                evaluation = await self._evaluate(uow, clock, now)
                if evaluation is not None:
                    evaluations.append(evaluation)
            return evaluations

        return await self._atomically(ticket_id, operation)

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Evaluate every running clock at one shared instant.

        Clocks are evaluated concurrently, each in its own transaction. A
        failure on one clock is recorded and never aborts the others.
        """
        now = as_utc(now) if now else self._now()
        result = SweepResult(started_at=now)

        async with self._uow_factory() as uow:
            keys = await uow.clocks.list_running_keys(limit=self._sweep_batch_size)

        semaphore = asyncio.Semaphore(self._sweep_concurrency)

        async def run(ticket_id: str, clock_type: ClockType) -> None:
            async with semaphore:
                try:
                    evaluation = await self.evaluate_clock(ticket_id, clock_type, now)
                except Exception as e:
                    result.failed += 1
                    result.errors.append(f"{ticket_id}/{clock_type.value}: {e}")
                    logger.error(
                        "SLA evaluation failed",
                        extra={"ticket_id": ticket_id, "clock_type": clock_type.value,
                               "error": str(e), "error_type": type(e).__name__}
                    )
                    return
            if evaluation is None:
                return
            result.evaluated += 1
            if evaluation.status_changed is not None:
                result.status_changes += 1
            result.escalations += len(evaluation.threshold_crossings)

        with log_latency(logger, "sla_sweep", clocks=len(keys)):
            await asyncio.gather(*(run(ticket_id, clock_type) for ticket_id, clock_type in keys))

        logger.info(
            "SLA sweep finished",
            extra={"evaluated": result.evaluated, "failed": result.failed,
                   "status_changes": result.status_changes, "escalations": result.escalations}
        )
        return result

    # ----- Internals -----

    def _resolve_rule(self, ticket: TrackedTicket) -> Optional[SLARule]:
        rule = self._config_provider.get_config().active_rule_for(ticket.priority_key)
        if rule is None:
            error = NoActiveRuleException(ticket.priority_key)
            logger.warning(error.message, extra={"ticket_id": ticket.ticket_id, **error.details})
        return rule

    @staticmethod
    def _needs_clock(
        ticket: TrackedTicket,
        clock_type: ClockType,
        latest: Optional[ClockState]
    ) -> bool:
        """A clock type needs a new cycle when none runs and its stop event is not on record."""
        if latest is not None and latest.is_running:
            return False
        return not ticket.has_stopped(clock_type)

    async def _snapshot(self, uow: ISLAUnitOfWork, start: datetime, end: datetime) -> SLASnapshot:
        pause_windows: Iterable[PauseWindow] = ()
        if end > start:
            pause_windows = await uow.pause_windows.list_overlapping(start, end)
        return SLASnapshot(
            config=self._config_provider.get_config(),
            pause_windows=tuple(pause_windows)
        )

    async def _start_clocks(
        self,
        uow: ISLAUnitOfWork,
        ticket: TrackedTicket,
        rule: SLARule,
        clock_types: Iterable[ClockType],
        evaluate_at: datetime
    ) -> List[ClockEvaluation]:
        evaluations = []
        for clock_type in clock_types:
            if rule.target_for(clock_type) is None:
                continue
            latest = await uow.clocks.get_latest(ticket.ticket_id, clock_type)
            if not self._needs_clock(ticket, clock_type, latest):
                continue

            if clock_type == ClockType.RESPONSE:
                started_at = ticket.created_at
            else:
                started_at = ticket.resolution_started_at

            clock = ClockState.start(
                ticket_id=ticket.ticket_id,
                clock_type=clock_type,
                rule=rule,
                started_at=started_at,
                cycle=latest.cycle + 1 if latest else 1
            )
            snapshot = await self._snapshot(uow, started_at, evaluate_at)
            evaluation = self._evaluator.evaluate(clock, snapshot, max(evaluate_at, started_at))
            await uow.clocks.add(clock)
            await uow.history.append(evaluation.history_entry)
            evaluations.append(evaluation)

            logger.info(
                "SLA clock started",
                extra={"ticket_id": ticket.ticket_id, "clock_type": clock_type.value,
                       "cycle": clock.cycle, "rule_id": rule.id,
                       "target_minutes": clock.target_minutes}
            )
        return evaluations

    async def _evaluate(
        self,
        uow: ISLAUnitOfWork,
        clock: ClockState,
        now: datetime
    ) -> Optional[ClockEvaluation]:
        if clock.is_terminal:
            return None
        snapshot = await self._snapshot(uow, clock.started_at, now)
        evaluation = self._evaluator.evaluate(clock, snapshot, now)
        await uow.clocks.save(evaluation.clock)
        await uow.history.append(evaluation.history_entry)
        return evaluation

    async def _stop_clock(
        self,
        uow: ISLAUnitOfWork,
        ticket_id: str,
        clock_type: ClockType,
        at: datetime
    ) -> List[ClockEvaluation]:
        clock = await uow.clocks.get_latest(ticket_id, clock_type)
        if clock is None or clock.is_terminal:
            logger.debug(
                "No running clock to stop",
                extra={"ticket_id": ticket_id, "clock_type": clock_type.value}
            )
            return []

        snapshot = await self._snapshot(uow, clock.started_at, at)
        evaluation = self._evaluator.stop(clock, snapshot, at)
        await uow.clocks.save(evaluation.clock)
        await uow.history.append(evaluation.history_entry)
        return [evaluation]

    async def _atomically(
        self,
        ticket_id: str,
        operation: Callable[[ISLAUnitOfWork], Awaitable[List[ClockEvaluation]]]
    ) -> List[ClockEvaluation]:
        """
        Run operation in a fresh unit of work, retrying on version conflicts.

        Each attempt reloads and recomputes from persisted state, so a retry
        never double-applies an escalation.
        """
        last_error: Optional[ConcurrentUpdateException] = None

        for attempt in range(1, self._max_retries + 1):
            try:
                async with self._uow_factory() as uow:
                    evaluations = await operation(uow)
                    await uow.commit()
            except ConcurrentUpdateException as e:
                last_error = e
                logger.warning(
                    "Concurrent SLA update, retrying",
                    extra={"ticket_id": ticket_id, "attempt": attempt,
                           "max_retries": self._max_retries}
                )
                continue

            await self._publish(evaluations)
            return evaluations

        logger.error(
            "SLA update abandoned after retries",
            extra={"ticket_id": ticket_id, "attempts": self._max_retries}
        )
        raise last_error

    async def _publish(self, evaluations: List[ClockEvaluation]) -> None:
        for evaluation in evaluations:
            for event in evaluation.events:
                logger.info("SLA event", extra=event.to_dict())
                try:
                    await self._publisher.publish(event)
                except ExternalServiceException as e:
                    # The state change is already committed
                    logger.error(
                        "SLA event delivery failed",
                        extra={"event_type": event.event_type, "ticket_id": event.ticket_id,
                               "error": str(e)}
                    )


class PauseWindowService:
    """
    CRUD over organization-wide pause windows.

    Edits take effect on the next evaluation; clocks are not recomputed
    eagerly.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory

    async def create(self, dto: PauseWindowCreateDTO) -> PauseWindow:
        window = PauseWindow(name=dto.name, start=dto.start, end=dto.end, reason=dto.reason)
        async with self._uow_factory() as uow:
            window = await uow.pause_windows.add(window)
            await uow.commit()
        logger.info("Pause window created", extra={"window_id": window.id, "window_name": window.name})
        return window

    async def get(self, window_id: str) -> PauseWindow:
        async with self._uow_factory() as uow:
            window = await uow.pause_windows.get(window_id)
        if window is None:
            raise ResourceNotFoundException("PauseWindow", window_id)
        return window

    async def update(self, window_id: str, dto: PauseWindowUpdateDTO) -> PauseWindow:
        async with self._uow_factory() as uow:
            current = await uow.pause_windows.get(window_id)
            if current is None:
                raise ResourceNotFoundException("PauseWindow", window_id)

            changes = dto.model_dump(exclude_unset=True)
            window = PauseWindow(
                name=changes.get("name") or current.name,
                start=changes.get("start") or current.start,
                end=changes.get("end") or current.end,
                reason=changes.get("reason", current.reason),
                id=current.id,
                created_at=current.created_at,
            )
            window = await uow.pause_windows.update(window)
            await uow.commit()
        logger.info("Pause window updated", extra={"window_id": window_id})
        return window

    async def delete(self, window_id: str) -> None:
        async with self._uow_factory() as uow:
            deleted = await uow.pause_windows.delete(window_id)
            if not deleted:
                raise ResourceNotFoundException("PauseWindow", window_id)
            await uow.commit()
        logger.info("Pause window deleted", extra={"window_id": window_id})

    async def list(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[PauseWindow]:
        """All windows, or those intersecting [start, end) when both are given."""
        async with self._uow_factory() as uow:
            if start is not None and end is not None:
                return await uow.pause_windows.list_overlapping(as_utc(start), as_utc(end))
            return await uow.pause_windows.list_all()


class SLAReportingService:
    """Read-only queries over clocks and history."""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory

    async def get_clocks(self, ticket_id: str, all_cycles: bool = False) -> List[ClockState]:
        async with self._uow_factory() as uow:
            clocks = await uow.clocks.list_for_ticket(ticket_id, all_cycles=all_cycles)
        if not clocks:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return clocks

    async def get_history(
        self,
        ticket_id: str,
        clock_type: Optional[ClockType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[SLAHistoryEntry]:
        async with self._uow_factory() as uow:
            return await uow.history.list(
                ticket_id,
                clock_type=clock_type,
                start=as_utc(start) if start else None,
                end=as_utc(end) if end else None
            )

    async def dashboard(self) -> DashboardSummary:
        """
        Status counts over current clocks.

        Compliance counts every clock that is neither at risk nor missed.
        """
        async with self._uow_factory() as uow:
            counts = await uow.clocks.count_current_by_status()

        total = sum(counts.values())
        ok = counts.get(ClockStatus.RUNNING_OK, 0)
        warning = counts.get(ClockStatus.RUNNING_WARNING, 0)
        overdue = counts.get(ClockStatus.OVERDUE, 0)
        met = counts.get(ClockStatus.MET, 0)
        stopped = counts.get(ClockStatus.STOPPED, 0)

        compliance = 100.0
        if total:
            compliance = round((total - warning - overdue - stopped) / total * 100, 2)

        return DashboardSummary(
            total_clocks=total,
            ok_count=ok,
            warning_count=warning,
            overdue_count=overdue,
            met_count=met,
            stopped_count=stopped,
            compliance_rate=compliance,
        )
