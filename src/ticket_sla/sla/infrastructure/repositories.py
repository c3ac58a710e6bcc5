"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ticket_sla.config import ClockStatus, ClockType, RUNNING_STATUSES
from ticket_sla.core import ConcurrentUpdateException, RepositoryException
from ticket_sla.sla.application import (
    IClockRepository,
    IPauseWindowRepository,
    ISLAHistoryRepository,
    ISLAUnitOfWork,
    ITrackedTicketRepository,
)
from ticket_sla.sla.domain import ClockState, PauseWindow, SLAHistoryEntry, TrackedTicket
from ticket_sla.sla.infrastructure.models import (
    ClockStateModel,
    PauseWindowModel,
    SLAHistoryModel,
    TrackedTicketModel,
)


def _as_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (TypeError, ValueError):
        return None


class SQLAlchemyClockRepository(IClockRepository):
    """
    SQLAlchemy implementation of the clock repository.

    Writes flush immediately so version conflicts surface at the call
    that caused them.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: ClockStateModel) -> ClockState:
        return ClockState(
            id=str(model.id),
            version=model.version,
            ticket_id=model.ticket_id,
            clock_type=ClockType(model.clock_type),
            cycle=model.cycle,
            rule_id=model.rule_id,
            priority_key=model.priority_key,
            started_at=model.started_at,
            target_minutes=model.target_minutes,
            warning_threshold_pct=model.warning_threshold_pct,
            business_hours_only=model.business_hours_only,
            status=ClockStatus(model.status),
            elapsed_minutes=model.elapsed_minutes,
            stopped_at=model.stopped_at,
            last_evaluated_at=model.last_evaluated_at,
            escalated_threshold_pct=model.escalated_threshold_pct,
        )

    @staticmethod
    def _apply(model: ClockStateModel, clock: ClockState) -> None:
        model.rule_id = clock.rule_id
        model.priority_key = clock.priority_key
        model.target_minutes = clock.target_minutes
        model.warning_threshold_pct = clock.warning_threshold_pct
        model.business_hours_only = clock.business_hours_only
        model.status = clock.status.value
        model.started_at = clock.started_at
        model.stopped_at = clock.stopped_at
        model.elapsed_minutes = clock.elapsed_minutes
        model.last_evaluated_at = clock.last_evaluated_at
        model.escalated_threshold_pct = clock.escalated_threshold_pct

    async def _flush(self, clock: ClockState) -> None:
        try:
            await self._session.flush()
        except (StaleDataError, IntegrityError) as e:
            raise ConcurrentUpdateException(
                clock.ticket_id,
                clock.clock_type.value,
                {"ticket_id": clock.ticket_id, "clock_type": clock.clock_type.value,
                 "cycle": clock.cycle, "error": str(e)}
            ) from e

    async def get_latest(self, ticket_id: str, clock_type: ClockType) -> Optional[ClockState]:
        stmt = (
            select(ClockStateModel)
            .where(
                ClockStateModel.ticket_id == ticket_id,
                ClockStateModel.clock_type == clock_type.value
            )
            .order_by(ClockStateModel.cycle.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_for_ticket(self, ticket_id: str, all_cycles: bool = False) -> List[ClockState]:
        stmt = (
            select(ClockStateModel)
            .where(ClockStateModel.ticket_id == ticket_id)
            .order_by(ClockStateModel.clock_type, ClockStateModel.cycle)
        )
        result = await self._session.execute(stmt)
        clocks = [self._to_domain(m) for m in result.scalars().all()]
        if all_cycles:
            return clocks

        # Rows are ordered by cycle, so the last one per type wins
        latest: Dict[ClockType, ClockState] = {}
        for clock in clocks:
            latest[clock.clock_type] = clock
        return list(latest.values())

    async def add(self, clock: ClockState) -> ClockState:
        model = ClockStateModel(
            id=uuid4(),
            ticket_id=clock.ticket_id,
            clock_type=clock.clock_type.value,
            cycle=clock.cycle,
        )
        self._apply(model, clock)
        self._session.add(model)
        await self._flush(clock)

        clock.id = str(model.id)
        clock.version = model.version
        return clock

    async def save(self, clock: ClockState) -> ClockState:
        model_id = _as_uuid(clock.id) if clock.id else None
        model = await self._session.get(ClockStateModel, model_id) if model_id else None
        if model is None:
            raise RepositoryException(
                f"Clock {clock.ticket_id}/{clock.clock_type.value} cycle {clock.cycle} not found"
            )
        if model.version != clock.version:
            raise ConcurrentUpdateException(clock.ticket_id, clock.clock_type.value)

        self._apply(model, clock)
        await self._flush(clock)

        clock.version = model.version
        return clock

    async def list_running_keys(self, limit: int = 1000) -> List[Tuple[str, ClockType]]:
        stmt = (
            select(ClockStateModel.ticket_id, ClockStateModel.clock_type)
            .where(ClockStateModel.status.in_([s.value for s in RUNNING_STATUSES]))
            .order_by(ClockStateModel.last_evaluated_at.asc().nulls_first())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [(ticket_id, ClockType(clock_type)) for ticket_id, clock_type in result.all()]

    async def count_current_by_status(self) -> Dict[ClockStatus, int]:
        latest = (
            select(
                ClockStateModel.ticket_id,
                ClockStateModel.clock_type,
                func.max(ClockStateModel.cycle).label("cycle")
            )
            .group_by(ClockStateModel.ticket_id, ClockStateModel.clock_type)
            .subquery()
        )
        stmt = (
            select(ClockStateModel.status, func.count())
            .join(latest, and_(
                ClockStateModel.ticket_id == latest.c.ticket_id,
                ClockStateModel.clock_type == latest.c.clock_type,
                ClockStateModel.cycle == latest.c.cycle
            ))
            .group_by(ClockStateModel.status)
        )
        result = await self._session.execute(stmt)
        return {ClockStatus(status): count for status, count in result.all()}


class SQLAlchemySLAHistoryRepository(ISLAHistoryRepository):
    """Append-only history; rows are never updated."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, entry: SLAHistoryEntry) -> SLAHistoryEntry:
        model = SLAHistoryModel(
            ticket_id=entry.ticket_id,
            clock_type=entry.clock_type.value,
            cycle=entry.cycle,
            status=entry.status.value,
            elapsed_minutes=entry.elapsed_minutes,
            target_minutes=entry.target_minutes,
            recorded_at=entry.recorded_at,
        )
        self._session.add(model)
        return entry

    async def list(
        self,
        ticket_id: str,
        clock_type: Optional[ClockType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[SLAHistoryEntry]:
        stmt = select(SLAHistoryModel).where(SLAHistoryModel.ticket_id == ticket_id)
        if clock_type is not None:
            stmt = stmt.where(SLAHistoryModel.clock_type == clock_type.value)
        if start is not None:
            stmt = stmt.where(SLAHistoryModel.recorded_at >= start)
        if end is not None:
            stmt = stmt.where(SLAHistoryModel.recorded_at < end)
        stmt = stmt.order_by(SLAHistoryModel.clock_type, SLAHistoryModel.recorded_at, SLAHistoryModel.id)

        result = await self._session.execute(stmt)
        return [
            SLAHistoryEntry(
                id=m.id,
                ticket_id=m.ticket_id,
                clock_type=ClockType(m.clock_type),
                cycle=m.cycle,
                status=ClockStatus(m.status),
                elapsed_minutes=m.elapsed_minutes,
                target_minutes=m.target_minutes,
                recorded_at=m.recorded_at,
            )
            for m in result.scalars().all()
        ]


class SQLAlchemyTrackedTicketRepository(ITrackedTicketRepository):
    """
    Ticket rows are versioned. save() always issues an UPDATE, so two
    events racing on one ticket cannot both commit.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, ticket_id: str) -> Optional[TrackedTicket]:
        model = await self._session.get(TrackedTicketModel, ticket_id)
        if model is None:
            return None
        return TrackedTicket(
            ticket_id=model.ticket_id,
            priority_key=model.priority_key,
            created_at=model.created_at,
            first_responded_at=model.first_responded_at,
            resolved_at=model.resolved_at,
            reopened_at=model.reopened_at,
            version=model.version,
        )

    async def add(self, ticket: TrackedTicket) -> TrackedTicket:
        model = TrackedTicketModel(
            ticket_id=ticket.ticket_id,
            priority_key=ticket.priority_key,
            created_at=ticket.created_at,
            first_responded_at=ticket.first_responded_at,
            resolved_at=ticket.resolved_at,
            reopened_at=ticket.reopened_at,
        )
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as e:
            # Another writer started tracking the same ticket first
            raise ConcurrentUpdateException(ticket.ticket_id) from e
        ticket.version = model.version
        return ticket

    async def save(self, ticket: TrackedTicket) -> TrackedTicket:
        model = await self._session.get(TrackedTicketModel, ticket.ticket_id)
        if model is None:
            raise RepositoryException(f"Tracked ticket {ticket.ticket_id} not found")
        if model.version != ticket.version:
            raise ConcurrentUpdateException(ticket.ticket_id)

        model.priority_key = ticket.priority_key
        model.first_responded_at = ticket.first_responded_at
        model.resolved_at = ticket.resolved_at
        model.reopened_at = ticket.reopened_at
        # Dirty the row even when no fact changed so the version check runs
        model.updated_at = datetime.now(timezone.utc)
        try:
            await self._session.flush()
        except StaleDataError as e:
            raise ConcurrentUpdateException(
                ticket.ticket_id, details={"ticket_id": ticket.ticket_id, "error": str(e)}
            ) from e

        ticket.version = model.version
        return ticket


class SQLAlchemyPauseWindowRepository(IPauseWindowRepository):
    """SQLAlchemy implementation of the pause window repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: PauseWindowModel) -> PauseWindow:
        return PauseWindow(
            id=str(model.id),
            name=model.name,
            start=model.start,
            end=model.end,
            reason=model.reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def add(self, window: PauseWindow) -> PauseWindow:
        model = PauseWindowModel(
            id=uuid4(),
            name=window.name,
            start=window.start,
            end=window.end,
            reason=window.reason,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_domain(model)

    async def get(self, window_id: str) -> Optional[PauseWindow]:
        model_id = _as_uuid(window_id)
        if model_id is None:
            return None
        model = await self._session.get(PauseWindowModel, model_id)
        return self._to_domain(model) if model else None

    async def update(self, window: PauseWindow) -> PauseWindow:
        model_id = _as_uuid(window.id) if window.id else None
        model = await self._session.get(PauseWindowModel, model_id) if model_id else None
        if model is None:
            raise RepositoryException(f"Pause window {window.id} not found")

        model.name = window.name
        model.start = window.start
        model.end = window.end
        model.reason = window.reason
        await self._session.flush()
        return self._to_domain(model)

    async def delete(self, window_id: str) -> bool:
        model_id = _as_uuid(window_id)
        if model_id is None:
            return False
        result = await self._session.execute(
            delete(PauseWindowModel).where(PauseWindowModel.id == model_id)
        )
        return result.rowcount > 0

    async def list_all(self) -> List[PauseWindow]:
        result = await self._session.execute(
            select(PauseWindowModel).order_by(PauseWindowModel.start)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_overlapping(self, start: datetime, end: datetime) -> List[PauseWindow]:
        stmt = (
            select(PauseWindowModel)
            .where(PauseWindowModel.start < end, PauseWindowModel.end > start)
            .order_by(PauseWindowModel.start)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]


class SQLAlchemyUnitOfWork(ISLAUnitOfWork):
    """
    One AsyncSession shared by all SLA repositories.

    Usage:
        async with SQLAlchemyUnitOfWork(session_maker) as uow:
            clock = await uow.clocks.get_latest(ticket_id, ClockType.RESPONSE)
            ...
            await uow.commit()
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self._session = self._session_maker()
        self.clocks = SQLAlchemyClockRepository(self._session)
        self.history = SQLAlchemySLAHistoryRepository(self._session)
        self.tickets = SQLAlchemyTrackedTicketRepository(self._session)
        self.pause_windows = SQLAlchemyPauseWindowRepository(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self._session.in_transaction():
                await self._session.rollback()
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except (StaleDataError, IntegrityError) as e:
            await self._session.rollback()
            raise ConcurrentUpdateException("unknown", details={"error": str(e)}) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise RepositoryException("Failed to commit SLA transaction", {"error": str(e)}) from e

    async def rollback(self) -> None:
        await self._session.rollback()
