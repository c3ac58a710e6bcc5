"""
Pytest Configuration and Fixtures
Shared fixtures for the SLA engine tests: a file-backed SQLite database per
test, a static rule configuration, a controllable clock and a publisher
that records events.
"""
from datetime import datetime, timedelta, timezone
from typing import List

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ticket_sla.infrastructure.database import create_tables
from ticket_sla.sla.application import (
    IEventPublisher,
    ISLAConfigProvider,
    PauseWindowService,
    SLAEngine,
    SLAReportingService,
)
from ticket_sla.sla.domain import SLAConfig, SLAEvent
from ticket_sla.sla.infrastructure import SQLAlchemyUnitOfWork

# 2024-01-15 is a Monday
MONDAY_9AM = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

WEEKDAY_HOURS = [
    {"day_of_week": 0, "is_working_day": False},
    *({"day_of_week": day, "start_time": "09:00", "end_time": "18:00"} for day in range(1, 6)),
    {"day_of_week": 6, "is_working_day": False},
]


def make_config(**overrides) -> SLAConfig:
    """Rule registry used across tests; keyword arguments replace top-level sections."""
    data = {
        "timezone": "UTC",
        "rules": [
            {"id": "urgent", "priority_key": "urgent",
             "response_target_minutes": 60, "resolution_target_minutes": 240},
            {"id": "high", "priority_key": "high",
             "response_target_minutes": 120, "resolution_target_minutes": 480,
             "business_hours_only": True},
            {"id": "low", "priority_key": "low",
             "response_target_minutes": 480, "resolution_target_minutes": 4320},
        ],
        "escalation_rules": [
            {"rule_id": "urgent", "threshold_pct": 50, "notify_roles": ["agent"]},
            {"rule_id": "urgent", "threshold_pct": 100, "notify_roles": ["admin", "agent"]},
        ],
        "business_hours": WEEKDAY_HOURS,
    }
    data.update(overrides)
    return SLAConfig(**data)


class StaticConfigProvider(ISLAConfigProvider):
    """Config provider whose configuration can be swapped mid-test."""

    def __init__(self, config: SLAConfig):
        self.config = config

    def get_config(self) -> SLAConfig:
        return self.config


class RecordingPublisher(IEventPublisher):
    """Collects published events in memory."""

    def __init__(self):
        self.events: List[SLAEvent] = []

    async def publish(self, event: SLAEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[SLAEvent]:
        return [e for e in self.events if e.event_type == event_type]


class FakeClock:
    """Controllable now() for the engine."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so separate sessions really see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sla.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def uow_factory(session_maker):
    return lambda: SQLAlchemyUnitOfWork(session_maker)


@pytest.fixture
def config_provider():
    return StaticConfigProvider(make_config())


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def clock():
    return FakeClock(MONDAY_9AM)


@pytest.fixture
def sla_engine(uow_factory, config_provider, publisher, clock):
    return SLAEngine(
        uow_factory=uow_factory,
        config_provider=config_provider,
        publisher=publisher,
        sweep_concurrency=4,
        now_provider=clock,
    )


@pytest.fixture
def pause_service(uow_factory):
    return PauseWindowService(uow_factory)


@pytest.fixture
def reporting(uow_factory):
    return SLAReportingService(uow_factory)
