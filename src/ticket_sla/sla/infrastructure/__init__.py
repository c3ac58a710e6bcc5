"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for the SLA engine:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer and unit of work
- External: Config watcher, event publisher, sweep scheduler
"""

from ticket_sla.sla.infrastructure.external import (
    CircuitBreaker,
    HttpEventPublisher,
    SLAConfigManager,
    SLAScheduler,
)
from ticket_sla.sla.infrastructure.models import (
    ClockStateModel,
    PauseWindowModel,
    SLAHistoryModel,
    TrackedTicketModel,
)
from ticket_sla.sla.infrastructure.repositories import (
    SQLAlchemyClockRepository,
    SQLAlchemyPauseWindowRepository,
    SQLAlchemySLAHistoryRepository,
    SQLAlchemyTrackedTicketRepository,
    SQLAlchemyUnitOfWork,
)

__all__ = [
    "ClockStateModel",
    "PauseWindowModel",
    "SLAHistoryModel",
    "TrackedTicketModel",
    "SQLAlchemyClockRepository",
    "SQLAlchemyPauseWindowRepository",
    "SQLAlchemySLAHistoryRepository",
    "SQLAlchemyTrackedTicketRepository",
    "SQLAlchemyUnitOfWork",
    "CircuitBreaker",
    "HttpEventPublisher",
    "SLAConfigManager",
    "SLAScheduler",
]
