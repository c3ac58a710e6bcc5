"""
SLA Application Layer
======================

Application layer for the SLA engine.

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from ticket_sla.sla.application.dto import (
    ClockStateResponse,
    DashboardSummary,
    EventBatchRequest,
    EventBatchResponse,
    HistoryEntryResponse,
    LifecycleEventDTO,
    PauseWindowCreateDTO,
    PauseWindowResponse,
    PauseWindowUpdateDTO,
    SweepResponse,
    TicketClocksResponse,
    TicketCreatedEvent,
    TicketFirstResponseEvent,
    TicketHistoryResponse,
    TicketPriorityChangedEvent,
    TicketReopenedEvent,
    TicketResolvedOrClosedEvent,
)
from ticket_sla.sla.application.services import (
    IClockRepository,
    IEventPublisher,
    IPauseWindowRepository,
    ISLAConfigProvider,
    ISLAHistoryRepository,
    ISLAUnitOfWork,
    ITrackedTicketRepository,
    PauseWindowService,
    SLAEngine,
    SLAReportingService,
    SweepResult,
)

__all__ = [
    # DTOs
    "ClockStateResponse",
    "DashboardSummary",
    "EventBatchRequest",
    "EventBatchResponse",
    "HistoryEntryResponse",
    "LifecycleEventDTO",
    "PauseWindowCreateDTO",
    "PauseWindowResponse",
    "PauseWindowUpdateDTO",
    "SweepResponse",
    "TicketClocksResponse",
    "TicketCreatedEvent",
    "TicketFirstResponseEvent",
    "TicketHistoryResponse",
    "TicketPriorityChangedEvent",
    "TicketReopenedEvent",
    "TicketResolvedOrClosedEvent",
    # Services
    "SLAEngine",
    "PauseWindowService",
    "SLAReportingService",
    "SweepResult",
    # Repository Interfaces
    "IClockRepository",
    "ISLAHistoryRepository",
    "ITrackedTicketRepository",
    "IPauseWindowRepository",
    "ISLAUnitOfWork",
    "ISLAConfigProvider",
    "IEventPublisher",
]
