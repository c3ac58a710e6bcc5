"""
SLA Controllers (API Routes)
=============================

FastAPI routes for the SLA engine.

Controllers are thin - they delegate to application services. Domain and
application exceptions are mapped to HTTP responses by the handlers
registered in main.
"""

import time
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ticket_sla.config import ClockType
from ticket_sla.core import ApplicationException
from ticket_sla.shared.infrastructure.logging import get_logger
from ticket_sla.sla.application import (
    ClockStateResponse,
    DashboardSummary,
    EventBatchRequest,
    EventBatchResponse,
    HistoryEntryResponse,
    PauseWindowCreateDTO,
    PauseWindowResponse,
    PauseWindowService,
    PauseWindowUpdateDTO,
    SLAEngine,
    SLAReportingService,
    SweepResponse,
    TicketClocksResponse,
    TicketHistoryResponse,
)
from ticket_sla.sla.application.services import ISLAConfigProvider
from ticket_sla.sla.domain import PauseWindow, SLAConfig

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Example payloads for Swagger ==========

EVENT_BATCH_EXAMPLE = {
    "events": [
        {"type": "ticket_created", "ticket_id": "TICKET-001", "priority": "high",
         "created_at": "2024-01-15T10:00:00Z"},
        {"type": "ticket_first_response", "ticket_id": "TICKET-001",
         "responded_at": "2024-01-15T10:45:00Z"}
    ]
}


# ========== Dependencies ==========

def get_engine(request: Request) -> SLAEngine:
    return request.app.state.sla_engine


def get_pause_window_service(request: Request) -> PauseWindowService:
    return request.app.state.pause_window_service


def get_reporting_service(request: Request) -> SLAReportingService:
    return request.app.state.reporting_service


def get_config_provider(request: Request) -> ISLAConfigProvider:
    return request.app.state.sla_config_provider


def _window_response(window: PauseWindow) -> PauseWindowResponse:
    return PauseWindowResponse(
        id=window.id,
        name=window.name,
        start=window.start,
        end=window.end,
        reason=window.reason,
        created_at=window.created_at,
        updated_at=window.updated_at,
    )


# ========== Lifecycle Events ==========

@router.post(
    "/events",
    response_model=EventBatchResponse,
    summary="Ingest ticket lifecycle events",
    description="""
    Apply a batch of ticket lifecycle events in order.

    **Event types**: `ticket_created`, `ticket_priority_changed`,
    `ticket_first_response`, `ticket_resolved_or_closed`, `ticket_reopened`

    Each event is applied in its own transaction; a failing event is reported
    in `errors` and does not stop the rest of the batch. Replayed events are
    no-ops.
    """,
    responses={200: {"description": "Events applied"}},
    openapi_extra={"requestBody": {"content": {"application/json": {"example": EVENT_BATCH_EXAMPLE}}}}
)
async def ingest_events(
    request: EventBatchRequest,
    engine: SLAEngine = Depends(get_engine)
):
    start_time = time.perf_counter()

    processed = 0
    failed = 0
    touched = 0
    errors = []

    for event in request.events:
        try:
            evaluations = await engine.handle(event)
        except Exception as e:
            # Earlier events are already committed; report this one and go on
            message = e.message if isinstance(e, ApplicationException) else str(e)
            failed += 1
            errors.append(f"{event.ticket_id} ({event.type}): {message}")
            logger.error(
                "Failed to apply lifecycle event",
                extra={"ticket_id": event.ticket_id, "event_type": event.type,
                       "error": message, "error_type": type(e).__name__}
            )
            continue
        processed += 1
        touched += len(evaluations)

    logger.info(
        "Lifecycle events applied",
        extra={
            "events_processed": processed,
            "events_failed": failed,
            "processing_time_ms": int((time.perf_counter() - start_time) * 1000)
        }
    )

    return EventBatchResponse(processed=processed, failed=failed, clocks_touched=touched, errors=errors)


@router.post(
    "/tickets/{ticket_id}/evaluate",
    response_model=TicketClocksResponse,
    summary="Evaluate a ticket's running clocks now"
)
async def evaluate_ticket(
    ticket_id: str,
    engine: SLAEngine = Depends(get_engine),
    reporting: SLAReportingService = Depends(get_reporting_service)
):
    await engine.evaluate_ticket(ticket_id)
    clocks = await reporting.get_clocks(ticket_id)
    return TicketClocksResponse(
        ticket_id=ticket_id,
        clocks=[ClockStateResponse.from_domain(c) for c in clocks]
    )


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Run a sweep over all running clocks"
)
async def run_sweep(engine: SLAEngine = Depends(get_engine)):
    result = await engine.sweep()
    return SweepResponse(
        started_at=result.started_at,
        evaluated=result.evaluated,
        failed=result.failed,
        status_changes=result.status_changes,
        escalations=result.escalations,
        errors=result.errors,
    )


# ========== Reporting ==========

@router.get(
    "/tickets/{ticket_id}/clocks",
    response_model=TicketClocksResponse,
    summary="Get a ticket's SLA clocks",
    responses={404: {"description": "Ticket has no clocks"}}
)
async def get_ticket_clocks(
    ticket_id: str,
    all_cycles: bool = Query(False, description="Include clocks of earlier resolution cycles"),
    reporting: SLAReportingService = Depends(get_reporting_service)
):
    clocks = await reporting.get_clocks(ticket_id, all_cycles=all_cycles)
    return TicketClocksResponse(
        ticket_id=ticket_id,
        clocks=[ClockStateResponse.from_domain(c) for c in clocks]
    )


@router.get(
    "/tickets/{ticket_id}/history",
    response_model=TicketHistoryResponse,
    summary="Get a ticket's SLA history"
)
async def get_ticket_history(
    ticket_id: str,
    clock_type: Optional[ClockType] = Query(None),
    start: Optional[datetime] = Query(None, description="Recorded at or after"),
    end: Optional[datetime] = Query(None, description="Recorded before"),
    reporting: SLAReportingService = Depends(get_reporting_service)
):
    entries = await reporting.get_history(ticket_id, clock_type=clock_type, start=start, end=end)
    return TicketHistoryResponse(
        ticket_id=ticket_id,
        entries=[
            HistoryEntryResponse(
                ticket_id=e.ticket_id,
                clock_type=e.clock_type,
                cycle=e.cycle,
                status=e.status,
                elapsed_minutes=round(e.elapsed_minutes, 2),
                target_minutes=e.target_minutes,
                recorded_at=e.recorded_at,
            )
            for e in entries
        ]
    )


@router.get(
    "/dashboard",
    response_model=DashboardSummary,
    summary="Get SLA status counts"
)
async def get_dashboard(reporting: SLAReportingService = Depends(get_reporting_service)):
    return await reporting.dashboard()


@router.get(
    "/config",
    response_model=SLAConfig,
    summary="Get the active SLA configuration"
)
async def get_config(config_provider: ISLAConfigProvider = Depends(get_config_provider)):
    return config_provider.get_config()


# ========== Pause Windows ==========

@router.post(
    "/pause-windows",
    response_model=PauseWindowResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a pause window"
)
async def create_pause_window(
    dto: PauseWindowCreateDTO,
    service: PauseWindowService = Depends(get_pause_window_service)
):
    return _window_response(await service.create(dto))


@router.get(
    "/pause-windows",
    response_model=List[PauseWindowResponse],
    summary="List pause windows"
)
async def list_pause_windows(
    start: Optional[datetime] = Query(None, description="Only windows overlapping [start, end)"),
    end: Optional[datetime] = Query(None),
    service: PauseWindowService = Depends(get_pause_window_service)
):
    return [_window_response(w) for w in await service.list(start=start, end=end)]


@router.get(
    "/pause-windows/{window_id}",
    response_model=PauseWindowResponse,
    responses={404: {"description": "Pause window not found"}}
)
async def get_pause_window(
    window_id: str,
    service: PauseWindowService = Depends(get_pause_window_service)
):
    return _window_response(await service.get(window_id))


@router.patch(
    "/pause-windows/{window_id}",
    response_model=PauseWindowResponse,
    responses={404: {"description": "Pause window not found"}}
)
async def update_pause_window(
    window_id: str,
    dto: PauseWindowUpdateDTO,
    service: PauseWindowService = Depends(get_pause_window_service)
):
    return _window_response(await service.update(window_id, dto))


@router.delete(
    "/pause-windows/{window_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Pause window not found"}}
)
async def delete_pause_window(
    window_id: str,
    service: PauseWindowService = Depends(get_pause_window_service)
):
    await service.delete(window_id)


sla_router = router
