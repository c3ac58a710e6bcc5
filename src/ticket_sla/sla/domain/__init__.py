"""
SLA Domain Layer
================

Domain layer for the SLA engine.

Contains:
- Entities: Objects with identity (ClockState, SLAHistoryEntry, TrackedTicket)
- Value Objects: Immutable configuration (SLARule, EscalationRule, BusinessCalendar,
  PauseWindow, SLAConfig, SLASnapshot)
- Domain Services: Stateless logic (ElapsedTimeCalculator, ClockEvaluator,
  EscalationDispatcher)
- Events: SLAStatusChanged, SLAThresholdCrossed

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from ticket_sla.sla.domain.calculator import ElapsedTimeCalculator
from ticket_sla.sla.domain.entities import ClockState, SLAHistoryEntry, TrackedTicket
from ticket_sla.sla.domain.escalation import EscalationDispatcher
from ticket_sla.sla.domain.evaluator import ClockEvaluation, ClockEvaluator, SLAEvent
from ticket_sla.sla.domain.events import SLAStatusChanged, SLAThresholdCrossed
from ticket_sla.sla.domain.value_objects import (
    BusinessCalendar,
    EscalationRule,
    PauseWindow,
    SLAConfig,
    SLARule,
    SLASnapshot,
    WorkingDay,
)

__all__ = [
    # Entities
    "ClockState",
    "SLAHistoryEntry",
    "TrackedTicket",
    # Value Objects
    "BusinessCalendar",
    "EscalationRule",
    "PauseWindow",
    "SLAConfig",
    "SLARule",
    "SLASnapshot",
    "WorkingDay",
    # Domain Services
    "ElapsedTimeCalculator",
    "ClockEvaluator",
    "ClockEvaluation",
    "EscalationDispatcher",
    # Events
    "SLAEvent",
    "SLAStatusChanged",
    "SLAThresholdCrossed",
]
