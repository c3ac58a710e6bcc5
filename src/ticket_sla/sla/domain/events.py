"""
SLA Domain Events
=================

Events emitted to the messaging collaborator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ticket_sla.config import ClockStatus, ClockType, NotifyRole


@dataclass(frozen=True)
class SLAStatusChanged:
    """A clock moved from one status to another."""

    ticket_id: str
    clock_type: ClockType
    old_status: Optional[ClockStatus]
    new_status: ClockStatus
    elapsed_minutes: float
    target_minutes: int
    occurred_at: Optional[datetime] = None

    event_type: str = field(default="sla_status_changed", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "ticket_id": self.ticket_id,
            "clock_type": self.clock_type.value,
            "old_status": self.old_status.value if self.old_status else None,
            "new_status": self.new_status.value,
            "elapsed_minutes": round(self.elapsed_minutes, 2),
            "target_minutes": self.target_minutes,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
        }


@dataclass(frozen=True)
class SLAThresholdCrossed:
    """A clock's elapsed percentage crossed an escalation threshold."""

    ticket_id: str
    clock_type: ClockType
    threshold_pct: float
    notify_roles: Tuple[NotifyRole, ...]
    occurred_at: Optional[datetime] = None
    notification_template: Optional[str] = None

    event_type: str = field(default="sla_threshold_crossed", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "ticket_id": self.ticket_id,
            "clock_type": self.clock_type.value,
            "threshold_pct": self.threshold_pct,
            "notify_roles": [role.value for role in self.notify_roles],
            "notification_template": self.notification_template,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
        }
