"""
Escalation Dispatcher
=====================

Decides which escalation tiers a clock has newly crossed.

The highest threshold already notified is stored on the clock itself
(escalated_threshold_pct) and persisted with it, so a threshold fires at most
once per clock cycle no matter how often the clock is evaluated or how
often the process restarts.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from ticket_sla.sla.domain.entities import ClockState
from ticket_sla.sla.domain.events import SLAThresholdCrossed
from ticket_sla.sla.domain.value_objects import EscalationRule


class EscalationDispatcher:
    """Stateless; all dedupe state lives on the ClockState."""

    def dispatch(
        self,
        clock: ClockState,
        escalation_rules: Iterable[EscalationRule],
        occurred_at: Optional[datetime] = None
    ) -> List[SLAThresholdCrossed]:
        """
        Return one crossing event per tier in (escalated_threshold_pct, current%].

        Tiers are visited in ascending threshold order and the clock's
        high-water mark is raised as each one fires.
        """
        current_pct = clock.percent_elapsed
        crossings: List[SLAThresholdCrossed] = []

        for rule in sorted(escalation_rules, key=lambda r: r.threshold_pct):
            if not rule.active:
                continue
            if rule.threshold_pct <= clock.escalated_threshold_pct:
                continue
            if rule.threshold_pct > current_pct:
                break

            crossings.append(SLAThresholdCrossed(
                ticket_id=clock.ticket_id,
                clock_type=clock.clock_type,
                threshold_pct=rule.threshold_pct,
                notify_roles=tuple(rule.notify_roles),
                occurred_at=occurred_at,
                notification_template=rule.notification_template,
            ))
            clock.escalated_threshold_pct = rule.threshold_pct

        return crossings
