"""
Unit Tests for Escalation
Tier selection in the dispatcher and once-per-threshold delivery through the
engine, including across engine restarts.
"""
from datetime import timedelta

import pytest

from ticket_sla.config import ClockType, NotifyRole
from ticket_sla.sla.application import SLAEngine
from ticket_sla.sla.domain import ClockState, EscalationDispatcher, EscalationRule, SLARule

from conftest import MONDAY_9AM, RecordingPublisher


def tier(threshold, roles=("admin",), active=True):
    return EscalationRule(rule_id="urgent", threshold_pct=threshold,
                          notify_roles=list(roles), active=active)


class TestEscalationDispatcher:

    @pytest.fixture
    def clock(self):
        rule = SLARule(id="urgent", priority_key="urgent", response_target_minutes=60)
        return ClockState.start("T-1", ClockType.RESPONSE, rule, MONDAY_9AM)

    def test_nothing_below_first_threshold(self, clock):
        clock.elapsed_minutes = 29
        assert EscalationDispatcher().dispatch(clock, [tier(50)]) == []
        assert clock.escalated_threshold_pct == 0

    def test_threshold_is_inclusive(self, clock):
        clock.elapsed_minutes = 30
        crossings = EscalationDispatcher().dispatch(clock, [tier(50, ("agent",))])

        assert [c.threshold_pct for c in crossings] == [50]
        assert crossings[0].notify_roles == (NotifyRole.AGENT,)
        assert clock.escalated_threshold_pct == 50

    def test_jump_past_several_tiers_fires_each_once_in_order(self, clock):
        clock.elapsed_minutes = 90
        crossings = EscalationDispatcher().dispatch(clock, [tier(100), tier(50), tier(75)])

        assert [c.threshold_pct for c in crossings] == [50, 75, 100]
        assert clock.escalated_threshold_pct == 100

    def test_already_notified_tiers_are_skipped(self, clock):
        dispatcher = EscalationDispatcher()
        clock.elapsed_minutes = 40
        dispatcher.dispatch(clock, [tier(50), tier(100)])

        clock.elapsed_minutes = 50
        assert dispatcher.dispatch(clock, [tier(50), tier(100)]) == []

        clock.elapsed_minutes = 60
        crossings = dispatcher.dispatch(clock, [tier(50), tier(100)])
        assert [c.threshold_pct for c in crossings] == [100]

    def test_crossing_carries_notification_template(self, clock):
        clock.elapsed_minutes = 60
        templated = EscalationRule(
            rule_id="urgent", threshold_pct=100, notify_roles=["admin"],
            notification_template="Ticket {ticket_id} breached its {clock_type} SLA"
        )
        crossings = EscalationDispatcher().dispatch(clock, [tier(50), templated])

        assert [c.notification_template for c in crossings] == [
            None, "Ticket {ticket_id} breached its {clock_type} SLA"
        ]
        assert crossings[1].to_dict()["notification_template"] == (
            "Ticket {ticket_id} breached its {clock_type} SLA"
        )

    def test_inactive_tier_is_ignored(self, clock):
        clock.elapsed_minutes = 60
        crossings = EscalationDispatcher().dispatch(clock, [tier(50, active=False), tier(100)])
        assert [c.threshold_pct for c in crossings] == [100]


class TestEngineEscalation:

    async def test_fires_once_across_repeated_evaluations(self, sla_engine, publisher, clock):
        await sla_engine.on_ticket_created("T-1", "urgent", MONDAY_9AM)

        clock.advance(minutes=31)
        for _ in range(10):
            await sla_engine.evaluate_ticket("T-1")

        crossings = publisher.of_type("sla_threshold_crossed")
        assert [(c.clock_type, c.threshold_pct) for c in crossings] == [(ClockType.RESPONSE, 50)]

    async def test_high_water_mark_survives_restart(
        self, uow_factory, config_provider, sla_engine, publisher, clock
    ):
        await sla_engine.on_ticket_created("T-1", "urgent", MONDAY_9AM)
        clock.advance(minutes=31)
        await sla_engine.evaluate_clock("T-1", ClockType.RESPONSE)

        restarted_publisher = RecordingPublisher()
        restarted = SLAEngine(
            uow_factory=uow_factory,
            config_provider=config_provider,
            publisher=restarted_publisher,
            now_provider=clock,
        )
        await restarted.evaluate_clock("T-1", ClockType.RESPONSE)
        assert restarted_publisher.of_type("sla_threshold_crossed") == []

        clock.advance(minutes=30)
        await restarted.evaluate_clock("T-1", ClockType.RESPONSE)
        crossings = restarted_publisher.of_type("sla_threshold_crossed")
        assert [c.threshold_pct for c in crossings] == [100]
        assert set(crossings[0].notify_roles) == {NotifyRole.ADMIN, NotifyRole.AGENT}

    async def test_stop_does_not_escalate(self, sla_engine, publisher, clock):
        await sla_engine.on_ticket_created("T-1", "urgent", MONDAY_9AM)

        await sla_engine.on_first_response("T-1", MONDAY_9AM + timedelta(minutes=70))

        assert publisher.of_type("sla_threshold_crossed") == []
        clock.advance(minutes=120)
        await sla_engine.evaluate_clock("T-1", ClockType.RESPONSE)
        assert publisher.of_type("sla_threshold_crossed") == []

    async def test_sweep_counts_escalations(self, sla_engine, clock):
        await sla_engine.on_ticket_created("T-1", "urgent", MONDAY_9AM)
        await sla_engine.on_ticket_created("T-2", "urgent", MONDAY_9AM)

        clock.advance(minutes=61)
        result = await sla_engine.sweep()

        # response clocks cross 50 and 100; resolution clocks are at 25%
        assert result.escalations == 4
        again = await sla_engine.sweep()
        assert again.escalations == 0
