"""
Unit Tests for the Clock Evaluator
Status thresholds, stop semantics and the response clock walkthrough of an
urgent ticket opened Monday 09:00.
"""
from datetime import timedelta

import pytest

from ticket_sla.config import ClockStatus, ClockType
from ticket_sla.sla.domain import ClockEvaluator, ClockState, SLASnapshot

from conftest import MONDAY_9AM, make_config


def at(minutes: float):
    return MONDAY_9AM + timedelta(minutes=minutes)


@pytest.fixture
def snapshot():
    return SLASnapshot(config=make_config())


@pytest.fixture
def response_clock(snapshot):
    rule = snapshot.config.active_rule_for("urgent")
    return ClockState.start("T-1", ClockType.RESPONSE, rule, MONDAY_9AM)


class TestDeriveStatus:

    @pytest.mark.parametrize("elapsed, expected", [
        (0, ClockStatus.RUNNING_OK),
        (44, ClockStatus.RUNNING_OK),
        (45, ClockStatus.RUNNING_WARNING),
        (46, ClockStatus.RUNNING_WARNING),
        (59.9, ClockStatus.RUNNING_WARNING),
        (60, ClockStatus.OVERDUE),
        (61, ClockStatus.OVERDUE),
    ])
    def test_thresholds(self, elapsed, expected):
        assert ClockEvaluator.derive_status(elapsed, 60, 75) == expected

    def test_overdue_is_sticky(self):
        status = ClockEvaluator.derive_status(10, 480, 75, previous_status=ClockStatus.OVERDUE)
        assert status == ClockStatus.OVERDUE


class TestEvaluate:

    def test_warning_transition_emits_status_change(self, snapshot, response_clock):
        evaluation = ClockEvaluator().evaluate(response_clock, snapshot, at(46))

        assert response_clock.status == ClockStatus.RUNNING_WARNING
        assert response_clock.elapsed_minutes == pytest.approx(46)
        assert evaluation.previous_status == ClockStatus.RUNNING_OK
        assert evaluation.status_changed.new_status == ClockStatus.RUNNING_WARNING
        assert evaluation.history_entry.status == ClockStatus.RUNNING_WARNING
        assert evaluation.history_entry.recorded_at == at(46)

    def test_unchanged_status_emits_no_status_event(self, snapshot, response_clock):
        evaluator = ClockEvaluator()
        evaluator.evaluate(response_clock, snapshot, at(10))
        evaluation = evaluator.evaluate(response_clock, snapshot, at(20))

        assert evaluation.status_changed is None
        assert evaluation.history_entry.elapsed_minutes == pytest.approx(20)

    def test_elapsed_is_recomputed_not_accumulated(self, snapshot, response_clock):
        evaluator = ClockEvaluator()
        for _ in range(5):
            evaluator.evaluate(response_clock, snapshot, at(30))
        assert response_clock.elapsed_minutes == pytest.approx(30)

    def test_rule_edits_apply_on_next_evaluation(self, response_clock):
        rules = make_config().model_dump()["rules"]
        rules[0]["response_target_minutes"] = 30
        edited = SLASnapshot(config=make_config(rules=rules))

        ClockEvaluator().evaluate(response_clock, edited, at(31))

        assert response_clock.target_minutes == 30
        assert response_clock.status == ClockStatus.OVERDUE

    def test_terminal_clock_is_not_evaluated(self, snapshot, response_clock):
        evaluator = ClockEvaluator()
        evaluator.stop(response_clock, snapshot, at(10))
        assert evaluator.evaluate(response_clock, snapshot, at(90)) is None
        assert response_clock.elapsed_minutes == pytest.approx(10)


class TestStop:

    def test_stop_under_target_is_met(self, snapshot, response_clock):
        evaluation = ClockEvaluator().stop(response_clock, snapshot, at(30))

        assert response_clock.status == ClockStatus.MET
        assert response_clock.stopped_at == at(30)
        assert evaluation.status_changed.new_status == ClockStatus.MET
        assert evaluation.threshold_crossings == []

    def test_stop_over_target_is_stopped(self, snapshot, response_clock):
        ClockEvaluator().stop(response_clock, snapshot, at(75))
        assert response_clock.status == ClockStatus.STOPPED

    def test_second_stop_is_a_noop(self, snapshot, response_clock):
        evaluator = ClockEvaluator()
        evaluator.stop(response_clock, snapshot, at(30))
        assert evaluator.stop(response_clock, snapshot, at(90)) is None
        assert response_clock.stopped_at == at(30)

    def test_stop_emits_no_escalation(self, snapshot, response_clock):
        evaluation = ClockEvaluator().stop(response_clock, snapshot, at(70))
        assert evaluation.threshold_crossings == []
        assert response_clock.escalated_threshold_pct == 0


class TestMondayMorningWalkthrough:
    """Urgent ticket created 09:00 Monday, 60 minute response target, no pauses."""

    def test_response_clock_lifecycle(self, snapshot, response_clock):
        evaluator = ClockEvaluator()

        evaluator.evaluate(response_clock, snapshot, at(46))
        assert response_clock.status == ClockStatus.RUNNING_WARNING
        assert response_clock.percent_elapsed == pytest.approx(76.7, abs=0.05)

        evaluator.evaluate(response_clock, snapshot, at(61))
        assert response_clock.status == ClockStatus.OVERDUE

        evaluator.stop(response_clock, snapshot, at(65))
        assert response_clock.status == ClockStatus.STOPPED
        assert response_clock.elapsed_minutes == pytest.approx(65)

        for minutes in (70, 120, 600):
            assert evaluator.evaluate(response_clock, snapshot, at(minutes)) is None
        assert response_clock.status == ClockStatus.STOPPED
        assert response_clock.elapsed_minutes == pytest.approx(65)
