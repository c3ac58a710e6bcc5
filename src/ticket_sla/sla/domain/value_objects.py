"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared, which is what lets the engine
hand a read-only configuration snapshot to every evaluation.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ticket_sla.config import ClockType, NotifyRole
from ticket_sla.core import InvalidWindowException
from ticket_sla.sla.domain.calculator import ElapsedTimeCalculator, Interval, as_utc


def _offset(value: time) -> timedelta:
    return timedelta(hours=value.hour, minutes=value.minute, seconds=value.second)


class WorkingDay(BaseModel):
    """
    One business_hours row.

    day_of_week follows the 0 = Sunday convention. An end_time of 00:00 on a
    working day means midnight at the end of that day.
    """
    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(ge=0, le=6)
    is_working_day: bool = True
    start_time: time = time(0, 0)
    end_time: time = time(0, 0)

    @property
    def start_offset(self) -> timedelta:
        return _offset(self.start_time)

    @property
    def end_offset(self) -> timedelta:
        if self.end_time == time(0, 0):
            return timedelta(days=1)
        return _offset(self.end_time)

    @model_validator(mode="after")
    def validate_hours(self) -> "WorkingDay":
        if self.is_working_day and self.end_offset < self.start_offset:
            raise ValueError(
                f"day {self.day_of_week}: end_time {self.end_time} is before start_time {self.start_time}"
            )
        return self


@dataclass(frozen=True)
class BusinessCalendar:
    """
    Weekly working-hours schedule.

    Days without an entry behave as non-working days with a zero-length
    window; an incomplete calendar is not an error.
    """
    days: Mapping[int, WorkingDay] = field(default_factory=dict)
    timezone: str = "UTC"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @staticmethod
    def day_of_week(day: date) -> int:
        """Day of week with 0 = Sunday ... 6 = Saturday."""
        return (day.weekday() + 1) % 7

    def is_working_day(self, dow: int) -> bool:
        entry = self.days.get(dow)
        return bool(entry and entry.is_working_day)

    def working_window(self, dow: int) -> Tuple[timedelta, timedelta]:
        """Working window [start, end) as offsets from local midnight."""
        entry = self.days.get(dow)
        if entry is None or not entry.is_working_day:
            return timedelta(0), timedelta(0)
        return entry.start_offset, entry.end_offset

    def working_intervals(self, start: datetime, end: datetime) -> List[Interval]:
        """
        UTC working intervals intersecting [start, end], one per local day.

        Day boundaries are taken in the calendar timezone, so 09:00 means
        09:00 wall-clock time even across a DST change.
        """
        start = as_utc(start)
        end = as_utc(end)
        if end <= start:
            return []

        tz = self.tz
        current_day = start.astimezone(tz).date()
        last_day = end.astimezone(tz).date()
        intervals: List[Interval] = []

        while current_day <= last_day:
            open_offset, close_offset = self.working_window(self.day_of_week(current_day))
            if close_offset > open_offset:
                midnight = datetime.combine(current_day, time(0, 0), tzinfo=tz)
                day_start = (midnight + open_offset).astimezone(timezone.utc)
                day_end = (midnight + close_offset).astimezone(timezone.utc)
                lower = max(start, day_start)
                upper = min(end, day_end)
                if upper > lower:
                    intervals.append((lower, upper))
            current_day += timedelta(days=1)

        return intervals


@dataclass(frozen=True)
class PauseWindow:
    """
    Organization-wide interval during which no clock accrues.

    start < end is enforced on construction, so an invalid window can never
    reach the calculator.
    """
    name: str
    start: datetime
    end: datetime
    reason: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))
        if self.start >= self.end:
            raise InvalidWindowException(self.start, self.end)

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60.0

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < as_utc(end) and self.end > as_utc(start)


class SLARule(BaseModel):
    """Per-priority SLA targets."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    priority_key: str = Field(min_length=1)
    response_target_minutes: int = Field(gt=0)
    resolution_target_minutes: Optional[int] = Field(default=None, gt=0)
    warning_threshold_pct: float = Field(default=75, gt=0, le=100)
    escalation_threshold_pct: float = Field(default=75, gt=0)
    business_hours_only: bool = False
    active: bool = True

    @field_validator("priority_key")
    @classmethod
    def normalize_priority(cls, v: str) -> str:
        return v.strip().lower()

    def target_for(self, clock_type: ClockType) -> Optional[int]:
        """Target minutes for a clock type (None when the rule defines no such clock)."""
        if clock_type == ClockType.RESPONSE:
            return self.response_target_minutes
        return self.resolution_target_minutes


class EscalationRule(BaseModel):
    """Escalation tier attached to an SLA rule."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    rule_id: str
    threshold_pct: Optional[float] = Field(default=None, gt=0)
    notify_roles: List[NotifyRole] = Field(default_factory=lambda: [NotifyRole.ADMIN], min_length=1)
    notification_template: Optional[str] = Field(
        default=None, description="Message template handed to the messaging collaborator"
    )
    active: bool = True

    @field_validator("notify_roles")
    @classmethod
    def dedupe_roles(cls, v: List[NotifyRole]) -> List[NotifyRole]:
        return list(dict.fromkeys(v))


class SLAConfig(BaseModel):
    """
    SLA configuration loaded from YAML: rule registry, escalation tiers and
    business hours.

    This is a value object - the engine reads it, never mutates it.
    """
    timezone: str = Field(default="UTC", description="IANA timezone for business hours")
    rules: List[SLARule] = Field(default_factory=list)
    escalation_rules: List[EscalationRule] = Field(default_factory=list)
    business_hours: List[WorkingDay] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone '{v}'") from e
        return v

    @field_validator("business_hours")
    @classmethod
    def validate_business_hours(cls, v: List[WorkingDay]) -> List[WorkingDay]:
        seen = set()
        for entry in v:
            if entry.day_of_week in seen:
                raise ValueError(f"duplicate business_hours entry for day {entry.day_of_week}")
            seen.add(entry.day_of_week)
        return v

    @model_validator(mode="after")
    def validate_registry(self) -> "SLAConfig":
        """Unique rule ids, one active rule per priority, escalation rules bound to known rules."""
        rules_by_id: Dict[str, SLARule] = {}
        active_priorities: Dict[str, str] = {}

        for rule in self.rules:
            if rule.id in rules_by_id:
                raise ValueError(f"duplicate SLA rule id '{rule.id}'")
            rules_by_id[rule.id] = rule
            if rule.active:
                if rule.priority_key in active_priorities:
                    raise ValueError(
                        f"priority '{rule.priority_key}' has more than one active rule: "
                        f"'{active_priorities[rule.priority_key]}' and '{rule.id}'"
                    )
                active_priorities[rule.priority_key] = rule.id

        resolved = []
        for index, escalation in enumerate(self.escalation_rules):
            parent = rules_by_id.get(escalation.rule_id)
            if parent is None:
                raise ValueError(f"escalation rule references unknown SLA rule '{escalation.rule_id}'")
            update = {}
            if escalation.threshold_pct is None:
                update["threshold_pct"] = parent.escalation_threshold_pct
            if escalation.id is None:
                update["id"] = f"{escalation.rule_id}-escalation-{index + 1}"
            resolved.append(escalation.model_copy(update=update) if update else escalation)
        self.escalation_rules = resolved

        return self

    @property
    def calendar(self) -> BusinessCalendar:
        return BusinessCalendar(
            days={entry.day_of_week: entry for entry in self.business_hours},
            timezone=self.timezone
        )

    def active_rule_for(self, priority_key: str) -> Optional[SLARule]:
        """The single active rule for a priority, if any."""
        key = priority_key.strip().lower()
        for rule in self.rules:
            if rule.active and rule.priority_key == key:
                return rule
        return None

    def rule_by_id(self, rule_id: str) -> Optional[SLARule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def escalation_rules_for(self, rule_id: str) -> List[EscalationRule]:
        """Active escalation tiers of a rule, lowest threshold first."""
        return sorted(
            (e for e in self.escalation_rules if e.rule_id == rule_id and e.active),
            key=lambda e: e.threshold_pct
        )


@dataclass(frozen=True)
class SLASnapshot:
    """
    Point-in-time configuration handed to an evaluation.

    Holds the rule registry, calendar and the pause windows that overlap the
    evaluated range. Passed explicitly so evaluations never read shared
    mutable state.
    """
    config: SLAConfig
    pause_windows: Tuple[PauseWindow, ...] = ()

    @property
    def calendar(self) -> BusinessCalendar:
        return self.config.calendar

    def elapsed_minutes(
        self,
        start: datetime,
        end: datetime,
        business_hours_only: bool
    ) -> float:
        return ElapsedTimeCalculator.calculate(
            start,
            end,
            business_hours_only=business_hours_only,
            calendar=self.calendar,
            pause_windows=self.pause_windows
        )
