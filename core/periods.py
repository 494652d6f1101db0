"""
Period resolution: turns a period keyword or explicit date range into
exact ``[start, end)`` instants in the clinic's timezone, plus the
equal-length window immediately before it for trend comparison.

Examples:
    >>> resolve_period("today", now=datetime(2026, 1, 13, 15, 0, tzinfo=TOKYO))
    Period(kind=<PeriodKind.TODAY: 'today'>,
           current=TimeWindow(2026-01-13 00:00 → 2026-01-13 15:00),
           previous=TimeWindow(2026-01-12 09:00 → 2026-01-13 00:00))

    >>> resolve_period("custom", "2026-01-01", "2026-01-31")
    Period(kind=<PeriodKind.CUSTOM: 'custom'>, ...)
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Union
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from core.config import config
from core.exceptions import InvalidPeriodError, ValidationError
from core.validators import validate_date_string

DateLike = Union[date, str, None]


class PeriodKind(str, Enum):
    """Supported period keywords."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"
    CUSTOM = "custom"


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[start, end)`` interval of timezone-aware instants."""
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def previous(self) -> "TimeWindow":
        """The equal-length window ending where this one starts."""
        return TimeWindow(self.start - self.duration, self.start)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def to_dict(self) -> dict:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}

    def __repr__(self) -> str:
        fmt = "%Y-%m-%d %H:%M"
        return f"TimeWindow({self.start.strftime(fmt)} → {self.end.strftime(fmt)})"


@dataclass(frozen=True)
class Period:
    """A resolved reporting period."""
    kind: PeriodKind
    current: TimeWindow
    previous: Optional[TimeWindow] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def has_previous(self) -> bool:
        return self.previous is not None

    @property
    def cache_token(self) -> str:
        """Stable identifier for caching; relative periods key by their start day."""
        if self.kind == PeriodKind.CUSTOM:
            return f"custom:{self.start_date.isoformat()}:{self.end_date.isoformat()}"
        return f"{self.kind.value}:{self.current.start.date().isoformat()}"


def _parse_date(value: DateLike, field: str) -> date:
    if value is None or value == "":
        raise InvalidPeriodError("Custom period requires both start and end dates", field=field)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return validate_date_string(value, field)
    except ValidationError as e:
        raise InvalidPeriodError(e.message, e.value, field=field) from e


def _midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def parse_period_kind(period: Union[str, PeriodKind]) -> PeriodKind:
    """Validate a period keyword."""
    if isinstance(period, PeriodKind):
        return period
    try:
        return PeriodKind(str(period).strip().lower())
    except ValueError:
        valid = ", ".join(k.value for k in PeriodKind)
        raise InvalidPeriodError(f"Must be one of: {valid}", period)


def resolve_period(
    period: Union[str, PeriodKind],
    start_date: DateLike = None,
    end_date: DateLike = None,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> Period:
    """
    Resolve a period keyword (and custom dates) into time windows.

    Args:
        period: today, week, month, all or custom
        start_date: Custom start (date or YYYY-MM-DD), required for custom
        end_date: Custom end (date or YYYY-MM-DD), required for custom
        now: Reference instant (default: current time)
        tz: Clinic timezone (default: configured timezone)

    Returns:
        Period with the current window and, except for "all", the previous one

    Raises:
        InvalidPeriodError: Unknown keyword, bad custom dates, or end before start
    """
    kind = parse_period_kind(period)
    tz = tz or config.stats.tz
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    else:
        now = now.astimezone(tz)

    if kind == PeriodKind.CUSTOM:
        start_day = _parse_date(start_date, "start_date")
        end_day = _parse_date(end_date, "end_date")
        if end_day < start_day:
            raise InvalidPeriodError(
                "End date must be on or after start date",
                f"{start_day.isoformat()} to {end_day.isoformat()}",
                field="date_range",
            )
        window = TimeWindow(_midnight(start_day, tz), datetime.combine(end_day, time.max, tzinfo=tz))
        return Period(kind, window, window.previous(), start_day, end_day)

    if kind == PeriodKind.ALL:
        return Period(kind, TimeWindow(config.stats.all_time_start.astimezone(tz), now), None)

    if kind == PeriodKind.TODAY:
        start = _midnight(now.date(), tz)
    elif kind == PeriodKind.WEEK:
        start = _midnight((now - timedelta(days=7)).date(), tz)
    else:
        start = _midnight((now - relativedelta(months=1)).date(), tz)

    window = TimeWindow(start, now)
    return Period(kind, window, window.previous())
