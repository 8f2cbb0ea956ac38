"""
Due date calculation for recurring obligations.

All arithmetic is wall-clock arithmetic on the datetime passed in; its tzinfo
(if any) is carried through unchanged. Days past the end of a month are
clamped to the month's last day, so a ``monthlyDay`` of 31 falls on June 30.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, Union

from dateutil.relativedelta import relativedelta

from timeline_engine.errors import DateComputationError
from timeline_engine.processing.frequency_config import (
    MONTH_NAMES,
    WEEKDAY_NAMES,
    Cadence,
    DailyConfig,
    FrequencyConfig,
    HourlyConfig,
    MonthlyConfig,
    NoneConfig,
    OneTimeConfig,
    QuarterlyConfig,
    WeeklyConfig,
    YearlyConfig,
    coerce_frequency_config,
    parse_12_hour_time,
)
from timeline_engine.processing.periods import (
    FINANCIAL_YEAR_START_MONTH,
    financial_year_for,
    quarter_months,
    quarter_of,
)

logger = logging.getLogger(__name__)

ConfigInput = Union[FrequencyConfig, Mapping[str, Any], None]


def _shift(moment: datetime, **kwargs: int) -> datetime:
    """Apply a relativedelta, reporting unrepresentable dates as DateComputationError."""
    try:
        return moment + relativedelta(**kwargs)
    except (ValueError, OverflowError) as e:
        raise DateComputationError(f"Cannot shift {moment.isoformat()} by {kwargs}: {e}") from e


def _add(moment: datetime, delta: timedelta) -> datetime:
    try:
        return moment + delta
    except OverflowError as e:
        raise DateComputationError(f"Cannot add {delta} to {moment.isoformat()}: {e}") from e


def _clock(time_text: str) -> Dict[str, int]:
    hour, minute = parse_12_hour_time(time_text)
    return {"hour": hour, "minute": minute, "second": 0, "microsecond": 0}


# ==================== NEXT OCCURRENCE ====================

def _next_hourly(config: HourlyConfig, from_date: datetime) -> datetime:
    return _add(from_date, timedelta(hours=config.interval))


def _next_daily(config: DailyConfig, from_date: datetime) -> datetime:
    candidate = _shift(from_date, **_clock(config.time))
    if candidate <= from_date:
        candidate = _add(candidate, timedelta(days=1))
    return candidate


def _next_weekly(config: WeeklyConfig, from_date: datetime) -> datetime:
    targets = {WEEKDAY_NAMES.index(day) for day in config.days}
    for days_ahead in range(1, 8):
        candidate = _add(from_date, timedelta(days=days_ahead))
        if candidate.weekday() in targets:
            return _shift(candidate, **_clock(config.time))
    raise DateComputationError(f"No weekday out of {list(config.days)} within 7 days")


def _next_monthly(config: MonthlyConfig, from_date: datetime) -> datetime:
    # Always the following month, even if this month's day is still ahead
    return _shift(from_date, months=1, day=config.day, **_clock(config.time))


def _next_quarterly(config: QuarterlyConfig, from_date: datetime) -> datetime:
    targets = {MONTH_NAMES.index(month) + 1 for month in config.months}
    for months_ahead in range(1, 13):
        month = (from_date.month - 1 + months_ahead) % 12 + 1
        if month in targets:
            return _shift(from_date, months=months_ahead, day=config.day, **_clock(config.time))
    raise DateComputationError(f"No quarter month out of {list(config.months)} within 12 months")


def _next_yearly(config: YearlyConfig, from_date: datetime) -> datetime:
    month = MONTH_NAMES.index(config.month) + 1
    candidate = _shift(from_date, month=month, day=config.date, **_clock(config.time))
    if candidate <= from_date:
        candidate = _shift(from_date, years=1, month=month, day=config.date, **_clock(config.time))
    return candidate


def _unchanged(config: FrequencyConfig, from_date: datetime) -> datetime:
    return from_date


NEXT_OCCURRENCE: Dict[Type, Callable[[Any, datetime], datetime]] = {
    HourlyConfig: _next_hourly,
    DailyConfig: _next_daily,
    WeeklyConfig: _next_weekly,
    MonthlyConfig: _next_monthly,
    QuarterlyConfig: _next_quarterly,
    YearlyConfig: _next_yearly,
    OneTimeConfig: _unchanged,
    NoneConfig: _unchanged,
}


def next_occurrence(
    cadence: Union[str, Cadence],
    config: ConfigInput,
    from_date: datetime
) -> datetime:
    """
    Return the next due instant after ``from_date``.

    Monthly cadences always advance to the following month. OneTime and None
    return ``from_date`` unchanged.

    Args:
        cadence: Cadence tag
        config: Typed configuration or raw camelCase mapping
        from_date: Reference instant

    Returns:
        Next due datetime

    Raises:
        ConfigValidationError: If a raw configuration is invalid
        DateComputationError: If no valid date can be constructed
    """
    config = coerce_frequency_config(cadence, config)
    return NEXT_OCCURRENCE[type(config)](config, from_date)


# ==================== CURRENT PERIOD ====================

def _current_weekly(config: WeeklyConfig, now: datetime) -> Optional[datetime]:
    if WEEKDAY_NAMES[now.weekday()] in config.days:
        return _shift(now, **_clock(config.time))
    return None


def _current_daily(config: DailyConfig, now: datetime) -> Optional[datetime]:
    return _shift(now, **_clock(config.time))


def _current_monthly(config: MonthlyConfig, now: datetime) -> Optional[datetime]:
    return _shift(now, day=config.day, **_clock(config.time))


def _current_quarterly(config: QuarterlyConfig, now: datetime) -> Optional[datetime]:
    configured = {MONTH_NAMES.index(month) + 1 for month in config.months}
    for month in quarter_months(quarter_of(now.month)):
        if month not in configured:
            continue
        candidate = _shift(now, month=month, day=config.day, **_clock(config.time))
        if candidate >= now:
            return candidate
    return None


def _current_yearly(config: YearlyConfig, now: datetime) -> Optional[datetime]:
    month = MONTH_NAMES.index(config.month) + 1
    financial_year = financial_year_for(now)
    year = financial_year.start_year if month >= FINANCIAL_YEAR_START_MONTH else financial_year.end_year
    return _shift(now, year=year, month=month, day=config.date, **_clock(config.time))


CURRENT_PERIOD: Dict[Type, Callable[[Any, datetime], Optional[datetime]]] = {
    HourlyConfig: lambda config, now: None,
    DailyConfig: _current_daily,
    WeeklyConfig: _current_weekly,
    MonthlyConfig: _current_monthly,
    QuarterlyConfig: _current_quarterly,
    YearlyConfig: _current_yearly,
}


def current_period_due_date(
    cadence: Union[str, Cadence],
    config: ConfigInput,
    now: datetime
) -> datetime:
    """
    Return the due instant inside the period containing ``now``.

    When the current period has no due instant left (the configured date has
    already passed, or a quarter has no configured month) the next occurrence
    after ``now`` is used instead.

    Raises:
        ConfigValidationError: If a raw configuration is invalid
        DateComputationError: If no valid date can be constructed
    """
    config = coerce_frequency_config(cadence, config)
    if isinstance(config, (OneTimeConfig, NoneConfig)):
        return now

    candidate = CURRENT_PERIOD[type(config)](config, now)
    if candidate is None or candidate < now:
        return next_occurrence(config.cadence, config, now)
    return candidate


# ==================== FINANCIAL YEAR PREVIEW ====================

def occurrences_in_financial_year(
    cadence: Union[str, Cadence],
    config: ConfigInput,
    reference: datetime,
    limit: int = 50
) -> List[datetime]:
    """
    List due instants across the financial year containing ``reference``.

    Starts at April 1 of the financial year and follows ``next_occurrence``
    until March 31, stopping after ``limit`` entries.

    Returns:
        Chronological list of datetimes; empty for OneTime and None
    """
    config = coerce_frequency_config(cadence, config)
    if isinstance(config, (OneTimeConfig, NoneConfig)):
        return []

    financial_year = financial_year_for(reference)
    current = reference.replace(
        year=financial_year.start.year, month=financial_year.start.month, day=1,
        hour=0, minute=0, second=0, microsecond=0
    )
    end = reference.replace(
        year=financial_year.end.year, month=financial_year.end.month, day=financial_year.end.day,
        hour=23, minute=59, second=59, microsecond=0
    )

    dates: List[datetime] = []
    while current <= end and len(dates) < limit:
        dates.append(current)
        current = next_occurrence(config.cadence, config, current)

    logger.debug(f"Generated {len(dates)} {config.cadence.value} dates for FY {financial_year}")
    return dates
