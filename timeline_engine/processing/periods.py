"""
Period and financial year helpers for timeline generation.

Registered quarters follow the practice's compliance register:
July = Q1, October = Q2, January = Q3, April = Q4.
Financial years run April 1 to March 31.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Tuple, Union

from timeline_engine.processing.frequency_config import MONTH_NAMES, Cadence, parse_cadence

QUARTER_START_MONTHS: Dict[str, int] = {"Q1": 7, "Q2": 10, "Q3": 1, "Q4": 4}

FINANCIAL_YEAR_START_MONTH = 4


@dataclass(frozen=True)
class FinancialYear:
    """Financial year starting April 1 of ``start_year``."""
    start_year: int

    @property
    def end_year(self) -> int:
        return self.start_year + 1

    @property
    def start(self) -> date:
        return date(self.start_year, FINANCIAL_YEAR_START_MONTH, 1)

    @property
    def end(self) -> date:
        return date(self.end_year, FINANCIAL_YEAR_START_MONTH - 1, 31)

    @property
    def label(self) -> str:
        return f"{self.start_year}-{self.end_year}"

    def __str__(self) -> str:
        return self.label


def financial_year_for(moment: Union[date, datetime]) -> FinancialYear:
    """Return the financial year containing ``moment``."""
    if moment.month >= FINANCIAL_YEAR_START_MONTH:
        return FinancialYear(moment.year)
    return FinancialYear(moment.year - 1)


def quarter_of(month: int) -> str:
    """Return the registered quarter (``"Q1"``..``"Q4"``) for a month number."""
    if month <= 3:
        return "Q3"
    if month <= 6:
        return "Q4"
    if month <= 9:
        return "Q1"
    return "Q2"


def quarter_months(quarter: str) -> Tuple[int, int, int]:
    """Return the three month numbers of a registered quarter."""
    start = QUARTER_START_MONTHS[quarter]
    return start, start + 1, start + 2


def _daily_period(moment: Union[date, datetime]) -> str:
    return f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"


def _monthly_period(moment: Union[date, datetime]) -> str:
    return f"{MONTH_NAMES[moment.month - 1]}-{moment.year}"


def _quarterly_period(moment: Union[date, datetime]) -> str:
    return f"{quarter_of(moment.month)}-{moment.year}"


def _yearly_period(moment: Union[date, datetime]) -> str:
    return financial_year_for(moment).label


PERIOD_FORMATTERS: Dict[Cadence, Callable[[Union[date, datetime]], str]] = {
    Cadence.DAILY: _daily_period,
    Cadence.MONTHLY: _monthly_period,
    Cadence.QUARTERLY: _quarterly_period,
    Cadence.YEARLY: _yearly_period,
}


def period_for(moment: Union[date, datetime], cadence: Union[str, Cadence]) -> str:
    """
    Map a date to the canonical period string of a cadence.

    Args:
        moment: Reference date or datetime (its wall-clock date is used)
        cadence: Daily, Monthly, Quarterly or Yearly

    Returns:
        ``"2024-07-15"``, ``"July-2024"``, ``"Q1-2024"`` or ``"2024-2025"``

    Raises:
        ValueError: If the cadence has no period bucket
    """
    cadence = parse_cadence(cadence)
    formatter = PERIOD_FORMATTERS.get(cadence)
    if formatter is None:
        raise ValueError(f"{cadence.value} frequency has no period bucket")
    return formatter(moment)
