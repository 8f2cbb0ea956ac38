"""
Frequency configuration models for recurring obligations.

Each cadence has its own pydantic model holding only the fields that cadence
uses. Raw configurations arrive as camelCase mappings (``monthlyDay``,
``quarterlyMonths`` ...) and may still carry fields left over from a previously
selected cadence; validation ignores those and normalization drops them.
"""

import re
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from timeline_engine.errors import ConfigValidationError


class Cadence(str, Enum):
    """Recurrence category of a sub-obligation."""
    HOURLY = "Hourly"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"
    ONE_TIME = "OneTime"
    NONE = "None"


MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

# Index matches datetime.weekday()
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# Longest each month can be, February counted in a leap year
MONTH_MAX_DAYS = [31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]

TIME_PATTERN = re.compile(r"^(0?[1-9]|1[0-2]):([0-5][0-9])\s*(AM|PM)$", re.IGNORECASE)


def parse_12_hour_time(value: str) -> Tuple[int, int]:
    """
    Parse a 12-hour clock string such as ``"09:30 AM"``.

    Args:
        value: Time string in ``H:MM AM/PM`` form

    Returns:
        Tuple of (hour, minute) on a 24-hour clock

    Raises:
        ValueError: If the string is not a 12-hour time
    """
    match = TIME_PATTERN.match(str(value).strip())
    if not match:
        raise ValueError(f"'{value}' is not a 12-hour time like '09:00 AM'")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    meridiem = match.group(3).upper()

    if meridiem == "PM" and hours != 12:
        hours += 12
    if meridiem == "AM" and hours == 12:
        hours = 0
    return hours, minutes


def _normalize_time(value: Any) -> str:
    hours, minutes = parse_12_hour_time(value)
    display_hour = hours % 12 or 12
    return f"{display_hour:02d}:{minutes:02d} {'PM' if hours >= 12 else 'AM'}"


def _as_name_list(value: Any, kind: str) -> list:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError(f"must be a list of {kind} names")
    return list(value)


def _normalize_name(value: Any, allowed: list, kind: str) -> str:
    name = str(value).strip().capitalize()
    if name not in allowed:
        raise ValueError(f"'{value}' is not a valid {kind} name")
    return name


class _FrequencyConfigBase(BaseModel):
    """Shared model settings: camelCase aliases, stale fields ignored."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    cadence: ClassVar[Cadence]

    @field_validator("time", check_fields=False)
    @classmethod
    def _check_time(cls, value: Any) -> str:
        return _normalize_time(value)

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase mapping holding only this cadence's fields."""
        return self.model_dump(by_alias=True, mode="json")


class HourlyConfig(_FrequencyConfigBase):
    cadence: ClassVar[Cadence] = Cadence.HOURLY

    interval: int = Field(..., alias="hourlyInterval", ge=1, le=24)


class DailyConfig(_FrequencyConfigBase):
    cadence: ClassVar[Cadence] = Cadence.DAILY

    time: str = Field(..., alias="dailyTime")


class WeeklyConfig(_FrequencyConfigBase):
    cadence: ClassVar[Cadence] = Cadence.WEEKLY

    days: Tuple[str, ...] = Field(..., alias="weeklyDays")
    time: str = Field(..., alias="weeklyTime")

    @field_validator("days", mode="before")
    @classmethod
    def _check_days(cls, value: Any) -> Tuple[str, ...]:
        names = {
            _normalize_name(day, WEEKDAY_NAMES, "weekday")
            for day in _as_name_list(value, "weekday")
        }
        if not names:
            raise ValueError("at least one weekday is required")
        return tuple(day for day in WEEKDAY_NAMES if day in names)


class MonthlyConfig(_FrequencyConfigBase):
    cadence: ClassVar[Cadence] = Cadence.MONTHLY

    day: int = Field(..., alias="monthlyDay", ge=1, le=31)
    time: str = Field(..., alias="monthlyTime")


class QuarterlyConfig(_FrequencyConfigBase):
    cadence: ClassVar[Cadence] = Cadence.QUARTERLY

    months: Tuple[str, ...] = Field(..., alias="quarterlyMonths")
    day: int = Field(..., alias="quarterlyDay", ge=1, le=31)
    time: str = Field(..., alias="quarterlyTime")

    @field_validator("months", mode="before")
    @classmethod
    def _check_months(cls, value: Any) -> Tuple[str, ...]:
        names = [
            _normalize_name(month, MONTH_NAMES, "month")
            for month in _as_name_list(value, "month")
        ]
        if len(names) != 4 or len(set(names)) != 4:
            raise ValueError(
                f"exactly 4 distinct month names are required (got {len(names)})"
            )
        return tuple(names)


class YearlyConfig(_FrequencyConfigBase):
    cadence: ClassVar[Cadence] = Cadence.YEARLY

    month: str = Field(..., alias="yearlyMonth")
    date: int = Field(..., alias="yearlyDate", ge=1, le=31)
    time: str = Field(..., alias="yearlyTime")

    @field_validator("month", mode="before")
    @classmethod
    def _check_month(cls, value: Any) -> str:
        # Older records store the month as a one-element list
        if isinstance(value, (list, tuple)):
            if not value:
                raise ValueError("a month name is required")
            value = value[0]
        return _normalize_name(value, MONTH_NAMES, "month")

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: int, info: ValidationInfo) -> int:
        month = info.data.get("month")
        if month and value > MONTH_MAX_DAYS[MONTH_NAMES.index(month)]:
            raise ValueError(f"{month} has no day {value}")
        return value


class OneTimeConfig(_FrequencyConfigBase):
    cadence: ClassVar[Cadence] = Cadence.ONE_TIME


class NoneConfig(_FrequencyConfigBase):
    cadence: ClassVar[Cadence] = Cadence.NONE


FrequencyConfig = Union[
    HourlyConfig, DailyConfig, WeeklyConfig, MonthlyConfig,
    QuarterlyConfig, YearlyConfig, OneTimeConfig, NoneConfig,
]

CONFIG_MODELS: Dict[Cadence, Type[_FrequencyConfigBase]] = {
    model.cadence: model
    for model in (
        HourlyConfig, DailyConfig, WeeklyConfig, MonthlyConfig,
        QuarterlyConfig, YearlyConfig, OneTimeConfig, NoneConfig,
    )
}


def parse_cadence(value: Union[str, Cadence]) -> Cadence:
    """
    Coerce a cadence tag.

    Raises:
        ConfigValidationError: If the tag is not a known cadence
    """
    try:
        return Cadence(value)
    except ValueError:
        raise ConfigValidationError("frequency", f"'{value}' is not a valid frequency") from None


def _error_field(model: Type[_FrequencyConfigBase], loc: tuple) -> str:
    if not loc:
        return "frequencyConfig"
    name = str(loc[0])
    field = model.model_fields.get(name)
    if field is not None and field.alias:
        return field.alias
    return name


def validate_frequency_config(
    cadence: Union[str, Cadence],
    raw: Optional[Mapping[str, Any]]
) -> FrequencyConfig:
    """
    Validate a raw configuration against the model for its cadence.

    Args:
        cadence: Cadence tag, e.g. ``"Monthly"``
        raw: camelCase configuration mapping (may be None for OneTime/None)

    Returns:
        The typed configuration variant

    Raises:
        ConfigValidationError: Naming the first missing or invalid field
    """
    cadence = parse_cadence(cadence)
    model = CONFIG_MODELS[cadence]

    if raw is not None and not isinstance(raw, Mapping):
        raise ConfigValidationError("frequencyConfig", "must be an object")

    try:
        return model.model_validate(dict(raw or {}))
    except ValidationError as e:
        error = e.errors()[0]
        field = _error_field(model, error.get("loc", ()))
        if error.get("type") == "missing":
            raise ConfigValidationError(
                field, f"{field} is required for {cadence.value} frequency"
            ) from None
        message = str(error.get("msg", "invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        raise ConfigValidationError(field, message) from None


def normalize_frequency_config(
    cadence: Union[str, Cadence],
    raw: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """Validate and keep only the fields of the active cadence."""
    return validate_frequency_config(cadence, raw).to_dict()


def coerce_frequency_config(
    cadence: Union[str, Cadence],
    config: Union[FrequencyConfig, Mapping[str, Any], None]
) -> FrequencyConfig:
    """
    Accept either a typed configuration or a raw mapping.

    Raises:
        ConfigValidationError: If a typed configuration belongs to another
            cadence, or a raw mapping fails validation
    """
    cadence = parse_cadence(cadence)
    if isinstance(config, _FrequencyConfigBase):
        if config.cadence is not cadence:
            raise ConfigValidationError(
                "frequency",
                f"configuration is for {config.cadence.value}, not {cadence.value}"
            )
        return config
    return validate_frequency_config(cadence, config)
