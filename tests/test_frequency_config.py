"""
Frequency Configuration Tests.
Validation, normalization and 12-hour time parsing per cadence.

Run with: pytest tests/test_frequency_config.py -v
"""
import pytest

from timeline_engine.errors import ConfigValidationError
from timeline_engine.processing.frequency_config import (
    Cadence,
    DailyConfig,
    HourlyConfig,
    MonthlyConfig,
    NoneConfig,
    OneTimeConfig,
    QuarterlyConfig,
    WeeklyConfig,
    YearlyConfig,
    coerce_frequency_config,
    normalize_frequency_config,
    parse_12_hour_time,
    parse_cadence,
    validate_frequency_config,
)


class TestTimeParsing:
    """Test 12-hour clock parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("09:00 AM", (9, 0)),
        ("9:05 pm", (21, 5)),
        ("12:00 AM", (0, 0)),
        ("12:30 PM", (12, 30)),
        ("11:59PM", (23, 59)),
    ])
    def test_valid_times(self, text, expected):
        assert parse_12_hour_time(text) == expected

    @pytest.mark.parametrize("text", ["13:00 PM", "09:60 AM", "0:15 AM", "09:00", "nine AM", ""])
    def test_invalid_times(self, text):
        with pytest.raises(ValueError):
            parse_12_hour_time(text)


class TestCadence:
    """Test cadence tag coercion."""

    def test_known_cadence(self):
        assert parse_cadence("Quarterly") is Cadence.QUARTERLY
        assert parse_cadence(Cadence.ONE_TIME) is Cadence.ONE_TIME

    def test_unknown_cadence_names_frequency_field(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_cadence("Fortnightly")
        assert exc_info.value.field == "frequency"


class TestValidation:
    """Test per-cadence validation."""

    def test_monthly_config(self):
        config = validate_frequency_config("Monthly", {"monthlyDay": 20, "monthlyTime": "9:00 am"})
        assert isinstance(config, MonthlyConfig)
        assert config.day == 20
        assert config.time == "09:00 AM"

    def test_quarterly_requires_four_months(self):
        """A quarterly configuration with three months is rejected on quarterlyMonths."""
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Quarterly", {
                "quarterlyMonths": ["April", "July", "October"],
                "quarterlyDay": 15,
                "quarterlyTime": "10:00 AM",
            })
        assert exc_info.value.field == "quarterlyMonths"
        assert "exactly 4" in exc_info.value.message

    def test_quarterly_rejects_five_months(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Quarterly", {
                "quarterlyMonths": ["April", "July", "October", "January", "March"],
                "quarterlyDay": 15,
                "quarterlyTime": "10:00 AM",
            })
        assert exc_info.value.field == "quarterlyMonths"

    def test_quarterly_rejects_duplicate_months(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Quarterly", {
                "quarterlyMonths": ["April", "April", "October", "January"],
                "quarterlyDay": 15,
                "quarterlyTime": "10:00 AM",
            })
        assert exc_info.value.field == "quarterlyMonths"

    def test_quarterly_accepts_four_distinct_months(self):
        config = validate_frequency_config("Quarterly", {
            "quarterlyMonths": ["april", "July", "October", "January"],
            "quarterlyDay": 15,
            "quarterlyTime": "10:00 AM",
        })
        assert isinstance(config, QuarterlyConfig)
        assert config.months == ("April", "July", "October", "January")

    def test_missing_field_message(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Monthly", {"monthlyTime": "09:00 AM"})
        assert exc_info.value.field == "monthlyDay"
        assert exc_info.value.message == "monthlyDay is required for Monthly frequency"

    def test_invalid_time_names_time_field(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Daily", {"dailyTime": "25:00"})
        assert exc_info.value.field == "dailyTime"

    def test_monthly_day_out_of_range(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Monthly", {"monthlyDay": 32, "monthlyTime": "09:00 AM"})
        assert exc_info.value.field == "monthlyDay"

    def test_hourly_interval_bounds(self):
        assert validate_frequency_config("Hourly", {"hourlyInterval": 24}) == HourlyConfig(interval=24)
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Hourly", {"hourlyInterval": 0})
        assert exc_info.value.field == "hourlyInterval"

    def test_weekly_days_deduplicated_and_ordered(self):
        config = validate_frequency_config("Weekly", {
            "weeklyDays": ["friday", "Monday", "Friday"],
            "weeklyTime": "08:15 AM",
        })
        assert isinstance(config, WeeklyConfig)
        assert config.days == ("Monday", "Friday")

    def test_weekly_requires_a_day(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Weekly", {"weeklyDays": [], "weeklyTime": "08:15 AM"})
        assert exc_info.value.field == "weeklyDays"

    def test_yearly_accepts_leap_day(self):
        config = validate_frequency_config("Yearly", {
            "yearlyMonth": "February", "yearlyDate": 29, "yearlyTime": "10:00 AM",
        })
        assert isinstance(config, YearlyConfig)

    def test_yearly_rejects_impossible_date(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Yearly", {
                "yearlyMonth": "April", "yearlyDate": 31, "yearlyTime": "10:00 AM",
            })
        assert exc_info.value.field == "yearlyDate"

    def test_yearly_month_list_is_unwrapped(self):
        config = validate_frequency_config("Yearly", {
            "yearlyMonth": ["September"], "yearlyDate": 30, "yearlyTime": "10:00 AM",
        })
        assert config.month == "September"

    def test_one_time_and_none_need_no_fields(self):
        assert isinstance(validate_frequency_config("OneTime", None), OneTimeConfig)
        assert isinstance(validate_frequency_config("None", {}), NoneConfig)

    def test_non_mapping_config(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_frequency_config("Daily", ["09:00 AM"])
        assert exc_info.value.field == "frequencyConfig"

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_frequency_config("Daily", {})


class TestNormalization:
    """Test that normalization keeps only the active cadence's fields."""

    def test_stale_fields_dropped(self):
        raw = {
            "monthlyDay": 5,
            "monthlyTime": "07:30 pm",
            "weeklyDays": ["Monday"],
            "quarterlyMonths": ["April"],
            "hourlyInterval": 3,
        }
        assert normalize_frequency_config("Monthly", raw) == {
            "monthlyDay": 5,
            "monthlyTime": "07:30 PM",
        }

    def test_quarterly_shape(self):
        normalized = normalize_frequency_config("Quarterly", {
            "quarterlyMonths": ["April", "July", "October", "January"],
            "quarterlyDay": 15,
            "quarterlyTime": "10:00 AM",
            "dailyTime": "09:00 AM",
        })
        assert normalized == {
            "quarterlyMonths": ["April", "July", "October", "January"],
            "quarterlyDay": 15,
            "quarterlyTime": "10:00 AM",
        }

    def test_one_time_normalizes_to_empty(self):
        assert normalize_frequency_config("OneTime", {"monthlyDay": 3}) == {}


class TestCoercion:
    """Test coercion of typed and raw configurations."""

    def test_typed_config_passes_through(self):
        config = DailyConfig(time="06:00 PM")
        assert coerce_frequency_config("Daily", config) is config

    def test_typed_config_for_other_cadence_rejected(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            coerce_frequency_config("Monthly", DailyConfig(time="06:00 PM"))
        assert exc_info.value.field == "frequency"

    def test_raw_mapping_is_validated(self):
        config = coerce_frequency_config(Cadence.DAILY, {"dailyTime": "06:00 pm"})
        assert config == DailyConfig(time="06:00 PM")
