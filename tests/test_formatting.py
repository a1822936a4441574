"""
Tests for the text helpers behind the manifest exports and pickup emails

- CSV escaping parses back with a standard reader
- Fixed-width truncation
- Pickup time normalisation and 12-hour windows
"""

import csv
import io
import pytest
from datetime import date
from decimal import Decimal

from tourops.exceptions import ValidationError
from tourops.utils.formatting import (
    csv_line,
    escape_csv,
    format_amount,
    format_display_date,
    normalize_pickup_time,
    parse_activity_date,
    parse_pickup_time,
    pickup_time_range,
    truncate_text,
    wrap_text,
)


class TestCsvEscaping:

    def test_comma_and_quotes_round_trip(self):
        name = 'O\'Brien, "Jr."'
        line = csv_line([name, "plain", 3])

        parsed = next(csv.reader(io.StringIO(line)))

        assert parsed == [name, "plain", "3"]

    def test_embedded_newline_round_trip(self):
        notes = "Vegetarian\nNo peanuts"
        parsed = next(csv.reader(io.StringIO(csv_line(["A", notes]))))
        assert parsed[1] == notes

    def test_plain_values_are_not_quoted(self):
        assert escape_csv("Sea Star") == "Sea Star"
        assert escape_csv(12) == "12"

    def test_none_and_empty_become_empty_field(self):
        assert escape_csv(None) == ""
        assert escape_csv("") == ""

    def test_internal_quotes_are_doubled(self):
        assert escape_csv('say "hi"') == '"say ""hi"""'


class TestTruncation:

    def test_short_text_is_kept(self):
        assert truncate_text("Sea Star", 12) == "Sea Star"

    def test_long_text_is_cut_with_marker(self):
        result = truncate_text("Very long customer name", 10)
        assert result == "Very lon.."
        assert len(result) == 10

    def test_empty_text_gets_placeholder(self):
        assert truncate_text(None, 10) == "-"
        assert truncate_text("", 10, placeholder="") == ""

    def test_cut_never_splits_combining_mark(self):
        decomposed = "e\u0301" * 6
        assert truncate_text(decomposed, 7) == "e\u0301e\u0301.."

    def test_wrap_splits_on_words(self):
        assert wrap_text("alpha beta gamma", 11) == ["alpha beta", "gamma"]

    def test_wrap_limits_line_count(self):
        lines = wrap_text("one two three four five six seven", 9, max_lines=2)
        assert len(lines) == 2
        assert lines[-1].endswith("..")


class TestPickupTimes:

    def test_seconds_are_dropped(self):
        assert normalize_pickup_time("14:05:00") == "14:05"
        assert normalize_pickup_time("8:30") == "08:30"

    def test_missing_time_is_empty(self):
        assert normalize_pickup_time(None) == ""
        assert normalize_pickup_time("  ") == ""

    def test_window_in_12_hour_clock(self):
        assert pickup_time_range("14:05:00", 15) == "02:05 PM - 02:20 PM"

    def test_window_from_morning_time(self):
        assert pickup_time_range("08:30", 15) == "08:30 AM - 08:45 AM"

    def test_window_across_midnight(self):
        assert pickup_time_range("23:50", 15) == "11:50 PM - 12:05 AM"

    def test_noon_and_midnight(self):
        assert pickup_time_range("12:00", 0) == "12:00 PM - 12:00 PM"
        assert pickup_time_range("00:10", 5) == "12:10 AM - 12:15 AM"

    def test_no_window_without_time(self):
        assert pickup_time_range(None) == ""

    @pytest.mark.parametrize("value", ["25:00", "12:75", "noon", "12"])
    def test_invalid_time_raises(self, value):
        with pytest.raises(ValidationError):
            parse_pickup_time(value)


class TestDatesAndAmounts:

    def test_iso_string_is_parsed(self):
        assert parse_activity_date("2025-12-27") == date(2025, 12, 27)

    def test_date_passes_through(self):
        assert parse_activity_date(date(2025, 12, 27)) == date(2025, 12, 27)

    @pytest.mark.parametrize("value", ["2025-02-30", "27/12/2025", "", None])
    def test_invalid_date_raises(self, value):
        with pytest.raises(ValidationError):
            parse_activity_date(value)

    def test_display_date(self):
        assert format_display_date(date(2025, 12, 27)) == "27 Dec 2025"

    def test_amounts(self):
        assert format_amount(Decimal("1250")) == "1,250"
        assert format_amount(Decimal("1250.5")) == "1,250.50"
        assert format_amount(None) == "0"
