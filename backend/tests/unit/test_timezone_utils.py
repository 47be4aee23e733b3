# backend/tests/unit/test_timezone_utils.py
from datetime import date, datetime, time, timezone

import pytest

from tutorslots.core.timezone_utils import (
    ensure_utc,
    format_hhmm,
    get_timezone,
    local_to_utc,
    parse_hhmm,
    sunday_based_weekday,
    utc_to_local,
)


class TestWeekday:
    @pytest.mark.parametrize(
        "day,expected",
        [
            (date(2030, 1, 6), 0),  # Sunday
            (date(2030, 1, 7), 1),
            (date(2030, 1, 12), 6),  # Saturday
        ],
    )
    def test_sunday_is_zero(self, day, expected):
        assert sunday_based_weekday(day) == expected


class TestConversions:
    def test_naive_is_read_as_utc(self):
        naive = datetime(2030, 1, 7, 9, 0)
        assert ensure_utc(naive) == datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)

    def test_offsets_are_normalized(self):
        tz = get_timezone("Asia/Tokyo")
        local = tz.localize(datetime(2030, 1, 7, 18, 0))
        assert ensure_utc(local) == datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)

    def test_local_wall_time_round_trips(self):
        tz = get_timezone("America/New_York")
        start = local_to_utc(date(2030, 7, 1), time(9, 0), tz)

        # Summer: New York is UTC-4
        assert start == datetime(2030, 7, 1, 13, 0, tzinfo=timezone.utc)
        assert utc_to_local(start, tz).time() == time(9, 0)

    def test_wall_time_in_spring_forward_gap_does_not_exist(self):
        tz = get_timezone("America/New_York")

        # 2030-03-10: clocks jump from 02:00 to 03:00
        assert local_to_utc(date(2030, 3, 10), time(2, 30), tz) is None
        assert local_to_utc(date(2030, 3, 10), time(3, 30), tz) == datetime(
            2030, 3, 10, 7, 30, tzinfo=timezone.utc
        )

    def test_ambiguous_fall_back_time_uses_standard_time(self):
        tz = get_timezone("America/New_York")

        # 2030-11-03: 01:30 happens twice; the second (EST) one is used
        assert local_to_utc(date(2030, 11, 3), time(1, 30), tz) == datetime(
            2030, 11, 3, 6, 30, tzinfo=timezone.utc
        )

    def test_unknown_timezone_falls_back_to_default(self):
        assert get_timezone("Mars/Olympus").zone == "UTC"


class TestHhmm:
    def test_parse_and_format(self):
        assert parse_hhmm(" 07:05 ") == time(7, 5)
        assert format_hhmm(time(7, 5)) == "07:05"

    @pytest.mark.parametrize("raw", ["25:00", "9am", "", None])
    def test_rejects_garbage(self, raw):
        with pytest.raises(ValueError):
            parse_hhmm(raw)
