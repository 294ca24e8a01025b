from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from ly_fantasy.week_calendar import (
    add_weeks,
    current_week,
    from_roc_date,
    parse_feed_date,
    to_roc_date,
    week_date_range,
    week_end,
    week_start,
)


class TestWeekBoundaries:
    def test_wednesday_maps_to_monday(self) -> None:
        assert week_start(datetime(2024, 3, 6, 15, 30)) == datetime(2024, 3, 4)

    def test_sunday_belongs_to_previous_monday(self) -> None:
        assert week_start(datetime(2024, 3, 10, 23, 0)) == datetime(2024, 3, 4)

    def test_monday_is_its_own_start(self) -> None:
        assert week_start(datetime(2024, 3, 11)) == datetime(2024, 3, 11)

    def test_accepts_plain_date(self) -> None:
        assert week_start(date(2024, 3, 7)) == datetime(2024, 3, 4)

    def test_week_end_is_last_millisecond_of_sunday(self) -> None:
        assert week_end(datetime(2024, 3, 6)) == datetime(2024, 3, 10, 23, 59, 59, 999000)

    def test_week_date_range(self) -> None:
        start, end = week_date_range(datetime(2024, 3, 6), 3)
        assert start == datetime(2024, 3, 18)
        assert end == datetime(2024, 3, 24, 23, 59, 59, 999000)

    def test_add_weeks(self) -> None:
        assert add_weeks(datetime(2024, 3, 4), 2) == datetime(2024, 3, 18)


class TestCurrentWeek:
    def test_before_season(self) -> None:
        assert current_week(datetime(2024, 3, 4), datetime(2024, 3, 1)) == 0

    def test_first_week(self) -> None:
        assert current_week(datetime(2024, 3, 4), datetime(2024, 3, 10, 12)) == 1

    def test_later_week(self) -> None:
        assert current_week(datetime(2024, 3, 4), datetime(2024, 3, 25)) == 4


class TestRocDates:
    def test_compact(self) -> None:
        assert to_roc_date(datetime(2024, 3, 11)) == "1130311"

    def test_slashed(self) -> None:
        assert to_roc_date(datetime(2023, 12, 31), sep="/") == "112/12/31"

    def test_parse_slashed(self) -> None:
        assert from_roc_date("113/03/15") == datetime(2024, 3, 15)

    def test_parse_compact(self) -> None:
        assert from_roc_date("1130315") == datetime(2024, 3, 15)

    def test_parse_unpadded(self) -> None:
        assert from_roc_date("113/3/5") == datetime(2024, 3, 5)

    def test_year_boundary(self) -> None:
        assert from_roc_date("113/01/01") == datetime(2024, 1, 1)
        assert from_roc_date("112/12/31") == datetime(2023, 12, 31)
        assert to_roc_date(datetime(2024, 1, 1), sep="/") == "113/01/01"

    def test_three_digit_year_is_zero_padded(self) -> None:
        assert to_roc_date(datetime(2010, 6, 1)) == "0990601"
        assert to_roc_date(datetime(2010, 6, 1), sep="/") == "099/06/01"
        assert from_roc_date("0990601") == datetime(2010, 6, 1)

    @pytest.mark.parametrize("sep", ["", "/"])
    def test_round_trip(self, sep: str) -> None:
        # Spans the ROC 99 -> 100 rollover and several year ends.
        day = datetime(2010, 12, 1)
        while day < datetime(2025, 1, 31):
            assert from_roc_date(to_roc_date(day, sep=sep)) == day
            day += timedelta(days=11)

    @pytest.mark.parametrize("value", ["", "2024-03-15", "113/13/01", "abc"])
    def test_parse_rejects_garbage(self, value: str) -> None:
        with pytest.raises(ValueError):
            from_roc_date(value)


class TestParseFeedDate:
    def test_iso_date(self) -> None:
        assert parse_feed_date("2024-03-15") == datetime(2024, 3, 15)

    def test_iso_datetime_truncated(self) -> None:
        assert parse_feed_date("2024-03-15T08:00:00.000Z") == datetime(2024, 3, 15)

    @pytest.mark.parametrize("value", [None, "", "not a date", "2024-02-30"])
    def test_unusable(self, value: str | None) -> None:
        assert parse_feed_date(value) is None
