from __future__ import annotations

from datetime import datetime

import pytest

from ledger_engine import dates


def test_month_edges():
    assert dates.start_of_month(datetime(2024, 2, 17, 8)) == datetime(2024, 2, 1)
    assert dates.end_of_month(datetime(2024, 2, 1)) == datetime(2024, 2, 29, 23, 59, 59, 999999)
    assert dates.end_of_month(datetime(2023, 2, 1)).day == 28


def test_week_starts_on_monday():
    assert dates.start_of_week(datetime(2024, 3, 17, 23)) == datetime(2024, 3, 11)
    assert dates.start_of_week(datetime(2024, 3, 11)) == datetime(2024, 3, 11)


@pytest.mark.parametrize(
    ("start", "months", "expected"),
    [
        (datetime(2024, 1, 31), 1, datetime(2024, 2, 29)),
        (datetime(2024, 3, 31), -1, datetime(2024, 2, 29)),
        (datetime(2024, 11, 30), 3, datetime(2025, 2, 28)),
    ],
)
def test_add_months_clamps(start, months, expected):
    assert dates.add_months(start, months) == expected


def test_month_label():
    assert dates.month_label(datetime(2024, 2, 3)) == "2024-02"
    assert dates.month_label(datetime(987, 11, 1)) == "0987-11"


def test_inclusive_days():
    assert dates.inclusive_days(datetime(2024, 3, 1), datetime(2024, 3, 1, 23)) == 1
    assert dates.inclusive_days(datetime(2024, 3, 1), datetime(2024, 3, 31)) == 31
    assert dates.inclusive_days(datetime(2024, 3, 2), datetime(2024, 3, 1)) == 0
