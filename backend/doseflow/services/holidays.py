"""US federal holiday calendar used by the holiday grace multiplier."""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from functools import lru_cache
from typing import Iterable


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def _last_weekday(year: int, month: int, weekday: int) -> date:
    last = date(year, month, calendar.monthrange(year, month)[1])
    return last - timedelta(days=(last.weekday() - weekday) % 7)


@lru_cache(maxsize=64)
def us_federal_holidays(year: int) -> frozenset[date]:
    return frozenset(
        {
            date(year, 1, 1),
            _nth_weekday(year, 1, calendar.MONDAY, 3),
            _nth_weekday(year, 2, calendar.MONDAY, 3),
            _last_weekday(year, 5, calendar.MONDAY),
            date(year, 7, 4),
            _nth_weekday(year, 9, calendar.MONDAY, 1),
            _nth_weekday(year, 10, calendar.MONDAY, 2),
            date(year, 11, 11),
            _nth_weekday(year, 11, calendar.THURSDAY, 4),
            date(year, 12, 25),
        }
    )


def _parse_custom(values: Iterable[str | date]) -> set[date]:
    parsed: set[date] = set()
    for value in values or ():
        if isinstance(value, date):
            parsed.add(value)
        elif isinstance(value, str):
            try:
                parsed.add(date.fromisoformat(value))
            except ValueError:
                continue
    return parsed


def is_holiday(day: date, use_us_holidays: bool = True, custom: Iterable[str | date] = ()) -> bool:
    if day in _parse_custom(custom):
        return True
    return use_us_holidays and day in us_federal_holidays(day.year)
