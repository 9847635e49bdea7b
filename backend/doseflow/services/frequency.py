from __future__ import annotations

import re
from enum import Enum

from doseflow.core.errors import UnsupportedFrequency


class Frequency(str, Enum):
    DAILY = "daily"
    TWICE_DAILY = "twice_daily"
    THREE_TIMES_DAILY = "three_times_daily"
    FOUR_TIMES_DAILY = "four_times_daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    AS_NEEDED = "as_needed"


BUCKET_COUNTS: dict[Frequency, int] = {
    Frequency.DAILY: 1,
    Frequency.TWICE_DAILY: 2,
    Frequency.THREE_TIMES_DAILY: 3,
    Frequency.FOUR_TIMES_DAILY: 4,
    Frequency.WEEKLY: 1,
    Frequency.MONTHLY: 1,
    Frequency.AS_NEEDED: 0,
}

_SYNONYMS: dict[str, Frequency] = {}


def _register(frequency: Frequency, *aliases: str) -> None:
    for alias in (frequency.value, *aliases):
        _SYNONYMS[_canonical(alias)] = frequency


def _canonical(value: str) -> str:
    text = value.strip().lower().replace(".", "").replace("_", " ").replace("-", " ")
    return re.sub(r"\s+", " ", text)


_register(
    Frequency.DAILY,
    "once daily", "once a day", "once per day", "every day", "1x daily",
    "every 24 hours", "qd", "od",
)
_register(
    Frequency.TWICE_DAILY,
    "twice daily", "twice a day", "twice per day", "2x daily", "two times daily",
    "every 12 hours", "q12h", "bid",
)
_register(
    Frequency.THREE_TIMES_DAILY,
    "three times daily", "three times a day", "three times per day", "3x daily",
    "every 8 hours", "q8h", "tid",
)
_register(
    Frequency.FOUR_TIMES_DAILY,
    "four times daily", "four times a day", "four times per day", "4x daily",
    "every 6 hours", "q6h", "qid",
)
_register(Frequency.WEEKLY, "once weekly", "once a week", "every week", "qw", "qwk")
_register(Frequency.MONTHLY, "once monthly", "once a month", "every month", "qm")
_register(Frequency.AS_NEEDED, "as needed", "as required", "when needed", "prn")


def normalize_frequency(raw: str | Frequency) -> Frequency:
    """Map a frequency string or synonym onto :class:`Frequency`.

    Matching is exact after normalisation; unknown strings are rejected.
    """
    if isinstance(raw, Frequency):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        raise UnsupportedFrequency(
            "frequency is required",
            suggested_fix="use one of: " + ", ".join(f.value for f in Frequency),
        )
    found = _SYNONYMS.get(_canonical(raw))
    if found is None:
        raise UnsupportedFrequency(
            f"unsupported frequency {raw!r}",
            suggested_fix="use one of: " + ", ".join(f.value for f in Frequency)
            + " (or BID/TID/QID/PRN)",
        )
    return found


def bucket_count(frequency: Frequency) -> int:
    return BUCKET_COUNTS[frequency]
