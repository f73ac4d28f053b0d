# utils/helpers.py
from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Union

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)


def today_str() -> str:
    """Return today's date as ISO string (YYYY-MM-DD)."""
    return date.today().isoformat()


def now_iso() -> str:
    """
    Current UTC timestamp as a fixed-width ISO-8601 string.

    Every stored timestamp goes through here so that plain string comparison
    orders them chronologically.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_iso(d: str) -> date:
    """Parse 'YYYY-MM-DD' (a trailing time part, if any, is ignored)."""
    return datetime.strptime(str(d)[:10], "%Y-%m-%d").date()


def iter_dates(start: date, end: date) -> Iterable[date]:
    """Yield each calendar date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def ceil_qty(x: float) -> int:
    """
    Ceiling that ignores float noise: 5 * 1.2 gives 6.000000000000001 and must
    still ceil to 6.
    """
    return int(math.ceil(round(x, 6)))


def floor_qty(x: float) -> int:
    return int(math.floor(round(x, 6)))


def mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def round_money(x: float) -> float:
    return round(float(x), 2)


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as euros: '€1,234.50'.

    Behavior on parse failure:
      - By default returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError.
    """
    try:
        x = float(v)
    except (TypeError, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    sign = "-" if x < 0 else ""
    return f"{sign}€{abs(x):,.{places}f}"
