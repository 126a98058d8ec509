"""
Relative date expressions for ${@date|format|expr}.

Understands a small, predictable subset of free-form date phrases:
keywords (now, today, midnight, noon, tomorrow, yesterday), unix timestamps
(@1700000000), ISO-8601 dates and offset sequences such as ``+1 day -2 hours``
or ``3 weeks ago``. A keyword may precede the offsets (``tomorrow +2 hours``).
"""

import calendar
import re
from datetime import datetime, timedelta
from typing import Optional

from ..exceptions import InvalidDateExpression

UNIT_SECONDS = {
    'sec': 1,
    'second': 1,
    'min': 60,
    'minute': 60,
    'hour': 3600,
    'day': 86400,
    'week': 7 * 86400,
    'fortnight': 14 * 86400,
}

OFFSET_PATTERN = re.compile(
    r'([+-]?)\s*(\d+)\s*(sec|second|min|minute|hour|day|week|fortnight|month|year)s?\b'
)
OFFSETS_PATTERN = re.compile(
    r'(?:\s*[+-]?\s*\d+\s*(?:sec|second|min|minute|hour|day|week|fortnight|month|year)s?\b)+\s*'
)


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _keyword(word: str, now: datetime) -> Optional[datetime]:
    if word == 'now':
        return now
    if word in ('today', 'midnight'):
        return _midnight(now)
    if word == 'noon':
        return _midnight(now).replace(hour=12)
    if word == 'tomorrow':
        return _midnight(now) + timedelta(days=1)
    if word == 'yesterday':
        return _midnight(now) - timedelta(days=1)
    return None


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _apply_offsets(base: datetime, text: str, sign: int) -> datetime:
    moment = base
    for direction, amount, unit in OFFSET_PATTERN.findall(text):
        value = int(amount) * (-1 if direction == '-' else 1) * sign
        if unit == 'month':
            moment = add_months(moment, value)
        elif unit == 'year':
            moment = add_months(moment, value * 12)
        else:
            moment = moment + timedelta(seconds=value * UNIT_SECONDS[unit])
    return moment


def resolve_moment(expression: Optional[str], now: datetime) -> datetime:
    """
    Compute the moment described by ``expression`` relative to ``now``.

    Raises:
        InvalidDateExpression: If the expression is not understood
    """
    text = (expression or 'now').strip().lower()
    if not text:
        return now

    keyword = _keyword(text, now)
    if keyword is not None:
        return keyword

    if text.startswith('@'):
        try:
            return datetime.fromtimestamp(int(text[1:]), tz=now.tzinfo)
        except (ValueError, OverflowError, OSError) as e:
            raise InvalidDateExpression(f"Invalid date expression: '{expression}'") from e

    try:
        return datetime.fromisoformat(expression.strip())
    except ValueError:
        pass

    base = now
    head, _, rest = text.partition(' ')
    keyword = _keyword(head, now)
    if keyword is not None and rest:
        base, text = keyword, rest.strip()

    sign = 1
    if text.endswith(' ago'):
        sign, text = -1, text[:-4]

    if not OFFSETS_PATTERN.fullmatch(text):
        raise InvalidDateExpression(f"Invalid date expression: '{expression}'")

    return _apply_offsets(base, text, sign)
