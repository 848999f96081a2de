"""
In-game calendar arithmetic.

Game dates use the ``DDD-YYYY`` format (day of year 001-365, then year), with
365 days per year and no leap years.
"""

import re
from typing import Optional, Tuple

from models.story import StoryState, TimeSkip

DAYS_PER_YEAR = 365
DAYS_PER_WEEK = 7

_GAME_DATE = re.compile(r"(\d{3})-(\d{4})")


def parse_game_date(game_date: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Split a game date into (day, year).

    Returns:
        (day, year), or None if the string has no DDD-YYYY date in it
    """
    if not game_date or not isinstance(game_date, str):
        return None
    match = _GAME_DATE.search(game_date)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def format_game_date(day: int, year: int) -> str:
    return f"{day:03d}-{year}"


def add_days(game_date: str, days: int) -> str:
    """
    Add whole days to a game date, rolling over into later years.

    Rollover keeps day 365 in the same year: 366 becomes day 1 of the next
    year, 730 becomes day 365 of the next year.
    """
    parsed = parse_game_date(game_date)
    if parsed is None:
        return game_date

    day, year = parsed
    day += days
    if day > DAYS_PER_YEAR:
        years = (day - 1) // DAYS_PER_YEAR
        day -= years * DAYS_PER_YEAR
        year += years
    return format_game_date(day, year)


def time_skip_days(time_skip: TimeSkip) -> int:
    """Calendar days covered by a time skip. Hours never move the calendar."""
    if time_skip.unit == "d":
        return time_skip.amount
    if time_skip.unit == "w":
        return time_skip.amount * DAYS_PER_WEEK
    return 0


def apply_time_skip(state: StoryState, time_skip: TimeSkip) -> str:
    """
    Advance state.game_date by a time skip.

    An unparseable game date is left unchanged.

    Returns:
        The resulting game date
    """
    state.game_date = add_days(state.game_date, time_skip_days(time_skip))
    return state.game_date


def game_date_to_days(game_date: Optional[str]) -> int:
    """Absolute day number (year * 365 + day); 0 when unparseable."""
    parsed = parse_game_date(game_date)
    if parsed is None:
        return 0
    day, year = parsed
    return year * DAYS_PER_YEAR + day


def days_between(start: Optional[str], end: Optional[str]) -> int:
    return game_date_to_days(end) - game_date_to_days(start)
