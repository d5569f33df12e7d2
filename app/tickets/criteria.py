"""Listing rules shared by the in-memory and SQL ticket stores.

Both stores translate the same :class:`TicketCriteria` into their own
evaluation (Python predicates or SQL clauses). Everything that decides *which*
tickets match and in *what order* lives here so the two stores cannot drift:

* status filter is an exact, case-sensitive membership test; ``None`` only
  matches when explicitly requested;
* severity filter and severity ranks are case-insensitive;
* an age bucket is a half-open window on ``open_time`` relative to ``now``,
  with boundary instants belonging to the older bucket;
* a missing ``open_time`` sorts as the Unix epoch;
* every ordering ends with ``tt_number`` ascending so pages are stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Mapping

from .errors import InvalidCriteriaError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

NULL_STATUS_TOKEN = "null"

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20

SEVERITY_RANKS: Mapping[str, int] = {
    "critical": 1,
    "emergency": 2,
    "major": 3,
}
UNRANKED_SEVERITY = 4

_MICROSECOND = timedelta(microseconds=1)


def severity_rank(severity: str | None) -> int:
    return SEVERITY_RANKS.get((severity or "").lower(), UNRANKED_SEVERITY)


def to_utc(value: datetime | None) -> datetime | None:
    """Normalise a timestamp to aware UTC; naive values are taken as UTC."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def timestamp_key(value: datetime | None) -> int:
    """Exact integer sort key (microseconds since epoch); ``None`` sorts as epoch."""

    return ((to_utc(value) or EPOCH) - EPOCH) // _MICROSECOND


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    MOST_CRITICAL = "most_critical"
    LEAST_CRITICAL = "least_critical"

    @property
    def by_severity(self) -> bool:
        return self in (SortOrder.MOST_CRITICAL, SortOrder.LEAST_CRITICAL)

    @property
    def descending(self) -> bool:
        """Direction of the primary key (open time or severity rank)."""

        return self in (SortOrder.NEWEST, SortOrder.LEAST_CRITICAL)


@dataclass(slots=True, frozen=True)
class AgeWindow:
    """``opened_after < open_time <= opened_on_or_before``; ``None`` means unbounded."""

    opened_after: datetime | None
    opened_on_or_before: datetime | None

    def contains(self, open_time: datetime | None) -> bool:
        if open_time is None:
            return False
        open_time = to_utc(open_time)
        if self.opened_after is not None and not open_time > self.opened_after:
            return False
        if self.opened_on_or_before is not None and not open_time <= self.opened_on_or_before:
            return False
        return True


class AgeBucket(str, Enum):
    UNDER_ONE_DAY = "<1 day"
    ONE_TO_FIVE_DAYS = "1-5 days"
    FIVE_TO_TEN_DAYS = "5-10 days"
    OVER_TEN_DAYS = ">10 days"

    @property
    def hour_bounds(self) -> tuple[int, int | None]:
        """``[min, max)`` age in hours."""

        return _AGE_BOUNDS[self]

    def window(self, now: datetime) -> AgeWindow:
        now = to_utc(now)
        min_hours, max_hours = self.hour_bounds
        return AgeWindow(
            opened_after=now - timedelta(hours=max_hours) if max_hours is not None else None,
            opened_on_or_before=now - timedelta(hours=min_hours) if min_hours else None,
        )

    @classmethod
    def for_age(cls, age: timedelta) -> AgeBucket:
        hours = age / timedelta(hours=1)
        for bucket in cls:
            min_hours, max_hours = bucket.hour_bounds
            if hours >= min_hours and (max_hours is None or hours < max_hours):
                return bucket
        # Negative ages (open time in the future) are still "fresh".
        return cls.UNDER_ONE_DAY


_AGE_BOUNDS: Mapping[AgeBucket, tuple[int, int | None]] = {
    AgeBucket.UNDER_ONE_DAY: (0, 24),
    AgeBucket.ONE_TO_FIVE_DAYS: (24, 120),
    AgeBucket.FIVE_TO_TEN_DAYS: (120, 240),
    AgeBucket.OVER_TEN_DAYS: (240, None),
}


@dataclass(slots=True, frozen=True)
class TicketCriteria:
    """Validated filter, ordering and paging options for a ticket listing."""

    statuses: frozenset[str | None] | None = None
    severities: frozenset[str] | None = None
    age: AgeBucket | None = None
    search: str | None = None
    sort_by: SortOrder = SortOrder.NEWEST
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @classmethod
    def build(
        cls,
        *,
        status: Iterable[str | None] | None = None,
        severity: Iterable[str] | None = None,
        age: str | AgeBucket | None = None,
        search: str | None = None,
        sort_by: str | SortOrder | None = None,
        page: int | None = None,
        limit: int | None = None,
        max_limit: int | None = None,
    ) -> TicketCriteria:
        """Normalise raw request values, raising ``InvalidCriteriaError`` on bad input."""

        statuses = _normalise_statuses(status)
        severities = _normalise_severities(severity)

        bucket: AgeBucket | None = None
        if age:
            try:
                bucket = AgeBucket(age)
            except ValueError as exc:
                allowed = ", ".join(item.value for item in AgeBucket)
                raise InvalidCriteriaError(f"Invalid age {age!r}. Must be one of: {allowed}") from exc

        order = SortOrder.NEWEST
        if sort_by:
            try:
                order = SortOrder(sort_by)
            except ValueError as exc:
                allowed = ", ".join(item.value for item in SortOrder)
                raise InvalidCriteriaError(f"Invalid sortBy {sort_by!r}. Must be one of: {allowed}") from exc

        page = DEFAULT_PAGE if page is None else page
        limit = DEFAULT_LIMIT if limit is None else limit
        if page < 1:
            raise InvalidCriteriaError("page must be >= 1")
        if limit < 1:
            raise InvalidCriteriaError("limit must be >= 1")
        if max_limit is not None and limit > max_limit:
            raise InvalidCriteriaError(f"limit must be <= {max_limit}")

        needle = search.strip() if search else None
        return cls(
            statuses=statuses,
            severities=severities,
            age=bucket,
            search=needle or None,
            sort_by=order,
            page=page,
            limit=limit,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def age_window(self, now: datetime) -> AgeWindow | None:
        return self.age.window(now) if self.age is not None else None


def _normalise_statuses(values: Iterable[str | None] | None) -> frozenset[str | None] | None:
    if values is None:
        return None
    statuses: set[str | None] = set()
    for value in values:
        if value is None or value.strip() == NULL_STATUS_TOKEN:
            statuses.add(None)
        elif value.strip():
            statuses.add(value.strip())
    return frozenset(statuses) or None


def _normalise_severities(values: Iterable[str] | None) -> frozenset[str] | None:
    if values is None:
        return None
    severities = {value.strip().lower() for value in values if value and value.strip()}
    return frozenset(severities) or None
