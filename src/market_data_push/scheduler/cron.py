"""Five-field cron expressions and next-fire-time computation.

Fields: minute, hour, day-of-month, month, day-of-week (0-7, 0 and 7 are
Sunday). Each field accepts ``*``, ``a``, ``a-b``, ``*/n``, ``a-b/n``,
``a/n`` and comma lists; months and weekdays also accept three-letter names.
When both day-of-month and day-of-week are restricted a day matches if
either does (Vixie cron behaviour).
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

MONTH_NAMES = {
    name: index
    for index, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
WEEKDAY_NAMES = {
    name: index
    for index, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])
}

# (low, high, names) per field
_FIELDS = (
    (0, 59, {}),
    (0, 23, {}),
    (1, 31, {}),
    (1, 12, MONTH_NAMES),
    (0, 7, WEEKDAY_NAMES),
)

# A schedule that has not matched within this many years never will (e.g. Feb 30).
_SEARCH_YEARS = 5


class CronSyntaxError(ValueError):
    """The cron expression cannot be parsed."""


def _value(token: str, low: int, high: int, names: dict[str, int], expr: str) -> int:
    key = token.lower()
    if key in names:
        return names[key]
    if not token.isdigit():
        raise CronSyntaxError(f"Invalid value '{token}' in cron expression '{expr}'")
    value = int(token)
    if not low <= value <= high:
        raise CronSyntaxError(
            f"Value {value} out of range {low}-{high} in cron expression '{expr}'"
        )
    return value


def _parse_field(
    field: str, low: int, high: int, names: dict[str, int], expr: str
) -> frozenset[int]:
    values: set[int] = set()
    for part in field.split(","):
        if not part:
            raise CronSyntaxError(f"Empty list item in cron expression '{expr}'")
        range_part, _, step_part = part.partition("/")
        step = 1
        if step_part:
            if not step_part.isdigit() or int(step_part) == 0:
                raise CronSyntaxError(f"Invalid step '{step_part}' in cron expression '{expr}'")
            step = int(step_part)

        if range_part == "*":
            start, end = low, high
        elif "-" in range_part:
            first, _, last = range_part.partition("-")
            start = _value(first, low, high, names, expr)
            end = _value(last, low, high, names, expr)
            if start > end:
                raise CronSyntaxError(f"Reversed range '{range_part}' in cron expression '{expr}'")
        else:
            start = _value(range_part, low, high, names, expr)
            end = high if step_part else start
        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    """Parsed cron expression. Build with ``CronSchedule.parse``."""

    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]  # 0 = Sunday
    day_restricted: bool
    weekday_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> "CronSchedule":
        """Parse a five-field cron expression.

        Raises:
            CronSyntaxError: wrong field count, unknown token or out-of-range value.
        """
        fields = expression.split()
        if len(fields) != 5:
            raise CronSyntaxError(
                f"Cron expression '{expression}' must have 5 fields, got {len(fields)}"
            )
        parsed = [
            _parse_field(field, low, high, names, expression)
            for field, (low, high, names) in zip(fields, _FIELDS)
        ]
        weekdays = frozenset(0 if day == 7 else day for day in parsed[4])
        return cls(
            expression=expression,
            minutes=parsed[0],
            hours=parsed[1],
            days=parsed[2],
            months=parsed[3],
            weekdays=weekdays,
            day_restricted=not fields[2].startswith("*"),
            weekday_restricted=not fields[4].startswith("*"),
        )

    def _day_matches(self, dt: datetime) -> bool:
        in_days = dt.day in self.days
        in_weekdays = (dt.weekday() + 1) % 7 in self.weekdays
        if self.day_restricted and self.weekday_restricted:
            return in_days or in_weekdays
        if self.day_restricted:
            return in_days
        if self.weekday_restricted:
            return in_weekdays
        return True

    def matches(self, dt: datetime) -> bool:
        """Whether the minute containing ``dt`` is a fire time."""
        return (
            dt.month in self.months
            and self._day_matches(dt)
            and dt.hour in self.hours
            and dt.minute in self.minutes
        )

    def next_after(self, dt: datetime) -> datetime:
        """First fire time strictly after ``dt``, in dt's timezone.

        Raises:
            CronSyntaxError: the expression never fires (e.g. ``0 0 30 2 *``).
        """
        candidate = dt.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit_year = dt.year + _SEARCH_YEARS
        while candidate.year <= limit_year:
            if candidate.month not in self.months:
                year = candidate.year + candidate.month // 12
                month = candidate.month % 12 + 1
                candidate = candidate.replace(year=year, month=month, day=1, hour=0, minute=0)
                continue
            if not self._day_matches(candidate):
                candidate = (candidate + timedelta(days=1)).replace(hour=0, minute=0)
                continue
            if candidate.hour not in self.hours:
                candidate = (candidate + timedelta(hours=1)).replace(minute=0)
                continue
            if candidate.minute not in self.minutes:
                candidate += timedelta(minutes=1)
                continue
            return candidate
        raise CronSyntaxError(f"Cron expression '{self.expression}' never fires")

    def __str__(self) -> str:
        return self.expression
