"""Date/time format tags shared by the DATE_FORMAT rule and the validator."""
from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum


class DateTimeFormat(str, Enum):
    """Closed set of named date/time layouts."""
    YEAR = "YEAR"
    YEAR_MONTH = "YEAR_MONTH"
    YEAR_MONTH_DAY = "YEAR_MONTH_DAY"
    DATE_TIME = "DATE_TIME"
    TIME = "TIME"
    DATE_COMPACT = "DATE_COMPACT"
    DATE_TIME_COMPACT = "DATE_TIME_COMPACT"
    TIME_COMPACT = "TIME_COMPACT"

    @property
    def pattern(self) -> str:
        return _PATTERNS[self]

    @property
    def example(self) -> str:
        return datetime(2024, 1, 15, 10, 30, 0).strftime(self.pattern)

    @property
    def is_time_only(self) -> bool:
        return self in (DateTimeFormat.TIME, DateTimeFormat.TIME_COMPACT)

    @classmethod
    def lookup(cls, tag: str) -> DateTimeFormat | None:
        """Resolve a tag by name, accepting "YearMonthDay" as well as "YEAR_MONTH_DAY"."""
        key = "".join(ch for ch in tag if ch.isalnum()).upper()
        for member in cls:
            if member.value.replace("_", "") == key:
                return member
        return None

    def matches(self, value: str) -> bool:
        """Strict parse: the whole string must match and re-format to itself."""
        try:
            parsed = datetime.strptime(value, self.pattern)
        except ValueError:
            return False
        return parsed.strftime(self.pattern) == value

    def accepts_instance(self, value: object) -> bool:
        """Already-parsed temporal values are valid for a compatible tag."""
        if self.is_time_only:
            return isinstance(value, (time, datetime))
        return isinstance(value, (date, datetime))


_PATTERNS: dict[DateTimeFormat, str] = {
    DateTimeFormat.YEAR: "%Y",
    DateTimeFormat.YEAR_MONTH: "%Y-%m",
    DateTimeFormat.YEAR_MONTH_DAY: "%Y-%m-%d",
    DateTimeFormat.DATE_TIME: "%Y-%m-%d %H:%M:%S",
    DateTimeFormat.TIME: "%H:%M",
    DateTimeFormat.DATE_COMPACT: "%Y%m%d",
    DateTimeFormat.DATE_TIME_COMPACT: "%Y%m%d%H%M%S",
    DateTimeFormat.TIME_COMPACT: "%H%M%S",
}
