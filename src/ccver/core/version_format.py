"""Version format description.

A :class:`VersionFormat` is the parsed form of a format string such as
``vCC.CC.CC-rc.CC`` or ``YYYY.MM.CC-<short-sha>``. It says how each of the
major, minor and patch numbers is represented and how (if at all) the
prerelease slot is filled.

Parsing and validation of format strings lives in
:mod:`ccver.core.grammar`; this module only holds the value types.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

# Prerelease channels with a fixed precedence. Any other channel name is a
# "named" channel.
RC = "rc"
BETA = "beta"
ALPHA = "alpha"
BUILD = "build"


SHORT_SHA_LENGTH = 7


class CalendarSegment(Enum):
    """One calendar component of a calendar version number.

    Each member carries its format token, strftime code, the regex used to
    read it back, and its significance rank (lower is more significant).
    """

    YEAR4 = ("YYYY", "%Y", r"\d{4}", 0)
    YEAR2 = ("YY", "%y", r"\d{2}", 0)
    MONTH = ("MM", "%m", r"\d{2}", 1)
    DAY = ("DD", "%d", r"\d{2}", 2)
    DAY_OF_YEAR = ("DDD", "%j", r"\d{3}", 2)
    HOUR = ("HH", "%H", r"\d{2}", 3)
    MINUTE = ("mm", "%M", r"\d{2}", 4)
    SECOND = ("ss", "%S", r"\d{2}", 5)
    EPOCH = ("E", "%s", r"\d+", 6)

    def __init__(self, token: str, code: str, pattern: str, rank: int) -> None:
        self.token = token
        self.code = code
        self.pattern = pattern
        self.rank = rank

    @property
    def is_year(self) -> bool:
        return self in (CalendarSegment.YEAR4, CalendarSegment.YEAR2)

    def extract(self, timestamp: datetime) -> int:
        """Numeric value of this segment for ``timestamp`` (taken in UTC)."""
        ts = timestamp.astimezone(UTC)
        if self is CalendarSegment.EPOCH:
            return int(ts.timestamp())
        return int(ts.strftime(self.code))

    def render(self, timestamp: datetime) -> str:
        if self is CalendarSegment.EPOCH:
            return str(self.extract(timestamp))
        return timestamp.astimezone(UTC).strftime(self.code)


# Longest tokens first so that YYYY wins over YY and DDD over DD.
CALENDAR_TOKENS: tuple[CalendarSegment, ...] = tuple(
    sorted(CalendarSegment, key=lambda s: len(s.token), reverse=True)
)


def timestamp_from_values(values: dict[CalendarSegment, int]) -> datetime:
    """Rebuild a UTC timestamp from parsed calendar segment values.

    Segments that are absent default to the start of their period.
    """
    if CalendarSegment.EPOCH in values:
        return datetime.fromtimestamp(values[CalendarSegment.EPOCH], UTC)

    if CalendarSegment.YEAR4 in values:
        year = values[CalendarSegment.YEAR4]
    else:
        year = 2000 + values.get(CalendarSegment.YEAR2, 0)

    start = datetime(
        year,
        values.get(CalendarSegment.MONTH, 1),
        values.get(CalendarSegment.DAY, 1),
        values.get(CalendarSegment.HOUR, 0),
        values.get(CalendarSegment.MINUTE, 0),
        values.get(CalendarSegment.SECOND, 0),
        tzinfo=UTC,
    )
    if CalendarSegment.DAY_OF_YEAR in values:
        start += timedelta(days=values[CalendarSegment.DAY_OF_YEAR] - 1)
    return start


@dataclass(frozen=True)
class SequentialFormat:
    """A plain counter (``CC``)."""

    @property
    def pattern(self) -> str:
        return r"\d+"

    def __str__(self) -> str:
        return "CC"


@dataclass(frozen=True)
class CalendarFormat:
    """A number made of calendar segments, most significant first."""

    segments: tuple[CalendarSegment, ...]

    @property
    def pattern(self) -> str:
        return "".join(f"({s.pattern})" for s in self.segments)

    def __str__(self) -> str:
        return "".join(s.token for s in self.segments)


@dataclass(frozen=True)
class HashFormat:
    """A commit hash used as a number (``<sha>`` or ``<short-sha>``)."""

    short: bool = False

    @property
    def pattern(self) -> str:
        return "[0-9a-f]{4,40}" if self.short else "[0-9a-f]{40}"

    def __str__(self) -> str:
        return "<short-sha>" if self.short else "<sha>"


NumberFormat = SequentialFormat | CalendarFormat | HashFormat


@dataclass(frozen=True)
class ChannelFormat:
    """A prerelease channel with a counter, e.g. ``rc.CC``."""

    channel: str
    counter: NumberFormat = field(default_factory=SequentialFormat)

    def __str__(self) -> str:
        return f"{self.channel}.{self.counter}"


@dataclass(frozen=True)
class ShaFormat:
    """A prerelease made of the commit hash."""

    short: bool = False

    def __str__(self) -> str:
        return "<short-sha>" if self.short else "<sha>"


PreTagFormat = ChannelFormat | ShaFormat

DEFAULT_PRETAG_FORMAT = ChannelFormat(BUILD, SequentialFormat())


@dataclass(frozen=True)
class VersionFormat:
    """Parsed version format.

    Attributes:
        major: Representation of the major number
        minor: Representation of the minor number
        patch: Representation of the patch number
        prerelease: Declared prerelease format, or None
        prefix: Display prefix (``"v"`` or ``""``)
    """

    major: NumberFormat = field(default_factory=SequentialFormat)
    minor: NumberFormat = field(default_factory=SequentialFormat)
    patch: NumberFormat = field(default_factory=SequentialFormat)
    prerelease: PreTagFormat | None = None
    prefix: str = ""

    @property
    def numbers(self) -> tuple[NumberFormat, NumberFormat, NumberFormat]:
        return (self.major, self.minor, self.patch)

    @property
    def effective_prerelease(self) -> PreTagFormat:
        """The declared prerelease format, or ``build.CC`` when none is declared."""
        return self.prerelease if self.prerelease is not None else DEFAULT_PRETAG_FORMAT

    @property
    def counter_format(self) -> NumberFormat:
        """Format of prerelease channel counters."""
        pre = self.effective_prerelease
        return pre.counter if isinstance(pre, ChannelFormat) else SequentialFormat()

    def __str__(self) -> str:
        text = f"{self.prefix}{self.major}.{self.minor}.{self.patch}"
        if self.prerelease is not None:
            text += f"-{self.prerelease}"
        return text


_HEX_RE = re.compile(r"[0-9a-f]{4,40}")


def is_hex_hash(text: str) -> bool:
    """Whether ``text`` looks like a full or abbreviated commit hash."""
    return _HEX_RE.fullmatch(text) is not None
