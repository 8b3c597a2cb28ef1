"""Version values, their ordering and the operations that advance them.

Versions have the shape ``[prefix]major.minor.patch[-prerelease]`` where each
number is sequential, calendar based or a commit hash (see
:mod:`ccver.core.version_format`).

Ordering:

- major, minor and patch are compared in turn; numbers of different kinds
  (or calendar numbers with different segments) cannot be compared and
  raise :class:`~ccver.exceptions.IncomparableVersionNumbers`
- for equal numbers, a clean release ranks above every prerelease, then
  ``rc > beta > alpha > build``; hash prereleases rank with ``build``
- a named channel is only ordered against the same channel and against a
  clean release, so ordering of versions is partial
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from ccver.core.version_format import (
    ALPHA,
    BETA,
    BUILD,
    RC,
    SHORT_SHA_LENGTH,
    CalendarFormat,
    CalendarSegment,
    ChannelFormat,
    SequentialFormat,
    ShaFormat,
)
from ccver.exceptions import IncomparableVersionNumbers

if TYPE_CHECKING:
    from datetime import datetime

    from ccver.core.commits import CommitRecord
    from ccver.core.version_format import NumberFormat, VersionFormat

# Precedence of prerelease tiers; a clean release sits above all of them.
CHANNEL_RANKS = {BUILD: 0, ALPHA: 1, BETA: 2, RC: 3}
RELEASE_RANK = 4


# Version numbers


@dataclass(frozen=True)
class Sequential:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, eq=False)
class Calendar:
    """A calendar version number.

    Two calendar numbers are equal when they use the same segments and
    render to the same values, whatever their exact timestamps.
    """

    segments: tuple[CalendarSegment, ...]
    timestamp: datetime

    @property
    def values(self) -> tuple[int, ...]:
        return tuple(s.extract(self.timestamp) for s in self.segments)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Calendar):
            return NotImplemented
        return self.segments == other.segments and self.values == other.values

    def __hash__(self) -> int:
        return hash((self.segments, self.values))

    def __str__(self) -> str:
        return "".join(s.render(self.timestamp) for s in self.segments)


@dataclass(frozen=True)
class Hash:
    value: str

    def __str__(self) -> str:
        return self.value


VersionNumber = Sequential | Calendar | Hash


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def compare_numbers(left: VersionNumber, right: VersionNumber) -> int:
    """Compare two version numbers of the same representation.

    Returns:
        -1, 0 or 1

    Raises:
        IncomparableVersionNumbers: If the representations differ
    """
    if isinstance(left, Sequential) and isinstance(right, Sequential):
        return _sign(left.value - right.value)
    if isinstance(left, Calendar) and isinstance(right, Calendar):
        if left.segments != right.segments:
            raise IncomparableVersionNumbers(left, right)
        lv, rv = left.values, right.values
        return (lv > rv) - (lv < rv)
    if isinstance(left, Hash) and isinstance(right, Hash):
        # Hashes carry no precedence.
        return 0
    raise IncomparableVersionNumbers(left, right)


def _hash_for(commit: CommitRecord, short: bool) -> str:
    return commit.commit_hash[:SHORT_SHA_LENGTH] if short else commit.commit_hash


def zero_number(number_format: NumberFormat, commit: CommitRecord) -> VersionNumber:
    """Initial value of a number slot for ``commit``."""
    if isinstance(number_format, SequentialFormat):
        return Sequential(0)
    if isinstance(number_format, CalendarFormat):
        return Calendar(number_format.segments, commit.timestamp)
    return Hash(_hash_for(commit, number_format.short))


def next_number(
    number: VersionNumber,
    number_format: NumberFormat,
    commit: CommitRecord,
) -> VersionNumber:
    """Advance a number slot for ``commit``."""
    if isinstance(number_format, SequentialFormat):
        current = number.value if isinstance(number, Sequential) else -1
        return Sequential(current + 1)
    if isinstance(number_format, CalendarFormat):
        return Calendar(number_format.segments, commit.timestamp)
    return Hash(_hash_for(commit, number_format.short))


# Prerelease tags


@dataclass(frozen=True)
class ChannelPreTag:
    """A prerelease channel and its counter, e.g. ``rc.2``."""

    channel: str
    counter: VersionNumber

    @property
    def rank(self) -> int | None:
        """Precedence tier, or None for a named channel."""
        return CHANNEL_RANKS.get(self.channel)

    def __str__(self) -> str:
        return f"{self.channel}.{self.counter}"


@dataclass(frozen=True)
class HashPreTag:
    """A commit hash used as prerelease (``Sha`` or ``ShortSha``)."""

    sha: str

    @property
    def rank(self) -> int:
        return CHANNEL_RANKS[BUILD]

    @property
    def is_short(self) -> bool:
        return len(self.sha) < 40

    def __str__(self) -> str:
        return self.sha


PreTag = ChannelPreTag | HashPreTag


def compare_pretags(left: PreTag | None, right: PreTag | None) -> int | None:
    """Compare two prerelease slots (None means a clean release).

    Returns:
        -1, 0 or 1, or None if the two cannot be ordered
    """
    if left is None or right is None:
        left_rank = RELEASE_RANK if left is None else 0
        right_rank = RELEASE_RANK if right is None else 0
        return _sign(left_rank - right_rank)

    if (
        isinstance(left, ChannelPreTag)
        and isinstance(right, ChannelPreTag)
        and left.channel == right.channel
    ):
        return compare_numbers(left.counter, right.counter)

    if left.rank is None or right.rank is None:
        return None
    return _sign(left.rank - right.rank)


# Versions


@dataclass(frozen=True)
class Version:
    """A version with major, minor and patch numbers and an optional prerelease.

    The prefix only affects display; it is ignored by equality and ordering.
    """

    major: VersionNumber
    minor: VersionNumber
    patch: VersionNumber
    prerelease: PreTag | None = None
    prefix: str = field(default="", compare=False)

    @classmethod
    def of(
        cls,
        major: int,
        minor: int,
        patch: int,
        prerelease: PreTag | None = None,
        prefix: str = "",
    ) -> Version:
        """Build a sequential version from plain integers."""
        return cls(Sequential(major), Sequential(minor), Sequential(patch), prerelease, prefix)

    @property
    def numbers(self) -> tuple[VersionNumber, VersionNumber, VersionNumber]:
        return (self.major, self.minor, self.patch)

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    @property
    def channel(self) -> str | None:
        """Channel of the prerelease, None for clean releases and hash prereleases."""
        if isinstance(self.prerelease, ChannelPreTag):
            return self.prerelease.channel
        return None

    def partial_compare(self, other: Version) -> int | None:
        """Compare with ``other``.

        Returns:
            -1, 0 or 1, or None if the versions are not ordered relative
            to each other (distinct named channels on equal numbers)

        Raises:
            IncomparableVersionNumbers: If the number representations differ
        """
        for mine, theirs in zip(self.numbers, other.numbers, strict=True):
            result = compare_numbers(mine, theirs)
            if result:
                return result
        return compare_pretags(self.prerelease, other.prerelease)

    def compare(self, other: Version) -> int:
        """Like :meth:`partial_compare` but raise when the versions are unordered."""
        result = self.partial_compare(other)
        if result is None:
            raise IncomparableVersionNumbers(self, other)
        return result

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        result = self.partial_compare(other)
        return result is not None and result < 0

    def __le__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        result = self.partial_compare(other)
        return result is not None and result <= 0

    def __gt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        result = self.partial_compare(other)
        return result is not None and result > 0

    def __ge__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        result = self.partial_compare(other)
        return result is not None and result >= 0

    def with_prerelease(self, prerelease: PreTag | None) -> Version:
        return replace(self, prerelease=prerelease)

    def __str__(self) -> str:
        text = f"{self.prefix}{self.major}.{self.minor}.{self.patch}"
        if self.prerelease is not None:
            text += f"-{self.prerelease}"
        return text


# Advancing versions


def _advanced(number: VersionNumber, bumped: VersionNumber) -> bool:
    return compare_numbers(bumped, number) > 0


def bump_major(version: Version, commit: CommitRecord, version_format: VersionFormat) -> Version:
    """Advance the major number, zero minor and patch, drop the prerelease.

    A calendar major that would not move (same period) bumps the minor
    number instead.
    """
    major = next_number(version.major, version_format.major, commit)
    if isinstance(version_format.major, CalendarFormat) and not _advanced(version.major, major):
        return bump_minor(version, commit, version_format)
    return Version(
        major,
        zero_number(version_format.minor, commit),
        zero_number(version_format.patch, commit),
        None,
        version_format.prefix,
    )


def bump_minor(version: Version, commit: CommitRecord, version_format: VersionFormat) -> Version:
    """Advance the minor number, zero patch, drop the prerelease."""
    minor = next_number(version.minor, version_format.minor, commit)
    if isinstance(version_format.minor, CalendarFormat) and not _advanced(version.minor, minor):
        return bump_patch(version, commit, version_format)
    return Version(
        version.major,
        minor,
        zero_number(version_format.patch, commit),
        None,
        version_format.prefix,
    )


def bump_patch(version: Version, commit: CommitRecord, version_format: VersionFormat) -> Version:
    """Advance the patch number and drop the prerelease."""
    patch = next_number(version.patch, version_format.patch, commit)
    return Version(version.major, version.minor, patch, None, version_format.prefix)


def enter_or_advance_channel(
    version: Version,
    channel: str,
    commit: CommitRecord,
    version_format: VersionFormat,
) -> Version:
    """Put ``version`` on prerelease ``channel``.

    If the version is already on that channel its counter advances,
    otherwise the counter starts at its initial value. With a hash
    prerelease format the prerelease becomes the commit hash.
    """
    pre_format = version_format.effective_prerelease
    if isinstance(pre_format, ShaFormat):
        return replace(version, prerelease=HashPreTag(_hash_for(commit, pre_format.short)))

    counter_format = version_format.counter_format
    current = version.prerelease
    if isinstance(current, ChannelPreTag) and current.channel == channel:
        counter = next_number(current.counter, counter_format, commit)
    else:
        counter = zero_number(counter_format, commit)
    return replace(version, prerelease=ChannelPreTag(channel, counter))


def with_build_hash(
    version: Version,
    commit: CommitRecord,
    version_format: VersionFormat,
) -> Version:
    """Mark ``version`` as a build of ``commit`` using its hash as prerelease."""
    pre_format = version_format.prerelease
    short = not (isinstance(pre_format, ShaFormat) and not pre_format.short)
    return replace(version, prerelease=HashPreTag(_hash_for(commit, short)))


def release(version: Version) -> Version:
    """Drop the prerelease."""
    return replace(version, prerelease=None)


def default_pretag(version_format: VersionFormat, commit: CommitRecord) -> PreTag | None:
    """Initial prerelease for the declared prerelease format, if any."""
    pre_format = version_format.prerelease
    if pre_format is None:
        return None
    if isinstance(pre_format, ChannelFormat):
        return ChannelPreTag(pre_format.channel, zero_number(pre_format.counter, commit))
    return HashPreTag(_hash_for(commit, pre_format.short))


def zero_version(version_format: VersionFormat, commit: CommitRecord) -> Version:
    """The version the first commit of a history starts from."""
    return Version(
        zero_number(version_format.major, commit),
        zero_number(version_format.minor, commit),
        zero_number(version_format.patch, commit),
        default_pretag(version_format, commit),
        version_format.prefix,
    )


