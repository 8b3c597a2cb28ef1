"""Parsers for git log output, commit messages, version formats and versions.

All parsers are pure functions. Failures raise
:class:`~ccver.exceptions.GrammarError` with a :class:`SourceSpan` pointing
at the offending input.

Log layout (see :data:`ccver.vcs.git.GIT_FORMAT_ARGS`)::

    name=
    <subject as file name>
    branch=
    refs/heads/<branch>
    commit=
    <hash>
    commit-time=
    <ISO 8601 timestamp>
    dec=
     (HEAD -> main, tag: v1.0.0, origin/main)
    parent=
    <hash> <hash>
    sub=
    <subject line>
    trailers=
    Key: value
    ...
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, NoReturn

from ccver.config.models import CommitsConfig
from ccver.core.commits import (
    Branch,
    CommitRecord,
    ConventionalSubject,
    HeadIndicator,
    RemoteBranch,
    Tag,
    TextSubject,
)
from ccver.core.version import Calendar, ChannelPreTag, Hash, HashPreTag, Sequential, Version
from ccver.core.version_format import (
    CALENDAR_TOKENS,
    CalendarFormat,
    ChannelFormat,
    HashFormat,
    SequentialFormat,
    ShaFormat,
    VersionFormat,
    is_hex_hash,
    timestamp_from_values,
)
from ccver.exceptions import GrammarError, SourceSpan

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ccver.core.commits import Decoration, Subject
    from ccver.core.version import PreTag, VersionNumber
    from ccver.core.version_format import CalendarSegment, NumberFormat, PreTagFormat

log = logging.getLogger(__name__)

BREAKING_FOOTERS = ("BREAKING CHANGE", "BREAKING-CHANGE")

SUBJECT_RE = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)"
    r"(?:\((?P<scope>[^()\r\n]*)\))?"
    r"(?P<breaking>!)?"
    r":\s*(?P<description>\S.*)$"
)
FOOTER_RE = re.compile(r"^(?P<key>BREAKING[ -]CHANGE|[\w-]+)(?::\s+| #)(?P<value>.*)$")
CHANNEL_RE = re.compile(r"[0-9A-Za-z][0-9A-Za-z-]*")
COMMIT_HASH_RE = re.compile(r"[0-9a-f]{4,64}")


def _span(text: str, offset: int) -> SourceSpan:
    """Line/column of ``offset`` in ``text``."""
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return SourceSpan(line=line, column=offset - line_start + 1, offset=offset)


# Commit subjects and messages


def parse_subject(line: str, commits: CommitsConfig | None = None) -> Subject:
    """Parse a commit subject line.

    Args:
        line: First line of a commit message
        commits: Commit type tables; types in ``types_major`` are breaking

    Returns:
        ConventionalSubject for ``type[(scope)][!]: description`` lines,
        TextSubject for anything else
    """
    commits = commits or CommitsConfig()
    line = line.strip()
    match = SUBJECT_RE.match(line)
    if match is None:
        return TextSubject(line)

    commit_type = match.group("type")
    scope = match.group("scope") or None
    breaking = match.group("breaking") is not None or commit_type.lower() in commits.types_major
    return ConventionalSubject(
        commit_type=commit_type,
        description=match.group("description").strip(),
        scope=scope.strip() if scope else None,
        breaking=breaking,
    )


@dataclass(frozen=True)
class CommitMessage:
    """A full commit message split into subject, body and footers."""

    subject: Subject
    body: str = ""
    footers: dict[str, str] = field(default_factory=dict)


def parse_footers(lines: Iterable[str]) -> dict[str, str] | None:
    """Parse ``Key: value`` footer lines; None if any line is not a footer.

    Continuation lines (starting with whitespace) extend the previous value.
    """
    footers: dict[str, str] = {}
    last_key: str | None = None
    for line in lines:
        if not line.strip():
            continue
        if last_key is not None and line[:1].isspace():
            footers[last_key] = f"{footers[last_key]}\n{line.strip()}"
            continue
        match = FOOTER_RE.match(line)
        if match is None:
            return None
        last_key = match.group("key")
        footers[last_key] = match.group("value").strip()
    return footers


def _mark_breaking(subject: Subject, footers: dict[str, str]) -> Subject:
    if isinstance(subject, ConventionalSubject) and not subject.breaking:
        if any(key in footers for key in BREAKING_FOOTERS):
            return replace(subject, breaking=True)
    return subject


def parse_commit_message(message: str, commits: CommitsConfig | None = None) -> CommitMessage:
    """Parse a complete conventional commit message.

    The first line is the subject. After a blank line comes an optional
    free text body, and after another blank line an optional block of
    footer lines. A ``BREAKING CHANGE`` footer marks the subject breaking.
    """
    lines = message.strip("\n").splitlines()
    if not lines:
        return CommitMessage(subject=TextSubject(""))

    subject = parse_subject(lines[0], commits)
    paragraphs: list[list[str]] = []
    current: list[str] = []
    for line in lines[1:]:
        if line.strip():
            current.append(line)
        elif current:
            paragraphs.append(current)
            current = []
    if current:
        paragraphs.append(current)

    footers: dict[str, str] = {}
    if paragraphs:
        parsed = parse_footers(paragraphs[-1])
        if parsed is not None:
            footers = parsed
            paragraphs = paragraphs[:-1]

    body = "\n\n".join("\n".join(p) for p in paragraphs)
    return CommitMessage(subject=_mark_breaking(subject, footers), body=body, footers=footers)


# Version formats


class _Scanner:
    """Cursor over a single-line input with error reporting."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def startswith(self, literal: str) -> bool:
        return self.text.startswith(literal, self.pos)

    def accept(self, literal: str) -> bool:
        if self.startswith(literal):
            self.pos += len(literal)
            return True
        return False

    def expect(self, literal: str, what: str) -> None:
        if not self.accept(literal):
            self.fail(f"Expected {what}")

    def fail(self, message: str, offset: int | None = None) -> NoReturn:
        offset = self.pos if offset is None else offset
        found = self.text[offset : offset + 12] or "end of input"
        raise GrammarError(f"{message}, found {found!r} in {self.text!r}", _span(self.text, offset))


def _parse_number_format(
    scanner: _Scanner,
    positions: list[tuple[CalendarSegment, int]],
) -> NumberFormat:
    if scanner.accept("<short-sha>"):
        return HashFormat(short=True)
    if scanner.accept("<sha>"):
        return HashFormat(short=False)
    if scanner.accept("CC"):
        return SequentialFormat()

    segments: list[CalendarSegment] = []
    while not scanner.at_end:
        for segment in CALENDAR_TOKENS:
            if scanner.startswith(segment.token):
                positions.append((segment, scanner.pos))
                segments.append(segment)
                scanner.pos += len(segment.token)
                break
        else:
            break
    if not segments:
        scanner.fail("Expected CC, a calendar segment, <sha> or <short-sha>")
    return CalendarFormat(tuple(segments))


def _validate_calendar_order(
    scanner: _Scanner,
    positions: list[tuple[CalendarSegment, int]],
    *,
    require_year: bool = True,
) -> None:
    """Calendar segments run most to least significant, starting with a year.

    Only the first calendar segment of the whole format has to be a year, so
    a prerelease counter is checked with ``require_year`` off when the
    version numbers already contain calendar segments.
    """
    if not positions:
        return
    first, offset = positions[0]
    if require_year and not first.is_year:
        scanner.fail(
            "The first calendar segment must be YYYY (Year4) or YY (Year2) "
            "to keep versions monotonically increasing",
            offset,
        )
    for (previous, _), (segment, offset) in zip(positions, positions[1:], strict=False):
        if segment.rank <= previous.rank:
            scanner.fail(
                f"Calendar segment {segment.token} may not follow {previous.token}; "
                "segments must be ordered from most to least significant",
                offset,
            )


def _parse_pretag_format(scanner: _Scanner, *, require_year: bool) -> PreTagFormat:
    if scanner.accept("<short-sha>"):
        return ShaFormat(short=True)
    if scanner.accept("<sha>"):
        return ShaFormat(short=False)

    match = CHANNEL_RE.match(scanner.text, scanner.pos)
    if match is None:
        scanner.fail("Expected a prerelease channel, <sha> or <short-sha>")
    channel = match.group(0)
    scanner.pos = match.end()
    scanner.expect(".", f"'.' and a counter format after channel {channel!r}")

    positions: list[tuple[CalendarSegment, int]] = []
    counter = _parse_number_format(scanner, positions)
    _validate_calendar_order(scanner, positions, require_year=require_year)
    return ChannelFormat(channel=channel, counter=counter)


def parse_version_format(text: str) -> VersionFormat:
    """Parse a version format string.

    Grammar::

        format  := ["v"] number "." number "." number ["-" pretag]
        number  := "CC" | calendar+ | "<sha>" | "<short-sha>"
        calendar:= "YYYY" | "YY" | "E" | "MM" | "DD" | "DDD" | "HH" | "mm" | "ss"
        pretag  := channel "." number | "<sha>" | "<short-sha>"

    Args:
        text: Format string, e.g. ``vCC.CC.CC-rc.CC`` or ``YYYY.MM.CC``

    Returns:
        Parsed VersionFormat

    Raises:
        GrammarError: On syntax errors, or when calendar segments are not
            ordered from a year segment down to the least significant one
    """
    scanner = _Scanner(text)
    prefix = "v" if scanner.accept("v") else ""

    positions: list[tuple[CalendarSegment, int]] = []
    major = _parse_number_format(scanner, positions)
    scanner.expect(".", "'.' after the major format")
    minor = _parse_number_format(scanner, positions)
    scanner.expect(".", "'.' after the minor format")
    patch = _parse_number_format(scanner, positions)
    _validate_calendar_order(scanner, positions)

    prerelease = None
    if scanner.accept("-"):
        prerelease = _parse_pretag_format(scanner, require_year=not positions)
    if not scanner.at_end:
        scanner.fail("Unexpected trailing input")

    return VersionFormat(major=major, minor=minor, patch=patch, prerelease=prerelease, prefix=prefix)


# Versions


def _number_regex(number_format: NumberFormat) -> str:
    if isinstance(number_format, CalendarFormat):
        return "".join(s.pattern for s in number_format.segments)
    return number_format.pattern


def _parse_number(text: str, number_format: NumberFormat) -> VersionNumber | None:
    if isinstance(number_format, SequentialFormat):
        return Sequential(int(text)) if text.isdigit() else None
    if isinstance(number_format, HashFormat):
        return Hash(text) if re.fullmatch(number_format.pattern, text) else None
    match = re.fullmatch(number_format.pattern, text)
    if match is None:
        return None
    values = {
        segment: int(value)
        for segment, value in zip(number_format.segments, match.groups(), strict=True)
    }
    try:
        timestamp = timestamp_from_values(values)
    except ValueError:
        return None
    return Calendar(number_format.segments, timestamp)


def _parse_pretag(text: str, version_format: VersionFormat) -> PreTag | None:
    if "." not in text and is_hex_hash(text):
        return HashPreTag(text)
    channel, sep, counter_text = text.partition(".")
    if not sep or CHANNEL_RE.fullmatch(channel) is None:
        return None
    counter = _parse_number(counter_text, version_format.counter_format)
    if counter is None:
        return None
    return ChannelPreTag(channel, counter)


def _version_regex(version_format: VersionFormat) -> re.Pattern[str]:
    major, minor, patch = (_number_regex(f) for f in version_format.numbers)
    return re.compile(
        rf"v?(?P<major>{major})\.(?P<minor>{minor})\.(?P<patch>{patch})(?:-(?P<pre>.+))?"
    )


def parse_version(text: str, version_format: VersionFormat) -> Version:
    """Parse a version string against a format.

    The ``v`` prefix is optional whatever the format says. A prerelease is
    always accepted: a bare hex string is read as a commit hash, anything
    else must be ``<channel>.<counter>`` with the counter in the format's
    prerelease counter representation (sequential when none is declared).

    Args:
        text: Version string, e.g. ``v1.2.3-rc.4``
        version_format: Format the version was rendered with

    Returns:
        Parsed Version

    Raises:
        GrammarError: If the string does not match the format
    """
    text = text.strip()
    match = _version_regex(version_format).fullmatch(text)
    if match is None:
        raise GrammarError(
            f"Version {text!r} does not match format {str(version_format)!r}",
            _span(text, 0),
        )

    numbers = []
    for slot, number_format in zip(("major", "minor", "patch"), version_format.numbers, strict=True):
        number = _parse_number(match.group(slot), number_format)
        if number is None:
            raise GrammarError(
                f"Invalid {slot} number {match.group(slot)!r} for format {number_format}",
                _span(text, match.start(slot)),
            )
        numbers.append(number)

    prerelease = None
    if match.group("pre") is not None:
        prerelease = _parse_pretag(match.group("pre"), version_format)
        if prerelease is None:
            raise GrammarError(
                f"Invalid prerelease {match.group('pre')!r} in version {text!r}",
                _span(text, match.start("pre")),
            )

    return Version(*numbers, prerelease=prerelease, prefix=version_format.prefix)


def try_parse_version(text: str, version_format: VersionFormat) -> Version | None:
    """Like :func:`parse_version` but return None instead of raising."""
    try:
        return parse_version(text, version_format)
    except GrammarError:
        return None


# Git log


def parse_decorations(
    text: str,
    version_format: VersionFormat | None = None,
    remotes: Iterable[str] | None = None,
) -> tuple[Decoration, ...]:
    """Parse a ``%d`` decoration list such as `` (HEAD -> main, tag: v1.0.0)``.

    Args:
        text: Decoration text, possibly empty
        version_format: Format used to recognise version tags
        remotes: Known remote names. When given, only refs starting with one
            of them are remote branches; otherwise any ref with a ``/`` is.

    Returns:
        Tuple of decorations in git's order
    """
    text = text.strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1]
    if not text:
        return ()

    known_remotes = set(remotes) if remotes is not None else None
    decorations: list[Decoration] = []
    for item in (part.strip() for part in text.split(", ")):
        if not item:
            continue
        if item.startswith("HEAD -> "):
            decorations.append(HeadIndicator(item.removeprefix("HEAD -> ")))
        elif item == "HEAD":
            decorations.append(HeadIndicator(None))
        elif item.startswith("tag: "):
            name = item.removeprefix("tag: ")
            version = try_parse_version(name, version_format) if version_format else None
            decorations.append(Tag(version if version is not None else name))
        elif "/" in item and (known_remotes is None or item.split("/", 1)[0] in known_remotes):
            remote, name = item.split("/", 1)
            decorations.append(RemoteBranch(remote, name))
        else:
            decorations.append(Branch(item))
    return tuple(decorations)



class _LogReader:
    """Line cursor over raw log text that tracks source offsets."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.lines = text.split("\n")
        self.offsets: list[int] = []
        offset = 0
        for line in self.lines:
            self.offsets.append(offset)
            offset += len(line) + 1
        self.index = 0

    @property
    def at_end(self) -> bool:
        return self.index >= len(self.lines)

    def peek(self) -> str:
        return self.lines[self.index].rstrip("\r")

    def span(self, index: int | None = None) -> SourceSpan:
        index = self.index if index is None else index
        offset = self.offsets[min(index, len(self.offsets) - 1)]
        return _span(self.text, offset)

    def next_line(self, what: str) -> str:
        if self.at_end:
            raise GrammarError(f"Unexpected end of log while reading {what}", self.span(len(self.lines) - 1))
        line = self.peek()
        self.index += 1
        return line

    def expect_label(self, label: str) -> None:
        line = self.next_line(f"'{label}='")
        if line != f"{label}=":
            raise GrammarError(f"Expected '{label}=' but found {line!r}", self.span(self.index - 1))

    def skip_blank(self) -> None:
        while not self.at_end and not self.peek().strip():
            self.index += 1


def parse_log(
    text: str,
    *,
    version_format: VersionFormat | None = None,
    commits: CommitsConfig | None = None,
    remotes: Iterable[str] | None = None,
) -> list[CommitRecord]:
    """Parse ``git log`` output produced with ``GIT_FORMAT_ARGS``.

    Args:
        text: Raw log text
        version_format: Format used to recognise version tags; tags that
            do not parse stay plain text
        commits: Commit type tables used when parsing subjects
        remotes: Known remote names (see :func:`parse_decorations`)

    Returns:
        One CommitRecord per record in the input, in input order

    Raises:
        GrammarError: On any malformed record
    """
    commits = commits or CommitsConfig()
    remotes = list(remotes) if remotes is not None else None
    reader = _LogReader(text)
    records: list[CommitRecord] = []

    reader.skip_blank()
    while not reader.at_end:
        record_start = reader.index
        reader.expect_label("name")
        name = reader.next_line("name")

        reader.expect_label("branch")
        branch = reader.next_line("branch").strip().removeprefix("refs/heads/") or None

        reader.expect_label("commit")
        commit_hash = reader.next_line("commit hash").strip()
        if COMMIT_HASH_RE.fullmatch(commit_hash) is None:
            raise GrammarError(f"Invalid commit hash {commit_hash!r}", reader.span(reader.index - 1))

        reader.expect_label("commit-time")
        raw_time = reader.next_line("commit time").strip()
        try:
            timestamp = datetime.fromisoformat(raw_time)
        except ValueError as e:
            raise GrammarError(f"Invalid commit time {raw_time!r}", reader.span(reader.index - 1)) from e
        if timestamp.tzinfo is None:
            raise GrammarError(f"Commit time {raw_time!r} has no UTC offset", reader.span(reader.index - 1))

        reader.expect_label("dec")
        decorations = parse_decorations(reader.next_line("decorations"), version_format, remotes)

        reader.expect_label("parent")
        parent_line = reader.next_line("parents")
        parents = tuple(parent_line.split())
        for parent in parents:
            if COMMIT_HASH_RE.fullmatch(parent) is None:
                raise GrammarError(f"Invalid parent hash {parent!r}", reader.span(reader.index - 1))

        reader.expect_label("sub")
        subject = parse_subject(reader.next_line("subject"), commits)

        reader.expect_label("trailers")
        trailer_start = reader.index
        trailer_lines: list[str] = []
        while not reader.at_end and reader.peek() != "name=":
            trailer_lines.append(reader.next_line("trailers"))
        footers = parse_footers(trailer_lines)
        if footers is None:
            raise GrammarError(f"Malformed trailers in commit {commit_hash[:12]}", reader.span(trailer_start))

        records.append(
            CommitRecord(
                commit_hash=commit_hash,
                parent_hashes=parents,
                branch=branch,
                timestamp=timestamp,
                subject=_mark_breaking(subject, footers),
                footers=footers,
                decorations=decorations,
                name=name,
            )
        )
        log.debug("Parsed commit %s at line %d", commit_hash[:12], record_start + 1)
        reader.skip_blank()

    log.debug("Parsed %d commit records", len(records))
    return records


