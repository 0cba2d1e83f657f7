"""
Filter parsing and validation.

A FilterParams holds what the user typed; FilterEngine.build() validates it and
turns it into a SourceConfig that a commit source can be constructed from.
Nothing here touches the repository, so a rejected filter never disturbs the
active graph.
"""

import re
import shlex
import time
from dataclasses import dataclass, replace
from datetime import datetime

from gittree.errors import InvalidFilter

RELATIVE_TIME = re.compile(r"^(\d+)\s*(mo|[smhdwy])$", re.IGNORECASE)

RELATIVE_UNITS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 7 * 86400,
    "mo": 30 * 86400,
    "y": 365 * 86400,
}

# Revision names: refs, abbreviated hashes, HEAD~2, main^2, @{-1}
REV_NAME = re.compile(r"^[A-Za-z0-9_@{}~^./+-]+$")

QUERY_KEYS = {"author", "path", "since", "until", "range", "max", "grep"}


@dataclass(frozen=True)
class RevRange:
    """Parsed rev-range: tips to walk from and tips whose history is hidden."""

    include: tuple[str, ...]
    exclude: tuple[str, ...] = ()
    symmetric: bool = False


@dataclass(frozen=True)
class FilterParams:
    """Filter values as entered by the user."""

    author: str | None = None
    message: str | None = None
    paths: tuple[str, ...] = ()  # repeatable, any match includes a commit
    since: str | None = None
    until: str | None = None
    rev_range: str | None = None
    max_commits: int = 0
    follow: bool = False

    def describe(self) -> str:
        parts = []
        if self.author:
            parts.append(f"author:{self.author}")
        for path in self.paths:
            parts.append(f"path:{path}")
        if self.follow:
            parts.append("(follow)")
        if self.since:
            parts.append(f"since:{self.since}")
        if self.until:
            parts.append(f"until:{self.until}")
        if self.rev_range:
            parts.append(f"range:{self.rev_range}")
        if self.max_commits:
            parts.append(f"max:{self.max_commits}")
        if self.message:
            parts.append(f'"{self.message}"')
        return " ".join(parts)

    def to_query(self) -> str:
        """Query text that parse_query() turns back into these params (minus follow)."""
        parts = []
        for key, value in (
            ("author", self.author),
            *(("path", path) for path in self.paths),
            ("since", self.since),
            ("until", self.until),
            ("range", self.rev_range),
        ):
            if value:
                parts.append(shlex.quote(f"{key}:{value}"))
        if self.max_commits:
            parts.append(f"max:{self.max_commits}")
        if self.message:
            parts.append(shlex.quote(f"grep:{self.message}"))
        return " ".join(parts)

    def toggled_follow(self) -> "FilterParams":
        return replace(self, follow=not self.follow)


@dataclass(frozen=True)
class SourceConfig:
    """Validated configuration for constructing a commit source."""

    author: re.Pattern[str] | None = None
    message: re.Pattern[str] | None = None
    paths: tuple[str, ...] = ()
    since: int | None = None
    until: int | None = None
    rev_range: RevRange | None = None
    max_commits: int = 0
    follow: bool = False

    @property
    def has_predicates(self) -> bool:
        """True when commits are dropped by content rather than by position."""
        return bool(self.author or self.message or self.paths)


def parse_time_expression(text: str, now: float | None = None) -> int:
    """
    Parse an absolute date or a relative duration into a Unix timestamp.

    Relative durations count back from now: "2w", "3d", "12h", "30m", "6mo", "1y".
    Absolute dates use ISO 8601 ("2024-05-01", "2024-05-01 13:00",
    "2024-05-01T13:00:00+02:00"); dates without a timezone are local time.
    """
    value = text.strip()
    if not value:
        raise InvalidFilter("Empty time expression")

    match = RELATIVE_TIME.match(value)
    if match:
        amount = int(match.group(1))
        unit = match.group(2).lower()
        current = time.time() if now is None else now
        return int(current - amount * RELATIVE_UNITS[unit])

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise InvalidFilter(f"Unrecognized time expression: {text!r}") from None
    return int(parsed.timestamp())


def _validate_rev_name(name: str, text: str) -> str:
    if (
        not name
        or not REV_NAME.match(name)
        or name.startswith(("-", "/"))
        or name.endswith(("/", ".", ".lock"))
        or ".." in name
        or "//" in name
    ):
        raise InvalidFilter(f"Invalid revision {name!r} in range {text!r}")
    return name


def parse_rev_range(text: str) -> RevRange:
    """
    Parse rev-range syntax.

    Supported forms: "A", "A..B", "A...B", "^A B" (and combinations of the
    plain forms separated by whitespace). An omitted side of ".."/"..." is HEAD.
    """
    tokens = text.split()
    if not tokens:
        raise InvalidFilter("Empty rev range")

    include: list[str] = []
    exclude: list[str] = []
    symmetric = False

    for token in tokens:
        if "..." in token:
            if len(tokens) != 1:
                raise InvalidFilter(f"Symmetric range must stand alone: {text!r}")
            left, _, right = token.partition("...")
            include.append(_validate_rev_name(left or "HEAD", text))
            include.append(_validate_rev_name(right or "HEAD", text))
            symmetric = True
        elif ".." in token:
            left, _, right = token.partition("..")
            exclude.append(_validate_rev_name(left or "HEAD", text))
            include.append(_validate_rev_name(right or "HEAD", text))
        elif token.startswith("^"):
            exclude.append(_validate_rev_name(token[1:], text))
        else:
            include.append(_validate_rev_name(token, text))

    if not include:
        raise InvalidFilter(f"Rev range has nothing to show: {text!r}")
    return RevRange(tuple(include), tuple(exclude), symmetric)


def _compile(pattern: str | None, what: str) -> re.Pattern[str] | None:
    if not pattern:
        return None
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise InvalidFilter(f"Invalid {what} pattern {pattern!r}: {e}") from None


class FilterEngine:
    """Validates filters and builds commit source configurations."""

    def __init__(self, default_range: str = "", default_max_commits: int = 0) -> None:
        self.default_range = default_range
        self.default_max_commits = default_max_commits

    def defaults(self) -> FilterParams:
        return FilterParams(
            rev_range=self.default_range or None,
            max_commits=self.default_max_commits,
        )

    def build(self, params: FilterParams, now: float | None = None) -> SourceConfig:
        """Validate params. Raises InvalidFilter on the first bad value."""
        since = parse_time_expression(params.since, now) if params.since else None
        until = parse_time_expression(params.until, now) if params.until else None
        if since is not None and until is not None and since > until:
            raise InvalidFilter(f"since ({params.since}) is after until ({params.until})")

        if params.max_commits < 0:
            raise InvalidFilter(f"max commits must not be negative: {params.max_commits}")

        paths = tuple(p for p in (path.strip().strip("/") for path in params.paths) if p)
        if params.follow and len(paths) != 1:
            raise InvalidFilter("Following renames requires exactly one path filter")

        return SourceConfig(
            author=_compile(params.author, "author"),
            message=_compile(params.message, "message"),
            paths=paths,
            since=since,
            until=until,
            rev_range=parse_rev_range(params.rev_range) if params.rev_range else None,
            max_commits=params.max_commits,
            follow=params.follow,
        )

    def parse_query(self, query: str) -> FilterParams:
        """
        Parse a filter query typed into the UI.

        Query syntax: "author:<re> path:<p> since:<t> until:<t> range:<r> max:<n>"
        (path: may repeat) plus free words, which are matched against commit messages. An empty
        query resets to the default filter.
        """
        try:
            tokens = shlex.split(query)
        except ValueError as e:
            raise InvalidFilter(f"Cannot parse filter: {e}") from None

        values: dict[str, str] = {}
        paths: list[str] = []
        words: list[str] = []
        for token in tokens:
            key, sep, value = token.partition(":")
            if sep and key.lower() in QUERY_KEYS:
                if not value:
                    raise InvalidFilter(f"Missing value for {key}:")
                if key.lower() == "path":
                    paths.append(value)
                else:
                    values[key.lower()] = value
            else:
                words.append(token)

        max_commits = self.default_max_commits
        if "max" in values:
            try:
                max_commits = int(values["max"])
            except ValueError:
                raise InvalidFilter(f"max must be a number: {values['max']!r}") from None

        message = values.get("grep")
        if words:
            message = " ".join(words) if message is None else f"{message} {' '.join(words)}"

        params = FilterParams(
            author=values.get("author"),
            message=message,
            paths=tuple(paths),
            since=values.get("since"),
            until=values.get("until"),
            rev_range=values.get("range") or self.default_range or None,
            max_commits=max_commits,
        )
        # Surface errors now rather than when the source is built
        self.build(params)
        return params
