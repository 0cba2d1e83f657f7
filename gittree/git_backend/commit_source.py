"""
Commit sources: lazy, resumable sequences of commit records.

A source is built from a SourceConfig and hands out records in batches via
pull(). It keeps its position between pulls and peeks one record ahead so the
batch carrying the last record is already marked as exhausted.

When commits are dropped by content (author, message, path), the parents of the
remaining commits are rewritten to their nearest included ancestors, so the
graph of a filtered history never references commits that will not appear.
Parents hidden by a rev range, older than `since`, or missing from the object
database are reported as boundary parents instead.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

import pygit2

from gittree.constants import DEFAULT_SCAN_BUDGET, SHORT_ID_LENGTH, SINCE_SLOP
from gittree.errors import InvalidFilter
from gittree.git_backend.filters import SourceConfig
from gittree.git_backend.repository import GitTreeRepository
from gittree.ui.git_graph.types import CommitRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Batch:
    """Records returned by one pull. `exhausted` means no record follows."""

    records: tuple[CommitRecord, ...]
    exhausted: bool


class CommitSource(Protocol):
    def pull(self, count: int) -> Batch: ...


class Visibility(Enum):
    INCLUDED = "included"
    EXCLUDED = "excluded"  # dropped by a filter, rewrite through it
    OUTSIDE = "outside"  # beyond the window, becomes a boundary


class ParentRewriter:
    """
    Rewrites parent lists past excluded commits.

    An excluded commit is replaced by the rewritten parents of itself, so each
    commit is resolved once no matter how many children reach it.
    """

    def __init__(
        self,
        parents_of: Callable[[str], Sequence[str]],
        classify: Callable[[str], Visibility],
    ) -> None:
        self._parents_of = parents_of
        self._classify = classify
        self._resolved: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {}

    def rewrite(self, parent_oids: Sequence[str]) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """Return (parents, outside) where `outside` is a subset of `parents`."""
        parents: list[str] = []
        outside: list[str] = []

        for oid in parent_oids:
            visibility = self._classify(oid)
            if visibility is Visibility.INCLUDED:
                _append_unique(parents, oid)
            elif visibility is Visibility.OUTSIDE:
                _append_unique(parents, oid)
                _append_unique(outside, oid)
            else:
                resolved_parents, resolved_outside = self._resolve(oid)
                for parent in resolved_parents:
                    _append_unique(parents, parent)
                for parent in resolved_outside:
                    _append_unique(outside, parent)

        return tuple(parents), tuple(outside)

    def _resolve(self, oid: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
        # Post-order walk over excluded ancestors, no recursion
        stack = [oid]
        while stack:
            current = stack[-1]
            if current in self._resolved:
                stack.pop()
                continue

            pending = [
                parent
                for parent in self._parents_of(current)
                if parent not in self._resolved
                and self._classify(parent) is Visibility.EXCLUDED
            ]
            if pending:
                stack.extend(pending)
                continue

            stack.pop()
            parents: list[str] = []
            outside: list[str] = []
            for parent in self._parents_of(current):
                visibility = self._classify(parent)
                if visibility is Visibility.INCLUDED:
                    _append_unique(parents, parent)
                elif visibility is Visibility.OUTSIDE:
                    _append_unique(parents, parent)
                    _append_unique(outside, parent)
                else:
                    for resolved in self._resolved[parent][0]:
                        _append_unique(parents, resolved)
                    for resolved in self._resolved[parent][1]:
                        _append_unique(outside, resolved)
            self._resolved[current] = (tuple(parents), tuple(outside))

        return self._resolved[oid]


def _append_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)


def path_matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


class FilteredSource(ABC):
    """
    Pull, look-ahead and cap handling shared by all sources.

    One pull walks at most `scan_budget` commits. A selective filter can leave
    a pull short or even empty without being exhausted; the caller pulls again.
    """

    def __init__(self, config: SourceConfig, scan_budget: int = DEFAULT_SCAN_BUDGET) -> None:
        self.config = config
        self.scan_budget = max(1, scan_budget)
        self._emitted = 0
        self._scanned = 0
        self._older_run = 0
        self._peeked: CommitRecord | None = None
        self._iterator: Iterator[CommitRecord | None] | None = None
        self._done = False

    @abstractmethod
    def _records(self) -> Iterator[CommitRecord | None]:
        """Yield one entry per walked commit: its record, or None if filtered out."""
        ...

    def pull(self, count: int) -> Batch:
        self._scanned = 0
        records: list[CommitRecord] = []
        while len(records) < count and not self._cap_reached(len(records)):
            record = self._next()
            if record is None:
                break
            records.append(record)

        self._emitted += len(records)
        exhausted = self._cap_reached(0) or (self._peek() is None and self._done)
        if not exhausted and len(records) < count:
            logger.debug("Pull stopped after %d commits with %d records", self._scanned, len(records))
        return Batch(tuple(records), exhausted)

    def _cap_reached(self, pending: int) -> bool:
        cap = self.config.max_commits
        return cap > 0 and self._emitted + pending >= cap

    def _next(self) -> CommitRecord | None:
        record = self._peek()
        self._peeked = None
        return record

    def _peek(self) -> CommitRecord | None:
        """The next included record, or None at the end or when the budget is spent."""
        while self._peeked is None and not self._done:
            if self._scanned >= self.scan_budget:
                return None
            if self._iterator is None:
                self._iterator = self._records()
            try:
                entry = next(self._iterator)
            except StopIteration:
                self._done = True
                break
            self._scanned += 1
            self._peeked = entry
        return self._peeked

    def _past_since(self, timestamp: int) -> bool:
        """True once SINCE_SLOP commits in a row are older than `since`."""
        since = self.config.since
        if since is None:
            return False
        self._older_run = self._older_run + 1 if timestamp < since else 0
        return self._older_run >= SINCE_SLOP

    def _visibility(
        self,
        timestamp: int,
        author: str,
        message: str,
        touches_path: Callable[[], bool],
    ) -> Visibility:
        config = self.config
        if config.since is not None and timestamp < config.since:
            return Visibility.OUTSIDE
        if config.until is not None and timestamp > config.until:
            return Visibility.EXCLUDED
        if config.author and not config.author.search(author):
            return Visibility.EXCLUDED
        if config.message and not config.message.search(message):
            return Visibility.EXCLUDED
        if config.paths and not touches_path():
            return Visibility.EXCLUDED
        return Visibility.INCLUDED


class MemoryCommitSource(FilteredSource):
    """
    Commit source over records already in memory, in source order.

    `paths` optionally maps commit ids to the paths each commit changed, for
    path filters. Rev ranges resolve names against record refs and id prefixes.
    """

    def __init__(
        self,
        records: Sequence[CommitRecord],
        config: SourceConfig | None = None,
        paths: Mapping[str, Sequence[str]] | None = None,
        scan_budget: int = DEFAULT_SCAN_BUDGET,
    ) -> None:
        super().__init__(config or SourceConfig(), scan_budget)
        self._all = list(records)
        self._by_oid = {record.oid: record for record in self._all}
        self._paths = paths or {}
        self._visible: set[str] | None = None
        self._hidden: set[str] = set()

        if self.config.rev_range is not None:
            self._apply_range()

        self._rewriter = ParentRewriter(self._parents_of, self._classify)
        self._classified: dict[str, Visibility] = {}

    def _records(self) -> Iterator[CommitRecord | None]:
        for record in self._all:
            if self._visible is not None and record.oid not in self._visible:
                yield None
                continue
            if self._past_since(record.commit_time):
                return
            if self._classify(record.oid) is not Visibility.INCLUDED:
                yield None
                continue
            parents, outside = self._rewriter.rewrite(record.parent_oids)
            yield replace(record, parent_oids=parents, boundary_parents=outside)

    def _parents_of(self, oid: str) -> Sequence[str]:
        record = self._by_oid.get(oid)
        return record.parent_oids if record else ()

    def _classify(self, oid: str) -> Visibility:
        cached = self._classified.get(oid)
        if cached is not None:
            return cached

        record = self._by_oid.get(oid)
        if record is None or oid in self._hidden:
            visibility = Visibility.OUTSIDE
        else:
            prefixes = self.config.paths
            visibility = self._visibility(
                record.commit_time,
                f"{record.author_name} <{record.author_email}>",
                record.subject,
                lambda: any(
                    path_matches(p, prefix)
                    for p in self._paths.get(oid, ())
                    for prefix in prefixes
                ),
            )
        self._classified[oid] = visibility
        return visibility

    def _resolve_name(self, name: str) -> str:
        for record in self._all:
            names = {ref.removeprefix("tag: ") for ref in record.refs}
            if name in names or record.oid.startswith(name):
                return record.oid
        raise InvalidFilter(f"Unknown revision: {name}")

    def _ancestors(self, tips: Sequence[str]) -> set[str]:
        seen: set[str] = set()
        stack = list(tips)
        while stack:
            oid = stack.pop()
            if oid in seen:
                continue
            seen.add(oid)
            stack.extend(self._parents_of(oid))
        return seen

    def _apply_range(self) -> None:
        rev_range = self.config.rev_range
        assert rev_range is not None
        include = [self._resolve_name(name) for name in rev_range.include]
        exclude = [self._resolve_name(name) for name in rev_range.exclude]
        if rev_range.symmetric:
            exclude = sorted(self._ancestors(include[:1]) & self._ancestors(include[1:]))
        self._hidden = self._ancestors(exclude)
        self._visible = self._ancestors(include) - self._hidden


class RepositoryCommitSource(FilteredSource):
    """Commit source walking a pygit2 repository in topological date order."""

    def __init__(
        self,
        repo: GitTreeRepository,
        config: SourceConfig,
        all_refs: bool = True,
        scan_budget: int = DEFAULT_SCAN_BUDGET,
    ) -> None:
        super().__init__(config, scan_budget)
        self.repo = repo
        self._refs = repo.refs_by_oid()
        self._tracked_paths = list(config.paths)
        self._classified: dict[str, Visibility] = {}
        self._ancestor_cache: dict[str, bool] = {}

        tips, self._hidden = self._resolve_range(all_refs)
        self._walker = repo.repo.walk(
            None, pygit2.enums.SortMode.TOPOLOGICAL | pygit2.enums.SortMode.TIME
        )
        for oid in tips:
            self._walker.push(oid)
        for oid in self._hidden:
            self._walker.hide(oid)

        self._rewriter = ParentRewriter(self._parents_of, self._classify)

    def _resolve_range(self, all_refs: bool) -> tuple[list[pygit2.Oid], list[pygit2.Oid]]:
        rev_range = self.config.rev_range
        if rev_range is None:
            return self.repo.default_tips(all_refs), []

        include = [self.repo.resolve(name).id for name in rev_range.include]
        exclude = [self.repo.resolve(name).id for name in rev_range.exclude]
        if rev_range.symmetric:
            base = self.repo.repo.merge_base(include[0], include[1])
            exclude = [base] if base is not None else []
        return include, exclude

    def _records(self) -> Iterator[CommitRecord | None]:
        for commit in self._walker:
            if self._past_since(commit.commit_time):
                return
            oid = str(commit.id)
            if self._classify(oid) is not Visibility.INCLUDED:
                yield None
                continue
            parents, outside = self._rewriter.rewrite([str(p) for p in commit.parent_ids])
            yield CommitRecord(
                oid=oid,
                short_id=oid[:SHORT_ID_LENGTH],
                parent_oids=parents,
                author_name=commit.author.name,
                author_email=commit.author.email,
                author_time=commit.author.time,
                commit_time=commit.commit_time,
                subject=commit.message.strip().split("\n")[0],
                refs=tuple(self._refs.get(oid, ())),
                boundary_parents=outside,
            )

    def _parents_of(self, oid: str) -> Sequence[str]:
        commit = self.repo.repo.get(oid)
        if not isinstance(commit, pygit2.Commit):
            return ()
        return [str(p) for p in commit.parent_ids]

    def _classify(self, oid: str) -> Visibility:
        cached = self._classified.get(oid)
        if cached is not None:
            return cached

        commit = self.repo.repo.get(oid)
        if not isinstance(commit, pygit2.Commit) or self._is_hidden(commit.id):
            visibility = Visibility.OUTSIDE
        else:
            visibility = self._visibility(
                commit.commit_time,
                f"{commit.author.name} <{commit.author.email}>",
                commit.message,
                lambda: self._touches_path(commit),
            )
        self._classified[oid] = visibility
        return visibility

    def _is_hidden(self, oid: pygit2.Oid) -> bool:
        if not self._hidden:
            return False
        key = str(oid)
        if key not in self._ancestor_cache:
            self._ancestor_cache[key] = any(
                oid == hidden or self.repo.repo.descendant_of(hidden, oid)
                for hidden in self._hidden
            )
        return self._ancestor_cache[key]

    def _touches_path(self, commit: pygit2.Commit) -> bool:
        tracked = self._tracked_paths
        if not tracked:
            return True

        diff = self.repo.diff_to_first_parent(commit)
        if self.config.follow:
            diff.find_similar()

        touched = False
        for delta in diff.deltas:
            new_path = delta.new_file.path
            old_path = delta.old_file.path
            if any(path_matches(new_path, p) or path_matches(old_path, p) for p in tracked):
                touched = True
                # Follow only ever tracks a single path
                if self.config.follow and new_path == tracked[0] and old_path != new_path:
                    logger.debug("Following rename %s -> %s at %s", old_path, new_path, commit.id)
                    self._tracked_paths = [old_path]
        return touched
