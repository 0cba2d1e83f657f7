"""Shared fixtures: commit record factories, task runners, pygit2 repositories."""

from pathlib import Path

import pygit2
import pytest

from gittree.ui.git_graph.types import CommitRecord

BASE_TIME = 1_700_000_000


def record(
    oid: str,
    parents: tuple[str, ...] = (),
    author: str = "Ann",
    time: int = BASE_TIME,
    subject: str | None = None,
    refs: tuple[str, ...] = (),
    boundary: tuple[str, ...] = (),
) -> CommitRecord:
    return CommitRecord(
        oid=oid,
        short_id=oid[:7],
        parent_oids=tuple(parents),
        author_name=author,
        author_email=f"{author.lower()}@example.com",
        author_time=time,
        commit_time=time,
        subject=subject if subject is not None else f"commit {oid}",
        refs=refs,
        boundary_parents=tuple(boundary),
    )


def linear(count: int, authors: tuple[str, ...] = ("Ann",)) -> list[CommitRecord]:
    """c{count-1} -> ... -> c000, newest first."""
    records = []
    for i in reversed(range(count)):
        parents = (f"c{i - 1:03d}",) if i else ()
        records.append(
            record(
                f"c{i:03d}",
                parents,
                author=authors[i % len(authors)],
                time=BASE_TIME + i * 60,
            )
        )
    return records


class InlineRunner:
    """Runs tasks immediately on the calling thread."""

    def __init__(self) -> None:
        self.spawned: list[str] = []

    def spawn(self, task, name=""):
        self.spawned.append(name)
        task()


class DeferredRunner:
    """Queues tasks until the test runs them."""

    def __init__(self) -> None:
        self.tasks = []

    def spawn(self, task, name=""):
        self.tasks.append(task)

    def run_all(self) -> None:
        while self.tasks:
            self.tasks.pop(0)()


@pytest.fixture
def make_record():
    return record


@pytest.fixture
def make_linear():
    return linear


@pytest.fixture
def inline_runner():
    return InlineRunner()


@pytest.fixture
def deferred_runner():
    return DeferredRunner()


class RepoBuilder:
    """Builds commits in a real repository through the index."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.repo = pygit2.init_repository(str(path), initial_head="main")
        self._tick = 0

    def signature(self) -> pygit2.Signature:
        self._tick += 1
        return pygit2.Signature("Ann", "ann@example.com", BASE_TIME + self._tick * 86400, 0)

    def commit(
        self,
        message: str,
        files: dict[str, str | None],
        parents: list[pygit2.Oid] | None = None,
    ) -> pygit2.Oid:
        """Commit on HEAD, keeping index and working tree in sync."""
        index = self.repo.index
        for name, content in files.items():
            target = self.path / name
            if content is None:
                target.unlink()
                index.remove(name)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content)
                index.add(name)
        index.write()
        tree = index.write_tree()
        if parents is None:
            parents = [] if self.repo.head_is_unborn else [self.repo.head.target]
        sig = self.signature()
        return self.repo.create_commit("HEAD", sig, sig, message, tree, parents)

    def side_commit(
        self,
        ref: str,
        message: str,
        files: dict[str, str],
        parents: list[pygit2.Oid],
    ) -> pygit2.Oid:
        """Commit on another ref without touching index or working tree."""
        builder = self.repo.TreeBuilder(self.repo[parents[0]].peel(pygit2.Tree))
        for name, content in files.items():
            blob = self.repo.create_blob(content.encode())
            builder.insert(name, blob, pygit2.enums.FileMode.BLOB)
        tree = builder.write()
        sig = self.signature()
        return self.repo.create_commit(ref, sig, sig, message, tree, parents)


@pytest.fixture
def repo_builder(tmp_path):
    return RepoBuilder(tmp_path / "repo")
