"""Tests for commit sources: batching, filters, parent rewriting, ranges."""

from dataclasses import replace
from unittest.mock import patch

import pytest

from gittree.errors import InvalidFilter
from gittree.git_backend.commit_source import MemoryCommitSource, RepositoryCommitSource
from gittree.git_backend.filters import FilterEngine, FilterParams, SourceConfig
from gittree.git_backend.repository import GitTreeRepository


def config(**kwargs) -> SourceConfig:
    return FilterEngine().build(FilterParams(**kwargs))


class TestBatching:
    """pull() keeps its position and flags the last batch."""

    def test_pulls_in_order_until_exhausted(self, make_linear):
        source = MemoryCommitSource(make_linear(5))

        first = source.pull(2)
        second = source.pull(2)
        third = source.pull(2)

        assert [r.oid for r in first.records] == ["c004", "c003"]
        assert not first.exhausted
        assert [r.oid for r in second.records] == ["c002", "c001"]
        assert not second.exhausted
        assert [r.oid for r in third.records] == ["c000"]
        assert third.exhausted

    def test_exhausted_with_last_record(self, make_linear):
        batch = MemoryCommitSource(make_linear(3)).pull(3)

        assert len(batch.records) == 3
        assert batch.exhausted

    def test_empty_source(self):
        batch = MemoryCommitSource([]).pull(10)
        assert batch.records == ()
        assert batch.exhausted

    def test_max_commits_caps_the_stream(self, make_linear):
        source = MemoryCommitSource(make_linear(10), config(max_commits=4))

        first = source.pull(3)
        second = source.pull(3)

        assert len(first.records) == 3
        assert not first.exhausted
        assert len(second.records) == 1
        assert second.exhausted
        assert source.pull(3).records == ()


class TestPredicateFilters:
    """Excluded commits are rewritten out of parent lists."""

    def test_author_filter_rewrites_parents(self, make_linear):
        records = make_linear(6, authors=("Ann", "Bob"))
        batch = MemoryCommitSource(records, config(author="bob")).pull(10)

        assert [r.oid for r in batch.records] == ["c005", "c003", "c001"]
        assert [r.parent_oids for r in batch.records] == [("c003",), ("c001",), ()]
        assert all(r.boundary_parents == () for r in batch.records)

    def test_message_filter(self, make_record):
        records = [
            make_record("c2", ("c1",), subject="Fix crash"),
            make_record("c1", ("c0",), subject="Add feature"),
            make_record("c0", subject="fix typo"),
        ]
        batch = MemoryCommitSource(records, config(message="fix")).pull(10)

        assert [r.oid for r in batch.records] == ["c2", "c0"]
        assert batch.records[0].parent_oids == ("c0",)

    def test_path_filter_through_merge(self, make_record):
        records = [
            make_record("m", ("a", "b")),
            make_record("a", ("base",)),
            make_record("b", ("base",)),
            make_record("base"),
        ]
        paths = {"m": ["README"], "a": ["src/x.py"], "b": ["docs/y.md"], "base": ["src/z.py"]}
        batch = MemoryCommitSource(records, config(paths=("src",)), paths=paths).pull(10)

        assert [r.oid for r in batch.records] == ["a", "base"]
        assert batch.records[0].parent_oids == ("base",)

    def test_any_of_several_paths(self, make_record):
        records = [
            make_record("m", ("a", "b")),
            make_record("a", ("base",)),
            make_record("b", ("base",)),
            make_record("base"),
        ]
        paths = {"m": ["README"], "a": ["src/x.py"], "b": ["docs/y.md"], "base": ["src/z.py"]}
        batch = MemoryCommitSource(records, config(paths=("src", "docs")), paths=paths).pull(10)

        assert [r.oid for r in batch.records] == ["a", "b", "base"]
        assert batch.records[0].parent_oids == ("base",)

    def test_excluded_merge_collapses_to_included_ancestors(self, make_record):
        records = [
            make_record("top", ("m",), author="Ann"),
            make_record("m", ("a", "b"), author="Bob"),
            make_record("a", ("base",), author="Ann"),
            make_record("b", ("base",), author="Ann"),
            make_record("base", author="Ann"),
        ]
        batch = MemoryCommitSource(records, config(author="ann")).pull(10)

        assert batch.records[0].parent_oids == ("a", "b")

    def test_since_makes_older_parents_boundaries(self, make_linear):
        records = make_linear(5)
        since = records[2].commit_time
        batch = MemoryCommitSource(records, SourceConfig(since=since)).pull(10)

        assert [r.oid for r in batch.records] == ["c004", "c003", "c002"]
        assert batch.records[-1].boundary_parents == ("c001",)


class TestMemoryRanges:
    """Rev ranges over in-memory records resolve through refs."""

    def records(self, make_record):
        return [
            make_record("f2", ("f1",), refs=("feature",)),
            make_record("m1", ("base",), refs=("main",)),
            make_record("f1", ("base",)),
            make_record("base", refs=("tag: v1",)),
        ]

    def test_two_dot_range(self, make_record):
        source = MemoryCommitSource(self.records(make_record), config(rev_range="main..feature"))
        batch = source.pull(10)

        assert [r.oid for r in batch.records] == ["f2", "f1"]
        assert batch.records[-1].boundary_parents == ("base",)

    def test_tag_names_resolve(self, make_record):
        source = MemoryCommitSource(self.records(make_record), config(rev_range="v1"))
        assert [r.oid for r in source.pull(10).records] == ["base"]

    def test_unknown_revision(self, make_record):
        with pytest.raises(InvalidFilter):
            MemoryCommitSource(self.records(make_record), config(rev_range="nope"))


class TestRepositoryCommitSource:
    """Walking a real repository."""

    @pytest.fixture
    def history(self, repo_builder):
        c1 = repo_builder.commit("first", {"a.txt": "one"})
        c2 = repo_builder.commit("second", {"a.txt": "two"})
        c3 = repo_builder.commit("third\n\nwith a body", {"b.txt": "b"})
        repo = GitTreeRepository(str(repo_builder.path))
        return repo, [str(c1), str(c2), str(c3)]

    def test_walks_newest_first(self, history):
        repo, (c1, c2, c3) = history
        batch = RepositoryCommitSource(repo, config()).pull(10)

        assert [r.oid for r in batch.records] == [c3, c2, c1]
        assert batch.exhausted
        assert batch.records[0].subject == "third"
        assert batch.records[0].refs == ("HEAD -> main",)
        assert batch.records[0].short_id == c3[:7]
        assert batch.records[1].parent_oids == (c1,)

    def test_path_filter(self, history):
        repo, (c1, c2, c3) = history
        batch = RepositoryCommitSource(repo, config(paths=("a.txt",))).pull(10)

        assert [r.oid for r in batch.records] == [c2, c1]
        assert batch.records[0].parent_oids == (c1,)

    def test_range_hides_ancestors(self, history):
        repo, (c1, c2, c3) = history
        batch = RepositoryCommitSource(repo, config(rev_range="HEAD~1..HEAD")).pull(10)

        assert [r.oid for r in batch.records] == [c3]
        assert batch.records[0].boundary_parents == (c2,)

    def test_unknown_revision(self, history):
        repo, _ = history
        with pytest.raises(InvalidFilter):
            RepositoryCommitSource(repo, config(rev_range="no-such-branch"))

    def test_side_branches_are_included(self, history, repo_builder):
        repo, (c1, c2, c3) = history
        side = repo_builder.side_commit("refs/heads/side", "side work", {"c.txt": "c"}, [repo_builder.repo.get(c1).id])
        batch = RepositoryCommitSource(repo, config()).pull(10)

        oids = [r.oid for r in batch.records]
        assert str(side) in oids
        assert oids.index(str(side)) < oids.index(c1)
        assert len(oids) == 4

    def test_several_paths(self, history):
        repo, (c1, c2, c3) = history
        batch = RepositoryCommitSource(repo, config(paths=("a.txt", "b.txt"))).pull(10)

        assert [r.oid for r in batch.records] == [c3, c2, c1]


class TestScanLimits:
    """A pull walks a bounded number of commits."""

    def test_since_stops_the_walk(self, make_linear):
        records = make_linear(20000)
        since = records[2].commit_time
        source = MemoryCommitSource(records, SourceConfig(since=since))

        with patch.object(source, "_classify", wraps=source._classify) as classify:
            batch = source.pull(10)

        assert [r.oid for r in batch.records] == ["c19999", "c19998", "c19997"]
        assert batch.exhausted
        assert batch.records[-1].boundary_parents == ("c19996",)
        assert classify.call_count < 200

    def test_since_tolerates_a_few_older_commits(self, make_linear):
        records = make_linear(10)
        # One commit with a skewed clock must not end the walk
        records[1] = replace(records[1], commit_time=records[9].commit_time)
        since = records[3].commit_time
        batch = MemoryCommitSource(records, SourceConfig(since=since)).pull(10)

        assert [r.oid for r in batch.records] == ["c009", "c007", "c006"]
        assert batch.exhausted

    def test_selective_filter_returns_partial_batches(self, make_linear):
        records = make_linear(500)
        records[-1] = replace(records[-1], author_name="Bob", author_email="bob@example.com")
        source = MemoryCommitSource(records, config(author="bob"), scan_budget=100)

        first = source.pull(10)
        assert first.records == ()
        assert not first.exhausted

        found = []
        pulls = 1
        batch = first
        while not batch.exhausted and pulls < 10:
            batch = source.pull(10)
            pulls += 1
            found.extend(r.oid for r in batch.records)

        assert found == ["c000"]
        assert batch.exhausted
        assert pulls > 5
