"""
Git repository access using pygit2
"""

from dataclasses import dataclass, field
from pathlib import Path

import pygit2

from gittree.errors import InvalidFilter, RepositoryNotFound


@dataclass
class CommitDetails:
    """Everything the details pane shows about one commit."""

    oid: str
    author: str
    author_time: int
    committer: str
    commit_time: int
    message: str
    parent_oids: list[str]
    files: list[str] = field(default_factory=list)
    insertions: int = 0
    deletions: int = 0


def short_ref_name(name: str) -> str | None:
    """Decoration label for a full ref name, or None for refs we don't show."""
    if name.endswith("/HEAD"):
        return None
    if name.startswith("refs/heads/"):
        return name[len("refs/heads/") :]
    if name.startswith("refs/remotes/"):
        return name[len("refs/remotes/") :]
    if name.startswith("refs/tags/"):
        return "tag: " + name[len("refs/tags/") :]
    return None


class GitTreeRepository:
    """Read-side repository operations for gittree"""

    def __init__(self, repo_path: str | None = None) -> None:
        """Open the repository containing repo_path (default: current directory)"""
        start = repo_path or str(Path.cwd())
        discovered = pygit2.discover_repository(start)
        if discovered is None:
            raise RepositoryNotFound(f"Not a git repository: {start}")

        try:
            self.repo = pygit2.Repository(discovered)
        except pygit2.GitError as e:
            raise RepositoryNotFound(f"Cannot open repository at {discovered}: {e}") from e

    @property
    def workdir(self) -> str | None:
        return self.repo.workdir

    def get_checked_out_branch(self) -> str | None:
        """Name of the checked out local branch, None when detached or unborn"""
        if self.repo.head_is_unborn or self.repo.head_is_detached:
            return None
        return self.repo.head.shorthand

    def head_oid(self) -> str | None:
        if self.repo.head_is_unborn:
            return None
        return str(self.repo.head.target)

    def refs_by_oid(self) -> dict[str, list[str]]:
        """Map commit id -> decoration labels (HEAD first, then branches, tags)"""
        labels: dict[str, list[str]] = {}
        current = self.get_checked_out_branch()

        head = self.head_oid()
        if head is not None:
            labels[head] = [f"HEAD -> {current}" if current else "HEAD"]

        for name in sorted(self.repo.references):
            label = short_ref_name(name)
            if label is None or label == current:
                continue
            try:
                commit = self.repo.references[name].peel(pygit2.Commit)
            except (pygit2.GitError, KeyError, ValueError):
                continue
            labels.setdefault(str(commit.id), []).append(label)

        return labels

    def default_tips(self, all_refs: bool = True) -> list[pygit2.Oid]:
        """Commits to walk from when no rev range is given"""
        tips: list[pygit2.Oid] = []
        if not self.repo.head_is_unborn:
            tips.append(self.repo.head.peel(pygit2.Commit).id)

        if all_refs:
            for branch_name in sorted(self.repo.branches.local):
                branch = self.repo.branches[branch_name]
                oid = branch.peel(pygit2.Commit).id
                if oid not in tips:
                    tips.append(oid)
        return tips

    def resolve(self, revision: str) -> pygit2.Commit:
        """Resolve a revision name to a commit. Raises InvalidFilter"""
        try:
            obj = self.repo.revparse_single(revision)
            return obj.peel(pygit2.Commit)
        except (KeyError, ValueError, pygit2.GitError) as e:
            raise InvalidFilter(f"Unknown revision {revision!r}: {e}") from None

    def get_commit(self, oid: str) -> pygit2.Commit | None:
        try:
            obj = self.repo.get(oid)
        except ValueError:
            return None
        return obj if isinstance(obj, pygit2.Commit) else None

    def diff_to_first_parent(self, commit: pygit2.Commit) -> pygit2.Diff:
        """Diff of a commit against its first parent (or the empty tree)"""
        if commit.parents:
            return self.repo.diff(commit.parents[0], commit)
        return commit.tree.diff_to_tree(swap=True)

    def is_dirty(self) -> bool:
        """True if tracked files have uncommitted changes"""
        ignorable = pygit2.enums.FileStatus.WT_NEW | pygit2.enums.FileStatus.IGNORED
        return any(flags & ~ignorable for flags in self.repo.status().values())

    def commit_details(self, oid: str) -> CommitDetails | None:
        """Load full details for a commit, None if it doesn't exist"""
        commit = self.get_commit(oid)
        if commit is None:
            return None

        diff = self.diff_to_first_parent(commit)
        files: list[str] = []
        for delta in diff.deltas:
            path = delta.new_file.path or delta.old_file.path
            if path not in files:
                files.append(path)
        stats = diff.stats

        return CommitDetails(
            oid=str(commit.id),
            author=f"{commit.author.name} <{commit.author.email}>",
            author_time=commit.author.time,
            committer=f"{commit.committer.name} <{commit.committer.email}>",
            commit_time=commit.commit_time,
            message=commit.message,
            parent_oids=[str(p) for p in commit.parent_ids],
            files=files,
            insertions=stats.insertions,
            deletions=stats.deletions,
        )
