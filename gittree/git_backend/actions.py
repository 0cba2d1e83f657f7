"""
Mutating git actions.

Each action is a class with perform() and description() methods. Actions are
built from an ActionRequest and run by the dispatcher, one at a time. Every
failure leaves the repository as it was and surfaces as BackendMutationFailed.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import pygit2

from gittree.constants import APP_NAME, SHORT_ID_LENGTH
from gittree.errors import BackendMutationFailed, FailureReason
from gittree.git_backend.repository import GitTreeRepository

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    CHECKOUT = "checkout"
    RESET = "reset"
    CHERRY_PICK = "cherry-pick"
    REVERT = "revert"
    NEW_BRANCH = "new-branch"
    NEW_TAG = "new-tag"

    @property
    def destructive(self) -> bool:
        """Actions that can discard work and need confirmation."""
        return self is ActionKind.RESET

    @property
    def needs_name(self) -> bool:
        return self in (ActionKind.NEW_BRANCH, ActionKind.NEW_TAG)


@dataclass(frozen=True)
class ActionRequest:
    """A mutation on one commit, as requested from the navigator."""

    kind: ActionKind
    target: str  # commit id
    name: str | None = None  # branch/tag name

    def describe(self) -> str:
        short = self.target[:SHORT_ID_LENGTH]
        if self.kind is ActionKind.RESET:
            return f"reset --hard to {short}"
        if self.kind.needs_name:
            what = "branch" if self.kind is ActionKind.NEW_BRANCH else "tag"
            return f"create {what} '{self.name}' at {short}"
        return f"{self.kind.value} {short}"


class GitAction(ABC):
    """Base class for mutating git actions."""

    def __init__(self, repo: GitTreeRepository, target: str) -> None:
        self.repo = repo
        self.target = target

    @abstractmethod
    def perform(self) -> None:
        """Execute the action."""
        ...

    @abstractmethod
    def description(self) -> str:
        """Human-readable description of the action."""
        ...

    def _commit(self) -> pygit2.Commit:
        commit = self.repo.get_commit(self.target)
        if commit is None:
            raise BackendMutationFailed(FailureReason.NOT_FOUND, f"No commit {self.target}")
        return commit

    def _require_clean(self) -> None:
        if self.repo.is_dirty():
            raise BackendMutationFailed(
                FailureReason.DIRTY_WORKTREE, "Commit or stash your changes first"
            )

    def _head(self) -> pygit2.Commit:
        if self.repo.repo.head_is_unborn:
            raise BackendMutationFailed(FailureReason.NOT_FOUND, "HEAD has no commits")
        return self.repo.repo.head.peel(pygit2.Commit)

    def _signature(self) -> pygit2.Signature:
        try:
            return self.repo.repo.default_signature
        except (KeyError, pygit2.GitError):
            return pygit2.Signature(APP_NAME, f"{APP_NAME}@localhost")

    @property
    def _short(self) -> str:
        return self.target[:SHORT_ID_LENGTH]


def _conflict_paths(index: pygit2.Index) -> list[str]:
    """Collect conflicting file paths from an index"""
    conflict_paths: list[str] = []
    for conflict in index.conflicts:
        # conflict is a tuple of (ancestor, ours, theirs) IndexEntry objects
        for entry in conflict:
            if entry is not None:
                conflict_paths.append(entry.path)
    return sorted(set(conflict_paths))


def _conflict_failure(paths: list[str]) -> BackendMutationFailed:
    files_str = ", ".join(paths[:5])
    if len(paths) > 5:
        files_str += f", ... ({len(paths) - 5} more)"
    return BackendMutationFailed(FailureReason.CONFLICT, f"Conflicts in: {files_str}")


class CheckoutAction(GitAction):
    """Check out a commit: its branch if one points at it, else detached HEAD."""

    def perform(self) -> None:
        commit = self._commit()
        self._require_clean()

        branch_name = self._branch_at(commit)
        try:
            if branch_name:
                self.repo.repo.checkout(f"refs/heads/{branch_name}")
            else:
                self.repo.repo.checkout_tree(commit)
                self.repo.repo.set_head(commit.id)
        except pygit2.GitError as e:
            raise BackendMutationFailed(FailureReason.CONFLICT, str(e)) from e

    def _branch_at(self, commit: pygit2.Commit) -> str | None:
        current = self.repo.get_checked_out_branch()
        candidates = sorted(self.repo.repo.branches.local)
        if current in candidates:
            candidates.remove(current)
            candidates.insert(0, current)
        for branch_name in candidates:
            branch = self.repo.repo.branches[branch_name]
            if branch.peel(pygit2.Commit).id == commit.id:
                return branch_name
        return None

    def description(self) -> str:
        return f"Checked out {self._short}"


class ResetHardAction(GitAction):
    """Move the current branch (or detached HEAD) to a commit, discarding changes."""

    def perform(self) -> None:
        commit = self._commit()
        try:
            self.repo.repo.reset(commit.id, pygit2.enums.ResetMode.HARD)
        except pygit2.GitError as e:
            raise BackendMutationFailed(FailureReason.OTHER, str(e)) from e

    def description(self) -> str:
        return f"Reset to {self._short}"


class CherryPickAction(GitAction):
    """Apply a commit's changes on top of HEAD as a new commit."""

    def perform(self) -> None:
        commit = self._commit()
        self._require_clean()
        if len(commit.parents) > 1:
            raise BackendMutationFailed(FailureReason.OTHER, "Cannot cherry-pick a merge commit")

        head = self._head()
        repo = self.repo.repo
        try:
            repo.cherrypick(commit.id)
            index = repo.index
            if index.conflicts:
                paths = _conflict_paths(index)
                # Abort: the working tree was clean before we started
                repo.state_cleanup()
                repo.reset(head.id, pygit2.enums.ResetMode.HARD)
                raise _conflict_failure(paths)

            tree_oid = index.write_tree()
            repo.create_commit(
                "HEAD",
                commit.author,
                self._signature(),
                commit.message,
                tree_oid,
                [head.id],
            )
            repo.state_cleanup()
        except pygit2.GitError as e:
            raise BackendMutationFailed(FailureReason.OTHER, str(e)) from e

    def description(self) -> str:
        return f"Cherry-picked {self._short}"


class RevertAction(GitAction):
    """Create a commit on HEAD that undoes a commit's changes."""

    def perform(self) -> None:
        commit = self._commit()
        self._require_clean()
        head = self._head()
        repo = self.repo.repo

        # Merges are reverted relative to their first parent
        mainline = 1 if len(commit.parents) > 1 else 0
        try:
            index = repo.revert_commit(commit, head, mainline)
            if index.conflicts:
                raise _conflict_failure(_conflict_paths(index))

            tree_oid = index.write_tree(repo)
            subject = commit.message.strip().split("\n")[0]
            message = f'Revert "{subject}"\n\nThis reverts commit {commit.id}.\n'
            signature = self._signature()
            repo.create_commit("HEAD", signature, signature, message, tree_oid, [head.id])
            repo.checkout_head(strategy=pygit2.enums.CheckoutStrategy.FORCE)
        except pygit2.GitError as e:
            raise BackendMutationFailed(FailureReason.OTHER, str(e)) from e

    def description(self) -> str:
        return f"Reverted {self._short}"


class CreateBranchAction(GitAction):
    """Create a local branch at a commit."""

    def __init__(self, repo: GitTreeRepository, target: str, name: str) -> None:
        super().__init__(repo, target)
        self.name = name

    def perform(self) -> None:
        commit = self._commit()
        if not pygit2.reference_is_valid_name(f"refs/heads/{self.name}"):
            raise BackendMutationFailed(FailureReason.INVALID_NAME, f"'{self.name}'")
        if self.name in self.repo.repo.branches.local:
            raise BackendMutationFailed(
                FailureReason.ALREADY_EXISTS, f"Branch '{self.name}' already exists"
            )
        self.repo.repo.branches.local.create(self.name, commit)

    def description(self) -> str:
        return f"Created branch '{self.name}' at {self._short}"


class CreateTagAction(GitAction):
    """Create a lightweight tag at a commit."""

    def __init__(self, repo: GitTreeRepository, target: str, name: str) -> None:
        super().__init__(repo, target)
        self.name = name

    def perform(self) -> None:
        commit = self._commit()
        ref_name = f"refs/tags/{self.name}"
        if not pygit2.reference_is_valid_name(ref_name):
            raise BackendMutationFailed(FailureReason.INVALID_NAME, f"'{self.name}'")
        if ref_name in self.repo.repo.references:
            raise BackendMutationFailed(
                FailureReason.ALREADY_EXISTS, f"Tag '{self.name}' already exists"
            )
        self.repo.repo.references.create(ref_name, commit.id)

    def description(self) -> str:
        return f"Created tag '{self.name}' at {self._short}"


def build_action(repo: GitTreeRepository, request: ActionRequest) -> GitAction:
    """Turn a request into the action that performs it."""
    if request.kind.needs_name and not request.name:
        raise BackendMutationFailed(FailureReason.INVALID_NAME, "A name is required")

    if request.kind is ActionKind.CHECKOUT:
        return CheckoutAction(repo, request.target)
    if request.kind is ActionKind.RESET:
        return ResetHardAction(repo, request.target)
    if request.kind is ActionKind.CHERRY_PICK:
        return CherryPickAction(repo, request.target)
    if request.kind is ActionKind.REVERT:
        return RevertAction(repo, request.target)
    if request.kind is ActionKind.NEW_BRANCH:
        return CreateBranchAction(repo, request.target, request.name or "")
    if request.kind is ActionKind.NEW_TAG:
        return CreateTagAction(repo, request.target, request.name or "")
    raise ValueError(f"Unknown action {request.kind}")


class RepositoryBackend:
    """Mutation backend over a repository."""

    def __init__(self, repo: GitTreeRepository) -> None:
        self.repo = repo

    def perform(self, request: ActionRequest) -> str:
        """Run a request. Returns a status message, raises BackendMutationFailed."""
        action = build_action(self.repo, request)
        logger.info("Performing %s", request.describe())
        action.perform()
        return action.description()
