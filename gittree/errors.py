"""
Error taxonomy for gittree.

Everything except RepositoryNotFound is recoverable inside a running session:
the navigator turns these into status-line messages.
"""

from enum import Enum


class GitTreeError(Exception):
    """Base class for gittree errors."""


class RepositoryNotFound(GitTreeError):
    """No commit source can be constructed (not a git repository)."""


class MalformedRecord(GitTreeError):
    """A commit record cannot be laid out (missing or duplicate identifier)."""


class InvalidFilter(GitTreeError):
    """A filter expression failed validation. The previous generation stays active."""


class DispatcherBusy(GitTreeError):
    """A mutation was submitted while another one is still outstanding."""


class FailureReason(Enum):
    """Why a mutating backend call failed."""

    CONFLICT = "conflict"
    DIRTY_WORKTREE = "dirty working tree"
    NOT_FOUND = "not found"
    ALREADY_EXISTS = "already exists"
    INVALID_NAME = "invalid name"
    OTHER = "error"


class BackendMutationFailed(GitTreeError):
    """A checkout/reset/cherry-pick/revert/branch/tag request failed."""

    def __init__(self, reason: FailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.message}"
