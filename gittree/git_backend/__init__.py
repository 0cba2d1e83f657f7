"""Git backend: commit sources, filters and mutating actions"""

from gittree.git_backend.actions import ActionKind, ActionRequest, RepositoryBackend
from gittree.git_backend.commit_source import (
    Batch,
    CommitSource,
    MemoryCommitSource,
    RepositoryCommitSource,
)
from gittree.git_backend.filters import FilterEngine, FilterParams, SourceConfig
from gittree.git_backend.repository import GitTreeRepository

__all__ = [
    "ActionKind",
    "ActionRequest",
    "Batch",
    "CommitSource",
    "FilterEngine",
    "FilterParams",
    "GitTreeRepository",
    "MemoryCommitSource",
    "RepositoryBackend",
    "RepositoryCommitSource",
    "SourceConfig",
]
