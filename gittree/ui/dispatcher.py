"""
Action dispatcher: the only way the UI mutates the repository.

At most one mutation is outstanding at a time. The mutation runs as a
background task; its outcome is delivered through a callback (the navigator
posts it to its inbox) and the slot is released by complete() on the UI loop.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from gittree.errors import BackendMutationFailed, DispatcherBusy, FailureReason
from gittree.git_backend.actions import ActionRequest
from gittree.ui.tasks import TaskRunner

logger = logging.getLogger(__name__)


class MutationBackend(Protocol):
    def perform(self, request: ActionRequest) -> str: ...


@dataclass(frozen=True)
class ActionFinished:
    """Outcome of one dispatched mutation."""

    request: ActionRequest
    message: str | None = None
    error: BackendMutationFailed | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ActionDispatcher:
    """Serializes mutation requests to the backend."""

    def __init__(self, backend: MutationBackend, runner: TaskRunner) -> None:
        self.backend = backend
        self.runner = runner
        self._outstanding: ActionRequest | None = None

    @property
    def busy(self) -> bool:
        return self._outstanding is not None

    @property
    def outstanding(self) -> ActionRequest | None:
        return self._outstanding

    def submit(
        self,
        request: ActionRequest,
        on_done: Callable[[ActionFinished], None],
    ) -> None:
        """Start a mutation. Raises DispatcherBusy if one is still outstanding."""
        if self._outstanding is not None:
            raise DispatcherBusy(f"Still running: {self._outstanding.describe()}")
        self._outstanding = request

        def task() -> None:
            try:
                message = self.backend.perform(request)
                result = ActionFinished(request, message=message)
            except BackendMutationFailed as e:
                logger.warning("%s failed: %s", request.describe(), e)
                result = ActionFinished(request, error=e)
            except Exception as e:
                logger.exception("Unexpected error during %s", request.describe())
                result = ActionFinished(request, error=BackendMutationFailed(FailureReason.OTHER, str(e)))
            on_done(result)

        self.runner.spawn(task, name=f"action-{request.kind.value}")

    def complete(self, request: ActionRequest) -> None:
        """Release the slot once the outcome reached the UI loop."""
        if self._outstanding == request:
            self._outstanding = None
