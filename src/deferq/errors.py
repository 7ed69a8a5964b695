"""Exception types raised by the scheduler."""


class DeferqError(Exception):
    """Base class for all scheduler errors."""


class InvalidInput(DeferqError, ValueError):
    """A required field was missing or malformed when adding a task."""


class PersistenceFailure(DeferqError):
    """A storage operation failed.

    The underlying storage error is chained as ``__cause__`` and also kept on
    ``cause`` for callers that inspect it directly.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class TaskNotFound(PersistenceFailure):
    """An update targeted a task id the backend does not know."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class ExecutionError(DeferqError):
    """Raised by an executor to fail a task with a specific status code."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExecutionTimeout(ExecutionError):
    """The executor did not finish within the execution timeout."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=408)


class InvalidTransition(DeferqError):
    """A task status change that the lifecycle does not allow."""
