"""Task executor contract and the timeout-bounded runner."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from deferq.errors import ExecutionError
from deferq.models.task import Task, TaskAttemptResult, utcnow

logger = logging.getLogger(__name__)

STATUS_OK = 200
STATUS_TIMEOUT = 408
STATUS_ERROR = 500


@dataclass(frozen=True)
class ExecutionResult:
    """What an executor returns on success."""

    status_code: int = STATUS_OK
    response: str | None = None


# An executor performs the caller-defined work for one claimed task. Returning
# a str is shorthand for ExecutionResult(response=...), None for a bare success.
# Raise ExecutionError to fail with a specific status code.
TaskExecutor = Callable[[Task], Awaitable[ExecutionResult | str | None]]


async def log_payload_executor(task: Task) -> ExecutionResult:
    """Default executor: log the payload and report success."""
    logger.info(f"Executing task {task.id} with payload: {task.payload!r}")
    return ExecutionResult(response="OK")


async def run_executor(
    executor: TaskExecutor,
    task: Task,
    timeout_ms: int,
) -> TaskAttemptResult:
    """Run an executor for one task and turn the outcome into an attempt record.

    The call is wrapped in ``asyncio.timeout``; when the budget runs out the
    executor coroutine is cancelled at its current await point and the attempt
    is recorded with status 408. Executor exceptions are never raised from here.

    Args:
        executor: The executor to run
        task: The claimed task
        timeout_ms: Execution budget in milliseconds

    Returns:
        The attempt result (success or failure)
    """
    attempted_at = utcnow()
    started = time.monotonic()

    def elapsed_ms() -> int:
        return int((time.monotonic() - started) * 1000)

    try:
        async with asyncio.timeout(timeout_ms / 1000):
            outcome = await executor(task)
    except TimeoutError:
        return TaskAttemptResult(
            task_id=task.id,
            attempted_at=attempted_at,
            status_code=STATUS_TIMEOUT,
            duration_ms=elapsed_ms(),
            error=f"Execution timed out after {timeout_ms}ms",
        )
    except ExecutionError as e:
        return TaskAttemptResult(
            task_id=task.id,
            attempted_at=attempted_at,
            status_code=e.status_code,
            duration_ms=elapsed_ms(),
            error=str(e),
        )
    except Exception as e:
        logger.exception(f"Executor raised for task {task.id}")
        return TaskAttemptResult(
            task_id=task.id,
            attempted_at=attempted_at,
            status_code=STATUS_ERROR,
            duration_ms=elapsed_ms(),
            error=str(e) or type(e).__name__,
        )

    if isinstance(outcome, ExecutionResult):
        status_code, response = outcome.status_code, outcome.response
    else:
        status_code, response = STATUS_OK, outcome

    return TaskAttemptResult(
        task_id=task.id,
        attempted_at=attempted_at,
        status_code=status_code,
        duration_ms=elapsed_ms(),
        response=response,
        error=None if 200 <= status_code < 300 else f"Executor returned status {status_code}",
    )
