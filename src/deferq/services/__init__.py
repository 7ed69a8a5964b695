from .execution import ExecutionResult, TaskExecutor, log_payload_executor, run_executor
from .scheduler import Scheduler
from .workflow import Workflow

__all__ = [
    "ExecutionResult",
    "TaskExecutor",
    "log_payload_executor",
    "run_executor",
    "Scheduler",
    "Workflow",
]
