"""Task contract, registry, discovery and orchestration."""

from taskweave.tasks.base import Task, TaskArgs, TaskOutcome
from taskweave.tasks.builtin import register_builtin_tasks
from taskweave.tasks.orchestrator import InvocationResult, TaskOrchestrator, TaskState
from taskweave.tasks.registry import TaskRegistry, discover_tasks

__all__ = [
    "InvocationResult",
    "Task",
    "TaskArgs",
    "TaskOrchestrator",
    "TaskOutcome",
    "TaskRegistry",
    "TaskState",
    "discover_tasks",
    "register_builtin_tasks",
]
