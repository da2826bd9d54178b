# src/task_agent/errors.py

"""
Error taxonomy.

- ValidationError: malformed input, rejected before any state change.
- StateError: illegal lifecycle move (InvalidStateTransitionError) or a
  mutation of a terminal task (AlreadyTerminalError).
- InvariantViolationError: settings bounds / cross-field consistency.
- ConcurrentModificationError: settings were replaced under our feet.

Messages name the violated rule so command handlers can show them verbatim.
"""

from __future__ import annotations


class TaskAgentError(Exception):
    """Base class for all domain errors raised by task_agent."""


class ValidationError(TaskAgentError, ValueError):
    pass


class StateError(TaskAgentError):
    pass


class InvalidStateTransitionError(StateError):
    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(f"Cannot transition from {from_status} to {to_status}.")
        self.from_status = from_status
        self.to_status = to_status


class AlreadyTerminalError(StateError):
    def __init__(self, task_id: str, status: str) -> None:
        super().__init__(f"Task {task_id} is already {status} and cannot be modified.")
        self.task_id = task_id
        self.status = status


class InvariantViolationError(TaskAgentError):
    pass


class ConcurrentModificationError(TaskAgentError):
    pass


class TaskNotFoundError(TaskAgentError, LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found.")
        self.task_id = task_id
