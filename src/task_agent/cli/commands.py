# src/task_agent/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import cast

from ..core.state import AppState
from ..errors import TaskAgentError, TaskNotFoundError, ValidationError
from ..tasks.task_api import create_task, stats
from ..tasks.task_models import Task, TaskPriority, TaskStatus
from ..tasks.user_actions import SETTING_NAMES

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID_LEN = 8


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Rule violations raised by the domain (validation, state, invariant)
        are turned into a reply naming the violated rule.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TaskAgentError as e:
            logger.debug("Command /%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _short(task_id: str) -> str:
    return task_id[:SHORT_ID_LEN]


def _fmt_dt(dt) -> str:
    if dt is None:
        return "-"
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _task_line(task: Task) -> str:
    due = f" due {_fmt_dt(task.due_date)}" if task.due_date else ""
    return f"[{_short(task.id)}] {task.status.value:<9} {task.priority.value:<8} {task.title}{due}"


def _resolve_task(state: AppState, raw: str) -> Task:
    """Accept a full id or a unique id prefix (as shown by /list)."""
    raw = raw.strip()
    task = state.task_store.get(raw)
    if task is not None:
        return task

    matches = [t for t in state.task_store.list_all() if t.id.startswith(raw)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise TaskNotFoundError(raw)
    raise ValidationError(f"Task id prefix {raw!r} is ambiguous ({len(matches)} matches).")


def _require_id(args: list[str], usage: str) -> str:
    if not args:
        raise ValidationError(f"Usage: {usage}")
    return args[0]


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add [priority] [due_hours|-] title...

    /add high 6 Deploy security patch
    /add Update docs
    """
    rest = list(args)
    priority = TaskPriority.MEDIUM
    due_in_hours: float | None = None

    if rest and rest[0].lower() in {p.value for p in TaskPriority}:
        priority = TaskPriority.parse(rest.pop(0))
        if rest and rest[0] == "-":
            rest.pop(0)
        elif rest:
            try:
                due_in_hours = float(rest[0])
            except ValueError:
                pass
            else:
                rest.pop(0)

    title = " ".join(rest).strip()
    if not title:
        return "Usage: /add [low|medium|high|critical] [due_hours|-] <title>"

    task = create_task(state, title, priority=priority, due_in_hours=due_in_hours)
    return f"Created task {_short(task.id)}: {task.title} ({task.priority.value})"


def cmd_list(state: AppState, args: list[str]) -> str:
    status: TaskStatus | None = None
    if args:
        try:
            status = TaskStatus(args[0].lower())
        except ValueError:
            return f"Unknown status {args[0]!r}. Use one of: {', '.join(s.value for s in TaskStatus)}."

    tasks = state.task_store.list_all(status)
    if not tasks:
        return "No tasks."
    return "\n".join(_task_line(t) for t in tasks)


def cmd_show(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, _require_id(args, "/show <id>"))
    lines = [
        f"Task {task.id}",
        f"  Title:       {task.title}",
        f"  Status:      {task.status.value}",
        f"  Priority:    {task.priority.value}",
        f"  Due:         {_fmt_dt(task.due_date)}",
        f"  Snoozed to:  {_fmt_dt(task.snoozed_until)}",
        f"  Escalations: {task.escalation_count}",
        f"  Last actor:  {task.last_actor.value}",
    ]
    if task.description:
        lines.append(f"  Description: {task.description}")

    rec = state.task_store.latest_recommendation(task.id)
    if rec is not None and rec.expires_at > state.clock.now():
        applied = "applied" if rec.is_applied else "pending"
        lines.append(f"  Recommendation: {rec.action.value} ({rec.confidence:.2f}, {applied}) - {rec.reasoning}")
    return "\n".join(lines)


def cmd_complete(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, _require_id(args, "/complete <id>"))
    state.user_actions().complete(task.id)
    return f"Completed {_short(task.id)}: {task.title}"


def cmd_snooze(state: AppState, args: list[str]) -> str:
    """/snooze <id> [minutes]"""
    task = _resolve_task(state, _require_id(args, "/snooze <id> [minutes]"))
    duration: timedelta | None = None
    if len(args) > 1:
        try:
            duration = timedelta(minutes=float(args[1]))
        except (ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid snooze minutes: {args[1]!r}") from e

    updated = state.user_actions().snooze(task.id, duration)
    return f"Snoozed {_short(task.id)} until {_fmt_dt(updated.snoozed_until)}"


def cmd_reject(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, _require_id(args, "/reject <id>"))
    state.user_actions().reject(task.id)
    return f"Rejected {_short(task.id)}: {task.title}"


def cmd_activate(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, _require_id(args, "/activate <id>"))
    state.user_actions().activate(task.id)
    return f"Activated {_short(task.id)}: {task.title}"


def cmd_stats(state: AppState, args: list[str]) -> str:
    s = stats(state)
    lines = ["Task statistics:"]
    for name, value in s.as_dict().items():
        lines.append(f"  {name}: {value}")
    lines.append(f"  experiences recorded: {len(state.history)}")
    return "\n".join(lines)


def cmd_settings(state: AppState, args: list[str]) -> str:
    """
    /settings                 -> show current tuning settings
    /settings <name> <value>  -> change one (durations in minutes)
    """
    if len(args) >= 2:
        updated = state.user_actions().update_setting(args[0], args[1])
        return f"Updated {args[0]}. Settings at {_fmt_dt(updated.updated_at)}."
    if args:
        return f"Usage: /settings <name> <value>. Names: {', '.join(SETTING_NAMES)}"

    s = state.settings_store.ensure_exists()
    return (
        "Tuning settings:\n"
        f"  max_active_tasks: {s.max_active_tasks}\n"
        f"  escalation_threshold_hours: {s.escalation_threshold_hours}\n"
        f"  minimum_confidence_threshold: {s.minimum_confidence_threshold:.2f}\n"
        f"  default_snooze_duration: {s.default_snooze_duration}\n"
        f"  recommendation_validity_duration: {s.recommendation_validity_duration}\n"
        f"  auto_apply_recommendations: {s.auto_apply_recommendations}\n"
        f"  auto_escalate_overdue_tasks: {s.auto_escalate_overdue_tasks}\n"
        f"  auto_awaken_snoozed_tasks: {s.auto_awaken_snoozed_tasks}\n"
        f"  updated_at: {_fmt_dt(s.updated_at)}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("add", cmd_add, help_text="Create a task: /add [priority] [due_hours|-] <title>.")
registry.register("list", cmd_list, help_text="List tasks: /list [status].", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show one task and its latest recommendation: /show <id>.")
registry.register("complete", cmd_complete, help_text="Complete a task: /complete <id>.", aliases=["done"])
registry.register("snooze", cmd_snooze, help_text="Snooze a task: /snooze <id> [minutes].")
registry.register("reject", cmd_reject, help_text="Reject a task: /reject <id>.")
registry.register("activate", cmd_activate, help_text="Activate a task: /activate <id>.")
registry.register("stats", cmd_stats, help_text="Show task counts per status.")
registry.register("settings", cmd_settings, help_text="Show or change tuning: /settings [name value].")
