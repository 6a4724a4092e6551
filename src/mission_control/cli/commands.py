# src/mission_control/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..api.outcome import ApplicationFailure, Outcome, Success, TransportFailure
from ..core.state import AppState
from ..sync.conflicts import Resolution

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /flush, ...)."""

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

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
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

        return await handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def describe_outcome(outcome: Outcome) -> str:
    if isinstance(outcome, Success):
        return f"OK ({outcome.status})"
    if isinstance(outcome, ApplicationFailure):
        if outcome.is_conflict:
            return "Conflict (409): the server copy changed. See /conflicts."
        return f"Rejected by server ({outcome.status})."
    if isinstance(outcome, TransportFailure):
        if outcome.local_only:
            return "Saved locally (local-only mode, no backend configured)."
        if outcome.queued:
            return "Backend unreachable; write queued for replay."
        return f"Backend unreachable: {outcome.reason}"
    return str(outcome)


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    mode = "REMOTE" if state.credentials.is_remote() else "LOCAL-ONLY"
    conn = "ONLINE" if state.connectivity.online else "OFFLINE"
    pending = await state.ledger.count()
    return (
        "Status:\n"
        f"  Mode: {mode} ({state.credentials.base_url or 'no backend'})\n"
        f"  Connectivity: {conn}\n"
        f"  Pending writes: {pending}\n"
        f"  Flush running: {'yes' if state.engine.in_progress else 'no'}"
    )


async def cmd_pending(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    mutations = await state.ledger.list_all()
    if not mutations:
        return "No pending writes."
    lines = [f"Pending writes ({len(mutations)}):"]
    for i, m in enumerate(mutations, start=1):
        lines.append(
            f"{i}. {m.method.value} {m.path} key={m.idempotency_key} "
            f"retries={m.retries} queued={_ts_local(m.enqueued_at)}"
        )
    return "\n".join(lines)


async def cmd_flush(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    summary = await state.connectivity.request_flush()
    if summary is None:
        return "Flush skipped: offline or local-only mode."
    return summary.describe()


async def cmd_online(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.connectivity.online:
        return "Already online."
    if emit:
        emit("Back online, replaying pending writes...")
    summary = await state.connectivity.set_online(True)
    if summary is None:
        return "Online."
    return f"Online. {summary.describe()}"


async def cmd_offline(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.connectivity.online:
        return "Already offline."
    await state.connectivity.set_online(False)
    return "Offline. Writes that cannot reach the backend will be queued."


async def cmd_task(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /task <title>  -> create a task on the backend (queued if unreachable)
    """
    title = " ".join(args).strip()
    if not title:
        return "Usage: /task <title>"
    outcome = await state.api.create_task({"title": title})
    return describe_outcome(outcome)


async def cmd_conflicts(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /conflicts           -> pending conflicts
    /conflicts resolved  -> resolved conflicts
    /conflicts all       -> everything
    """
    status: str | None = "pending"
    if args:
        sub = args[0].lower()
        if sub not in ("pending", "resolved", "all"):
            return "Usage: /conflicts [pending|resolved|all]"
        status = None if sub == "all" else sub

    if not state.credentials.is_remote():
        return "Local-only mode: no conflicts possible."

    records = await state.conflict_service.list_conflicts(status)
    if not records:
        return "No conflicts found."
    lines = [f"Conflicts ({len(records)}):"]
    for c in records:
        lines.append(
            f"- {c.id} task={c.task_id or 'Unknown'} type={c.type} status={c.status} "
            f"apple={c.apple_value or '(empty)'} mc={c.mc_value or '(empty)'}"
        )
    return "\n".join(lines)


async def cmd_resolve(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /resolve <id> <apple|mc|merge> <value...>
    """
    usage = "Usage: /resolve <id> <apple|mc|merge> <value>"
    if len(args) < 2:
        return usage
    conflict_id, raw_resolution = args[0], args[1].lower()
    try:
        resolution = Resolution(raw_resolution)
    except ValueError:
        return usage
    value = " ".join(args[2:]) or None

    outcome = await state.conflict_service.resolve_conflict(conflict_id, resolution, value)
    if outcome.ok:
        return "Conflict resolved."
    return f"Failed to resolve conflict: {describe_outcome(outcome)}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show mode, connectivity and pending count.")
registry.register("pending", cmd_pending, help_text="List queued writes, oldest first.")
registry.register("flush", cmd_flush, help_text="Replay queued writes now.")
registry.register("online", cmd_online, help_text="Mark connectivity restored (triggers a flush).")
registry.register("offline", cmd_offline, help_text="Mark connectivity lost.")
registry.register("task", cmd_task, help_text="Create a task: /task <title>.")
registry.register(
    "conflicts", cmd_conflicts, help_text="List sync conflicts: /conflicts [pending|resolved|all]."
)
registry.register("resolve", cmd_resolve, help_text="Resolve a conflict: /resolve <id> <apple|mc|merge> <value>.")
