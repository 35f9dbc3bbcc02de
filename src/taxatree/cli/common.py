"""Shared helpers used across the taxatree CLI modules."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable
from uuid import uuid4

import typer
from rich.console import Console

from taxatree.config.overrides import decode_value, deep_merge, nest
from taxatree.config.settings import Settings
from taxatree.utils.logging import get_logger

console = Console()
_LOGGER = get_logger(module=__name__)


class CLIError(RuntimeError):
    """Exception raised for user-facing CLI errors."""


@dataclass(slots=True)
class CLIState:
    """State object attached to ``typer.Context`` for downstream commands."""

    settings: Settings
    overrides: Dict[str, Any]
    environment: str
    run_id: str
    verbose: bool


def parse_override(argument: str) -> Dict[str, Any]:
    """Turn ``policies.merge.arbitrary_ids=na`` into a nested mapping.

    Values are decoded as JSON when possible so numbers and booleans keep
    their type; anything else stays a string.
    """

    dotted, sep, raw = argument.partition("=")
    segments = [segment.strip() for segment in dotted.split(".") if segment.strip()]
    if not sep or not segments:
        raise typer.BadParameter("Overrides must be expressed as dotted.key=value")
    return nest(segments, decode_value(raw))


def merge_overrides(overrides: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for override in overrides:
        merged = deep_merge(merged, override)
    return merged


def configure_state(
    ctx: typer.Context,
    *,
    environment: str | None,
    overrides: Iterable[Dict[str, Any]],
    run_id: str | None,
    verbose: bool,
) -> CLIState:
    """Build :class:`Settings` for this invocation and store it on ``ctx.obj``."""

    merged = merge_overrides(overrides)
    payload = dict(merged)
    if environment:
        payload["environment"] = environment
    try:
        settings = Settings(**payload)
    except ValueError as exc:
        raise CLIError(f"Invalid configuration: {exc}") from exc
    state = CLIState(
        settings=settings,
        overrides=merged,
        environment=settings.environment,
        run_id=run_id or f"cli-{uuid4().hex[:8]}",
        verbose=verbose,
    )
    ctx.obj = state
    return state


def get_state(ctx: typer.Context) -> CLIState:
    if not isinstance(ctx.obj, CLIState):
        raise CLIError("CLI context is not initialised")
    return ctx.obj


def resolve_path(path: str | Path, *, must_exist: bool = True) -> Path:
    target = Path(path).expanduser().resolve()
    if must_exist and not target.exists():
        raise CLIError(f"Path does not exist: {target}")
    return target


def abort(exception: BaseException) -> typer.Exit:
    """Render an error without a stack trace and return the exit to raise."""

    _LOGGER.error("Command failed", error=str(exception), kind=type(exception).__name__)
    console.print(f"[bold red]Error:[/bold red] {exception}")
    return typer.Exit(code=2)


__all__ = [
    "CLIError",
    "CLIState",
    "abort",
    "configure_state",
    "console",
    "get_state",
    "merge_overrides",
    "parse_override",
    "resolve_path",
]
