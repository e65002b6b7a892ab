"""Cron CLI commands: list, add, remove, enable, disable, status, history."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from cronkeeper.config import ConfigManager
from cronkeeper.cron.errors import CronError, RunnerError
from cronkeeper.cron.service import CronService
from cronkeeper.cron.types import CronJob, CronJobDraft, schedule_to_dict

cron_app = typer.Typer(help="Manage scheduled jobs in the cron store.")
console = Console()


class _OfflineRunner:
    """Runner for store-management commands, which never execute payloads."""

    def run_job(self, session_target: str, wake_mode: str, payload: dict[str, Any]) -> dict[str, Any]:
        raise RunnerError("jobs cannot be executed from the management CLI")


def _service(store: str) -> CronService:
    config = ConfigManager.instance().get()
    if store.strip():
        config = config.model_copy(update={"cron": config.cron.model_copy(update={"store_path": store.strip()})})
    return CronService.from_config(config, runner=_OfflineRunner())


def _format_ms(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat(timespec="seconds")


def _describe_schedule(job: CronJob) -> str:
    data = schedule_to_dict(job.schedule)
    if data["kind"] == "every":
        return f"every {data['everyMs']}ms"
    if data["kind"] == "at":
        return f"at {_format_ms(data['atMs'])}"
    tz = f" ({data['tz']})" if data.get("tz") else ""
    return f"cron {data['expr']}{tz}"


def _build_schedule(every_ms: int, at: str, expr: str, tz: str) -> dict[str, Any]:
    chosen = [bool(every_ms), bool(at.strip()), bool(expr.strip())]
    if sum(chosen) != 1:
        raise typer.BadParameter("exactly one of --every-ms, --at, --cron is required.")
    if every_ms:
        return {"kind": "every", "everyMs": every_ms}
    if at.strip():
        try:
            moment = datetime.fromisoformat(at.strip())
        except ValueError as exc:
            raise typer.BadParameter("at must be ISO datetime, e.g. 2026-02-23T10:00:00+00:00") from exc
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return {"kind": "at", "atMs": int(moment.timestamp() * 1000)}
    schedule: dict[str, Any] = {"kind": "cron", "expr": expr.strip()}
    if tz.strip():
        schedule["tz"] = tz.strip()
    return schedule


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except CronError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc


@cron_app.command("list")
def list_command(
    store: str = typer.Option("", "--store", help="Override cron.store_path."),
    include_disabled: bool = typer.Option(True, "--all/--enabled-only", help="Include disabled jobs."),
    json_output: bool = typer.Option(False, "--json", help="Print raw job records."),
) -> None:
    """List jobs with their run state."""
    jobs = _run(_service(store).list_jobs(include_disabled=include_disabled))
    if json_output:
        typer.echo(json.dumps([job.to_dict() for job in jobs], indent=2, ensure_ascii=False))
        return
    if not jobs:
        typer.echo("No cron jobs found.")
        return
    table = Table(title="Cron jobs")
    for column in ("id", "name", "enabled", "schedule", "failures", "last status", "last run"):
        table.add_column(column)
    for job in jobs:
        table.add_row(
            job.id,
            job.name,
            "yes" if job.enabled else "no",
            _describe_schedule(job),
            str(job.state.consecutive_failures),
            job.state.last_status or "-",
            _format_ms(job.state.last_run_at_ms),
        )
    console.print(table)


@cron_app.command("add")
def add_command(
    name: str = typer.Option(..., "--name", help="Display name used in alerts."),
    every_ms: int = typer.Option(0, "--every-ms", min=0, help="Fixed interval in milliseconds."),
    at: str = typer.Option("", "--at", help="One-shot ISO datetime."),
    expr: str = typer.Option("", "--cron", help="Cron expression."),
    tz: str = typer.Option("", "--tz", help="Timezone for --cron."),
    payload: str = typer.Option("{}", "--payload", help="JSON payload passed to the runner."),
    session_target: str = typer.Option("isolated", "--session-target"),
    wake_mode: str = typer.Option("now", "--wake-mode"),
    disabled: bool = typer.Option(False, "--disabled", help="Create the job disabled."),
    store: str = typer.Option("", "--store", help="Override cron.store_path."),
) -> None:
    """Add a job to the store."""
    try:
        parsed_payload = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter("payload must be valid JSON.") from exc
    if not isinstance(parsed_payload, dict):
        raise typer.BadParameter("payload must be a JSON object.")
    try:
        draft = CronJobDraft(
            name=name,
            schedule=_build_schedule(every_ms, at, expr, tz),
            enabled=not disabled,
            session_target=session_target,
            wake_mode=wake_mode,
            payload=parsed_payload,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    try:
        job = _run(_service(store).add(draft))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    console.print(f"[green]Added[/green] {job.id} ({job.name})")


@cron_app.command("remove")
def remove_command(
    job_id: str = typer.Argument(..., help="Job id."),
    store: str = typer.Option("", "--store", help="Override cron.store_path."),
) -> None:
    """Delete a job."""
    job = _run(_service(store).remove(job_id.strip()))
    console.print(f"[green]Removed[/green] {job.id} ({job.name})")


def _set_enabled(job_id: str, enabled: bool, store: str) -> None:
    job = _run(_service(store).update(job_id.strip(), {"enabled": enabled}))
    state = "enabled" if job.enabled else "disabled"
    console.print(f"{job.id} ({job.name}) {state}")


@cron_app.command("enable")
def enable_command(
    job_id: str = typer.Argument(..., help="Job id."),
    store: str = typer.Option("", "--store", help="Override cron.store_path."),
) -> None:
    """Enable automatic scheduling for a job."""
    _set_enabled(job_id, True, store)


@cron_app.command("disable")
def disable_command(
    job_id: str = typer.Argument(..., help="Job id."),
    store: str = typer.Option("", "--store", help="Override cron.store_path."),
) -> None:
    """Disable automatic scheduling for a job."""
    _set_enabled(job_id, False, store)


@cron_app.command("status")
def status_command(
    store: str = typer.Option("", "--store", help="Override cron.store_path."),
) -> None:
    """Show store location, job count and next wake time."""
    status = _run(_service(store).status())
    typer.echo(f"store: {status['storePath']}")
    typer.echo(f"jobs: {status['jobs']}")
    typer.echo(f"scheduler enabled: {status['enabled']}")
    typer.echo(f"next wake: {_format_ms(status['nextWakeAtMs'])}")


@cron_app.command("history")
def history_command(
    job_id: str = typer.Argument(..., help="Job id."),
    limit: int = typer.Option(20, "--limit", min=1, max=1000),
    store: str = typer.Option("", "--store", help="Override cron.store_path."),
) -> None:
    """Show recent runs of a job."""
    entries = _run(_service(store).run_history(job_id.strip(), limit))
    if not entries:
        typer.echo("No runs recorded.")
        return
    for entry in entries:
        detail = entry.error if entry.status == "error" else (entry.summary or "")
        marker = " [alert]" if entry.alerted else ""
        typer.echo(
            f"{_format_ms(entry.run_at_ms)} | {entry.mode} | {entry.status} | "
            f"{entry.duration_ms}ms{marker} | {detail}"
        )
