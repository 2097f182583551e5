"""Commands for inspecting compression telemetry and serving the debug API."""

from __future__ import annotations

import json

import typer
from rich.table import Table

from context_tiers import opts
from context_tiers.cli import app
from context_tiers.commands._common import build_recorder, load_settings
from context_tiers.core.utils import (
    console,
    print_output_panel,
    print_table,
    print_with_style,
    setup_logging,
)
from context_tiers.telemetry.insights import SessionInsights

CONVERSATION_ARGUMENT = typer.Argument(..., help="Conversation id.")


@app.command("logs")
def logs_command(
    *,
    conversation_id: str | None = opts.CONVERSATION_ID,
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Show the N most recent entries."),
    json_output: bool = opts.JSON_OUTPUT,
    telemetry_path: str | None = opts.TELEMETRY_PATH,
    log_level: str = opts.LOG_LEVEL,
    log_file: str | None = opts.LOG_FILE,
    config_file: str | None = opts.CONFIG_FILE,
) -> None:
    """List recorded compression attempts, newest last."""
    setup_logging(log_level, log_file)
    recorder = build_recorder(load_settings(config_file, telemetry_path=telemetry_path))
    logs = recorder.get_logs(conversation_id)[-limit:]

    if json_output:
        print(json.dumps([entry.model_dump(mode="json") for entry in logs], indent=2))
        return
    if not logs:
        print_with_style("No telemetry recorded yet.", style="yellow")
        return

    table = Table(title="Compression log")
    table.add_column("Time", style="dim")
    table.add_column("Conversation")
    table.add_column("Zone", style="bold cyan")
    table.add_column("Chunk", justify="right")
    table.add_column("Backend")
    table.add_column("Status")
    table.add_column("Tokens", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Reason")
    status_styles = {"success": "green", "fallback": "yellow", "error": "red"}
    for entry in logs:
        style = status_styles[entry.status]
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.conversation_id,
            entry.zone,
            f"{entry.chunk_index + 1}/{entry.total_chunks}",
            entry.backend_id,
            f"[{style}]{entry.status}[/{style}]",
            f"{entry.input_tokens:,} -> {entry.output_tokens:,}",
            f"{entry.duration:.2f}s",
            entry.error_message or entry.fallback_reason or "",
        )
    print_table(table)


@app.command("stats")
def stats_command(
    conversation_id: str = CONVERSATION_ARGUMENT,
    *,
    json_output: bool = opts.JSON_OUTPUT,
    telemetry_path: str | None = opts.TELEMETRY_PATH,
    log_level: str = opts.LOG_LEVEL,
    log_file: str | None = opts.LOG_FILE,
    config_file: str | None = opts.CONFIG_FILE,
) -> None:
    """Aggregate statistics for one conversation."""
    setup_logging(log_level, log_file)
    recorder = build_recorder(load_settings(config_file, telemetry_path=telemetry_path))
    stats = recorder.get_stats(conversation_id)

    if json_output:
        data = stats.model_dump(mode="json")
        data.update(
            success_rate=stats.success_rate,
            fallback_rate=stats.fallback_rate,
            compression_ratio=stats.compression_ratio,
        )
        print(json.dumps(data, indent=2))
        return

    last = stats.last_operation.strftime("%Y-%m-%d %H:%M:%S") if stats.last_operation else "never"
    console.print(f"[bold cyan]Statistics for {conversation_id}[/bold cyan]")
    console.print(f"  Operations: [bold]{stats.total_operations}[/bold]")
    console.print(
        f"  Success / fallback / error: [green]{stats.success_count}[/green] / "
        f"[yellow]{stats.fallback_count}[/yellow] / [red]{stats.error_count}[/red]",
    )
    console.print(f"  Success rate: [bold]{stats.success_rate:.1f}%[/bold]")
    console.print(
        f"  Tokens: [bold]{stats.total_input_tokens:,} -> {stats.total_output_tokens:,}[/bold] "
        f"({stats.compression_ratio:.1f}% kept)",
    )
    console.print(f"  Average duration: [bold]{stats.average_duration:.2f}s[/bold]")
    console.print(f"  Last operation: [bold]{last}[/bold]")


@app.command("insights")
def insights_command(
    conversation_id: str = CONVERSATION_ARGUMENT,
    *,
    telemetry_path: str | None = opts.TELEMETRY_PATH,
    log_level: str = opts.LOG_LEVEL,
    log_file: str | None = opts.LOG_FILE,
    config_file: str | None = opts.CONFIG_FILE,
) -> None:
    """Readable diagnostics for one conversation."""
    setup_logging(log_level, log_file)
    config = load_settings(config_file, telemetry_path=telemetry_path)
    insights = SessionInsights(build_recorder(config), config.context).insights(conversation_id)
    print_output_panel("\n".join(insights), title=f"Insights: {conversation_id}", style="cyan")


@app.command("clear")
def clear_command(
    conversation_id: str | None = typer.Argument(
        None,
        help="Conversation to clear. Clears all telemetry when omitted.",
    ),
    *,
    yes: bool = typer.Option(
        False,  # noqa: FBT003
        "--yes",
        "-y",
        help="Do not ask for confirmation.",
    ),
    telemetry_path: str | None = opts.TELEMETRY_PATH,
    log_level: str = opts.LOG_LEVEL,
    log_file: str | None = opts.LOG_FILE,
    config_file: str | None = opts.CONFIG_FILE,
) -> None:
    """Delete recorded telemetry."""
    setup_logging(log_level, log_file)
    recorder = build_recorder(load_settings(config_file, telemetry_path=telemetry_path))
    target = conversation_id or "all conversations"
    if not yes and not typer.confirm(f"Delete telemetry for {target}?"):
        raise typer.Exit(1)
    recorder.clear(conversation_id)
    print_with_style(f"Cleared telemetry for {target}.")


@app.command("serve")
def serve_command(
    *,
    host: str = typer.Option("127.0.0.1", help="Host to bind the server to"),
    port: int = typer.Option(8765, help="Port to bind the server to"),
    telemetry_path: str | None = opts.TELEMETRY_PATH,
    log_level: str = typer.Option(
        "info",
        "--log-level",
        help="Logging level.",
        case_sensitive=False,
    ),
    config_file: str | None = opts.CONFIG_FILE,
) -> None:
    """Serve the read-only telemetry debug API."""
    import uvicorn  # noqa: PLC0415

    from context_tiers.telemetry.api import create_app  # noqa: PLC0415

    setup_logging(log_level)
    config = load_settings(config_file, telemetry_path=telemetry_path)
    fastapi_app = create_app(build_recorder(config), config.context)

    console.print(
        f"[bold green]Starting context-tiers debug API on http://{host}:{port}[/bold green]",
    )
    console.print(f"  Telemetry file: [cyan]{config.telemetry.path}[/cyan]")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=log_level.lower())
