"""Command-line interface for context-tiers."""

from __future__ import annotations

import typer

from context_tiers.core.utils import console

app = typer.Typer(
    name="context-tiers",
    help="Fit long conversations into a model's context window with tiered summarization.",
    add_completion=True,
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
) -> None:
    """Context-window management and tiered summarization."""
    if ctx.invoked_subcommand is None:
        console.print("[bold red]No command specified.[/bold red]")
        console.print("[bold yellow]Running --help for your convenience.[/bold yellow]")
        console.print(ctx.get_help())
        raise typer.Exit
    import dotenv  # noqa: PLC0415

    dotenv.load_dotenv()


# Import commands from other modules to register them
from context_tiers.commands import context, telemetry  # noqa: E402, F401
