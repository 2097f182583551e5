"""CLI commands, registered on the Typer app when imported."""
