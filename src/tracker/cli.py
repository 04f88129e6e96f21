"""Tracker administration CLI."""

import typer
from rich.console import Console
from rich.table import Table

from tracker import __version__
from tracker.core.auth.backend import generate_api_key
from tracker.core.errors import ValidationError
from tracker.modules.sequences.issue_keys import TYPE_CODES, is_valid_issue_key, parse_issue_key
from tracker.modules.workflow.transitions import (
    TRANSITIONS,
    EntityKind,
    parse_entity_kind,
)


console = Console()

app = typer.Typer(
    name="tracker",
    help="Issue tracker administration helpers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit."
    ),
) -> None:
    """Tracker CLI - keys, issue keys and workflow tables."""
    if version:
        console.print(f"[bold cyan]tracker[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.command()
def keygen() -> None:
    """Generate a new API key and print it with its stored hash and prefix.

    The raw key is shown once; store only the hash.
    """
    raw_key, key_hash, prefix = generate_api_key()
    console.print(f"[bold]Key:[/bold]    {raw_key}")
    console.print(f"[bold]Hash:[/bold]   {key_hash}")
    console.print(f"[bold]Prefix:[/bold] {prefix}")


@app.command(name="parse-key")
def parse_key(key: str = typer.Argument(..., help="Issue key, e.g. HRM-T001")) -> None:
    """Split an issue key into product code, type and number."""
    try:
        parsed = parse_issue_key(key)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from None

    kinds = {letter: kind for kind, letter in TYPE_CODES.items()}
    console.print(f"[bold]Product:[/bold] {parsed.product_code}")
    console.print(f"[bold]Type:[/bold]    {parsed.issue_type.value} ({kinds[parsed.issue_type]})")
    console.print(f"[bold]Number:[/bold]  {parsed.number}")


@app.command(name="check-keys")
def check_keys(
    keys: list[str] = typer.Argument(..., help="Issue keys to check"),
) -> None:
    """Report which keys are in canonical form; exits 1 if any is not."""
    invalid = 0
    for key in keys:
        if is_valid_issue_key(key):
            console.print(f"[green]ok[/green]      {key}")
        else:
            invalid += 1
            console.print(f"[red]invalid[/red] {key}")
    if invalid:
        raise typer.Exit(1)


@app.command()
def transitions(
    kind: str = typer.Argument(
        ..., help=f"One of: {', '.join(k.value for k in EntityKind)}"
    ),
) -> None:
    """Print the status transition table for a work item kind."""
    try:
        entity_kind = parse_entity_kind(kind)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from None

    table = Table(title=f"{entity_kind.value} transitions", show_header=True)
    table.add_column("From", style="cyan", no_wrap=True)
    table.add_column("Allowed next statuses")

    for status, allowed in TRANSITIONS[entity_kind].items():
        targets = ", ".join(sorted(allowed)) if allowed else "[dim](terminal)[/dim]"
        table.add_row(str(status), targets)

    console.print()
    console.print(table)
    console.print()


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
