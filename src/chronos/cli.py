"""Typer-based CLI for Chronos Vault."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .capture import artifact_from_file
from .config import ChronosConfig
from .enrich import EnrichmentClient, get_enrichment_client
from .errors import PersistenceError, StoreConnectionError, ValidationError
from .ledger import LedgerWriter, read_ledger_tail
from .lifecycle import CapsuleOrchestrator
from .lock import remaining_time, sealed_days, utc_now, vault_stats
from .models.capsule import CapsuleForm, CapsuleView
from .paths import VaultPaths
from .store import CapsuleRepository, SqliteRecordStore

app = typer.Typer(
    name="chronos",
    help="Chronos Vault - seal memories until a moment in the future",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

VAULT_OPTION_HELP = "Path to vault directory (default: CHRONOS_VAULT_PATH env or ./chronos_vault)"


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logging"),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_vault(vault_path: Optional[str]) -> tuple[ChronosConfig, VaultPaths]:
    config = ChronosConfig.from_env(cli_vault_path=vault_path)
    paths = VaultPaths.from_config(config)
    if not paths.is_initialized():
        console.print(f"[red]Error: Vault not initialized at {config.vault_path}[/red]")
        console.print("[yellow]Run 'chronos init' first[/yellow]")
        raise typer.Exit(code=1)
    return config, paths


def _enrichment_client(config: ChronosConfig) -> EnrichmentClient:
    try:
        return get_enrichment_client(config.enrichment.provider, config.enrichment)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


def _build_orchestrator(config: ChronosConfig, paths: VaultPaths, enrich: bool = True) -> CapsuleOrchestrator:
    repository = CapsuleRepository(SqliteRecordStore(paths.store_file))
    repository.open()
    enrichment = _enrichment_client(config)
    return CapsuleOrchestrator(
        repository=repository,
        enrichment=enrichment,
        ledger_writer=LedgerWriter(paths.ledger_file),
        enrich=enrich and config.enrichment.enabled,
    )


def _resolve_capsule(orchestrator: CapsuleOrchestrator, capsule_ref: str) -> CapsuleView:
    """Find a capsule by full id or unique id prefix."""
    view = orchestrator.get_capsule(capsule_ref)
    if view is not None:
        return view

    matches = [c for c in orchestrator.list_capsules() if c.id.startswith(capsule_ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        console.print(f"[red]Error: No capsule matches '{capsule_ref}'[/red]")
    else:
        console.print(f"[red]Error: '{capsule_ref}' matches {len(matches)} capsules; use a longer id[/red]")
    raise typer.Exit(code=1)


@app.command()
def init(
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_OPTION_HELP),
):
    """Initialize a new vault with its store, config and ledger.

    This command is idempotent - it will not overwrite existing data.
    """
    config = ChronosConfig.from_env(cli_vault_path=vault_path)
    paths = VaultPaths.from_config(config)

    if paths.is_initialized():
        console.print(f"[yellow]Vault already exists at:[/yellow] {config.vault_path}")
        console.print("[yellow]Running in idempotent mode - will only create missing items[/yellow]")
    else:
        console.print(f"[green]Initializing new Chronos vault at:[/green] {config.vault_path}")

    for directory in paths.get_all_directories():
        directory.mkdir(parents=True, exist_ok=True)

    if not paths.config_file.exists():
        paths.config_file.write_text(config.to_yaml_str())
        console.print(f"[green]+[/green] Created config: {paths.config_file}")
    else:
        console.print(f"[dim]Config already exists: {paths.config_file}[/dim]")

    if not paths.ledger_file.exists():
        paths.ledger_file.touch()
        console.print(f"[green]+[/green] Created ledger: {paths.ledger_file}")

    try:
        SqliteRecordStore(paths.store_file).open()
    except StoreConnectionError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]+[/green] Store ready: {paths.store_file}")


@app.command()
def seal(
    title: str = typer.Argument(..., help="Capsule title"),
    unlock: str = typer.Option(..., "--unlock", "-u", help="Unlock date/time (ISO-8601; naive means local time)"),
    note: str = typer.Option("", "--note", "-n", help="Note to your future self"),
    file: str = typer.Option(None, "--file", "-f", help="Image, audio or video file to seal"),
    content_type: str = typer.Option(None, "--content-type", help="Override the file's content type"),
    refine: bool = typer.Option(False, "--refine", help="Rewrite the note with the enrichment service first"),
    no_enrich: bool = typer.Option(False, "--no-enrich", help="Skip generated hint and reflection"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_OPTION_HELP),
):
    """Seal a new time capsule."""
    config, paths = _load_vault(vault_path)

    try:
        artifact = artifact_from_file(Path(file), content_type) if file else None
        orchestrator = _build_orchestrator(config, paths, enrich=not no_enrich)
        if refine and note:
            note = orchestrator.refine_note(note)
        capsule = orchestrator.create_capsule(
            CapsuleForm(title=title, description=note, unlock_date=unlock),
            artifact,
        )
    except (FileNotFoundError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except (StoreConnectionError, PersistenceError) as e:
        console.print(f"[red]Error saving capsule: {e}[/red]")
        raise typer.Exit(code=1)

    console.print("[green]Capsule sealed:[/green]")
    console.print(f"  ID:      {capsule.id}")
    console.print(f"  Type:    {capsule.media_type}")
    console.print(f"  Unlocks: {capsule.unlock_date.strftime('%Y-%m-%d %H:%M:%S')} UTC")
    if capsule.ai_hint:
        console.print(f"  Hint:    [italic]{capsule.ai_hint}[/italic]")


@app.command("list")
def list_capsules(
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_OPTION_HELP),
):
    """List capsules: unlocked first, then by unlock date."""
    config, paths = _load_vault(vault_path)

    try:
        orchestrator = _build_orchestrator(config, paths, enrich=False)
        now = utc_now()
        capsules = orchestrator.list_capsules(now)
    except (StoreConnectionError, PersistenceError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    if not capsules:
        console.print("[dim]The vault is empty[/dim]")
        return

    stats = vault_stats(capsules)
    console.print(
        f"[bold]{stats.total}[/bold] capsule(s): "
        f"[yellow]{stats.locked} locked[/yellow], [green]{stats.unlocked} available to open[/green]"
    )

    table = Table(title="Time Capsules")
    table.add_column("Status", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Type", style="magenta")
    table.add_column("Unlocks (UTC)", style="cyan", no_wrap=True)
    table.add_column("Remaining", no_wrap=True)
    table.add_column("ID", style="dim")

    for capsule in capsules:
        status = "[yellow]locked[/yellow]" if capsule.is_locked else "[green]open[/green]"
        table.add_row(
            status,
            capsule.title,
            capsule.media_type,
            capsule.unlock_date.strftime("%Y-%m-%d %H:%M:%S"),
            str(remaining_time(capsule.unlock_date, now)),
            capsule.id[:8],
        )

    console.print(table)


@app.command()
def show(
    capsule_id: str = typer.Argument(..., help="Capsule id or unique id prefix"),
    export: bool = typer.Option(False, "--export", "-e", help="Write the media of an unlocked capsule to exports/"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_OPTION_HELP),
):
    """Show a capsule. Locked capsules only reveal their hint."""
    config, paths = _load_vault(vault_path)

    try:
        orchestrator = _build_orchestrator(config, paths, enrich=False)
        now = utc_now()
        view = _resolve_capsule(orchestrator, capsule_id)
    except (StoreConnectionError, PersistenceError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]{view.title}[/bold]  [dim]{view.id}[/dim]")
    console.print(f"  Created: {view.created_at.strftime('%Y-%m-%d %H:%M:%S')} UTC")

    if view.is_locked:
        console.print(f"  [yellow]Locked[/yellow] - opens in {remaining_time(view.unlock_date, now)}")
        if view.ai_hint:
            console.print(f"  Hint: [italic]{view.ai_hint}[/italic]")
        if export:
            console.print("[red]Error: Capsule is still locked; nothing exported[/red]")
            raise typer.Exit(code=1)
        return

    console.print("  [green]Unlocked memory[/green]")
    if view.description:
        console.print("\n[bold]Your note[/bold]")
        console.print(view.description)
    if view.ai_reflection:
        console.print("\n[bold]Reflection[/bold]")
        console.print(f'[italic]"{view.ai_reflection}"[/italic]')
    if view.has_media:
        size_mb = len(view.media_blob or b"") / 1024 / 1024
        console.print(f"\n  Media: {view.media_name or view.media_type} ({view.media_content_type}, {size_mb:.2f} MB)")
    console.print(f"\n[dim]This capsule was sealed for {sealed_days(view.created_at, view.unlock_date)} days.[/dim]")

    if export:
        try:
            target = orchestrator.export_media(view, paths.exports, now)
        except ValidationError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        console.print(f"[green]Exported media:[/green] {target}")


@app.command()
def delete(
    capsule_id: str = typer.Argument(..., help="Capsule id or unique id prefix"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_OPTION_HELP),
):
    """Delete a capsule forever."""
    config, paths = _load_vault(vault_path)

    try:
        orchestrator = _build_orchestrator(config, paths, enrich=False)
        view = _resolve_capsule(orchestrator, capsule_id)
        if not yes and not typer.confirm(f"Are you sure you want to delete '{view.title}' forever?"):
            console.print("[dim]Nothing deleted[/dim]")
            raise typer.Exit(code=0)
        orchestrator.delete_capsule(view.id)
    except (StoreConnectionError, PersistenceError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Deleted capsule[/green] {view.id}")


@app.command()
def refine(
    text: str = typer.Argument(..., help="Note to rewrite"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_OPTION_HELP),
):
    """Rewrite a note to be more timeless (unchanged when offline)."""
    config = ChronosConfig.from_env(cli_vault_path=vault_path)
    enrichment = _enrichment_client(config)
    orchestrator = CapsuleOrchestrator(
        repository=CapsuleRepository(SqliteRecordStore(VaultPaths.from_config(config).store_file)),
        enrichment=enrichment,
    )
    console.print(orchestrator.refine_note(text))


ledger_app = typer.Typer(help="Ledger commands")
app.add_typer(ledger_app, name="ledger")


@ledger_app.command("tail")
def ledger_tail(
    n: int = typer.Option(20, "--n", help="Number of recent events to display"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_OPTION_HELP),
):
    """Display the last N events from the ledger."""
    _config, paths = _load_vault(vault_path)

    events = read_ledger_tail(paths.ledger_file, n=n)
    if not events:
        console.print("[dim]No events in ledger[/dim]")
        return

    table = Table(title=f"Last {len(events)} Ledger Event(s)")
    table.add_column("Timestamp (UTC)", style="cyan", no_wrap=True)
    table.add_column("Event Type", style="magenta")
    table.add_column("Capsule ID", style="yellow")
    table.add_column("Payload", style="dim")

    for event in events:
        ts_str = event.ts.strftime("%Y-%m-%d %H:%M:%S")
        capsule_id_str = event.capsule_id[:8] + "..." if event.capsule_id else "-"
        payload_str = str(event.payload)
        if len(payload_str) > 60:
            payload_str = payload_str[:57] + "..."
        table.add_row(ts_str, event.event_type, capsule_id_str, payload_str)

    console.print(table)


@app.command()
def version():
    """Show Chronos Vault version."""
    from . import __version__
    console.print(f"Chronos Vault v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
