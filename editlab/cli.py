"""
EDITLAB CLI — The Interface

Two modes:
  1. editlab run "<request>" --repo <path>     (one request, then exit)
  2. editlab interactive --repo <path>          (session with undo + history)

Plus utilities:
  - editlab status        (check config + API keys)
  - editlab init <path>   (bootstrap .editlab in a project)
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from editlab.config_loader import load_config, validate_api_keys
from editlab.controller import Controller, RequestResult
from editlab.errors import EditLabError
from editlab.history import UndoResult
from editlab.identity import __codename__, __tagline__, __version__, BANNER

# Load .env from current directory or home
load_dotenv()
load_dotenv(Path.home() / ".editlab" / ".env")

app = typer.Typer(
    name="editlab",
    help=f"{__codename__} — {__tagline__}\nPlanned, gated, undoable edits.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__codename__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    pass


# ---------------------------------------------------------------------------
# Banner
# ---------------------------------------------------------------------------


def _print_banner():
    console.print(f"[bright_cyan]{BANNER}[/]")
    console.print(f"  [dim]v{__version__} — {__tagline__}[/]\n")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def run(
    request: str = typer.Argument(..., help="What you want changed, in plain words"),
    repo: Path = typer.Option(Path("."), "--repo", "-r", help="Path to the target project"),
    auto_approve: bool = typer.Option(False, "--yes", "-y", help="Apply without asking"),
    stream: bool = typer.Option(False, "--stream", help="Echo file content while it is generated"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Plan, generate and apply one change request."""
    _print_banner()
    _configure_logging(verbose)

    controller = _build_controller(repo, auto_approve=auto_approve, stream=stream)
    try:
        result = controller.process_request(request)
    except EditLabError as e:
        console.print(f"[red]editlab: {e}[/]")
        raise typer.Exit(1)
    finally:
        controller.close()

    _print_request_summary(result)
    if result.status in ("plan_failed", "partial"):
        raise typer.Exit(1)


@app.command()
def interactive(
    repo: Path = typer.Option(Path("."), "--repo", "-r", help="Path to the target project"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Echo file content while it is generated"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Interactive session — request changes, review, apply, undo."""
    _print_banner()
    _configure_logging(verbose)

    controller = _build_controller(repo, stream=stream)
    console.print(f"[dim]Targeting: [cyan]{controller.repo_path}[/]. Type 'help' for commands.[/]\n")

    try:
        while True:
            prompt = typer.prompt("🤖 Prompt >", default="", show_default=False).strip()
            command = prompt.lower()

            if not prompt:
                continue
            if command in ("exit", "quit"):
                console.print("[yellow]👋 Goodbye![/]")
                break
            if command == "undo":
                _print_undo_summary(controller.undo())
            elif command == "history":
                _print_history(controller)
            elif command == "help":
                _print_help()
            elif command.startswith("persona "):
                controller.set_persona(prompt[len("persona "):].strip())
                console.print(f"[green]🎭 Persona switched to: [bold]{controller.persona}[/][/]")
            else:
                try:
                    _print_request_summary(controller.process_request(prompt))
                except EditLabError as e:
                    console.print(f"[red]Error: {e}[/]")
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]👋 Goodbye![/]")
    finally:
        controller.close()


@app.command()
def status(
    repo: Optional[Path] = typer.Option(None, "--repo", "-r"),
):
    """Check EDITLAB configuration and readiness."""
    _print_banner()

    keys = validate_api_keys()
    key_table = Table(title="API Keys", border_style="cyan")
    key_table.add_column("Key")
    key_table.add_column("Status")

    for key, available in keys.items():
        status_str = "[green]✓ Available[/]" if available else "[red]✗ Missing[/]"
        key_table.add_row(key, status_str)

    console.print(key_table)

    config = load_config(repo.resolve() if repo else None)
    console.print("\n[bold]Routing:[/]")
    console.print(f"  Planner:     {config.routing.planner}")
    console.print(f"  Synthesizer: {config.routing.synthesizer}")
    console.print(f"  Security:    {config.routing.security}")

    console.print("\n[bold]Limits:[/]")
    console.print(f"  Oracle timeout:   {config.limits.oracle_timeout_seconds}s")
    console.print(f"  Max tokens/session: {config.limits.max_tokens_per_session:,}")
    console.print(f"  Max $/session:    ${config.limits.max_dollars_per_session}")

    console.print("\n[bold]Security gate:[/]")
    console.print(f"  Mode: {'strict' if config.security.strict else 'advisory'}")

    if config.boundaries.protected_paths:
        console.print("\n[bold]Protected paths:[/]")
        for p in config.boundaries.protected_paths:
            console.print(f"  🔒 {p}")


@app.command()
def init(
    repo: Optional[Path] = typer.Argument(None, help="Path to project"),
):
    """Initialize the .editlab directory in a project."""
    _print_banner()

    repo = (repo or Path.cwd()).resolve()
    workspace = load_config(repo).workspace
    state_dir = repo / workspace.state_dir
    backup_dir = repo / workspace.backup_dir
    state_dir.mkdir(parents=True, exist_ok=True)
    backup_dir.mkdir(parents=True, exist_ok=True)
    (repo / workspace.log_dir).mkdir(parents=True, exist_ok=True)

    config_path = state_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text("""# EDITLAB project-level config overrides
# These merge with the built-in defaults.

# Override routing for this project:
# routing:
#   synthesizer: "anthropic/claude-sonnet-4-20250514"

# Keep the agent away from some paths:
# boundaries:
#   protected_paths:
#     - "migrations"

# Refuse unsafe content unless it was patched:
# security:
#   strict: true
""")

    gitignore = repo / ".gitignore"
    ignore_entries = [".editlab/backups/", ".editlab/logs/"]
    if gitignore.exists():
        content = gitignore.read_text()
        additions = [e for e in ignore_entries if e not in content]
        if additions:
            with open(gitignore, "a") as f:
                f.write("\n# EDITLAB\n")
                for e in additions:
                    f.write(f"{e}\n")
    else:
        gitignore.write_text("# EDITLAB\n" + "\n".join(ignore_entries) + "\n")

    console.print(f"[green]✅ Initialized EDITLAB in {state_dir}[/]")
    console.print(f"  Config:  {config_path}")
    console.print(f"  Backups: {backup_dir}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _build_controller(repo: Path, auto_approve: bool = False, stream: bool = False) -> Controller:
    repo = repo.resolve()
    if not repo.is_dir():
        console.print(f"[red]Project not found: {repo}[/]")
        raise typer.Exit(1)

    on_chunk = (lambda text: console.print(text, end="", style="dim", highlight=False, markup=False)) if stream else None
    return Controller(
        repo_path=repo,
        config=load_config(repo),
        auto_approve=auto_approve,
        on_chunk=on_chunk,
        console=console,
    )


def _print_request_summary(result: RequestResult) -> None:
    if result.status == "plan_failed":
        console.print(f"[red]Failed to build a plan: {result.error}[/]")
        if result.raw_plan_output:
            console.print(Panel(result.raw_plan_output, title="Planner output", border_style="red"))
        return

    table = Table(title="Summary", border_style="cyan")
    table.add_column("File")
    table.add_column("Result")

    if result.applied:
        for entry in result.applied.entries:
            verb = "created" if entry.action == "create" else "updated"
            if entry.flagged:
                note = f" [red](flagged: {entry.risk})[/]"
            elif entry.patched:
                note = " [green](patched)[/]"
            else:
                note = ""
            table.add_row(entry.file, f"[green]✓ {verb}[/]{note}")
        for failure in result.applied.failures:
            table.add_row(failure.file, f"[red]✗ {failure.message}[/]")
    for skipped in result.skipped:
        table.add_row(skipped.file, f"[yellow]skipped: {skipped.message}[/]")

    if table.row_count:
        console.print(table)

    message = {
        "applied": "[bold green]✨ All changes applied.[/] Type 'undo' to revert.",
        "partial": "[bold yellow]Some changes failed; the rest were applied.[/]",
        "discarded": "[yellow]Changes discarded.[/]",
        "no_changes": "[yellow]No valid changes to apply.[/]",
    }[result.status]
    console.print(message)


def _print_undo_summary(result: UndoResult) -> None:
    if result.nothing_to_undo:
        console.print("[yellow]Nothing to undo.[/]")
        return
    console.print(f"[cyan]⏪ Reverted batch {result.batch_id}:[/]")
    for entry in result.reverted:
        verb = "Removed" if entry.action == "create" else "Restored"
        console.print(f"  [dim]- {verb} {entry.file}[/]")
    for failure in result.failures:
        console.print(f"  [red]✗ {failure.file}: {failure.message}[/]")
    console.print("[green]✅ Undo complete.[/]" if result.ok else "[yellow]Undo finished with errors.[/]")


def _print_history(controller: Controller) -> None:
    entries = controller.history()
    if not entries:
        console.print("[dim]No history available.[/]")
        return

    table = Table(title="Change History", border_style="cyan")
    table.add_column("#", style="dim")
    table.add_column("Time", style="dim")
    table.add_column("Action")
    table.add_column("File")
    table.add_column("Batch", style="dim")
    for i, entry in enumerate(entries, 1):
        ts = datetime.fromtimestamp(entry.timestamp / 1000).strftime("%H:%M:%S")
        flag = " [red]⚠[/]" if entry.flagged else (" [green]patched[/]" if entry.patched else "")
        table.add_row(str(i), ts, entry.action.upper(), f"{entry.file}{flag}", entry.batch_id or "-")
    console.print(table)


def _print_help() -> None:
    console.print("\n[bold]Commands:[/]")
    console.print("[cyan]  undo            [/]- Revert the last batch of changes")
    console.print("[cyan]  history         [/]- Show changes applied this session")
    console.print("[cyan]  persona <name>  [/]- Switch the planner persona")
    console.print("[cyan]  exit            [/]- Leave the session")
    console.print("[dim]\nOr just type what you want changed, e.g.:[/]")
    console.print("[italic]  Add input validation to auth.js[/]\n")


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    if verbose:
        logger.add(
            lambda msg: console.print(msg, style="dim", highlight=False, markup=False, end=""),
            level="DEBUG",
            format="{time:HH:mm:ss} | {level:<7} | {message}",
        )
    else:
        logger.add(
            lambda msg: console.print(msg, style="dim", highlight=False, markup=False, end=""),
            level="WARNING",
            format="{message}",
        )


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
