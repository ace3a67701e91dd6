"""NewsPledge CLI — operator audit commands."""

import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

from .. import __version__
from ..config_loader import ConfigLoader
from ..logging_config import setup_logging

# ── Shared state ────────────────────────────────────────────────────────────

app = typer.Typer(help="NewsPledge - journalist token ledger audit tooling")
console = Console()

# ── Path constants ──────────────────────────────────────────────────────────

NEWSPLEDGE_DIR = Path.home() / ".newspledge"
ENV_FILE = NEWSPLEDGE_DIR / ".env"


# ── Shared helpers ──────────────────────────────────────────────────────────

def make_loader(config_dir: Optional[Path]) -> ConfigLoader:
    loader = ConfigLoader()
    if config_dir is not None:
        loader.config_dir = config_dir
        loader.config_file = config_dir / "genesis.yaml"
    return loader


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Ledger log level"),
):
    load_dotenv(ENV_FILE)
    setup_logging(os.getenv("NEWSPLEDGE_LOG_LEVEL", log_level).upper())


@app.command("version")
def version():
    """Print the installed version."""
    console.print(f"newspledge {__version__}")


@app.command("init")
def init_genesis(
    config_dir: Optional[Path] = typer.Option(None, "--config-dir", help="Directory for genesis.yaml"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing genesis.yaml"),
):
    """Write a default genesis.yaml and validate it."""
    loader = make_loader(config_dir)
    existed = loader.config_file.exists()
    path = loader.write_default(overwrite=force)

    try:
        config = loader.load_config()
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Genesis configuration invalid: {e}[/red]")
        raise typer.Exit(1)

    if existed and not force:
        console.print(f"[yellow]Kept existing {path}[/yellow]")
    else:
        console.print(f"[green]Wrote {path}[/green]")
    console.print(f"  Admin:       {config.admin}")
    console.print(f"  Max supply:  {config.max_supply}")
    console.print(f"  Lock period: {config.stake_lock_period} blocks")


# ── Register submodule commands (import triggers decorator registration) ────

from . import audit_cmds  # noqa: E402, F401
