"""Replay/audit commands for journal verification."""

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.table import Table

from . import app, console, make_loader
from ..config_loader import GenesisConfig, genesis_from_dict
from ..ledger import ReplayError, TokenLedger, read_jsonl, replay_journal, verify_hash_chain
from ..utils.invariants import run_all_checks


def _load_replayed(journal: Path, config_dir: Optional[Path]) -> TokenLedger:
    """Read a journal file, verify its chain, and rebuild the ledger from it."""
    try:
        header, entries = read_jsonl(journal)
    except (OSError, ValueError) as e:
        console.print(f"[red]Cannot read journal: {e}[/red]")
        raise typer.Exit(1)

    try:
        genesis: GenesisConfig = genesis_from_dict(header) if header else make_loader(config_dir).load_config()
    except (ValidationError, ValueError, FileNotFoundError) as e:
        console.print(f"[red]Genesis configuration unavailable: {e}[/red]")
        raise typer.Exit(1)

    chain = verify_hash_chain(entries)
    console.print(f"  Hash chain: {'PASS' if chain.ok else 'FAIL'} - {chain.detail}")
    if not chain.ok:
        raise typer.Exit(1)

    try:
        ledger = replay_journal(genesis, entries)
    except ReplayError as e:
        console.print(f"  Replay:     FAIL - {e}")
        raise typer.Exit(1)
    console.print(f"  Replay:     PASS - {len(entries)} entries re-applied")
    return ledger


@app.command("replay")
def replay(
    journal: Path = typer.Option(..., "--journal", help="Journal file (JSON Lines)"),
    config_dir: Optional[Path] = typer.Option(None, "--config-dir", help="Genesis directory when the journal has no header"),
):
    """Verify a journal's hash chain and replay it against genesis."""
    console.print("[bold]Ledger Replay Audit[/bold]")
    ledger = _load_replayed(journal, config_dir)

    failures = [r for r in run_all_checks(ledger.snapshot()) if not r.passed]
    for result in failures:
        console.print(f"  Invariant:  FAIL - {result.name}: {result.detail}")
    if failures:
        raise typer.Exit(1)
    console.print(f"  Invariants: PASS - head {ledger.journal_head[:16]}")


@app.command("inspect")
def inspect(
    journal: Path = typer.Option(..., "--journal", help="Journal file (JSON Lines)"),
    account: Optional[str] = typer.Option(None, "--account", help="Show a single principal"),
    config_dir: Optional[Path] = typer.Option(None, "--config-dir", help="Genesis directory when the journal has no header"),
):
    """Replay a journal and print the resulting ledger state."""
    ledger = _load_replayed(journal, config_dir)
    snap = ledger.snapshot()

    console.print(f"[bold]{ledger.name} ({ledger.symbol})[/bold]")
    console.print(f"  Supply:   {snap.total_supply} / {snap.max_supply}")
    console.print(f"  Paused:   {snap.paused}")
    console.print(f"  Admin:    {snap.admin}")
    console.print(f"  Delegate: {snap.delegate_admin or 'N/A'}")

    principals = sorted(set(snap.balances) | set(snap.staked))
    if account is not None:
        principals = [account]

    table = Table(title="Accounts")
    table.add_column("Principal")
    table.add_column("Balance", justify="right")
    table.add_column("Staked", justify="right")
    table.add_column("Unlocks at", justify="right")
    for principal in principals:
        unlock = ledger.unlock_height(principal)
        table.add_row(
            principal,
            str(snap.balances.get(principal, 0)),
            str(snap.staked.get(principal, 0)),
            str(unlock) if unlock is not None else "-",
        )
    console.print(table)

    results = run_all_checks(snap)
    for result in results:
        status = "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]"
        console.print(f"  {status} {result.name}" + (f" - {result.detail}" if result.detail else ""))
    if not all(r.passed for r in results):
        raise typer.Exit(1)
