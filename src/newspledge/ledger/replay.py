"""Deterministic replay helpers for audit mode."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from ..config_loader import GenesisConfig
from .errors import ReplayError
from .events import GENESIS_HASH, JournalEntry, entry_hash
from .machine import TokenLedger

REPLAYABLE_OPERATIONS = frozenset({
    "set_paused",
    "set_delegate_admin",
    "mint",
    "burn",
    "transfer",
    "approve",
    "transfer_from",
    "stake",
    "unstake",
})


@dataclass
class ReplayResult:
    ok: bool
    detail: str
    expected: Any | None = None
    observed: Any | None = None


def verify_hash_chain(entries: Iterable[JournalEntry]) -> ReplayResult:
    """Verify journal hash chain integrity end-to-end."""
    prev = GENESIS_HASH
    count = 0
    for expected_seq, entry in enumerate(entries, start=1):
        count = expected_seq
        if entry.seq != expected_seq:
            return ReplayResult(
                ok=False,
                detail=f"sequence gap at position {expected_seq}",
                expected=expected_seq,
                observed=entry.seq,
            )
        if entry.prev_hash != prev:
            return ReplayResult(
                ok=False,
                detail=f"prev_hash mismatch at seq={entry.seq}",
                expected=prev,
                observed=entry.prev_hash,
            )
        expected = entry_hash(prev, entry.event_type, entry.caller, entry.payload_json)
        if entry.event_hash != expected:
            return ReplayResult(
                ok=False,
                detail=f"event_hash mismatch at seq={entry.seq}",
                expected=expected,
                observed=entry.event_hash,
            )
        prev = entry.event_hash

    return ReplayResult(ok=True, detail=f"hash chain verified for {count} entries", observed=prev)


def apply_entry(ledger: TokenLedger, entry: JournalEntry) -> None:
    """Re-apply one journal entry; the operation must succeed as it did originally."""
    operation = entry.operation
    if operation not in REPLAYABLE_OPERATIONS:
        raise ReplayError(f"seq={entry.seq}: unknown operation '{entry.event_type}'")

    try:
        result = getattr(ledger, operation)(entry.caller, **entry.payload)
    except (TypeError, ValueError) as exc:
        raise ReplayError(f"seq={entry.seq}: malformed {operation} payload ({exc})") from exc

    if not result.ok:
        raise ReplayError(f"seq={entry.seq}: {operation} rejected on replay with code {int(result.code)}")


def replay_journal(genesis: GenesisConfig, entries: Iterable[JournalEntry]) -> TokenLedger:
    """Build a fresh ledger from genesis and re-apply every entry in order."""
    ledger = TokenLedger(genesis)
    for entry in entries:
        apply_entry(ledger, entry)
    return ledger


def replay_matches(ledger: TokenLedger) -> ReplayResult:
    """Replay the live ledger's own journal and compare against its materialized state."""
    live = ledger.snapshot()
    try:
        replayed = replay_journal(ledger.genesis, ledger.journal).snapshot()
    except ReplayError as exc:
        return ReplayResult(ok=False, detail=str(exc))

    if replayed.journal_head != live.journal_head:
        return ReplayResult(
            ok=False,
            detail="journal head mismatch after replay",
            expected=live.journal_head,
            observed=replayed.journal_head,
        )

    expected = live.state_dict()
    observed = replayed.state_dict()
    mismatches = [key for key in expected if expected[key] != observed[key]]
    if mismatches:
        return ReplayResult(
            ok=False,
            detail=f"replayed state differs in: {', '.join(mismatches)}",
            expected={k: expected[k] for k in mismatches},
            observed={k: observed[k] for k in mismatches},
        )
    return ReplayResult(ok=True, detail=f"replay of {len(ledger.journal)} entries matches live state")
