"""Token ledger state machine, journal and replay APIs."""

from .errors import (
    ErrorCode,
    Err,
    InvariantViolation,
    LedgerFault,
    LedgerRejected,
    Ok,
    ReplayError,
    Result,
)
from .machine import TokenLedger
from .state import LedgerSnapshot
from .events import Journal, JournalEntry, read_jsonl, write_jsonl
from .replay import ReplayResult, replay_journal, replay_matches, verify_hash_chain

__all__ = [
    "ErrorCode",
    "Err",
    "InvariantViolation",
    "LedgerFault",
    "LedgerRejected",
    "Ok",
    "ReplayError",
    "Result",
    "TokenLedger",
    "LedgerSnapshot",
    "Journal",
    "JournalEntry",
    "read_jsonl",
    "write_jsonl",
    "ReplayResult",
    "replay_journal",
    "replay_matches",
    "verify_hash_chain",
]
