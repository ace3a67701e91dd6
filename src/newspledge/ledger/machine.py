"""Token ledger state machine.

Every operation takes the already-authenticated caller explicitly, checks its
preconditions in a fixed order, and only then writes. A rejected operation
returns ``Err(code)`` and leaves the state untouched; an applied one returns
``Ok(value)`` and is appended to the hash-chained journal.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from ..config_loader import GenesisConfig, TokenMetadata
from ..logging_config import StructuredLogger
from ..utils.invariants import check_touched
from .errors import Err, ErrorCode, InvariantViolation, Ok, Result
from .events import Journal, JournalEntry, write_jsonl
from .state import LedgerSnapshot, LedgerState

logger = StructuredLogger(__name__)

# Payload keys that name a principal other than the caller.
_PRINCIPAL_FIELDS = ("recipient", "owner", "spender", "delegate")


def _require_principal(value: Any, arg: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{arg} must be a principal string, got {type(value).__name__}")
    return value


def _require_int(value: Any, arg: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{arg} must be an int, got {type(value).__name__}")
    return value


def _require_height(value: Any) -> int:
    height = _require_int(value, "block_height")
    if height < 0:
        raise ValueError(f"block_height must be >= 0, got {height}")
    return height


class TokenLedger:
    """Single-denomination token ledger with admin control, pause and staking."""

    def __init__(self, genesis: GenesisConfig):
        self.genesis = genesis
        self._state = LedgerState(admin=genesis.admin)
        self._journal = Journal()
        self._lock = threading.RLock()
        logger.info(
            "Ledger initialized",
            admin=genesis.admin,
            max_supply=genesis.max_supply,
            stake_lock_period=genesis.stake_lock_period,
        )

    # ── Genesis constants ───────────────────────────────────────────────────

    @property
    def max_supply(self) -> int:
        return self.genesis.max_supply

    @property
    def stake_lock_period(self) -> int:
        return self.genesis.stake_lock_period

    @property
    def null_principal(self) -> str:
        return self.genesis.null_principal

    @property
    def metadata(self) -> TokenMetadata:
        return self.genesis.token

    @property
    def name(self) -> str:
        return self.genesis.token.name

    @property
    def symbol(self) -> str:
        return self.genesis.token.symbol

    @property
    def decimals(self) -> int:
        return self.genesis.token.decimals

    @property
    def token_uri(self) -> str | None:
        return self.genesis.token.token_uri

    # ── Read queries ────────────────────────────────────────────────────────

    @property
    def admin(self) -> str:
        return self._state.admin

    @property
    def delegate_admin(self) -> str | None:
        with self._lock:
            return self._state.delegate_admin

    @property
    def paused(self) -> bool:
        with self._lock:
            return self._state.paused

    @property
    def total_supply(self) -> int:
        with self._lock:
            return self._state.total_supply

    def get_balance(self, principal: str) -> int:
        with self._lock:
            return self._state.balances.get(principal)

    def get_staked(self, principal: str) -> int:
        with self._lock:
            return self._state.staked.get(principal)

    def get_allowance(self, owner: str, spender: str) -> int:
        with self._lock:
            return self._state.allowances.get((owner, spender))

    def get_stake_timestamp(self, principal: str) -> int | None:
        with self._lock:
            return self._state.stake_timestamps.get(principal)

    def unlock_height(self, principal: str) -> int | None:
        """First block height at which the principal may unstake, or None without a stake."""
        with self._lock:
            started = self._state.stake_timestamps.get(principal)
            if started is None:
                return None
            return started + self.genesis.stake_lock_period

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return self._snapshot()

    @property
    def journal(self) -> list[JournalEntry]:
        """Copy of every applied entry. Prefer journal_since for incremental reads."""
        with self._lock:
            return self._journal.entries()

    @property
    def journal_length(self) -> int:
        with self._lock:
            return len(self._journal)

    def journal_since(self, seq: int, limit: int | None = None) -> list[JournalEntry]:
        """Entries after sequence number `seq`, at most `limit` of them."""
        with self._lock:
            return self._journal.since(seq, limit)

    @property
    def journal_head(self) -> str:
        with self._lock:
            return self._journal.head

    def export_journal(self, path: str | Path) -> Path:
        """Write genesis plus every applied entry to a JSON Lines file."""
        with self._lock:
            entries = self._journal.entries()
        return write_jsonl(path, entries, genesis=self.genesis.model_dump(mode="json"))

    def is_authorized(self, caller: str) -> bool:
        with self._lock:
            state = self._state
            return caller == state.admin or (state.delegate_admin is not None and caller == state.delegate_admin)

    # ── Administrative operations ───────────────────────────────────────────

    def set_paused(self, caller: str, paused: bool) -> Result[bool]:
        _require_principal(caller, "caller")
        if not isinstance(paused, bool):
            raise TypeError("paused must be a bool")

        with self._lock:
            if not self.is_authorized(caller):
                return self._reject("set_paused", caller, ErrorCode.NOT_AUTHORIZED)

            self._state.paused = paused
            self._commit("set_paused", caller, {"paused": paused})
            return Ok(paused)

    def set_delegate_admin(self, caller: str, delegate: str | None) -> Result[bool]:
        _require_principal(caller, "caller")
        if delegate is not None:
            _require_principal(delegate, "delegate")

        with self._lock:
            if caller != self._state.admin:
                return self._reject("set_delegate_admin", caller, ErrorCode.NOT_AUTHORIZED)
            if delegate == self.null_principal:
                return self._reject("set_delegate_admin", caller, ErrorCode.NULL_PRINCIPAL)

            self._state.delegate_admin = delegate
            self._commit("set_delegate_admin", caller, {"delegate": delegate})
            return Ok(True)

    # ── Supply operations ───────────────────────────────────────────────────

    def mint(self, caller: str, recipient: str, amount: int) -> Result[bool]:
        _require_principal(caller, "caller")
        _require_principal(recipient, "recipient")
        _require_int(amount, "amount")

        with self._lock:
            state = self._state
            if not self.is_authorized(caller):
                return self._reject("mint", caller, ErrorCode.NOT_AUTHORIZED)
            if amount <= 0:
                return self._reject("mint", caller, ErrorCode.INVALID_AMOUNT)
            if recipient == self.null_principal:
                return self._reject("mint", caller, ErrorCode.NULL_PRINCIPAL)
            if state.total_supply + amount > self.genesis.max_supply:
                return self._reject("mint", caller, ErrorCode.MAX_SUPPLY_EXCEEDED)

            state.balances.credit(recipient, amount)
            state.total_supply += amount
            self._commit("mint", caller, {"recipient": recipient, "amount": amount})
            return Ok(True)

    def burn(self, caller: str, amount: int) -> Result[bool]:
        _require_principal(caller, "caller")
        _require_int(amount, "amount")

        with self._lock:
            state = self._state
            if state.paused:
                return self._reject("burn", caller, ErrorCode.PAUSED)
            if amount <= 0:
                return self._reject("burn", caller, ErrorCode.INVALID_AMOUNT)
            if state.balances.get(caller) < amount:
                return self._reject("burn", caller, ErrorCode.INSUFFICIENT_BALANCE)

            state.balances.debit(caller, amount)
            state.total_supply -= amount
            self._commit("burn", caller, {"amount": amount})
            return Ok(True)

    # ── Transfers ───────────────────────────────────────────────────────────

    def transfer(self, caller: str, recipient: str, amount: int) -> Result[bool]:
        _require_principal(caller, "caller")
        _require_principal(recipient, "recipient")
        _require_int(amount, "amount")

        with self._lock:
            state = self._state
            if state.paused:
                return self._reject("transfer", caller, ErrorCode.PAUSED)
            if amount <= 0:
                return self._reject("transfer", caller, ErrorCode.INVALID_AMOUNT)
            if recipient == self.null_principal:
                return self._reject("transfer", caller, ErrorCode.NULL_PRINCIPAL)
            if state.balances.get(caller) < amount:
                return self._reject("transfer", caller, ErrorCode.INSUFFICIENT_BALANCE)

            state.balances.debit(caller, amount)
            state.balances.credit(recipient, amount)
            self._commit("transfer", caller, {"recipient": recipient, "amount": amount})
            return Ok(True)

    def approve(self, caller: str, spender: str, amount: int) -> Result[bool]:
        _require_principal(caller, "caller")
        _require_principal(spender, "spender")
        _require_int(amount, "amount")

        with self._lock:
            state = self._state
            if state.paused:
                return self._reject("approve", caller, ErrorCode.PAUSED)
            if spender == self.null_principal:
                return self._reject("approve", caller, ErrorCode.NULL_PRINCIPAL)
            if amount <= 0:
                return self._reject("approve", caller, ErrorCode.INVALID_AMOUNT)

            state.allowances.set((caller, spender), amount)
            self._commit("approve", caller, {"spender": spender, "amount": amount})
            return Ok(True)

    def transfer_from(self, caller: str, owner: str, recipient: str, amount: int) -> Result[bool]:
        _require_principal(caller, "caller")
        _require_principal(owner, "owner")
        _require_principal(recipient, "recipient")
        _require_int(amount, "amount")

        with self._lock:
            state = self._state
            if state.paused:
                return self._reject("transfer_from", caller, ErrorCode.PAUSED)
            if recipient == self.null_principal:
                return self._reject("transfer_from", caller, ErrorCode.NULL_PRINCIPAL)
            if amount <= 0:
                return self._reject("transfer_from", caller, ErrorCode.INVALID_AMOUNT)
            if state.allowances.get((owner, caller)) < amount:
                return self._reject("transfer_from", caller, ErrorCode.NOT_AUTHORIZED)
            if state.balances.get(owner) < amount:
                return self._reject("transfer_from", caller, ErrorCode.INSUFFICIENT_BALANCE)

            state.allowances.debit((owner, caller), amount)
            state.balances.debit(owner, amount)
            state.balances.credit(recipient, amount)
            self._commit(
                "transfer_from",
                caller,
                {"owner": owner, "recipient": recipient, "amount": amount},
            )
            return Ok(True)

    # ── Staking ─────────────────────────────────────────────────────────────

    def stake(self, caller: str, amount: int, block_height: int) -> Result[bool]:
        """Lock ``amount`` of spendable balance.

        The lock clock restarts at ``block_height`` for the account's whole
        staked balance, including whatever was already staked.
        """
        _require_principal(caller, "caller")
        _require_int(amount, "amount")
        _require_height(block_height)

        with self._lock:
            state = self._state
            if state.paused:
                return self._reject("stake", caller, ErrorCode.PAUSED)
            if amount <= 0:
                return self._reject("stake", caller, ErrorCode.INVALID_AMOUNT)
            if state.balances.get(caller) < amount:
                return self._reject("stake", caller, ErrorCode.INSUFFICIENT_BALANCE)

            state.balances.debit(caller, amount)
            state.staked.credit(caller, amount)
            state.stake_timestamps[caller] = block_height
            self._commit("stake", caller, {"amount": amount, "block_height": block_height})
            return Ok(True)

    def unstake(self, caller: str, amount: int, block_height: int) -> Result[bool]:
        """Release ``amount`` of stake once the lock period has elapsed.

        A partial unstake keeps the original lock timestamp.
        """
        _require_principal(caller, "caller")
        _require_int(amount, "amount")
        _require_height(block_height)

        with self._lock:
            state = self._state
            if state.paused:
                return self._reject("unstake", caller, ErrorCode.PAUSED)
            if amount <= 0:
                return self._reject("unstake", caller, ErrorCode.INVALID_AMOUNT)
            staked = state.staked.get(caller)
            if staked < amount:
                return self._reject("unstake", caller, ErrorCode.INSUFFICIENT_STAKE)
            started = state.stake_timestamps.get(caller)
            if started is None:
                raise InvariantViolation(f"{caller} has stake {staked} but no lock timestamp")
            if block_height - started < self.genesis.stake_lock_period:
                return self._reject("unstake", caller, ErrorCode.STAKE_LOCKED)

            remaining = state.staked.debit(caller, amount)
            state.balances.credit(caller, amount)
            if remaining == 0:
                del state.stake_timestamps[caller]
            self._commit("unstake", caller, {"amount": amount, "block_height": block_height})
            return Ok(True)

    # ── Internals ───────────────────────────────────────────────────────────

    def _snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot.capture(
            self._state,
            max_supply=self.genesis.max_supply,
            stake_lock_period=self.genesis.stake_lock_period,
            null_principal=self.genesis.null_principal,
            journal_head=self._journal.head,
        )

    def _reject(self, operation: str, caller: str, code: ErrorCode) -> Err:
        logger.warning("Operation rejected", operation=operation, caller=caller, code=int(code), reason=code.name)
        return Err(code)

    def _commit(self, operation: str, caller: str, payload: dict[str, Any]) -> None:
        # Checks run before the append so a violating write never reaches the journal.
        seq = len(self._journal) + 1
        if self.genesis.verify_invariants:
            touched = {caller}
            touched.update(payload[k] for k in _PRINCIPAL_FIELDS if payload.get(k) is not None)
            failures = check_touched(
                self._state,
                touched,
                max_supply=self.genesis.max_supply,
                null_principal=self.genesis.null_principal,
            )
            if failures:
                logger.critical(
                    "Ledger invariant violated",
                    operation=operation,
                    seq=seq,
                    failures=[f"{f.name}: {f.detail}" for f in failures],
                )
                raise InvariantViolation(f"invariants violated after {operation} (seq={seq})", failures)
        self._journal.append(event_type=f"token.{operation}", caller=caller, payload=payload)
        logger.info("Operation applied", operation=operation, caller=caller, seq=seq, **payload)
