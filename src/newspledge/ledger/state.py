"""Ledger state containers.

Amount maps treat a missing key as zero and never store zero, so the
materialized dicts only ever hold live positions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Generic, Hashable, Mapping, TypeVar

from .errors import InvariantViolation

K = TypeVar("K", bound=Hashable)


class AmountMap(Generic[K]):
    def __init__(self, label: str):
        self.label = label
        self._values: dict[K, int] = {}
        self._total = 0

    @property
    def total(self) -> int:
        """Running sum of all values, maintained on every write."""
        return self._total

    def get(self, key: K) -> int:
        return self._values.get(key, 0)

    def set(self, key: K, amount: int) -> None:
        if amount < 0:
            raise InvariantViolation(f"{self.label}[{key!r}] would become negative ({amount})")
        self._total += amount - self._values.get(key, 0)
        if amount == 0:
            self._values.pop(key, None)
        else:
            self._values[key] = amount

    def credit(self, key: K, amount: int) -> int:
        new_value = self.get(key) + amount
        self.set(key, new_value)
        return new_value

    def debit(self, key: K, amount: int) -> int:
        new_value = self.get(key) - amount
        self.set(key, new_value)
        return new_value

    def copy(self) -> dict[K, int]:
        return dict(self._values)


@dataclass
class LedgerState:
    admin: str
    delegate_admin: str | None = None
    paused: bool = False
    total_supply: int = 0
    balances: AmountMap[str] = field(default_factory=lambda: AmountMap("balances"))
    staked: AmountMap[str] = field(default_factory=lambda: AmountMap("staked"))
    allowances: AmountMap[tuple[str, str]] = field(default_factory=lambda: AmountMap("allowances"))
    stake_timestamps: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable copy of the whole ledger state at one point in the sequence."""

    admin: str
    delegate_admin: str | None
    paused: bool
    total_supply: int
    max_supply: int
    stake_lock_period: int
    null_principal: str
    balances: Mapping[str, int]
    staked: Mapping[str, int]
    allowances: Mapping[tuple[str, str], int]
    stake_timestamps: Mapping[str, int]
    journal_head: str

    @classmethod
    def capture(
        cls,
        state: LedgerState,
        *,
        max_supply: int,
        stake_lock_period: int,
        null_principal: str,
        journal_head: str,
    ) -> "LedgerSnapshot":
        return cls(
            admin=state.admin,
            delegate_admin=state.delegate_admin,
            paused=state.paused,
            total_supply=state.total_supply,
            max_supply=max_supply,
            stake_lock_period=stake_lock_period,
            null_principal=null_principal,
            balances=MappingProxyType(state.balances.copy()),
            staked=MappingProxyType(state.staked.copy()),
            allowances=MappingProxyType(state.allowances.copy()),
            stake_timestamps=MappingProxyType(dict(state.stake_timestamps)),
            journal_head=journal_head,
        )

    def state_dict(self) -> dict:
        """Comparable plain-dict view, excluding the journal head."""
        return {
            "admin": self.admin,
            "delegate_admin": self.delegate_admin,
            "paused": self.paused,
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "staked": dict(self.staked),
            "allowances": {f"{o}:{s}": v for (o, s), v in self.allowances.items()},
            "stake_timestamps": dict(self.stake_timestamps),
        }
