"""
Ledger invariant layer — total-state consistency verification.

All checks are deterministic reads over a LedgerSnapshot, except
check_touched, which reads live state while the ledger lock is held.
No mutations. No side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..ledger.state import LedgerSnapshot, LedgerState


@dataclass
class InvariantResult:
    name: str
    passed: bool
    detail: Optional[str] = None


def check_supply_matches_holdings(snap: LedgerSnapshot) -> InvariantResult:
    """total_supply == spendable balances + staked balances.

    Staking moves tokens between the two maps without changing supply.
    """
    spendable = sum(snap.balances.values())
    staked = sum(snap.staked.values())
    if spendable + staked != snap.total_supply:
        return InvariantResult(
            name="supply_matches_holdings",
            passed=False,
            detail=f"total_supply={snap.total_supply} but balances={spendable} + staked={staked}",
        )
    return InvariantResult(name="supply_matches_holdings", passed=True)


def check_supply_within_cap(snap: LedgerSnapshot) -> InvariantResult:
    if snap.total_supply > snap.max_supply:
        return InvariantResult(
            name="supply_within_cap",
            passed=False,
            detail=f"total_supply={snap.total_supply} > max_supply={snap.max_supply}",
        )
    return InvariantResult(name="supply_within_cap", passed=True)


def check_no_negative_values(snap: LedgerSnapshot) -> InvariantResult:
    violations = []
    for label, mapping in (("balances", snap.balances), ("staked", snap.staked), ("allowances", snap.allowances)):
        violations.extend(f"{label}[{k!r}]={v}" for k, v in mapping.items() if v < 0)
    if snap.total_supply < 0:
        violations.append(f"total_supply={snap.total_supply}")

    if violations:
        return InvariantResult(
            name="no_negative_values",
            passed=False,
            detail=f"Violations: {'; '.join(violations)}",
        )
    return InvariantResult(name="no_negative_values", passed=True)


def check_stake_timestamps_consistent(snap: LedgerSnapshot) -> InvariantResult:
    """Every staked account has a lock timestamp, and no unstaked account keeps one."""
    stale = sorted(p for p in snap.stake_timestamps if snap.staked.get(p, 0) == 0)
    missing = sorted(p for p, v in snap.staked.items() if v > 0 and p not in snap.stake_timestamps)

    problems = []
    if stale:
        problems.append(f"stale timestamps: {', '.join(stale)}")
    if missing:
        problems.append(f"stake without timestamp: {', '.join(missing)}")
    if problems:
        return InvariantResult(
            name="stake_timestamps_consistent",
            passed=False,
            detail="; ".join(problems),
        )
    return InvariantResult(name="stake_timestamps_consistent", passed=True)


def check_null_principal_unfunded(snap: LedgerSnapshot) -> InvariantResult:
    """The null principal never receives tokens or spending rights."""
    null = snap.null_principal
    violations = []
    if snap.balances.get(null, 0):
        violations.append(f"balance={snap.balances[null]}")
    if snap.staked.get(null, 0):
        violations.append(f"staked={snap.staked[null]}")
    violations.extend(
        f"allowance {owner}->{spender}={v}" for (owner, spender), v in snap.allowances.items() if spender == null
    )
    if snap.delegate_admin == null:
        violations.append("delegate_admin is the null principal")

    if violations:
        return InvariantResult(
            name="null_principal_unfunded",
            passed=False,
            detail=f"Violations: {'; '.join(violations)}",
        )
    return InvariantResult(name="null_principal_unfunded", passed=True)


def run_all_checks(snap: LedgerSnapshot) -> list[InvariantResult]:
    """Run all invariant checks and return results."""
    return [
        check_supply_matches_holdings(snap),
        check_supply_within_cap(snap),
        check_no_negative_values(snap),
        check_stake_timestamps_consistent(snap),
        check_null_principal_unfunded(snap),
    ]


def failed_checks(snap: LedgerSnapshot) -> list[InvariantResult]:
    return [r for r in run_all_checks(snap) if not r.passed]


def check_touched(
    state: LedgerState,
    touched: Iterable[str],
    *,
    max_supply: int,
    null_principal: str,
) -> list[InvariantResult]:
    """Post-commit checks limited to the principals an operation wrote.

    Supply is compared against the running map totals, so the cost does not
    grow with the number of accounts. The full sweep stays in run_all_checks.
    """
    failures = []
    holdings = state.balances.total + state.staked.total
    if holdings != state.total_supply:
        failures.append(InvariantResult(
            name="supply_matches_holdings",
            passed=False,
            detail=f"total_supply={state.total_supply} but balances={state.balances.total} + staked={state.staked.total}",
        ))
    if not 0 <= state.total_supply <= max_supply:
        failures.append(InvariantResult(
            name="supply_within_cap",
            passed=False,
            detail=f"total_supply={state.total_supply} outside [0, {max_supply}]",
        ))

    principals = set(touched)
    stale = sorted(p for p in principals if p in state.stake_timestamps and state.staked.get(p) == 0)
    missing = sorted(p for p in principals if state.staked.get(p) > 0 and p not in state.stake_timestamps)
    if stale or missing:
        failures.append(InvariantResult(
            name="stake_timestamps_consistent",
            passed=False,
            detail=f"stale={stale} missing={missing}",
        ))

    funded = []
    if state.balances.get(null_principal) or state.staked.get(null_principal):
        funded.append("holds tokens")
    funded.extend(f"allowance from {p}" for p in sorted(principals) if state.allowances.get((p, null_principal)))
    if state.delegate_admin == null_principal:
        funded.append("is delegate_admin")
    if funded:
        failures.append(InvariantResult(
            name="null_principal_unfunded",
            passed=False,
            detail=f"null principal {'; '.join(funded)}",
        ))
    return failures
