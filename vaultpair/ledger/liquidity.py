"""Liquidity share ledger.

Tracks total pool shares and per-owner share balances, and holds the
mint / burn arithmetic for deposits and withdrawals.

The pure functions (compute_mint, plan_deposit, compute_redemption) decide
amounts and raise PoolError subclasses on invalid requests. LiquidityLedger
is the only place share balances change; a failed checked subtraction there
is a bookkeeping defect (LedgerInvariantError), never a user error.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

import structlog

from vaultpair.errors import (
    InsufficientBalance,
    InvalidInput,
    InvariantBroken,
    LedgerInvariantError,
    ZeroMint,
)
from vaultpair.safe_int import S, Underflow

logger = structlog.get_logger()


@dataclass(frozen=True)
class DepositPlan:
    """How much of an offered deposit is consumed, and the shares it mints.

    Attributes:
        used_u: Amount of the first asset to debit
        used_v: Amount of the second asset to debit
        minted: Shares minted for (used_u, used_v)
        seed: True if this is the first deposit into an empty pool
    """

    used_u: int
    used_v: int
    minted: int
    seed: bool = False


def _is_empty(reserve_u: int, reserve_v: int, total_shares: int) -> bool:
    return total_shares == 0 or reserve_u == 0 or reserve_v == 0


def compute_mint(
    reserve_u: int,
    reserve_v: int,
    total_shares: int,
    deposit_u: int,
    deposit_v: int,
) -> int:
    """Shares minted for a deposit.

    An empty pool mints deposit_u + deposit_v (1:1 baseline). Otherwise each
    side is valued independently against the current reserves and the
    smaller share count wins, so neither side can be over-credited.

    Raises:
        InvalidInput: If both deposits are zero
        ZeroMint: If rounding floors the mint to zero
    """
    if deposit_u == 0 and deposit_v == 0:
        raise InvalidInput("Deposit amounts are both zero")

    if _is_empty(reserve_u, reserve_v, total_shares):
        return (S(deposit_u) + deposit_v).to_amount()

    m1 = S(deposit_u) * total_shares // reserve_u
    m2 = S(deposit_v) * total_shares // reserve_v
    minted = m1.min(m2)
    if minted == 0:
        raise ZeroMint(
            f"Deposit ({deposit_u}, {deposit_v}) mints zero shares "
            f"against reserves ({reserve_u}, {reserve_v})"
        )
    return minted.to_amount()


def plan_deposit(
    reserve_u: int,
    reserve_v: int,
    total_shares: int,
    deposit_u: int,
    deposit_v: int,
) -> DepositPlan:
    """Decide the amounts actually consumed by a deposit.

    A seed deposit consumes everything offered. A proportional deposit
    consumes ceil(minted * reserve / total_shares) per side, which never
    exceeds the offer; the excess on the larger side stays with the caller.

    Raises:
        InvalidInput: If both deposits are zero
        ZeroMint: If rounding floors the mint to zero
    """
    minted = compute_mint(reserve_u, reserve_v, total_shares, deposit_u, deposit_v)
    if _is_empty(reserve_u, reserve_v, total_shares):
        return DepositPlan(used_u=deposit_u, used_v=deposit_v, minted=minted, seed=True)

    used_u = (S(minted) * reserve_u).ceiling_div(total_shares).min(deposit_u)
    used_v = (S(minted) * reserve_v).ceiling_div(total_shares).min(deposit_v)
    return DepositPlan(used_u=used_u.value, used_v=used_v.value, minted=minted)


def compute_redemption(
    reserve_u: int,
    reserve_v: int,
    total_shares: int,
    user_shares: int,
    requested: int,
) -> tuple[int, int]:
    """Proportional amounts returned for burning `requested` shares.

    Raises:
        InvalidInput: If requested is zero
        InsufficientBalance: If requested exceeds user_shares
        InvariantBroken: If the pool has no shares outstanding
    """
    if requested == 0:
        raise InvalidInput("Requested shares is zero")
    if requested > user_shares:
        raise InsufficientBalance(f"Requested {requested} shares, owner holds {user_shares}")
    if total_shares == 0:
        raise InvariantBroken("Pool has no shares outstanding")

    out_u = S(requested) * reserve_u // total_shares
    out_v = S(requested) * reserve_v // total_shares
    return (out_u.to_amount(), out_v.to_amount())


@dataclass
class LiquidityLedger:
    """Total shares and per-owner share balances.

    Owners are created lazily on first mint and never removed; a zero
    balance is a valid terminal state.
    """

    total_shares: int = 0
    _shares: dict[str, int] = field(default_factory=dict)

    def shares_of(self, owner: str) -> int:
        return self._shares.get(owner, 0)

    def owners(self) -> Iterator[str]:
        return iter(self._shares)

    def positions(self) -> dict[str, int]:
        """Copy of every owner's share balance."""
        return dict(self._shares)

    def sum_of_positions(self) -> int:
        return sum(self._shares.values())

    @property
    def is_empty(self) -> bool:
        return self.total_shares == 0

    def mint(self, owner: str, amount: int) -> None:
        """Credit `amount` new shares to owner and the pool total."""
        if amount < 0:
            raise LedgerInvariantError(f"Negative mint {amount} for {owner}")
        self._shares[owner] = (S(self.shares_of(owner)) + amount).to_amount()
        self.total_shares = (S(self.total_shares) + amount).to_amount()

    def burn(self, owner: str, amount: int) -> None:
        """Remove `amount` shares from owner and the pool total.

        Callers check the owner's balance first (compute_redemption), so a
        shortfall here means the ledger itself is inconsistent.

        Raises:
            LedgerInvariantError: If owner or total would go negative
        """
        try:
            new_owner = S(self.shares_of(owner)) - amount
            new_total = S(self.total_shares) - amount
        except Underflow as e:
            logger.error(
                "liquidity_ledger_burn_underflow",
                owner=owner,
                amount=amount,
                owner_shares=self.shares_of(owner),
                total_shares=self.total_shares,
            )
            raise LedgerInvariantError(f"Share burn underflow for {owner}: {e}") from e
        self._shares[owner] = new_owner.value
        self.total_shares = new_total.value

    def rescale(self, new_total: int) -> None:
        """Rescale every owner's shares so they sum to about new_total.

        The old denominator is the actual sum of owner balances, not the
        total_shares field, which may have drifted after out-of-band reserve
        adjustments. Floor rounding can leave the sum slightly below
        new_total; total_shares is set to new_total regardless.
        """
        if new_total < 0:
            raise LedgerInvariantError(f"Negative share total {new_total}")
        old_total = self.sum_of_positions()
        if old_total > 0:
            for owner, shares in self._shares.items():
                self._shares[owner] = (S(shares) * new_total // old_total).to_amount()
        logger.info(
            "liquidity_ledger_rescaled",
            old_total=old_total,
            new_total=new_total,
            owners=len(self._shares),
        )
        self.total_shares = new_total
