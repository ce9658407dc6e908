"""Internal balance book.

Each (owner, token) row has an available balance, usable for swaps and
withdrawals, and a reserved balance locked while funding liquidity.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from vaultpair.errors import InsufficientBalance, LedgerInvariantError
from vaultpair.models.pool import AccountBalance
from vaultpair.models.types import AccountKey, TokenId
from vaultpair.safe_int import S

logger = structlog.get_logger()


@dataclass
class _Row:
    available: int = 0
    reserved: int = 0


class BalanceBook:
    """Per-owner, per-token balances."""

    def __init__(self) -> None:
        self._rows: dict[AccountKey, _Row] = {}

    def _row(self, owner: str, token: TokenId) -> _Row:
        return self._rows.setdefault(AccountKey(owner, token), _Row())

    def available(self, owner: str, token: TokenId) -> int:
        row = self._rows.get(AccountKey(owner, token))
        return row.available if row else 0

    def reserved(self, owner: str, token: TokenId) -> int:
        row = self._rows.get(AccountKey(owner, token))
        return row.reserved if row else 0

    def credit(self, owner: str, token: TokenId, amount: int) -> None:
        row = self._row(owner, token)
        row.available = (S(row.available) + amount).to_amount()

    def debit(self, owner: str, token: TokenId, amount: int) -> None:
        """Remove amount from the available balance.

        Raises:
            InsufficientBalance: If the available balance is too small
        """
        available = self.available(owner, token)
        if amount > available:
            raise InsufficientBalance(
                f"{owner} has {available} {token.value} available, needs {amount}"
            )
        row = self._row(owner, token)
        row.available = available - amount

    def reserve_for_lp(self, owner: str, token: TokenId, amount: int) -> None:
        """Move amount from available to reserved.

        Raises:
            InsufficientBalance: If the available balance is too small
        """
        self.debit(owner, token, amount)
        row = self._row(owner, token)
        row.reserved = (S(row.reserved) + amount).to_amount()

    def release_from_lp(self, owner: str, token: TokenId, amount: int) -> None:
        """Drop amount from reserved once the pool has taken it.

        Raises:
            LedgerInvariantError: If less than amount is reserved
        """
        row = self._row(owner, token)
        remaining = S(row.reserved).checked_sub(amount)
        if remaining is None:
            logger.error(
                "balance_book_release_underflow",
                owner=owner,
                token=token.value,
                amount=amount,
                reserved=row.reserved,
            )
            raise LedgerInvariantError(
                f"{owner} has {row.reserved} {token.value} reserved, releasing {amount}"
            )
        row.reserved = remaining.value

    def unreserve(self, owner: str, token: TokenId, amount: int) -> None:
        """Return reserved funds to the available balance (deposit aborted)."""
        self.release_from_lp(owner, token, amount)
        self.credit(owner, token, amount)

    def sync_from_external(self, owner: str, token: TokenId, external: int) -> int:
        """Align the available balance with an externally observed balance.

        The reserved part is subtracted first, clamping at zero.

        Returns:
            The new available balance
        """
        row = self._row(owner, token)
        row.available = S(external).saturating_sub(row.reserved).value
        return row.available

    def snapshot(self, owner: str, token: TokenId) -> AccountBalance:
        return AccountBalance(
            owner=owner,
            token=token,
            available=self.available(owner, token),
            reserved=self.reserved(owner, token),
        )
