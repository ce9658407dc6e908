"""Fee accrual ledger.

Swap fees are distributed pro rata to liquidity providers through a
per-share growth index, one per pool token:

    growth += fee * FEE_GROWTH_SCALE // total_shares

Each owner remembers the growth value they were last settled at. Settling
moves shares * (growth - index) // FEE_GROWTH_SCALE into the owner's owed
balance and advances the index. Settlement must happen before the owner's
share count changes, otherwise the new share count would be paid for growth
that accrued under the old one.

The vault holds the actual fee tokens. Floor rounding in accrual and
settlement means the sum of everything owed never exceeds the vault.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from vaultpair.constants import FEE_GROWTH_SCALE
from vaultpair.errors import InvalidInput, LedgerInvariantError
from vaultpair.models.types import AccountKey, TokenId
from vaultpair.safe_int import S

logger = structlog.get_logger()


class FeeLedger:
    """Growth indices, per-owner owed balances and the fee vault."""

    def __init__(self, tokens: Iterable[TokenId]) -> None:
        self.tokens: tuple[TokenId, ...] = tuple(tokens)
        self._growth: dict[TokenId, int] = {t: 0 for t in self.tokens}
        self._vault: dict[TokenId, int] = {t: 0 for t in self.tokens}
        self._index: dict[AccountKey, int] = {}
        self._owed: dict[AccountKey, int] = {}

    def _check_token(self, token: TokenId) -> None:
        if token not in self._growth:
            raise InvalidInput(f"{token.value} is not a pool token")

    def growth_of(self, token: TokenId) -> int:
        self._check_token(token)
        return self._growth[token]

    def vault_of(self, token: TokenId) -> int:
        self._check_token(token)
        return self._vault[token]

    def owed_of(self, owner: str, token: TokenId) -> int:
        """Settled but unclaimed fees (excludes pending growth)."""
        return self._owed.get(AccountKey(owner, token), 0)

    def accrue(self, token: TokenId, fee: int, total_shares: int) -> None:
        """Book a swap fee.

        The fee always lands in the vault. With no shares outstanding the
        growth index is left alone and the fee stays in the vault unassigned.
        """
        self._check_token(token)
        if fee == 0:
            return
        self._vault[token] = (S(self._vault[token]) + fee).to_amount()
        if total_shares == 0:
            logger.debug("fee_accrued_without_shares", token=token.value, fee=fee)
            return
        self._growth[token] = (
            S(self._growth[token]) + S(fee) * FEE_GROWTH_SCALE // total_shares
        ).value

    def _pending(self, key: AccountKey, shares: int) -> int:
        delta = S(self._growth[key.token]) - self._index.get(key, 0)
        return (S(shares) * delta // FEE_GROWTH_SCALE).value

    def settle(self, owner: str, shares: int) -> None:
        """Move pending growth for `shares` into the owner's owed balance.

        Args:
            owner: Liquidity provider
            shares: The owner's share count since their last settlement
        """
        for token in self.tokens:
            key = AccountKey(owner, token)
            pending = self._pending(key, shares)
            if pending:
                self._owed[key] = (S(self._owed.get(key, 0)) + pending).to_amount()
            self._index[key] = self._growth[token]

    def preview(self, owner: str, shares: int) -> tuple[int, int]:
        """Claimable amounts for owner without mutating anything.

        Each amount is capped at the vault balance of its token.
        """
        amounts = []
        for token in self.tokens:
            key = AccountKey(owner, token)
            total = S(self._owed.get(key, 0)) + self._pending(key, shares)
            amounts.append(total.min(self._vault[token]).value)
        return (amounts[0], amounts[1])

    def claim(self, owner: str, shares: int) -> tuple[int, int]:
        """Settle and pay out everything owed to owner.

        Returns:
            Claimed amounts in pool token order

        Raises:
            LedgerInvariantError: If the vault cannot cover the owed amount
        """
        self.settle(owner, shares)

        keys = [AccountKey(owner, token) for token in self.tokens]
        owed = [self._owed.get(key, 0) for key in keys]
        new_vault = {}
        for key, amount in zip(keys, owed):
            remaining = S(self._vault[key.token]).checked_sub(amount)
            if remaining is None:
                logger.error(
                    "fee_vault_shortfall",
                    owner=owner,
                    token=key.token.value,
                    owed=amount,
                    vault=self._vault[key.token],
                )
                raise LedgerInvariantError(
                    f"Fee vault {key.token.value} holds {self._vault[key.token]}, "
                    f"owes {amount} to {owner}"
                )
            new_vault[key.token] = remaining.value

        self._vault.update(new_vault)
        for key in keys:
            self._owed[key] = 0
        return (owed[0], owed[1])

    def restore(self, owner: str, amounts: tuple[int, int]) -> None:
        """Put a claim that was never paid out back into owed and the vault."""
        for token, amount in zip(self.tokens, amounts):
            key = AccountKey(owner, token)
            self._owed[key] = (S(self._owed.get(key, 0)) + amount).to_amount()
            self._vault[token] = (S(self._vault[token]) + amount).to_amount()
