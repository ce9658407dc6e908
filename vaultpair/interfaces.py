"""Protocols for the external collaborators a live pool talks to.

Implementations live outside this package (token ledgers, RPC clients).
Tests use in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from vaultpair.models.types import TokenId


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a token transfer."""

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> TransferResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> TransferResult:
        return cls(ok=False, error=error)


class BalanceSource(Protocol):
    """Reads balances from an external ledger, in native units.

    Implementations raise on failure.
    """

    def balance_of(self, account: str, token: TokenId) -> int: ...


class TransferExecutor(Protocol):
    """Moves tokens between accounts on an external ledger, in native units."""

    def transfer(
        self,
        token: TokenId,
        source: str,
        destination: str,
        amount: int,
    ) -> TransferResult: ...
