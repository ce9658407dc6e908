"""In-memory fakes for the external collaborator protocols.

Usage:
    from tests.helpers.fakes import FakeLedger

    ledger = FakeLedger()
    ledger.mint("alice", TokenId.USDC, 1_000_000)
    ledger.fail_next(TokenId.USDT, destination="alice")
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from vaultpair.interfaces import TransferResult
from vaultpair.models.types import TokenId


@dataclass
class _FailureRule:
    token: TokenId | None
    source: str | None
    destination: str | None
    error: str
    raises: bool

    def matches(self, token: TokenId, source: str, destination: str) -> bool:
        return (
            (self.token is None or self.token == token)
            and (self.source is None or self.source == source)
            and (self.destination is None or self.destination == destination)
        )


@dataclass
class FakeLedger:
    """Token ledger implementing both BalanceSource and TransferExecutor.

    Balances are in native units. Transfers that would overdraw fail with
    an "insufficient funds" result, like a real token ledger.
    """

    balances: dict[tuple[str, TokenId], int] = field(default_factory=dict)
    transfers: list[tuple[TokenId, str, str, int]] = field(default_factory=list)
    balance_error: Exception | None = None
    _failures: list[_FailureRule] = field(default_factory=list)
    _before_next: Callable[[], None] | None = None

    def mint(self, account: str, token: TokenId, amount: int) -> None:
        key = (account, token)
        self.balances[key] = self.balances.get(key, 0) + amount

    def fail_next(
        self,
        token: TokenId | None = None,
        source: str | None = None,
        destination: str | None = None,
        error: str = "injected failure",
        raises: bool = False,
    ) -> None:
        """Make the next matching transfer fail (or raise, if raises=True)."""
        self._failures.append(_FailureRule(token, source, destination, error, raises))

    def before_next_transfer(self, callback: Callable[[], None]) -> None:
        """Run callback once, at the start of the next transfer call."""
        self._before_next = callback

    # BalanceSource

    def balance_of(self, account: str, token: TokenId) -> int:
        if self.balance_error is not None:
            raise self.balance_error
        return self.balances.get((account, token), 0)

    # TransferExecutor

    def transfer(
        self, token: TokenId, source: str, destination: str, amount: int
    ) -> TransferResult:
        callback, self._before_next = self._before_next, None
        if callback is not None:
            callback()

        for rule in self._failures:
            if rule.matches(token, source, destination):
                self._failures.remove(rule)
                if rule.raises:
                    raise ConnectionError(rule.error)
                return TransferResult.failure(rule.error)

        if self.balances.get((source, token), 0) < amount:
            return TransferResult.failure("insufficient funds")
        self.balances[(source, token)] -= amount
        self.mint(destination, token, amount)
        self.transfers.append((token, source, destination, amount))
        return TransferResult.success()
