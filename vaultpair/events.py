"""Pool events and the sink they are emitted to.

The engine emits one event per committed mutation. Storage is pluggable
through the EventSink protocol; MemoryEventSink keeps a bounded tail.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Protocol, Union

from vaultpair.constants import MAX_EVENTS
from vaultpair.models.types import TokenId


@dataclass(frozen=True)
class SwapEvent:
    who: str
    ts: float
    token_in: TokenId
    token_out: TokenId
    dx: int
    dy: int
    fee: int


@dataclass(frozen=True)
class LiquidityAddedEvent:
    who: str
    ts: float
    amount_u: int
    amount_v: int
    shares: int


@dataclass(frozen=True)
class LiquidityRemovedEvent:
    who: str
    ts: float
    amount_u: int
    amount_v: int
    shares: int


@dataclass(frozen=True)
class FeeClaimedEvent:
    who: str
    ts: float
    amount_u: int
    amount_v: int


@dataclass(frozen=True)
class DepositEvent:
    who: str
    ts: float
    token: TokenId
    amount: int


@dataclass(frozen=True)
class WithdrawEvent:
    who: str
    ts: float
    token: TokenId
    amount: int


PoolEvent = Union[
    SwapEvent,
    LiquidityAddedEvent,
    LiquidityRemovedEvent,
    FeeClaimedEvent,
    DepositEvent,
    WithdrawEvent,
]


class EventSink(Protocol):
    """Receives committed pool events."""

    def emit(self, event: PoolEvent) -> None: ...


class MemoryEventSink:
    """Keeps the most recent events in memory, oldest first."""

    def __init__(self, maxlen: int = MAX_EVENTS) -> None:
        self._events: deque[PoolEvent] = deque(maxlen=maxlen)

    def emit(self, event: PoolEvent) -> None:
        self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    def latest(self, limit: int) -> list[PoolEvent]:
        """Up to `limit` most recent events, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._events))[:limit]

    def page(self, cursor: int, limit: int) -> tuple[list[PoolEvent], int | None]:
        """Page through retained events, oldest first.

        Args:
            cursor: Offset into the retained events
            limit: Page size

        Returns:
            Tuple of (events, next_cursor); next_cursor is None on the last page
        """
        if cursor < 0 or limit <= 0:
            return ([], None)
        events = list(self._events)[cursor : cursor + limit]
        next_cursor = cursor + limit
        return (events, next_cursor if next_cursor < len(self._events) else None)
