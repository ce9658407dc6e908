"""Pydantic models for data crossing the engine boundary.

Requests are validated on construction; responses are immutable snapshots,
so callers never hold a reference into live pool state.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from vaultpair.constants import E6
from vaultpair.models.types import AmountE6, Owner, TokenId


class SwapArgs(BaseModel):
    """Exact-input swap request."""

    model_config = ConfigDict(frozen=True)

    owner: Owner
    token_in: TokenId
    token_out: TokenId
    dx_e6: AmountE6
    min_dy_e6: AmountE6 = Field(default=0, description="Minimum acceptable output")


class PoolInfo(BaseModel):
    """Snapshot of pool parameters and reserves."""

    model_config = ConfigDict(frozen=True)

    token_u: TokenId
    token_v: TokenId
    amp: int
    fee_bps: int
    reserve_u: AmountE6
    reserve_v: AmountE6
    total_shares: AmountE6
    virtual_price_e6: int

    @property
    def tvl_e6(self) -> int:
        """Total value locked, valuing both assets at par."""
        return self.reserve_u + self.reserve_v

    @property
    def is_empty(self) -> bool:
        return self.total_shares == 0


class QuoteOut(BaseModel):
    """Exact-input quote.

    price_e6 is dy / dx scaled by 1e6; a quote with nothing to offer
    reports the neutral price 1e6.
    """

    model_config = ConfigDict(frozen=True)

    dy_e6: AmountE6
    fee_e6: AmountE6
    price_e6: int

    @classmethod
    def empty(cls) -> QuoteOut:
        return cls(dy_e6=0, fee_e6=0, price_e6=E6)


class ExactOutQuoteOut(BaseModel):
    """Exact-output quote: the minimal input that buys at least dy_e6."""

    model_config = ConfigDict(frozen=True)

    dx_e6: AmountE6
    dy_e6: AmountE6
    fee_e6: AmountE6
    price_e6: int

    @classmethod
    def empty(cls) -> ExactOutQuoteOut:
        return cls(dx_e6=0, dy_e6=0, fee_e6=0, price_e6=E6)

    @property
    def is_empty(self) -> bool:
        return self.dx_e6 == 0


class Position(BaseModel):
    """Liquidity position of one owner."""

    model_config = ConfigDict(frozen=True)

    owner: Owner
    shares: AmountE6


class TwoAmounts(BaseModel):
    """A pair of amounts, one per pool asset (u, v order)."""

    model_config = ConfigDict(frozen=True)

    amount_u: AmountE6
    amount_v: AmountE6

    def as_tuple(self) -> tuple[int, int]:
        return (self.amount_u, self.amount_v)


class AccountBalance(BaseModel):
    """Internal balance book row for one owner and token."""

    model_config = ConfigDict(frozen=True)

    owner: Owner
    token: TokenId
    available: AmountE6
    reserved: AmountE6
