"""Pydantic models and shared types for the pool."""

from vaultpair.models.pool import (
    AccountBalance,
    ExactOutQuoteOut,
    PoolInfo,
    Position,
    QuoteOut,
    SwapArgs,
    TwoAmounts,
)
from vaultpair.models.types import AccountKey, AmountE6, Bps, Owner, TokenId

__all__ = [
    # Types
    "TokenId",
    "AccountKey",
    "AmountE6",
    "Owner",
    "Bps",
    # Requests
    "SwapArgs",
    # Responses
    "PoolInfo",
    "QuoteOut",
    "ExactOutQuoteOut",
    "Position",
    "TwoAmounts",
    "AccountBalance",
]
