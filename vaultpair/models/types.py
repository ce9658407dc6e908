"""Shared type definitions for pool models.

These types are used by the boundary models, the ledgers and the engine.
"""

from enum import Enum
from typing import Annotated, NamedTuple

from pydantic import Field

from vaultpair.constants import AMOUNT_MAX


class TokenId(str, Enum):
    """Assets known to the vault.

    Only the configured pair trades in the pool; the others can still be
    held in the internal balance book.
    """

    USDC = "USDC"
    USDT = "USDT"
    ICP = "ICP"
    BOB = "BOB"


class AccountKey(NamedTuple):
    """Composite map key: one owner's entry for one token."""

    owner: str
    token: TokenId


# Unsigned e6 amount within the 128-bit working domain
AmountE6 = Annotated[
    int,
    Field(ge=0, le=AMOUNT_MAX, description="Unsigned amount in e6 units"),
]

# Principal identity (opaque, non-empty)
Owner = Annotated[str, Field(min_length=1, max_length=128)]

# Basis points, exclusive of 100%
Bps = Annotated[int, Field(ge=0, lt=10_000)]
