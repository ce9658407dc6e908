"""Mutable pool state.

PoolState bundles everything a PoolEngine owns. It is never handed out;
reads go through the engine and come back as pydantic snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from vaultpair.config import PoolConfig
from vaultpair.constants import E6
from vaultpair.ledger.balances import BalanceBook
from vaultpair.ledger.fees import FeeLedger
from vaultpair.ledger.liquidity import LiquidityLedger
from vaultpair.math.stableswap import normalize_amp


@dataclass
class Pool:
    """Pool parameters and reserves.

    Attributes:
        amp: Amplification scaled by A_PRECISION
        fee_bps: Swap fee in basis points
        reserve_u: Reserve of the first asset (e6)
        reserve_v: Reserve of the second asset (e6)
        virtual_price_e6: D per share, scaled by 1e6
    """

    amp: int
    fee_bps: int
    reserve_u: int = 0
    reserve_v: int = 0
    virtual_price_e6: int = E6


@dataclass
class PoolState:
    """Everything one pool owns."""

    pool: Pool
    liquidity: LiquidityLedger
    fees: FeeLedger
    balances: BalanceBook
    applied_compensations: set[str] = field(default_factory=set)

    @classmethod
    def from_config(cls, config: PoolConfig) -> PoolState:
        return cls(
            pool=Pool(amp=normalize_amp(config.amp), fee_bps=config.fee_bps),
            liquidity=LiquidityLedger(),
            fees=FeeLedger(config.tokens),
            balances=BalanceBook(),
        )
