"""Ledgers: liquidity shares, fee accrual and internal balances."""

from vaultpair.ledger.balances import BalanceBook
from vaultpair.ledger.fees import FeeLedger
from vaultpair.ledger.liquidity import (
    DepositPlan,
    LiquidityLedger,
    compute_mint,
    compute_redemption,
    plan_deposit,
)

__all__ = [
    # Liquidity
    "LiquidityLedger",
    "DepositPlan",
    "compute_mint",
    "compute_redemption",
    "plan_deposit",
    # Fees
    "FeeLedger",
    # Balances
    "BalanceBook",
]
