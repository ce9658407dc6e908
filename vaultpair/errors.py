"""Pool error classes.

Mutating operations raise one of these and leave pool state untouched.
Quote and preview operations never raise; they degrade to zero instead.

LedgerInvariantError is different from the rest: it signals a bookkeeping
inconsistency that correct calling discipline makes unreachable (for example
a checked subtraction on the fee vault failing). It is a defect, not a
recoverable user error.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable machine-readable error codes."""

    INVALID_INPUT = "invalid_input"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
    ZERO_MINT = "zero_mint"
    SLIPPAGE_EXCEEDED = "slippage_exceeded"
    PRICE_IMPACT_TOO_HIGH = "price_impact_too_high"
    INVARIANT_BROKEN = "invariant_broken"
    NO_CONVERGENCE = "no_convergence"
    INTERNAL = "internal"
    LEDGER_INVARIANT = "ledger_invariant"


class PoolError(Exception):
    """Base error for pool operations."""

    code: ErrorCode = ErrorCode.INTERNAL


class InvalidInput(PoolError):
    """Zero or malformed amount, or an unsupported token pair."""

    code = ErrorCode.INVALID_INPUT


class InsufficientBalance(PoolError):
    """Requested amount exceeds the caller's available balance or shares."""

    code = ErrorCode.INSUFFICIENT_BALANCE


class InsufficientLiquidity(PoolError):
    """Pool state cannot support the operation (empty side, zero output)."""

    code = ErrorCode.INSUFFICIENT_LIQUIDITY


class ZeroMint(InsufficientLiquidity):
    """Rounding floors the minted share amount to zero."""

    code = ErrorCode.ZERO_MINT


class SlippageExceeded(PoolError):
    """Computed output is below the caller's minimum."""

    code = ErrorCode.SLIPPAGE_EXCEEDED


class PriceImpactTooHigh(PoolError):
    """Trade moves the price further from 1:1 than the risk limit allows."""

    code = ErrorCode.PRICE_IMPACT_TOO_HIGH


class InvariantBroken(PoolError):
    """Invariant D degraded, or there is nothing to redeem against."""

    code = ErrorCode.INVARIANT_BROKEN


class NoConvergence(InvariantBroken):
    """Solver returned no result inside a mutating operation."""

    code = ErrorCode.NO_CONVERGENCE


class Internal(PoolError):
    """Unexpected failure from a collaborator (transfer executor, balance source)."""

    code = ErrorCode.INTERNAL


class LedgerInvariantError(Internal):
    """Bookkeeping inconsistency that should be statically impossible."""

    code = ErrorCode.LEDGER_INVARIANT
