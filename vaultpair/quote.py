"""Quote engine.

Derives output amounts and fees from current reserves and the StableSwap
solver. Exact-input quotes come straight from the solver; exact-output
quotes search for the minimal input with a doubling phase followed by a
bisection over the monotone dx -> dy relation.

Nothing here raises on bad input: an unsupported pair, an empty pool or an
unreachable target all produce a zero quote.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from vaultpair.constants import E6, EXACT_OUT_CEILING
from vaultpair.math.stableswap import quote_dx_to_dy
from vaultpair.models.types import TokenId
from vaultpair.safe_int import S

logger = structlog.get_logger()


@dataclass(frozen=True)
class Quote:
    """Result of quoting an exact-input trade."""

    amount_in: int
    amount_out: int
    fee: int

    @property
    def price_e6(self) -> int:
        """Implied price amount_out / amount_in, scaled by 1e6."""
        if self.amount_in == 0:
            return E6
        return (S(self.amount_out) * E6 // self.amount_in).value

    @property
    def net_in(self) -> int:
        """Input that reaches the reserves (fee excluded)."""
        return self.amount_in - self.fee

    @classmethod
    def zero(cls) -> Quote:
        return cls(amount_in=0, amount_out=0, fee=0)


@dataclass(frozen=True)
class Orientation:
    """Trade direction mapped onto the pool's (u, v) reserves."""

    u_is_input: bool
    reserve_in: int
    reserve_out: int


def orient(
    token_in: TokenId,
    token_out: TokenId,
    pair: tuple[TokenId, TokenId],
    reserve_u: int,
    reserve_v: int,
) -> Orientation | None:
    """Map (token_in, token_out) onto the pool pair.

    Returns:
        Orientation, or None if the tokens are not the pool's pair in
        either direction
    """
    token_u, token_v = pair
    if token_in == token_u and token_out == token_v:
        return Orientation(u_is_input=True, reserve_in=reserve_u, reserve_out=reserve_v)
    if token_in == token_v and token_out == token_u:
        return Orientation(u_is_input=False, reserve_in=reserve_v, reserve_out=reserve_u)
    return None


def quote_exact_in(
    amp: int,
    fee_bps: int,
    reserve_in: int,
    reserve_out: int,
    dx: int,
) -> Quote:
    """Quote selling dx of the input asset.

    Args:
        amp: Amplification, already scaled by A_PRECISION
        fee_bps: Fee rate in basis points
        reserve_in: Input-side reserve (e6)
        reserve_out: Output-side reserve (e6)
        dx: Gross input (e6)

    Returns:
        Quote; Quote.zero() for dx == 0 or an empty side
    """
    if dx <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return Quote.zero()
    dy, fee = quote_dx_to_dy(amp, reserve_in, reserve_out, dx, fee_bps)
    return Quote(amount_in=dx, amount_out=dy, fee=fee)


def quote_exact_out(
    amp: int,
    fee_bps: int,
    reserve_in: int,
    reserve_out: int,
    dy_target: int,
) -> Quote | None:
    """Find the minimal gross input whose quote yields at least dy_target.

    Algorithm:
        1. hi = dy_target; while quote(hi) < target: hi = 2*hi + 1
        2. Give up once hi exceeds EXACT_OUT_CEILING
        3. Bisect (lo, hi] keeping quote(hi) >= target

    Args:
        amp: Amplification, already scaled by A_PRECISION
        fee_bps: Fee rate in basis points
        reserve_in: Input-side reserve (e6)
        reserve_out: Output-side reserve (e6)
        dy_target: Desired output (e6)

    Returns:
        Quote for the minimal input, or None when the target is zero, the
        pool is empty, or no input up to the ceiling reaches the target
    """
    if dy_target <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return None
    if dy_target >= reserve_out:
        logger.debug(
            "exact_out_exceeds_reserve",
            dy_target=dy_target,
            reserve_out=reserve_out,
        )
        return None

    def dy_for(dx: int) -> int:
        return quote_dx_to_dy(amp, reserve_in, reserve_out, dx, fee_bps)[0]

    lo, hi = 0, dy_target
    while dy_for(hi) < dy_target:
        hi = hi * 2 + 1
        if hi > EXACT_OUT_CEILING:
            logger.debug(
                "exact_out_ceiling_reached",
                dy_target=dy_target,
                ceiling=EXACT_OUT_CEILING,
            )
            return None

    while lo + 1 < hi:
        mid = (lo + hi) // 2
        if dy_for(mid) >= dy_target:
            hi = mid
        else:
            lo = mid

    return quote_exact_in(amp, fee_bps, reserve_in, reserve_out, hi)
