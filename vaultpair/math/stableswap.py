"""StableSwap (Curve-style) math for a two-asset pool.

Core functions for the invariant D and the unknown balance y, in pure
integer arithmetic. Amplification is stored as amp = A * A_PRECISION and
the Newton formulas use ANN = amp * n^n / A_PRECISION.

All intermediates go through SafeInt on unbounded Python ints, because
D^3 terms exceed 128 bits long before the final result is narrowed back.

Unlike pool mutations, these functions never raise on bad state: a zero
reserve, a degenerate denominator or a missed convergence all return 0,
and callers must treat 0 as "no valid quote".
"""

import structlog

from vaultpair.constants import A_PRECISION, FEE_DENOMINATOR, MAX_SOLVER_ITERATIONS, N_COINS
from vaultpair.safe_int import S, SafeInt

logger = structlog.get_logger()

_N_POW_N = N_COINS**N_COINS


def normalize_amp(a_raw: int) -> int:
    """Scale a raw amplification value to amp = A * A_PRECISION.

    Values already at or above A_PRECISION are taken as pre-scaled, so
    both A=100 and amp=100_000_000 describe the same pool.
    """
    if a_raw < A_PRECISION:
        return a_raw * A_PRECISION
    return a_raw


def ann(amp: int) -> int:
    """ANN = amp * n^n / A_PRECISION (4 * A for two coins)."""
    return (S(amp) * _N_POW_N // A_PRECISION).value


def _converged(new: SafeInt, prev: SafeInt) -> bool:
    return new.abs_diff(prev) <= 1


def get_d(amp: int, x0: int, x1: int) -> int:
    """Calculate the StableSwap invariant D.

    Algorithm:
        1. Initial guess: D = x0 + x1
        2. D_P = D^3 / (n*x0 * n*x1), in two floor steps
        3. D = D * (ANN*S + D_P*n) / ((ANN - 1)*D + (n + 1)*D_P)
        4. Stop once |D_new - D_prev| <= 1, at most 256 iterations

    Args:
        amp: Amplification, already scaled by A_PRECISION
        x0: Reserve of the first asset (e6)
        x1: Reserve of the second asset (e6)

    Returns:
        D in e6 units, or 0 for an empty side, a degenerate amp, or
        non-convergence.
    """
    if x0 <= 0 or x1 <= 0:
        return 0

    ann_v = S(ann(amp))
    if ann_v == 0:
        return 0

    n = S(N_COINS)
    s = S(x0) + x1
    denom0 = S(x0) * n
    denom1 = S(x1) * n
    d = s

    for _ in range(MAX_SOLVER_ITERATIONS):
        d_p = d * d // denom0
        d_p = d_p * d // denom1
        d_prev = d

        numerator = ann_v * s + d_p * n
        denominator = (ann_v - 1) * d + (n + 1) * d_p
        if denominator == 0:
            return 0
        d = d * numerator // denominator

        if _converged(d, d_prev):
            return d.value

    logger.warning("stableswap_d_did_not_converge", amp=amp, x0=x0, x1=x1)
    return 0


def get_y(amp: int, x_new: int, d: int) -> int:
    """Solve for the output-side balance y given the new input-side balance.

    Uses the reduced quadratic y = (y^2 + c) / (2y + b - D) with
    c = D^3 / (n^n * x_new * ANN) and b = x_new + D / ANN.

    Args:
        amp: Amplification, already scaled by A_PRECISION
        x_new: Input-side balance after the (net) trade amount is added
        d: Invariant to preserve

    Returns:
        y in e6 units, or 0 when no valid solution is found.
    """
    if x_new <= 0 or d <= 0:
        return 0

    ann_v = S(ann(amp))
    if ann_v == 0:
        return 0

    d_b = S(d)
    x_b = S(x_new)
    c = d_b**3 // (S(_N_POW_N) * x_b * ann_v)
    b = x_b + d_b // ann_v

    y = d_b
    for _ in range(MAX_SOLVER_ITERATIONS):
        y_prev = y
        denominator = (S(2) * y + b).checked_sub(d_b)
        if not denominator:
            logger.debug("stableswap_y_degenerate", amp=amp, x_new=x_new, d=d)
            return 0
        y = (y * y + c) // denominator

        if _converged(y, y_prev):
            return y.value

    logger.warning("stableswap_y_did_not_converge", amp=amp, x_new=x_new, d=d)
    return 0


def quote_dx_to_dy(
    amp: int,
    x_in: int,
    x_out: int,
    dx: int,
    fee_bps: int,
) -> tuple[int, int]:
    """Quote the output of selling dx into the pool.

    The fee is taken on the input side before the curve is evaluated, and
    one unit is shaved off the output so the quote never over-reports.

    Args:
        amp: Amplification, already scaled by A_PRECISION
        x_in: Input-side reserve (e6)
        x_out: Output-side reserve (e6)
        dx: Gross input amount (e6)
        fee_bps: Fee rate in basis points

    Returns:
        Tuple of (dy, fee). (0, 0) for dx == 0; (0, fee) when the curve
        yields no valid result.
    """
    if dx <= 0:
        return (0, 0)

    fee = (S(dx) * fee_bps // FEE_DENOMINATOR).value
    dx_net = S(dx).saturating_sub(fee)

    d0 = get_d(amp, x_in, x_out)
    if d0 == 0:
        return (0, fee)

    y_new = get_y(amp, (dx_net + x_in).value, d0)
    if y_new == 0:
        return (0, fee)

    dy = S(x_out).saturating_sub(y_new).saturating_sub(1)
    return (dy.value, fee)
