"""Scaling between a token's native decimals and the internal e6 scale.

Amounts shrink with floor rounding (the pool never credits more than it
received) and expand exactly.
"""

from vaultpair.safe_int import S

INTERNAL_DECIMALS = 6


def _check_decimals(decimals: int) -> None:
    if decimals < 0 or decimals > 77:
        raise ValueError(f"Token decimals must be in [0, 77], got {decimals}")


def to_e6(amount: int, decimals: int) -> int:
    """Convert a native-unit amount to e6, rounding down.

    Args:
        amount: Amount in the token's smallest native unit
        decimals: Token decimals (e.g. 8 for ICP)

    Returns:
        Amount in e6 units

    Raises:
        ValueError: If decimals is out of range or amount is negative
    """
    _check_decimals(decimals)
    if amount < 0:
        raise ValueError(f"Amount cannot be negative: {amount}")
    if decimals >= INTERNAL_DECIMALS:
        return (S(amount) // 10 ** (decimals - INTERNAL_DECIMALS)).value
    return (S(amount) * 10 ** (INTERNAL_DECIMALS - decimals)).value


def from_e6(amount_e6: int, decimals: int) -> int:
    """Convert an e6 amount to the token's native unit.

    Expanding is exact; shrinking (tokens with fewer than 6 decimals)
    rounds down.

    Raises:
        ValueError: If decimals is out of range or amount is negative
    """
    _check_decimals(decimals)
    if amount_e6 < 0:
        raise ValueError(f"Amount cannot be negative: {amount_e6}")
    if decimals >= INTERNAL_DECIMALS:
        return (S(amount_e6) * 10 ** (decimals - INTERNAL_DECIMALS)).value
    return (S(amount_e6) // 10 ** (INTERNAL_DECIMALS - decimals)).value
