"""Mathematical primitives for the pool.

- stableswap: invariant D, balance y, and the exact-input quote
- scaling: native decimals <-> e6 conversion
"""

from vaultpair.math.scaling import from_e6, to_e6
from vaultpair.math.stableswap import ann, get_d, get_y, normalize_amp, quote_dx_to_dy

__all__ = [
    "ann",
    "get_d",
    "get_y",
    "normalize_amp",
    "quote_dx_to_dy",
    "to_e6",
    "from_e6",
]
