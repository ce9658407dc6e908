"""Pool constants.

Centralizes fixed-point scales and numeric bounds shared by the solver,
the quote engine and the ledgers.
"""

# Internal fixed-point scale: every amount is an integer count of 1e-6 units
E6 = 1_000_000

# Upper bound of the working integer domain (unsigned 128-bit)
AMOUNT_MAX = 2**128 - 1

# Amplification coefficients are stored as A * A_PRECISION
A_PRECISION = 1_000_000

# Two-asset pool
N_COINS = 2

# Fee rates are expressed in basis points
FEE_DENOMINATOR = 10_000

# Per-share fee growth index scale (keeps integer division precise)
FEE_GROWTH_SCALE = 10**18

# Newton iteration cap for D and y
MAX_SOLVER_ITERATIONS = 256

# Exact-output search gives up once the candidate input exceeds this
EXACT_OUT_CEILING = 10_000_000_000_000

# Pool defaults
DEFAULT_AMP = 100
DEFAULT_FEE_BPS = 10

# Risk defaults
DEFAULT_MAX_PRICE_IMPACT_BPS = 3000
DEFAULT_D_TOLERANCE_E6 = 50

# Bounded in-memory event log
MAX_EVENTS = 2000
