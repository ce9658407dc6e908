"""Test helpers module for shared test utilities.

- constants: Owners, accounts and common amounts
- factories: Engine construction and book funding
- fakes: In-memory BalanceSource / TransferExecutor
"""

from tests.helpers.constants import (
    ALICE,
    BOB,
    CAROL,
    FIFTY_THOUSAND,
    ONE,
    POOL_ACCOUNT,
    SEEDER,
    TEN_THOUSAND,
    THOUSAND,
)
from tests.helpers.factories import FIXED_TS, fund, make_engine
from tests.helpers.fakes import FakeLedger

__all__ = [
    # Constants
    "ALICE",
    "BOB",
    "CAROL",
    "SEEDER",
    "POOL_ACCOUNT",
    "ONE",
    "THOUSAND",
    "TEN_THOUSAND",
    "FIFTY_THOUSAND",
    "FIXED_TS",
    # Factories
    "make_engine",
    "fund",
    # Fakes
    "FakeLedger",
]
