"""Pytest configuration and fixtures."""

import pytest

from vaultpair.engine import PoolEngine
from vaultpair.events import MemoryEventSink
from vaultpair.models.types import TokenId
from vaultpair.orchestrator import LiveOrchestrator
from tests.helpers import ALICE, BOB, POOL_ACCOUNT, SEEDER, TEN_THOUSAND, FakeLedger
from tests.helpers.factories import fund, make_engine


@pytest.fixture
def sink() -> MemoryEventSink:
    """Return an empty in-memory event sink."""
    return MemoryEventSink()


@pytest.fixture
def engine(sink: MemoryEventSink) -> PoolEngine:
    """Return an empty pool with default parameters (A=100, 10 bps)."""
    return make_engine(sink=sink)


@pytest.fixture
def seeded_engine(engine: PoolEngine) -> PoolEngine:
    """Return the pool seeded 10k / 10k by SEEDER, with ALICE and BOB holding 10k each."""
    fund(engine, SEEDER, TEN_THOUSAND)
    engine.add_liquidity(SEEDER, TEN_THOUSAND, TEN_THOUSAND)
    fund(engine, ALICE, TEN_THOUSAND)
    fund(engine, BOB, TEN_THOUSAND)
    return engine


@pytest.fixture
def ledger() -> FakeLedger:
    """Return a fake token ledger where ALICE and BOB hold 100k of each token."""
    fake = FakeLedger()
    for owner in (ALICE, BOB):
        fake.mint(owner, TokenId.USDC, 10 * TEN_THOUSAND)
        fake.mint(owner, TokenId.USDT, 10 * TEN_THOUSAND)
    return fake


@pytest.fixture
def orchestrator(engine: PoolEngine, ledger: FakeLedger) -> LiveOrchestrator:
    """Return an orchestrator over the empty pool and the fake ledger."""
    return LiveOrchestrator(engine, ledger, ledger, POOL_ACCOUNT)
