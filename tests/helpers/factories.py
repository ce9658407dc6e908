"""Factory functions for pool test setups.

Usage:
    from tests.helpers.factories import fund, make_engine

    engine = make_engine(fee_bps=30)
    fund(engine, ALICE, 1_000_000)
"""

from vaultpair.config import PoolConfig
from vaultpair.engine import PoolEngine
from vaultpair.events import EventSink

# Clock value stamped on every event created through make_engine
FIXED_TS = 1_700_000_000.0


def make_engine(sink: EventSink | None = None, **config) -> PoolEngine:
    """Create an engine with a fixed clock.

    Args:
        sink: Event sink (default: a fresh MemoryEventSink)
        **config: PoolConfig fields to override

    Returns:
        An empty PoolEngine
    """
    return PoolEngine(PoolConfig(**config), sink=sink, clock=lambda: FIXED_TS)


def fund(engine: PoolEngine, owner: str, amount: int) -> None:
    """Credit amount of both pool tokens to owner's book."""
    for token in engine.tokens:
        engine.deposit(owner, token, amount)
