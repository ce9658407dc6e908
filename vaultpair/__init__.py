"""VaultPair - two-asset StableSwap pool engine."""

from vaultpair.config import PoolConfig, RiskParams
from vaultpair.engine import PoolEngine
from vaultpair.orchestrator import LiveOrchestrator

__version__ = "0.1.0"
__all__ = ["PoolEngine", "PoolConfig", "RiskParams", "LiveOrchestrator", "__version__"]
