"""Pool configuration.

PoolConfig holds the parameters a pool is created with. Defaults can be
overridden from environment variables (VAULTPAIR_*) via from_env().
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vaultpair.constants import (
    DEFAULT_AMP,
    DEFAULT_D_TOLERANCE_E6,
    DEFAULT_FEE_BPS,
    DEFAULT_MAX_PRICE_IMPACT_BPS,
)
from vaultpair.models.types import Bps, TokenId

ENV_PREFIX = "VAULTPAIR_"


class RiskParams(BaseModel):
    """Swap risk limits.

    Attributes:
        max_price_impact_bps: Largest accepted deviation of the execution
            price from 1:1, in basis points of the net input
        d_tolerance_e6: Largest accepted drop of the invariant D across a
            swap, in e6 units
    """

    model_config = ConfigDict(frozen=True)

    max_price_impact_bps: int = Field(default=DEFAULT_MAX_PRICE_IMPACT_BPS, ge=0, le=10_000)
    d_tolerance_e6: int = Field(default=DEFAULT_D_TOLERANCE_E6, ge=0)


class PoolConfig(BaseModel):
    """Parameters a pool is created with.

    Attributes:
        amp: Raw amplification A (e.g. 100), or an already scaled
            A * A_PRECISION value
        fee_bps: Swap fee in basis points, charged on the input side
        token_u: First pool asset
        token_v: Second pool asset
        decimals_u: Native decimals of token_u on its external ledger
        decimals_v: Native decimals of token_v on its external ledger
        risk: Swap risk limits
    """

    model_config = ConfigDict(frozen=True)

    amp: int = Field(default=DEFAULT_AMP, ge=1)
    fee_bps: Bps = DEFAULT_FEE_BPS
    token_u: TokenId = TokenId.USDC
    token_v: TokenId = TokenId.USDT
    decimals_u: int = Field(default=6, ge=0, le=77)
    decimals_v: int = Field(default=6, ge=0, le=77)
    risk: RiskParams = Field(default_factory=RiskParams)

    @model_validator(mode="after")
    def _distinct_tokens(self) -> PoolConfig:
        if self.token_u == self.token_v:
            raise ValueError(f"Pool tokens must differ, got {self.token_u.value} twice")
        return self

    @property
    def tokens(self) -> tuple[TokenId, TokenId]:
        return (self.token_u, self.token_v)

    def decimals_of(self, token: TokenId) -> int:
        """Native decimals of a pool token.

        Raises:
            ValueError: If token is not one of the pool's assets
        """
        if token == self.token_u:
            return self.decimals_u
        if token == self.token_v:
            return self.decimals_v
        raise ValueError(f"{token.value} is not a pool token")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PoolConfig:
        """Build a config from VAULTPAIR_* environment variables.

        Recognized variables: VAULTPAIR_AMP, VAULTPAIR_FEE_BPS,
        VAULTPAIR_DECIMALS_U, VAULTPAIR_DECIMALS_V,
        VAULTPAIR_MAX_PRICE_IMPACT_BPS, VAULTPAIR_D_TOLERANCE_E6.
        Unset variables keep their defaults.

        Raises:
            pydantic.ValidationError: If a value is out of range or not an int
        """
        env = os.environ if environ is None else environ

        fields = {
            name: env[ENV_PREFIX + name.upper()]
            for name in ("amp", "fee_bps", "decimals_u", "decimals_v")
            if ENV_PREFIX + name.upper() in env
        }
        risk = {
            name: env[ENV_PREFIX + name.upper()]
            for name in ("max_price_impact_bps", "d_tolerance_e6")
            if ENV_PREFIX + name.upper() in env
        }
        return cls.model_validate({**fields, "risk": risk})


DEFAULT_POOL_CONFIG = PoolConfig()
