"""Tests for boundary models."""

import pytest
from pydantic import ValidationError

from vaultpair.constants import AMOUNT_MAX, E6
from vaultpair.models import (
    AccountKey,
    ExactOutQuoteOut,
    PoolInfo,
    QuoteOut,
    SwapArgs,
    TokenId,
    TwoAmounts,
)


class TestSwapArgs:
    """Tests for swap request validation."""

    def test_valid(self):
        """Token names parse into TokenId; min_dy defaults to 0."""
        args = SwapArgs(owner="alice", token_in="USDC", token_out="USDT", dx_e6=E6)
        assert args.token_in is TokenId.USDC
        assert args.min_dy_e6 == 0

    def test_rejects_negative_amount(self):
        """Amounts are unsigned."""
        with pytest.raises(ValidationError):
            SwapArgs(owner="alice", token_in="USDC", token_out="USDT", dx_e6=-1)

    def test_rejects_amount_above_max(self):
        """Amounts fit 128 bits."""
        with pytest.raises(ValidationError):
            SwapArgs(owner="alice", token_in="USDC", token_out="USDT", dx_e6=AMOUNT_MAX + 1)

    def test_rejects_unknown_token_and_empty_owner(self):
        """Unknown tokens and empty owners are invalid."""
        with pytest.raises(ValidationError):
            SwapArgs(owner="alice", token_in="DOGE", token_out="USDT", dx_e6=1)
        with pytest.raises(ValidationError):
            SwapArgs(owner="", token_in="USDC", token_out="USDT", dx_e6=1)


class TestResponses:
    """Tests for response snapshots."""

    def test_empty_quotes(self):
        """Empty quotes carry the neutral price."""
        assert QuoteOut.empty() == QuoteOut(dy_e6=0, fee_e6=0, price_e6=E6)
        assert ExactOutQuoteOut.empty().is_empty

    def test_pool_info_derived(self):
        """TVL values both assets at par."""
        info = PoolInfo(
            token_u=TokenId.USDC,
            token_v=TokenId.USDT,
            amp=100,
            fee_bps=10,
            reserve_u=3,
            reserve_v=4,
            total_shares=0,
            virtual_price_e6=E6,
        )
        assert info.tvl_e6 == 7
        assert info.is_empty

    def test_two_amounts_tuple(self):
        """as_tuple keeps (u, v) order."""
        assert TwoAmounts(amount_u=1, amount_v=2).as_tuple() == (1, 2)

    def test_account_key_is_hashable_pair(self):
        """AccountKey works as a composite dict key."""
        book = {AccountKey("alice", TokenId.USDC): 1}
        assert book[AccountKey(owner="alice", token=TokenId.USDC)] == 1
        assert AccountKey("alice", TokenId.USDT) not in book
