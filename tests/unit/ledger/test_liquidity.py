"""Tests for share minting, redemption and the liquidity ledger."""

import pytest

from vaultpair.errors import (
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidInput,
    InvariantBroken,
    LedgerInvariantError,
    ZeroMint,
)
from vaultpair.ledger.liquidity import (
    DepositPlan,
    LiquidityLedger,
    compute_mint,
    compute_redemption,
    plan_deposit,
)


class TestComputeMint:
    """Tests for compute_mint."""

    def test_seed_mint_is_sum(self):
        """An empty pool mints deposit_u + deposit_v."""
        assert compute_mint(0, 0, 0, 1_000, 1_000) == 2_000
        assert compute_mint(0, 0, 0, 1_000, 0) == 1_000

    def test_zero_reserve_counts_as_empty(self):
        """A pool with shares but a drained side also seeds."""
        assert compute_mint(0, 500, 700, 100, 200) == 300

    def test_both_zero_rejected(self):
        """Depositing nothing is invalid."""
        with pytest.raises(InvalidInput):
            compute_mint(0, 0, 0, 0, 0)
        with pytest.raises(InvalidInput):
            compute_mint(10_000, 10_000, 20_000, 0, 0)

    def test_proportional(self):
        """A balanced deposit mints in proportion to the pool."""
        assert compute_mint(10_000, 10_000, 20_000, 1_000, 1_000) == 2_000

    def test_limited_by_smaller_side(self):
        """The side worth fewer shares decides the mint."""
        assert compute_mint(10_000, 10_000, 20_000, 1_000, 500) == 1_000

    def test_zero_mint(self):
        """Dust that floors to zero shares raises ZeroMint."""
        with pytest.raises(ZeroMint) as exc_info:
            compute_mint(10**12, 10**12, 1, 1, 1)
        assert isinstance(exc_info.value, InsufficientLiquidity)


class TestPlanDeposit:
    """Tests for the amounts a deposit actually consumes."""

    def test_seed_consumes_everything(self):
        """Seed deposits use the full offer."""
        assert plan_deposit(0, 0, 0, 1_000, 2_000) == DepositPlan(1_000, 2_000, 3_000, seed=True)

    def test_proportional_consumes_matching_amounts(self):
        """Excess on the larger side is left with the caller."""
        plan = plan_deposit(10_000, 10_000, 20_000, 1_000, 500)
        assert plan == DepositPlan(used_u=500, used_v=500, minted=1_000)

    def test_used_rounds_up_but_never_exceeds_offer(self):
        """ceil(minted * r / ts) is capped at the offered amount."""
        plan = plan_deposit(3, 3, 2, 2, 2)
        assert plan.minted == 1
        assert plan.used_u == 2
        assert plan.used_v == 2

    def test_plan_rejects_what_mint_rejects(self):
        """plan_deposit raises the same errors as compute_mint."""
        with pytest.raises(InvalidInput):
            plan_deposit(0, 0, 0, 0, 0)
        with pytest.raises(ZeroMint):
            plan_deposit(10**12, 10**12, 1, 1, 1)


class TestComputeRedemption:
    """Tests for compute_redemption."""

    def test_proportional(self):
        """Outputs are requested * reserve // total_shares."""
        assert compute_redemption(11_000, 11_000, 22_000, 2_000, 2_000) == (1_000, 1_000)

    def test_floors(self):
        """Outputs round down."""
        assert compute_redemption(10, 7, 3, 1, 1) == (3, 2)

    def test_zero_requested(self):
        """Redeeming zero shares is invalid."""
        with pytest.raises(InvalidInput):
            compute_redemption(100, 100, 100, 10, 0)

    def test_more_than_held(self):
        """Owners cannot redeem shares they do not hold."""
        with pytest.raises(InsufficientBalance):
            compute_redemption(100, 100, 100, 10, 11)

    def test_no_shares_outstanding(self):
        """A pool without shares has nothing to redeem."""
        with pytest.raises(InvariantBroken):
            compute_redemption(100, 100, 0, 10, 10)


class TestLiquidityLedger:
    """Tests for share balances."""

    def test_mint_and_burn(self):
        """Mints and burns move owner and total together."""
        ledger = LiquidityLedger()
        ledger.mint("alice", 100)
        ledger.mint("bob", 50)
        ledger.burn("alice", 40)
        assert ledger.shares_of("alice") == 60
        assert ledger.shares_of("bob") == 50
        assert ledger.total_shares == 110
        assert ledger.sum_of_positions() == ledger.total_shares

    def test_zero_balance_entries_are_kept(self):
        """Burning everything leaves a zero entry, not a missing one."""
        ledger = LiquidityLedger()
        ledger.mint("alice", 100)
        ledger.burn("alice", 100)
        assert ledger.positions() == {"alice": 0}
        assert ledger.is_empty

    def test_unknown_owner_has_no_shares(self):
        """Unknown owners read as zero."""
        assert LiquidityLedger().shares_of("nobody") == 0

    def test_burn_underflow_is_a_defect(self):
        """Burning more than held is a ledger invariant violation."""
        ledger = LiquidityLedger()
        ledger.mint("alice", 10)
        with pytest.raises(LedgerInvariantError):
            ledger.burn("alice", 11)
        assert ledger.shares_of("alice") == 10
        assert ledger.total_shares == 10

    def test_positions_is_a_copy(self):
        """Callers cannot mutate balances through positions()."""
        ledger = LiquidityLedger()
        ledger.mint("alice", 10)
        ledger.positions()["alice"] = 999
        assert ledger.shares_of("alice") == 10

    def test_rescale(self):
        """100 / 300 rescaled to 800 becomes 200 / 600."""
        ledger = LiquidityLedger()
        ledger.mint("alice", 100)
        ledger.mint("bob", 300)
        ledger.rescale(800)
        assert ledger.shares_of("alice") == 200
        assert ledger.shares_of("bob") == 600
        assert ledger.total_shares == 800

    def test_rescale_uses_actual_sum(self):
        """A drifted total_shares does not skew the ratio."""
        ledger = LiquidityLedger()
        ledger.mint("alice", 100)
        ledger.mint("bob", 300)
        ledger.total_shares = 1_000
        ledger.rescale(800)
        assert (ledger.shares_of("alice"), ledger.shares_of("bob")) == (200, 600)

    def test_rescale_without_owners(self):
        """With no holders only the total changes."""
        ledger = LiquidityLedger()
        ledger.rescale(500)
        assert ledger.total_shares == 500
        assert ledger.positions() == {}
