"""Tests for the fee growth index ledger."""

import pytest

from vaultpair.constants import FEE_GROWTH_SCALE
from vaultpair.errors import InvalidInput, LedgerInvariantError
from vaultpair.ledger.fees import FeeLedger
from vaultpair.models.types import TokenId

USDC, USDT = TokenId.USDC, TokenId.USDT


@pytest.fixture
def fees() -> FeeLedger:
    """Return an empty USDC/USDT fee ledger."""
    return FeeLedger((USDC, USDT))


class TestAccrue:
    """Tests for fee accrual."""

    def test_growth_and_vault(self, fees):
        """A fee lands in the vault and raises growth per share."""
        fees.accrue(USDC, 30, 1_000)
        assert fees.vault_of(USDC) == 30
        assert fees.growth_of(USDC) == 30 * FEE_GROWTH_SCALE // 1_000
        assert fees.growth_of(USDT) == 0

    def test_no_shares_vault_only(self, fees):
        """With no shares outstanding the index does not move."""
        fees.accrue(USDC, 30, 0)
        assert fees.vault_of(USDC) == 30
        assert fees.growth_of(USDC) == 0

    def test_zero_fee_is_noop(self, fees):
        """A zero fee changes nothing."""
        fees.accrue(USDC, 0, 1_000)
        assert fees.vault_of(USDC) == 0

    def test_foreign_token(self, fees):
        """Only pool tokens accrue."""
        with pytest.raises(InvalidInput):
            fees.accrue(TokenId.ICP, 1, 1)


class TestSettleAndPreview:
    """Tests for settlement and read-only previews."""

    def test_single_lp_gets_everything(self, fees):
        """One LP holding all shares can claim the whole fee."""
        fees.settle("alice", 0)
        fees.accrue(USDC, 30, 1_000)
        assert fees.preview("alice", 1_000) == (30, 0)

    def test_one_to_three_split(self, fees):
        """250 / 750 shares split a 30 fee within one unit of 7.5 / 22.5."""
        fees.settle("alice", 0)
        fees.settle("bob", 0)
        fees.accrue(USDC, 30, 1_000)
        alice_u, _ = fees.preview("alice", 250)
        bob_u, _ = fees.preview("bob", 750)
        assert abs(alice_u - 7.5) <= 1
        assert abs(bob_u - 22.5) <= 1
        assert alice_u + bob_u <= fees.vault_of(USDC)

    def test_preview_does_not_mutate(self, fees):
        """Previewing twice gives the same answer and leaves owed at zero."""
        fees.settle("alice", 0)
        fees.accrue(USDT, 10, 10)
        assert fees.preview("alice", 10) == (0, 10)
        assert fees.preview("alice", 10) == (0, 10)
        assert fees.owed_of("alice", USDT) == 0

    def test_settle_moves_pending_to_owed(self, fees):
        """settle() books pending growth and advances the index."""
        fees.settle("alice", 0)
        fees.accrue(USDC, 30, 1_000)
        fees.settle("alice", 1_000)
        assert fees.owed_of("alice", USDC) == 30
        assert fees.preview("alice", 1_000) == (30, 0)

    def test_late_joiner_gets_no_past_fees(self, fees):
        """Settling at zero shares before joining skips earlier growth."""
        fees.settle("alice", 0)
        fees.accrue(USDC, 30, 1_000)
        fees.settle("bob", 0)
        assert fees.preview("bob", 1_000) == (0, 0)

    def test_preview_capped_at_vault(self, fees):
        """A preview never promises more than the vault holds."""
        fees.settle("alice", 0)
        fees.accrue(USDC, 30, 1_000)
        # Share count larger than the accrual denominator
        assert fees.preview("alice", 5_000) == (30, 0)


class TestClaim:
    """Tests for claiming."""

    def test_claim_pays_and_zeroes(self, fees):
        """A claim returns owed amounts and debits the vault."""
        fees.settle("alice", 0)
        fees.accrue(USDC, 30, 1_000)
        fees.accrue(USDT, 20, 1_000)
        assert fees.claim("alice", 1_000) == (30, 20)
        assert fees.vault_of(USDC) == 0
        assert fees.vault_of(USDT) == 0

    def test_claim_is_idempotent(self, fees):
        """A second claim with no new fees returns zeros."""
        fees.settle("alice", 0)
        fees.accrue(USDC, 30, 1_000)
        fees.claim("alice", 1_000)
        assert fees.claim("alice", 1_000) == (0, 0)

    def test_empty_claim(self, fees):
        """Claiming with nothing owed is a valid no-op."""
        assert fees.claim("nobody", 0) == (0, 0)

    def test_vault_shortfall_is_a_defect(self, fees):
        """Owing more than the vault holds raises LedgerInvariantError."""
        fees.settle("alice", 0)
        fees.accrue(USDC, 30, 1_000)
        fees.settle("alice", 1_000)
        fees._vault[USDC] = 10
        with pytest.raises(LedgerInvariantError):
            fees.claim("alice", 1_000)
        assert fees.vault_of(USDC) == 10

    def test_restore_reverses_claim(self, fees):
        """Restoring a claim puts it back into owed and the vault."""
        fees.settle("alice", 0)
        fees.accrue(USDC, 30, 1_000)
        fees.accrue(USDT, 20, 1_000)
        claimed = fees.claim("alice", 1_000)

        fees.restore("alice", claimed)

        assert fees.owed_of("alice", USDC) == 30
        assert fees.vault_of(USDT) == 20
        assert fees.preview("alice", 1_000) == (30, 20)
