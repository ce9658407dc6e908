"""Live orchestration against external token ledgers.

LiveOrchestrator runs the multi-step workflows that move real tokens:
every transfer happens outside the engine lock, strictly before or after the
single atomic engine call that commits the bookkeeping. When a step fails
after tokens have moved, the completed steps are compensated (refund
transfers, or engine.restore_liquidity / restore_fees) and Internal is raised.

Engine amounts are e6; transfers and balance reads use each token's native
decimals, converted with vaultpair.math.scaling.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

import structlog

from vaultpair.engine import PoolEngine
from vaultpair.errors import (
    Internal,
    InsufficientLiquidity,
    InvalidInput,
    PoolError,
    SlippageExceeded,
)
from vaultpair.interfaces import BalanceSource, TransferExecutor, TransferResult
from vaultpair.math.scaling import from_e6, to_e6
from vaultpair.models.pool import AccountBalance, QuoteOut, SwapArgs, TwoAmounts
from vaultpair.models.types import TokenId
from vaultpair.safe_int import S

logger = structlog.get_logger()


def _same_account(owner: str) -> str:
    return owner


class LiveOrchestrator:
    """Coordinates a PoolEngine with external balances and transfers.

    Args:
        engine: The pool engine that owns the bookkeeping
        balances: Reads live balances in native units
        transfers: Executes transfers in native units
        pool_account: External account holding the pool's tokens
        account_for: Maps an owner to their external account
    """

    def __init__(
        self,
        engine: PoolEngine,
        balances: BalanceSource,
        transfers: TransferExecutor,
        pool_account: str,
        account_for: Callable[[str], str] = _same_account,
    ) -> None:
        self.engine = engine
        self.balances = balances
        self.transfers = transfers
        self.pool_account = pool_account
        self.account_for = account_for

    # --- Transfer helpers ---

    def _transfer(
        self, token: TokenId, source: str, destination: str, amount_e6: int
    ) -> TransferResult:
        """Transfer an e6 amount; a raising executor counts as a failed transfer."""
        if amount_e6 == 0:
            return TransferResult.success()
        amount = from_e6(amount_e6, self.engine.config.decimals_of(token))
        try:
            return self.transfers.transfer(token, source, destination, amount)
        except Exception as e:
            logger.warning(
                "transfer_raised",
                token=token.value,
                source=source,
                destination=destination,
                amount=amount,
                error=str(e),
            )
            return TransferResult.failure(str(e))

    def _refund(
        self, token: TokenId, source: str, destination: str, amount_e6: int, reason: str
    ) -> bool:
        """Best-effort compensating transfer. Returns True if it went through."""
        result = self._transfer(token, source, destination, amount_e6)
        if result.ok:
            logger.warning(
                "compensation_transfer_sent",
                reason=reason,
                token=token.value,
                destination=destination,
                amount_e6=amount_e6,
            )
        else:
            logger.error(
                "compensation_transfer_failed",
                reason=reason,
                token=token.value,
                destination=destination,
                amount_e6=amount_e6,
                error=result.error,
            )
        return result.ok

    def _require_pair(self, token_in: TokenId, token_out: TokenId) -> None:
        tokens = self.engine.tokens
        if token_in == token_out or token_in not in tokens or token_out not in tokens:
            raise InvalidInput(f"Unsupported pair {token_in.value}/{token_out.value}")

    # --- Workflows ---

    def swap(self, args: SwapArgs) -> QuoteOut:
        """Swap with real transfers.

        Steps:
            1. Quote and check the minimum output
            2. Transfer dx from the owner to the pool
            3. Transfer the quoted dy from the pool to the owner
               (failure refunds dx)
            4. Commit with apply_swap(pay_out=dy)
               (failure reverses both transfers)

        Raises:
            InvalidInput: Unsupported pair
            InsufficientLiquidity: The quote yields nothing
            SlippageExceeded: The quote is below min_dy_e6
            Internal: A transfer failed; completed legs were compensated
            PoolError: The commit was rejected; both legs were reversed
        """
        self._require_pair(args.token_in, args.token_out)
        quote = self.engine.quote(args.token_in, args.token_out, args.dx_e6)
        if quote.dy_e6 == 0:
            raise InsufficientLiquidity("Swap output is zero")
        if quote.dy_e6 < args.min_dy_e6:
            raise SlippageExceeded(f"Output {quote.dy_e6} below minimum {args.min_dy_e6}")

        user = self.account_for(args.owner)
        paid_in = self._transfer(args.token_in, user, self.pool_account, args.dx_e6)
        if not paid_in.ok:
            raise Internal(f"Input transfer failed: {paid_in.error}")

        paid_out = self._transfer(args.token_out, self.pool_account, user, quote.dy_e6)
        if not paid_out.ok:
            self._refund(args.token_in, self.pool_account, user, args.dx_e6, "swap_output_failed")
            raise Internal(f"Output transfer failed: {paid_out.error}")

        try:
            executed = self.engine.apply_swap(
                args.token_in,
                args.token_out,
                args.dx_e6,
                args.min_dy_e6,
                pay_out=quote.dy_e6,
                who=args.owner,
            )
        except PoolError:
            self._refund(args.token_out, user, self.pool_account, quote.dy_e6, "swap_commit_failed")
            self._refund(args.token_in, self.pool_account, user, args.dx_e6, "swap_commit_failed")
            raise
        return QuoteOut(dy_e6=executed.amount_out, fee_e6=executed.fee, price_e6=executed.price_e6)

    def add_liquidity(self, owner: str, amount_u: int, amount_v: int) -> int:
        """Deposit with real transfers. Only the planned amounts are pulled.

        Returns:
            Shares minted

        Raises:
            InvalidInput / ZeroMint: The deposit cannot mint shares
            Internal: A transfer failed; completed legs were refunded
            PoolError: The commit was rejected; both legs were refunded
        """
        plan = self.engine.plan_deposit(amount_u, amount_v)
        token_u, token_v = self.engine.tokens
        user = self.account_for(owner)

        first = self._transfer(token_u, user, self.pool_account, plan.used_u)
        if not first.ok:
            raise Internal(f"Deposit transfer of {token_u.value} failed: {first.error}")
        second = self._transfer(token_v, user, self.pool_account, plan.used_v)
        if not second.ok:
            self._refund(token_u, self.pool_account, user, plan.used_u, "deposit_second_leg_failed")
            raise Internal(f"Deposit transfer of {token_v.value} failed: {second.error}")

        try:
            return self.engine.commit_deposit(owner, plan.used_u, plan.used_v)
        except PoolError:
            self._refund(token_u, self.pool_account, user, plan.used_u, "deposit_commit_failed")
            self._refund(token_v, self.pool_account, user, plan.used_v, "deposit_commit_failed")
            raise

    def remove_liquidity(self, owner: str, shares: int) -> TwoAmounts:
        """Withdraw with real transfers.

        The burn is committed first. If either payout fails, the burn is
        restored through engine.restore_liquidity, and a first leg that was
        already paid is pulled back. If that pull-back fails too, the owner
        keeps the first leg and only the shares matching the unpaid leg are
        restored.

        Raises:
            InvalidInput / InsufficientBalance / InvariantBroken: Burn rejected
            Internal: A payout transfer failed; the burn was restored
        """
        out = self.engine.remove_liquidity(owner, shares, credit_book=False)
        token_u, token_v = self.engine.tokens
        user = self.account_for(owner)

        first = self._transfer(token_u, self.pool_account, user, out.amount_u)
        if not first.ok:
            self.engine.restore_liquidity(
                uuid.uuid4().hex, owner, shares, out.amount_u, out.amount_v
            )
            raise Internal(f"Withdraw transfer of {token_u.value} failed: {first.error}")

        second = self._transfer(token_v, self.pool_account, user, out.amount_v)
        if second.ok:
            return out

        pulled_back = self._refund(
            token_u, user, self.pool_account, out.amount_u, "withdraw_second_leg_failed"
        )
        if pulled_back:
            self.engine.restore_liquidity(
                uuid.uuid4().hex, owner, shares, out.amount_u, out.amount_v
            )
            raise Internal(f"Withdraw transfer of {token_v.value} failed: {second.error}")

        # The owner keeps the first leg; only the unpaid leg goes back into
        # the pool, re-minted at par.
        restored = (S(shares) * out.amount_v // (S(out.amount_u) + out.amount_v)).value
        self.engine.restore_liquidity(uuid.uuid4().hex, owner, restored, 0, out.amount_v)
        logger.error(
            "withdraw_partially_paid",
            owner=owner,
            shares_burned=shares,
            shares_restored=restored,
            paid_token=token_u.value,
            paid_e6=out.amount_u,
        )
        raise Internal(
            f"Withdraw transfer of {token_v.value} failed: {second.error}; "
            f"{out.amount_u} {token_u.value} could not be recovered, "
            f"{restored} of {shares} shares restored"
        )

    def claim_fees(self, owner: str) -> TwoAmounts:
        """Claim fees with real transfers.

        The claim is committed first and exactly the committed amounts are
        paid, so fees accrued or claimed while the transfers run are never
        paid twice or lost. A failed payout puts the unpaid amounts back
        through engine.restore_fees.

        Raises:
            InsufficientLiquidity: The pool's live balance cannot cover the claim
            Internal: A payout transfer failed; unpaid fees were restored
        """
        preview = self.engine.preview_claim(owner)
        if preview.amount_u == 0 and preview.amount_v == 0:
            return preview

        live = self.live_reserves()
        if live.amount_u < preview.amount_u or live.amount_v < preview.amount_v:
            raise InsufficientLiquidity(
                f"Pool holds ({live.amount_u}, {live.amount_v}), "
                f"claim needs ({preview.amount_u}, {preview.amount_v})"
            )

        claimed = self.engine.claim_fees(owner, credit_book=False)
        token_u, token_v = self.engine.tokens
        user = self.account_for(owner)

        first = self._transfer(token_u, self.pool_account, user, claimed.amount_u)
        if not first.ok:
            self.engine.restore_fees(uuid.uuid4().hex, owner, claimed.amount_u, claimed.amount_v)
            raise Internal(f"Fee transfer of {token_u.value} failed: {first.error}")

        second = self._transfer(token_v, self.pool_account, user, claimed.amount_v)
        if not second.ok:
            pulled_back = self._refund(
                token_u, user, self.pool_account, claimed.amount_u, "claim_second_leg_failed"
            )
            restored_u = claimed.amount_u if pulled_back else 0
            self.engine.restore_fees(uuid.uuid4().hex, owner, restored_u, claimed.amount_v)
            raise Internal(f"Fee transfer of {token_v.value} failed: {second.error}")

        return claimed

    # --- Balances ---

    def refresh_balances(self, owner: str) -> list[AccountBalance]:
        """Sync owner's book with their live balances of both pool tokens.

        Raises:
            Internal: If the balance source fails
        """
        config = self.engine.config
        account = self.account_for(owner)
        try:
            live = [
                (token, self.balances.balance_of(account, token)) for token in config.tokens
            ]
        except Exception as e:
            logger.error("refresh_balance_read_failed", owner=owner, error=str(e))
            raise Internal(f"Balance read failed: {e}") from e
        return [
            self.engine.sync_balance(owner, token, to_e6(amount, config.decimals_of(token)))
            for token, amount in live
        ]

    # --- Reserves ---

    def live_reserves(self) -> TwoAmounts:
        """The pool account's live balances in e6.

        Falls back to the engine's internal reserves if the balance source
        fails.
        """
        config = self.engine.config
        try:
            u = self.balances.balance_of(self.pool_account, config.token_u)
            v = self.balances.balance_of(self.pool_account, config.token_v)
        except Exception as e:
            logger.warning("live_reserves_unavailable", account=self.pool_account, error=str(e))
            info = self.engine.pool_info()
            return TwoAmounts(amount_u=info.reserve_u, amount_v=info.reserve_v)
        return TwoAmounts(
            amount_u=to_e6(u, config.decimals_u),
            amount_v=to_e6(v, config.decimals_v),
        )

    def reconcile_from_live(self) -> TwoAmounts:
        """Read the pool account's balances and reconcile the engine to them.

        The pool account also holds unclaimed fees, so the fee vault is
        subtracted before the balances become reserves.

        Returns:
            The reserves the engine was reconciled to

        Raises:
            Internal: If the balance source fails
        """
        config = self.engine.config
        try:
            u = self.balances.balance_of(self.pool_account, config.token_u)
            v = self.balances.balance_of(self.pool_account, config.token_v)
        except Exception as e:
            logger.error("reconcile_balance_read_failed", account=self.pool_account, error=str(e))
            raise Internal(f"Balance read failed: {e}") from e

        vault = self.engine.fee_vault()
        reserves = TwoAmounts(
            amount_u=S(to_e6(u, config.decimals_u)).saturating_sub(vault.amount_u).value,
            amount_v=S(to_e6(v, config.decimals_v)).saturating_sub(vault.amount_v).value,
        )
        self.engine.reconcile(reserves.amount_u, reserves.amount_v)
        return reserves
