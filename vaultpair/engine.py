"""Pool engine.

PoolEngine owns one PoolState and is the only way to read or change it.
Every public method runs under a single re-entrant lock, so each operation
is atomic with respect to the others and no partially applied state is ever
observable.

Mutations validate everything first and only then write, so a raised
PoolError leaves the pool exactly as it was. Reads return pydantic
snapshots and never raise on bad amounts; they degrade to empty results.

Two families of mutations exist:
- Book flows (swap, add_liquidity, remove_liquidity, claim_fees) settle
  against the internal BalanceBook.
- Split flows (apply_swap, plan_deposit + commit_deposit,
  remove_liquidity(credit_book=False), claim_fees(credit_book=False),
  restore_liquidity, restore_fees) let a LiveOrchestrator move real tokens
  outside the lock and commit or compensate afterwards.

A swap only needs both reserves to be non-zero. With no shares outstanding
its fee stays in the vault unassigned.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from threading import RLock

import structlog

from vaultpair.config import DEFAULT_POOL_CONFIG, PoolConfig
from vaultpair.constants import AMOUNT_MAX, E6, FEE_DENOMINATOR
from vaultpair.errors import (
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidInput,
    InvariantBroken,
    NoConvergence,
    PoolError,
    PriceImpactTooHigh,
    SlippageExceeded,
)
from vaultpair.events import (
    DepositEvent,
    EventSink,
    FeeClaimedEvent,
    LiquidityAddedEvent,
    LiquidityRemovedEvent,
    MemoryEventSink,
    PoolEvent,
    SwapEvent,
    WithdrawEvent,
)
from vaultpair.ledger.liquidity import (
    DepositPlan,
    compute_mint,
    compute_redemption,
    plan_deposit,
)
from vaultpair.math.stableswap import get_d
from vaultpair.models.pool import (
    AccountBalance,
    ExactOutQuoteOut,
    PoolInfo,
    Position,
    QuoteOut,
    SwapArgs,
    TwoAmounts,
)
from vaultpair.models.types import TokenId
from vaultpair.quote import Orientation, Quote, orient, quote_exact_in, quote_exact_out
from vaultpair.safe_int import S
from vaultpair.state import PoolState

logger = structlog.get_logger()


def _rejected(error: PoolError, op: str, **context: object) -> PoolError:
    """Log a rejected request and hand the error back for raising."""
    logger.warning(
        "pool_request_rejected",
        op=op,
        code=error.code.value,
        reason=str(error),
        **context,
    )
    return error


class PoolEngine:
    """Two-asset StableSwap pool with share and fee ledgers.

    Args:
        config: Pool parameters (defaults to DEFAULT_POOL_CONFIG)
        sink: Receives one event per committed mutation
            (defaults to a MemoryEventSink)
        clock: Timestamp source for events
    """

    def __init__(
        self,
        config: PoolConfig | None = None,
        sink: EventSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or DEFAULT_POOL_CONFIG
        self._state = PoolState.from_config(self.config)
        self._sink: EventSink = sink if sink is not None else MemoryEventSink()
        self._clock = clock
        self._state_lock = RLock()

    @property
    def events(self) -> EventSink:
        return self._sink

    @property
    def tokens(self) -> tuple[TokenId, TokenId]:
        return self.config.tokens

    # --- Internal helpers (call with the lock held) ---

    def _orient(self, token_in: TokenId, token_out: TokenId) -> Orientation | None:
        pool = self._state.pool
        return orient(token_in, token_out, self.tokens, pool.reserve_u, pool.reserve_v)

    def _emit(self, event: PoolEvent) -> None:
        self._sink.emit(event)

    def _refresh_virtual_price(self) -> None:
        pool = self._state.pool
        total = self._state.liquidity.total_shares
        d = get_d(pool.amp, pool.reserve_u, pool.reserve_v)
        if total == 0 or d == 0:
            pool.virtual_price_e6 = E6
        else:
            pool.virtual_price_e6 = (S(d) * E6 // total).value

    def _settle_all(self) -> None:
        liquidity = self._state.liquidity
        for owner in liquidity.owners():
            self._state.fees.settle(owner, liquidity.shares_of(owner))

    # --- Reads ---

    def pool_info(self) -> PoolInfo:
        with self._state_lock:
            pool = self._state.pool
            return PoolInfo(
                token_u=self.config.token_u,
                token_v=self.config.token_v,
                amp=pool.amp,
                fee_bps=pool.fee_bps,
                reserve_u=pool.reserve_u,
                reserve_v=pool.reserve_v,
                total_shares=self._state.liquidity.total_shares,
                virtual_price_e6=pool.virtual_price_e6,
            )

    def quote(self, token_in: TokenId, token_out: TokenId, dx_e6: int) -> QuoteOut:
        """Quote an exact-input swap. Never raises."""
        if dx_e6 <= 0 or dx_e6 > AMOUNT_MAX:
            return QuoteOut.empty()
        with self._state_lock:
            pool = self._state.pool
            o = self._orient(token_in, token_out)
            if o is None:
                logger.debug(
                    "quote_unsupported_pair",
                    token_in=token_in.value,
                    token_out=token_out.value,
                )
                return QuoteOut.empty()
            q = quote_exact_in(pool.amp, pool.fee_bps, o.reserve_in, o.reserve_out, dx_e6)
        return QuoteOut(dy_e6=q.amount_out, fee_e6=q.fee, price_e6=q.price_e6)

    def quote_exact_out(
        self, token_in: TokenId, token_out: TokenId, dy_e6: int
    ) -> ExactOutQuoteOut:
        """Quote the minimal input that buys at least dy_e6. Never raises.

        An unreachable target (more than the reserve, or beyond the search
        ceiling) yields ExactOutQuoteOut.empty().
        """
        if dy_e6 <= 0 or dy_e6 > AMOUNT_MAX:
            return ExactOutQuoteOut.empty()
        with self._state_lock:
            pool = self._state.pool
            o = self._orient(token_in, token_out)
            if o is None:
                return ExactOutQuoteOut.empty()
            q = quote_exact_out(pool.amp, pool.fee_bps, o.reserve_in, o.reserve_out, dy_e6)
        if q is None:
            logger.debug(
                "exact_out_no_solution",
                token_in=token_in.value,
                token_out=token_out.value,
                dy=dy_e6,
            )
            return ExactOutQuoteOut.empty()
        return ExactOutQuoteOut(
            dx_e6=q.amount_in,
            dy_e6=q.amount_out,
            fee_e6=q.fee,
            price_e6=q.price_e6,
        )

    def position(self, owner: str) -> Position:
        with self._state_lock:
            return Position(owner=owner, shares=self._state.liquidity.shares_of(owner))

    def positions(self) -> list[Position]:
        with self._state_lock:
            return [
                Position(owner=owner, shares=shares)
                for owner, shares in self._state.liquidity.positions().items()
            ]

    def preview_claim(self, owner: str) -> TwoAmounts:
        """Fees owner could claim right now. Never raises."""
        with self._state_lock:
            shares = self._state.liquidity.shares_of(owner)
            u, v = self._state.fees.preview(owner, shares)
        return TwoAmounts(amount_u=u, amount_v=v)

    def fee_vault(self) -> TwoAmounts:
        with self._state_lock:
            fees = self._state.fees
            return TwoAmounts(
                amount_u=fees.vault_of(self.config.token_u),
                amount_v=fees.vault_of(self.config.token_v),
            )

    def balance(self, owner: str, token: TokenId) -> AccountBalance:
        with self._state_lock:
            return self._state.balances.snapshot(owner, token)

    # --- Balance book ---

    def deposit(self, owner: str, token: TokenId, amount: int) -> AccountBalance:
        """Credit funds that arrived from outside into owner's book."""
        with self._state_lock:
            if amount <= 0:
                raise _rejected(
                    InvalidInput("Deposit amount must be positive"), "deposit", owner=owner
                )
            self._state.balances.credit(owner, token, amount)
            self._emit(DepositEvent(who=owner, ts=self._clock(), token=token, amount=amount))
            logger.info("balance_deposited", owner=owner, token=token.value, amount=amount)
            return self._state.balances.snapshot(owner, token)

    def withdraw(self, owner: str, token: TokenId, amount: int) -> AccountBalance:
        """Debit funds leaving owner's book.

        Raises:
            InvalidInput: If amount is not positive
            InsufficientBalance: If the available balance is too small
        """
        with self._state_lock:
            if amount <= 0:
                raise _rejected(
                    InvalidInput("Withdraw amount must be positive"), "withdraw", owner=owner
                )
            try:
                self._state.balances.debit(owner, token, amount)
            except InsufficientBalance as e:
                raise _rejected(e, "withdraw", owner=owner) from None
            self._emit(WithdrawEvent(who=owner, ts=self._clock(), token=token, amount=amount))
            logger.info("balance_withdrawn", owner=owner, token=token.value, amount=amount)
            return self._state.balances.snapshot(owner, token)

    # --- Swaps ---

    def swap(self, args: SwapArgs) -> QuoteOut:
        """Execute an exact-input swap against owner's book balance.

        Raises:
            InsufficientBalance: If owner cannot fund dx
            PoolError: Any error apply_swap raises
        """
        with self._state_lock:
            available = self._state.balances.available(args.owner, args.token_in)
            if args.dx_e6 > available:
                raise _rejected(
                    InsufficientBalance(
                        f"{args.owner} has {available} {args.token_in.value}, "
                        f"needs {args.dx_e6}"
                    ),
                    "swap",
                    owner=args.owner,
                )
            q = self.apply_swap(
                args.token_in,
                args.token_out,
                args.dx_e6,
                args.min_dy_e6,
                who=args.owner,
            )
            self._state.balances.debit(args.owner, args.token_in, q.amount_in)
            self._state.balances.credit(args.owner, args.token_out, q.amount_out)
        return QuoteOut(dy_e6=q.amount_out, fee_e6=q.fee, price_e6=q.price_e6)

    def apply_swap(
        self,
        token_in: TokenId,
        token_out: TokenId,
        dx: int,
        min_dy: int = 0,
        pay_out: int | None = None,
        who: str = "",
    ) -> Quote:
        """Apply a swap to the reserves and fee ledger.

        The caller is responsible for moving dx in and the output out.

        Args:
            token_in: Asset sold to the pool
            token_out: Asset bought from the pool
            dx: Gross input (e6)
            min_dy: Minimum acceptable output
            pay_out: Output actually paid (<= quoted dy); defaults to dy
            who: Owner recorded on the event

        Returns:
            The executed quote; amount_out is what left the reserves

        Raises:
            InvalidInput: Unsupported pair, dx == 0, or pay_out above dy
            InsufficientLiquidity: Empty pool or zero output
            NoConvergence: The solver gave no D for non-empty reserves
            SlippageExceeded: Output below min_dy
            PriceImpactTooHigh: Price impact above the configured limit
            InvariantBroken: D dropped by more than the configured tolerance
        """
        with self._state_lock:
            pool = self._state.pool
            risk = self.config.risk
            o = self._orient(token_in, token_out)
            if o is None:
                raise _rejected(
                    InvalidInput(f"Unsupported pair {token_in.value}/{token_out.value}"),
                    "swap",
                    who=who,
                )
            if dx <= 0 or dx > AMOUNT_MAX:
                raise _rejected(InvalidInput("Swap input must be positive"), "swap", who=who)
            total_shares = self._state.liquidity.total_shares
            if o.reserve_in == 0 or o.reserve_out == 0:
                raise _rejected(InsufficientLiquidity("Pool is empty"), "swap", who=who)

            d_before = get_d(pool.amp, pool.reserve_u, pool.reserve_v)
            if d_before == 0:
                raise _rejected(NoConvergence("Invariant D did not converge"), "swap", who=who)

            q = quote_exact_in(pool.amp, pool.fee_bps, o.reserve_in, o.reserve_out, dx)
            if q.amount_out == 0:
                raise _rejected(
                    InsufficientLiquidity("Swap output is zero"), "swap", who=who, dx=dx
                )
            if q.amount_out < min_dy:
                raise _rejected(
                    SlippageExceeded(f"Output {q.amount_out} below minimum {min_dy}"),
                    "swap",
                    who=who,
                    dy=q.amount_out,
                    min_dy=min_dy,
                )

            dx_net = q.net_in
            impact_bps = (S(dx_net).saturating_sub(q.amount_out) * FEE_DENOMINATOR // dx_net).value
            if impact_bps > risk.max_price_impact_bps:
                raise _rejected(
                    PriceImpactTooHigh(
                        f"Price impact {impact_bps} bps above {risk.max_price_impact_bps} bps"
                    ),
                    "swap",
                    who=who,
                    impact_bps=impact_bps,
                )

            paid = q.amount_out if pay_out is None else pay_out
            if paid < 0 or paid > q.amount_out:
                raise _rejected(
                    InvalidInput(f"Payout {paid} outside 0..{q.amount_out}"), "swap", who=who
                )

            new_in = (S(o.reserve_in) + dx_net).to_amount()
            new_out = (S(o.reserve_out) - paid).value
            new_u, new_v = (new_in, new_out) if o.u_is_input else (new_out, new_in)
            d_after = get_d(pool.amp, new_u, new_v)
            if d_after + risk.d_tolerance_e6 < d_before:
                raise _rejected(
                    InvariantBroken(f"D dropped from {d_before} to {d_after}"),
                    "swap",
                    who=who,
                    d_before=d_before,
                    d_after=d_after,
                )

            self._state.fees.accrue(token_in, q.fee, total_shares)
            pool.reserve_u, pool.reserve_v = new_u, new_v
            self._refresh_virtual_price()

            executed = Quote(amount_in=dx, amount_out=paid, fee=q.fee)
            self._emit(
                SwapEvent(
                    who=who,
                    ts=self._clock(),
                    token_in=token_in,
                    token_out=token_out,
                    dx=dx,
                    dy=paid,
                    fee=q.fee,
                )
            )
            logger.info(
                "swap_executed",
                who=who,
                token_in=token_in.value,
                token_out=token_out.value,
                dx=dx,
                dy=paid,
                fee=q.fee,
            )
            return executed

    # --- Liquidity ---

    def plan_deposit(self, deposit_u: int, deposit_v: int) -> DepositPlan:
        """Amounts a deposit would consume and the shares it would mint.

        Raises:
            InvalidInput: If both amounts are zero
            ZeroMint: If the deposit is too small to mint a share
        """
        with self._state_lock:
            pool = self._state.pool
            total_shares = self._state.liquidity.total_shares
            try:
                return plan_deposit(
                    pool.reserve_u, pool.reserve_v, total_shares, deposit_u, deposit_v
                )
            except PoolError as e:
                raise _rejected(e, "add_liquidity") from None

    def commit_deposit(self, owner: str, amount_u: int, amount_v: int) -> int:
        """Book a deposit whose tokens are already in the pool.

        The full amounts are added to the reserves and the shares minted are
        compute_mint(amount_u, amount_v) against the pre-deposit reserves.
        Pending fees are settled at the owner's old share count first.

        Returns:
            Shares minted

        Raises:
            InvalidInput: If both amounts are zero
            ZeroMint: If the deposit is too small to mint a share
        """
        with self._state_lock:
            pool = self._state.pool
            liquidity = self._state.liquidity
            try:
                minted = compute_mint(
                    pool.reserve_u, pool.reserve_v, liquidity.total_shares, amount_u, amount_v
                )
            except PoolError as e:
                raise _rejected(e, "add_liquidity", owner=owner) from None
            new_u = (S(pool.reserve_u) + amount_u).to_amount()
            new_v = (S(pool.reserve_v) + amount_v).to_amount()

            self._state.fees.settle(owner, liquidity.shares_of(owner))
            liquidity.mint(owner, minted)
            pool.reserve_u, pool.reserve_v = new_u, new_v
            self._refresh_virtual_price()

            self._emit(
                LiquidityAddedEvent(
                    who=owner,
                    ts=self._clock(),
                    amount_u=amount_u,
                    amount_v=amount_v,
                    shares=minted,
                )
            )
            logger.info(
                "liquidity_added",
                owner=owner,
                amount_u=amount_u,
                amount_v=amount_v,
                shares=minted,
            )
            return minted

    def add_liquidity(self, owner: str, amount_u: int, amount_v: int) -> int:
        """Deposit from owner's book balances.

        Only the planned amounts are debited; any excess on one side stays
        in the book.

        Returns:
            Shares minted

        Raises:
            InvalidInput: If both amounts are zero
            ZeroMint: If the deposit is too small to mint a share
            InsufficientBalance: If the book cannot fund the planned amounts
        """
        token_u, token_v = self.tokens
        with self._state_lock:
            plan = self.plan_deposit(amount_u, amount_v)
            balances = self._state.balances
            for token, amount in ((token_u, plan.used_u), (token_v, plan.used_v)):
                available = balances.available(owner, token)
                if amount > available:
                    raise _rejected(
                        InsufficientBalance(
                            f"{owner} has {available} {token.value}, needs {amount}"
                        ),
                        "add_liquidity",
                        owner=owner,
                    )

            balances.reserve_for_lp(owner, token_u, plan.used_u)
            balances.reserve_for_lp(owner, token_v, plan.used_v)
            try:
                minted = self.commit_deposit(owner, plan.used_u, plan.used_v)
            except PoolError:
                balances.unreserve(owner, token_u, plan.used_u)
                balances.unreserve(owner, token_v, plan.used_v)
                raise
            balances.release_from_lp(owner, token_u, plan.used_u)
            balances.release_from_lp(owner, token_v, plan.used_v)
            return minted

    def remove_liquidity(self, owner: str, shares: int, credit_book: bool = True) -> TwoAmounts:
        """Burn shares and take the proportional reserves out.

        Pending fees are settled at the owner's old share count first, so
        they stay claimable after the burn.

        Args:
            owner: Liquidity provider
            shares: Shares to burn
            credit_book: Credit the outputs to owner's book; the orchestrator
                passes False and transfers them itself

        Raises:
            InvalidInput: If shares is zero
            InsufficientBalance: If owner holds fewer shares
            InvariantBroken: If the pool has no shares outstanding
        """
        with self._state_lock:
            pool = self._state.pool
            liquidity = self._state.liquidity
            held = liquidity.shares_of(owner)
            try:
                out_u, out_v = compute_redemption(
                    pool.reserve_u, pool.reserve_v, liquidity.total_shares, held, shares
                )
            except PoolError as e:
                raise _rejected(e, "remove_liquidity", owner=owner, shares=shares) from None

            self._state.fees.settle(owner, held)
            liquidity.burn(owner, shares)
            pool.reserve_u = (S(pool.reserve_u) - out_u).value
            pool.reserve_v = (S(pool.reserve_v) - out_v).value
            if credit_book:
                token_u, token_v = self.tokens
                self._state.balances.credit(owner, token_u, out_u)
                self._state.balances.credit(owner, token_v, out_v)
            self._refresh_virtual_price()

            self._emit(
                LiquidityRemovedEvent(
                    who=owner,
                    ts=self._clock(),
                    amount_u=out_u,
                    amount_v=out_v,
                    shares=shares,
                )
            )
            logger.info(
                "liquidity_removed",
                owner=owner,
                shares=shares,
                amount_u=out_u,
                amount_v=out_v,
            )
            return TwoAmounts(amount_u=out_u, amount_v=out_v)

    def restore_liquidity(
        self,
        compensation_id: str,
        owner: str,
        shares: int,
        out_u: int,
        out_v: int,
    ) -> bool:
        """Undo a burn whose payout never reached the owner.

        Applied at most once per compensation_id.

        Returns:
            True if applied, False if compensation_id was already applied
        """
        with self._state_lock:
            if compensation_id in self._state.applied_compensations:
                logger.warning(
                    "compensation_already_applied",
                    compensation_id=compensation_id,
                    owner=owner,
                )
                return False
            pool = self._state.pool
            liquidity = self._state.liquidity
            new_u = (S(pool.reserve_u) + out_u).to_amount()
            new_v = (S(pool.reserve_v) + out_v).to_amount()

            self._state.fees.settle(owner, liquidity.shares_of(owner))
            liquidity.mint(owner, shares)
            pool.reserve_u, pool.reserve_v = new_u, new_v
            self._state.applied_compensations.add(compensation_id)
            self._refresh_virtual_price()
            logger.warning(
                "liquidity_restored",
                compensation_id=compensation_id,
                owner=owner,
                shares=shares,
                amount_u=out_u,
                amount_v=out_v,
            )
            return True

    # --- Fees ---

    def claim_fees(self, owner: str, credit_book: bool = True) -> TwoAmounts:
        """Pay out owner's accrued fees from the vault.

        Reserves are not touched. Claiming with nothing owed returns zeros.

        Raises:
            LedgerInvariantError: If the vault cannot cover what is owed
        """
        with self._state_lock:
            shares = self._state.liquidity.shares_of(owner)
            u, v = self._state.fees.claim(owner, shares)
            if u == 0 and v == 0:
                return TwoAmounts(amount_u=0, amount_v=0)
            if credit_book:
                token_u, token_v = self.tokens
                self._state.balances.credit(owner, token_u, u)
                self._state.balances.credit(owner, token_v, v)
            self._emit(FeeClaimedEvent(who=owner, ts=self._clock(), amount_u=u, amount_v=v))
            logger.info("fees_claimed", owner=owner, amount_u=u, amount_v=v)
            return TwoAmounts(amount_u=u, amount_v=v)

    def restore_fees(
        self, compensation_id: str, owner: str, amount_u: int, amount_v: int
    ) -> bool:
        """Undo a claim whose payout never reached the owner.

        Applied at most once per compensation_id.

        Returns:
            True if applied, False if compensation_id was already applied
        """
        with self._state_lock:
            if compensation_id in self._state.applied_compensations:
                logger.warning(
                    "compensation_already_applied",
                    compensation_id=compensation_id,
                    owner=owner,
                )
                return False
            self._state.fees.restore(owner, (amount_u, amount_v))
            self._state.applied_compensations.add(compensation_id)
            logger.warning(
                "fees_restored",
                compensation_id=compensation_id,
                owner=owner,
                amount_u=amount_u,
                amount_v=amount_v,
            )
            return True

    # --- Balance sync ---

    def sync_balance(self, owner: str, token: TokenId, external_e6: int) -> AccountBalance:
        """Align owner's available balance with an externally observed e6 balance.

        The reserved part is kept; available becomes external minus
        reserved, clamped at zero.

        Raises:
            InvalidInput: If external_e6 is negative
        """
        if external_e6 < 0:
            raise _rejected(
                InvalidInput("External balance must be non-negative"), "sync_balance", owner=owner
            )
        with self._state_lock:
            available = self._state.balances.sync_from_external(owner, token, external_e6)
            logger.info(
                "balance_synced",
                owner=owner,
                token=token.value,
                external=external_e6,
                available=available,
            )
            return self._state.balances.snapshot(owner, token)

    # --- Administration ---

    def reconcile(self, reserve_u: int, reserve_v: int) -> PoolInfo:
        """Overwrite reserves with externally observed values.

        Every holder's fees are settled at their old share count, then
        shares are rescaled so they total reserve_u + reserve_v. A pool with
        no holders keeps zero shares.
        """
        if reserve_u < 0 or reserve_v < 0:
            raise _rejected(InvalidInput("Reserves must be non-negative"), "reconcile")
        with self._state_lock:
            liquidity = self._state.liquidity
            pool = self._state.pool
            new_total = 0
            if liquidity.sum_of_positions() > 0:
                new_total = (S(reserve_u) + reserve_v).to_amount()

            self._settle_all()
            liquidity.rescale(new_total)
            old = (pool.reserve_u, pool.reserve_v)
            pool.reserve_u, pool.reserve_v = reserve_u, reserve_v
            self._refresh_virtual_price()
            logger.info(
                "pool_reconciled",
                old_reserve_u=old[0],
                old_reserve_v=old[1],
                reserve_u=reserve_u,
                reserve_v=reserve_v,
                total_shares=new_total,
            )
            return self.pool_info()

    def reconcile_from_internal(self) -> PoolInfo:
        """Rescale shares against the current internal reserves."""
        with self._state_lock:
            pool = self._state.pool
            return self.reconcile(pool.reserve_u, pool.reserve_v)

    def rescale_shares(self, new_total: int) -> None:
        """Rescale every position so shares total new_total."""
        if new_total < 0:
            raise _rejected(InvalidInput("Share total must be non-negative"), "rescale_shares")
        with self._state_lock:
            self._settle_all()
            self._state.liquidity.rescale(new_total)
            self._refresh_virtual_price()
