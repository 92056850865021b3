"""TransferCoordinator — executes one currency exchange end to end.

Protocol:
  RATE_LOOKUP      rate row for base, quote for counter; counter_amount = base_amount * rate
  FUNDS_CHECK      internal base/counter accounts; counter balance must cover counter_amount
  DEBIT_CLIENT     client base account → internal base account (base_amount)
  CREDIT_CLIENT    internal counter account → client counter account (counter_amount);
                   on failure refund base_amount to the client (compensation)
  SETTLE_INTERNAL  internal base += base_amount, internal counter -= counter_amount and the
                   ok=True log entry, all in one transaction
  LOGGED           every other outcome is appended to the TransactionLog on its own;
                   either way each attempt is logged exactly once

Business failures (no rate, no funds, failed leg) end in ok=False with `obs` set
and are returned, not raised. Any exception from the transfer rail other
than cancellation counts as a failed leg, so the refund always runs.
Store/cache outages outside the legs propagate. A failed
compensation is logged like any other attempt and then raised as
CompensationFailedError: the client has been debited without a credit.

Both internal accounts stay locked from FUNDS_CHECK to SETTLE_INTERNAL, so
concurrent exchanges on the same currency cannot overdraw the counter account.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fx_account.application.service import AccountStore
from src.fx_common.datetime_utils import utc_now
from src.fx_common.errors import (
    AccountNotFoundError,
    CompensationFailedError,
    PairNotQuotedError,
    RateNotFoundError,
    TransferError,
)
from src.fx_common.id_generator import generate_id
from src.fx_exchange.application.transaction_log import TransactionLog
from src.fx_exchange.domain.models import (
    OBS_COMPENSATION_FAILED,
    OBS_CREDIT_FAILED,
    OBS_DEBIT_FAILED,
    OBS_INSUFFICIENT_FUNDS,
    ExchangeRequest,
    ExchangeResult,
    ExchangeStage,
)
from src.fx_exchange.domain.transfer import TransferExecutorProtocol
from src.fx_rates.application.service import RateStore

logger = logging.getLogger(__name__)


@dataclass
class _Outcome:
    stage: ExchangeStage
    exchange_rate: Decimal | None = None
    counter_amount: Decimal = Decimal(0)
    ok: bool = False
    obs: str | None = None
    compensation_failed: bool = False
    logged: ExchangeResult | None = None  # set when written together with the settlement


class TransferCoordinator:
    def __init__(
        self,
        rates: RateStore,
        accounts: AccountStore,
        log: TransactionLog,
        transfers: TransferExecutorProtocol,
        transfer_timeout: float = settings.TRANSFER_TIMEOUT_SECONDS,
        id_factory: Callable[[], str] = generate_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._rates = rates
        self._accounts = accounts
        self._log = log
        self._transfers = transfers
        self._transfer_timeout = transfer_timeout
        self._id_factory = id_factory
        self._clock = clock

    async def exchange(self, request: ExchangeRequest) -> ExchangeResult:
        exchange_id = self._id_factory()
        outcome = await self._execute(exchange_id, request)

        result = outcome.logged
        if result is None:
            result = self._result(exchange_id, request, outcome)
            await self._log.append(result)

        if outcome.compensation_failed:
            logger.critical(
                "Exchange %s: refund of %s %s to client account %s FAILED; manual reconciliation required",
                exchange_id, request.base_amount, request.base_currency, request.base_account_id,
            )
            raise CompensationFailedError(exchange_id)
        if result.ok:
            logger.info(
                "Exchange %s ok: %s %s → %s %s @ %s",
                exchange_id, request.base_amount, request.base_currency,
                result.counter_amount, request.counter_currency, result.exchange_rate,
            )
        else:
            logger.info(
                "Exchange %s declined at %s: %s", exchange_id, outcome.stage.value, result.obs
            )
        return result

    async def _execute(self, exchange_id: str, request: ExchangeRequest) -> _Outcome:
        base, counter = request.base_currency, request.counter_currency

        # RATE_LOOKUP
        try:
            row = await self._rates.get_rate(base)
        except RateNotFoundError as exc:
            return _Outcome(ExchangeStage.RATE_LOOKUP, obs=exc.message)
        rate = row.rates.get(counter)
        if rate is None:
            return _Outcome(ExchangeStage.RATE_LOOKUP, obs=PairNotQuotedError(base, counter).message)
        # Not rounded: the full-precision product is what the client is owed
        counter_amount = request.base_amount * rate

        # FUNDS_CHECK
        try:
            base_account = await self._accounts.get_account_by_currency(base)
            counter_account = await self._accounts.get_account_by_currency(counter)
        except AccountNotFoundError as exc:
            return _Outcome(ExchangeStage.FUNDS_CHECK, rate, obs=exc.message)

        async with self._accounts.lock(base_account.id, counter_account.id):
            counter_account = await self._accounts.load_account(counter_account.id)
            if counter_account.balance < counter_amount:
                return _Outcome(ExchangeStage.FUNDS_CHECK, rate, obs=OBS_INSUFFICIENT_FUNDS)

            # DEBIT_CLIENT
            debited = await self._transfer(
                request.base_account_id, str(base_account.id),
                request.base_amount, f"{exchange_id}:debit",
            )
            if not debited:
                return _Outcome(ExchangeStage.DEBIT_CLIENT, rate, obs=OBS_DEBIT_FAILED)

            # CREDIT_CLIENT
            credited = await self._transfer(
                str(counter_account.id), request.counter_account_id,
                counter_amount, f"{exchange_id}:credit",
            )
            if not credited:
                refunded = await self._transfer(
                    str(base_account.id), request.base_account_id,
                    request.base_amount, f"{exchange_id}:refund",
                )
                if not refunded:
                    return _Outcome(
                        ExchangeStage.CREDIT_CLIENT, rate,
                        obs=OBS_COMPENSATION_FAILED, compensation_failed=True,
                    )
                return _Outcome(ExchangeStage.CREDIT_CLIENT, rate, obs=OBS_CREDIT_FAILED)

            # SETTLE_INTERNAL
            settled = _Outcome(ExchangeStage.SETTLE_INTERNAL, rate, counter_amount, ok=True)
            result = self._result(exchange_id, request, settled)

            async def log_settlement(db: AsyncSession) -> None:
                await self._log.append_in(db, result)

            await self._accounts.apply_adjustments(
                {base_account.id: request.base_amount, counter_account.id: -counter_amount},
                in_transaction=log_settlement,
            )
            settled.logged = result

        return settled

    def _result(
        self, exchange_id: str, request: ExchangeRequest, outcome: _Outcome
    ) -> ExchangeResult:
        return ExchangeResult(
            id=exchange_id,
            timestamp=self._clock(),
            ok=outcome.ok,
            request=request,
            exchange_rate=outcome.exchange_rate,
            counter_amount=outcome.counter_amount,
            obs=outcome.obs,
        )

    async def _transfer(
        self, from_account: str, to_account: str, amount: Decimal, token: str
    ) -> bool:
        """One external leg. A timeout or any rail error counts as a failed leg; cancellation propagates."""
        try:
            return await asyncio.wait_for(
                self._transfers.transfer(from_account, to_account, amount, token),
                timeout=self._transfer_timeout,
            )
        except TimeoutError:
            logger.warning(
                "Transfer %s timed out after %.1fs", token, self._transfer_timeout
            )
            return False
        except TransferError as exc:
            logger.warning("Transfer %s failed: %s", token, exc.message)
            return False
        except Exception:
            logger.exception("Transfer %s raised an unexpected error", token)
            return False
