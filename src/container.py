"""Process wiring — one Container per process, built in the FastAPI lifespan.

Routers resolve it with `Depends(get_container)`; tests put a container
built from fakes on `app.state.container` instead.
"""

from dataclasses import dataclass

from fastapi import Request

from config.settings import settings
from src.fx_account.application.service import AccountStore
from src.fx_common.cache import CacheAside, CacheBackend
from src.fx_common.database import SessionFactory
from src.fx_common.errors import InternalError
from src.fx_exchange.application.coordinator import TransferCoordinator
from src.fx_exchange.application.transaction_log import TransactionLog
from src.fx_exchange.domain.transfer import SimulatedTransferExecutor, TransferExecutorProtocol
from src.fx_rates.application.service import RateStore


@dataclass
class Container:
    accounts: AccountStore
    rates: RateStore
    log: TransactionLog
    coordinator: TransferCoordinator


def build_container(
    session_factory: SessionFactory,
    cache_backend: CacheBackend,
    transfers: TransferExecutorProtocol | None = None,
) -> Container:
    accounts = AccountStore(session_factory, CacheAside(cache_backend, "accounts"))
    rates = RateStore(session_factory, CacheAside(cache_backend, "rates"))
    log = TransactionLog(session_factory)
    executor = transfers or SimulatedTransferExecutor(
        settings.TRANSFER_MIN_DELAY_MS, settings.TRANSFER_MAX_DELAY_MS
    )
    coordinator = TransferCoordinator(rates, accounts, log, executor)
    return Container(accounts=accounts, rates=rates, log=log, coordinator=coordinator)


def get_container(request: Request) -> Container:
    """FastAPI dependency: the process-wide Container."""
    container: Container | None = getattr(request.app.state, "container", None)
    if container is None:
        raise InternalError("Service container not initialised")
    return container
