"""Transfer executor — the external payment leg of an exchange.

The coordinator only depends on TransferExecutorProtocol. A real payment rail
can be plugged in without touching the coordinator; it must be safe to call
twice with the same token (idempotent) and may fail by returning False or by
raising TransferError. The coordinator bounds every call with a timeout.
"""

import asyncio
import logging
import random
from collections import OrderedDict
from decimal import Decimal
from typing import Protocol

logger = logging.getLogger(__name__)


class TransferExecutorProtocol(Protocol):
    async def transfer(
        self, from_account: str, to_account: str, amount: Decimal, token: str
    ) -> bool: ...


class SimulatedTransferExecutor:
    """Stand-in for the payment rail: waits a random delay, then succeeds.

    Tokens already executed are acknowledged immediately without a second transfer.
    Only the most recent `max_tokens` tokens are remembered; a coordinator never
    replays a token after its exchange has finished.
    """

    def __init__(
        self, min_delay_ms: int = 200, max_delay_ms: int = 400, max_tokens: int = 10_000
    ) -> None:
        if min_delay_ms < 0 or max_delay_ms < min_delay_ms:
            raise ValueError(
                f"Invalid delay range: {min_delay_ms}..{max_delay_ms} ms"
            )
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be positive, got {max_tokens}")
        self._min_delay_ms = min_delay_ms
        self._max_delay_ms = max_delay_ms
        self._max_tokens = max_tokens
        self._completed: OrderedDict[str, None] = OrderedDict()

    async def transfer(
        self, from_account: str, to_account: str, amount: Decimal, token: str
    ) -> bool:
        if token in self._completed:
            self._completed.move_to_end(token)
            logger.info("Transfer idempotency hit: token=%s", token)
            return True
        delay_ms = random.uniform(self._min_delay_ms, self._max_delay_ms)
        await asyncio.sleep(delay_ms / 1000)
        self._completed[token] = None
        if len(self._completed) > self._max_tokens:
            self._completed.popitem(last=False)
        logger.debug(
            "Simulated transfer %s → %s amount=%s (%.0fms) token=%s",
            from_account, to_account, amount, delay_ms, token,
        )
        return True
