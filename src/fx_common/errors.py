"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Account
  2xxx: Rate
  3xxx: Exchange / transfer
  9xxx: System / infrastructure

Business outcomes of an exchange (insufficient funds, a failed transfer leg)
are NOT raised; they are recorded on the ExchangeResult. Only the fatal
CompensationFailedError escapes the coordinator.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Account ---

class AccountNotFoundError(AppError):
    def __init__(self, key: object) -> None:
        super().__init__(1001, f"Account not found: {key}", 404)


class DuplicateCurrencyAccountError(AppError):
    def __init__(self, currency: str, account_ids: list[int]) -> None:
        super().__init__(
            1002,
            f"More than one internal account for currency {currency}: {account_ids}",
            500,
        )


# --- 2xxx: Rate ---

class RateNotFoundError(AppError):
    def __init__(self, base_currency: str) -> None:
        super().__init__(2001, f"No exchange rates for base currency {base_currency}", 404)


class CurrencyUnknownError(AppError):
    def __init__(self, currency: str) -> None:
        super().__init__(2002, f"Unknown currency: {currency}", 404)


class PairNotQuotedError(AppError):
    def __init__(self, base_currency: str, counter_currency: str) -> None:
        super().__init__(
            2003,
            f"Exchange rate not available for {base_currency}/{counter_currency}",
            404,
        )


class InvalidRateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2004, f"Invalid rate: {detail}", 422)


# --- 3xxx: Exchange ---

EXCHANGE_DECLINED_CODE = 3000


class CompensationFailedError(AppError):
    """Leg 1 moved client funds, leg 2 failed and the refund failed too."""

    def __init__(self, exchange_id: str) -> None:
        super().__init__(
            3001,
            f"Compensation failed for exchange {exchange_id}; manual reconciliation required",
            500,
        )


class TransferError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3002, f"Transfer failed: {detail}", 502)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class StoreUnavailableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Store unavailable: {detail}", 503)


class CacheUnavailableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9004, f"Cache unavailable: {detail}", 503)
