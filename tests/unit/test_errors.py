"""Tests for fx_common.errors and fx_common.response."""

from types import SimpleNamespace

from src.fx_common.errors import (
    AccountNotFoundError,
    AppError,
    CacheUnavailableError,
    CompensationFailedError,
    CurrencyUnknownError,
    DuplicateCurrencyAccountError,
    InvalidRateError,
    PairNotQuotedError,
    RateLimitError,
    RateNotFoundError,
    StoreUnavailableError,
    TransferError,
)
from src.fx_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_custom_http_status(self) -> None:
        err = AppError(code=1001, message="Account not found", http_status=404)
        assert err.http_status == 404

    def test_is_exception(self) -> None:
        err = AppError(code=1001, message="test")
        assert isinstance(err, Exception)
        assert str(err) == "test"


class TestSpecificErrors:
    def test_account_not_found(self) -> None:
        err = AccountNotFoundError(7)
        assert err.code == 1001
        assert err.http_status == 404
        assert "7" in err.message

    def test_duplicate_currency_account(self) -> None:
        err = DuplicateCurrencyAccountError("EUR", [3, 9])
        assert err.code == 1002
        assert err.http_status == 500
        assert "EUR" in err.message

    def test_rate_not_found(self) -> None:
        err = RateNotFoundError("GBP")
        assert err.code == 2001
        assert err.message == "No exchange rates for base currency GBP"

    def test_currency_unknown(self) -> None:
        err = CurrencyUnknownError("GBP")
        assert err.code == 2002
        assert err.http_status == 404

    def test_pair_not_quoted(self) -> None:
        err = PairNotQuotedError("EUR", "USD")
        assert err.code == 2003
        assert err.message == "Exchange rate not available for EUR/USD"

    def test_invalid_rate(self) -> None:
        err = InvalidRateError("must be positive")
        assert err.code == 2004
        assert err.http_status == 422

    def test_compensation_failed(self) -> None:
        err = CompensationFailedError("ex-1")
        assert err.code == 3001
        assert err.http_status == 500
        assert "ex-1" in err.message

    def test_transfer_error(self) -> None:
        err = TransferError("timeout")
        assert err.code == 3002
        assert err.http_status == 502

    def test_rate_limit(self) -> None:
        err = RateLimitError()
        assert err.code == 9001
        assert err.http_status == 429

    def test_infrastructure_errors_are_503(self) -> None:
        assert StoreUnavailableError("down").http_status == 503
        assert CacheUnavailableError("down").http_status == 503


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": "abc"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "abc"}

    def test_error(self) -> None:
        resp = error_response(2001, "No exchange rates for base currency GBP")
        assert resp.code == 2001
        assert resp.data is None

    def test_error_with_data(self) -> None:
        resp = error_response(3000, "declined", {"ok": False})
        assert resp.data == {"ok": False}

    def test_serialization(self) -> None:
        d = success_response({"rate": "1104"}).model_dump()
        assert set(d) == {"code", "message", "data", "timestamp", "request_id"}

    def test_request_ids_differ(self) -> None:
        assert ApiResponse().request_id != ApiResponse().request_id

    def test_request_id_taken_from_request_state(self) -> None:
        request = SimpleNamespace(state=SimpleNamespace(request_id="req_fromstate01"))
        assert success_response(None, request).request_id == "req_fromstate01"
        assert error_response(1001, "missing", request=request).request_id == "req_fromstate01"

    def test_request_without_id_gets_a_fresh_one(self) -> None:
        request = SimpleNamespace(state=SimpleNamespace())
        assert success_response(None, request).request_id.startswith("req_")
