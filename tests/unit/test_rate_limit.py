"""Tests for the Redis fixed-window rate limiting middleware."""

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from src.fx_gateway.middleware.rate_limit import RateLimitMiddleware, client_ip, endpoint_group


def _request(method: str, path: str, headers: dict[str, str] | None = None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({
        "type": "http",
        "method": method,
        "path": path,
        "headers": raw_headers,
        "client": ("10.0.0.1", 5000),
        "query_string": b"",
    })


def _app(fake_redis, enabled: bool = True, limit: int = 2) -> FastAPI:
    app = FastAPI()

    async def redis_getter():
        return fake_redis

    app.add_middleware(
        RateLimitMiddleware,
        redis_getter=redis_getter,
        enabled=enabled,
        window_seconds=30,
        limits={"exchange": limit, "write": limit, "read": limit},
    )

    @app.get("/api/v1/rates")
    async def rates() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/v1/exchange")
    async def exchange() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


async def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestEndpointGroup:
    def test_exchange(self) -> None:
        assert endpoint_group(_request("POST", "/api/v1/exchange")) == "exchange"

    def test_write(self) -> None:
        assert endpoint_group(_request("PUT", "/api/v1/rates")) == "write"

    def test_read(self) -> None:
        assert endpoint_group(_request("GET", "/api/v1/log")) == "read"

    def test_health_is_unlimited(self) -> None:
        assert endpoint_group(_request("GET", "/health")) is None


class TestClientIp:
    def test_forwarded_for_first_hop_when_trusted(self) -> None:
        req = _request("GET", "/", {"X-Forwarded-For": "1.2.3.4, 10.0.0.2"})
        assert client_ip(req, trust_forwarded=True) == "1.2.3.4"

    def test_forwarded_for_ignored_by_default(self) -> None:
        req = _request("GET", "/", {"X-Forwarded-For": "1.2.3.4"})
        assert client_ip(req) == "10.0.0.1"

    def test_socket_peer(self) -> None:
        assert client_ip(_request("GET", "/")) == "10.0.0.1"


class TestRateLimitMiddleware:
    async def test_429_after_limit(self, fake_redis) -> None:
        async with await _client(_app(fake_redis)) as client:
            statuses = [(await client.get("/api/v1/rates")).status_code for _ in range(3)]
            resp = await client.get("/api/v1/rates")

        assert statuses == [200, 200, 429]
        assert resp.headers["Retry-After"] == "30"
        assert resp.json()["code"] == 9001

    async def test_counter_created_with_window_ttl(self, fake_redis) -> None:
        async with await _client(_app(fake_redis)) as client:
            await client.get("/api/v1/rates")

        (key,) = [k for k in fake_redis.data if k.startswith("ratelimit:")]
        assert key.endswith(":read")
        assert fake_redis.data[key] == "1"
        assert fake_redis.ttls[key] == 30

    async def test_later_requests_keep_the_window(self, fake_redis) -> None:
        async with await _client(_app(fake_redis, limit=5)) as client:
            for _ in range(3):
                await client.get("/api/v1/rates")

        (key,) = [k for k in fake_redis.data if k.startswith("ratelimit:")]
        assert fake_redis.data[key] == "3"
        assert fake_redis.ttls[key] == 30

    async def test_spoofed_forwarded_for_shares_the_peer_bucket(self, fake_redis) -> None:
        async with await _client(_app(fake_redis, limit=1)) as client:
            first = await client.get("/api/v1/rates", headers={"X-Forwarded-For": "1.1.1.1"})
            second = await client.get("/api/v1/rates", headers={"X-Forwarded-For": "2.2.2.2"})

        assert (first.status_code, second.status_code) == (200, 429)

    async def test_groups_counted_separately(self, fake_redis) -> None:
        async with await _client(_app(fake_redis, limit=1)) as client:
            first = await client.get("/api/v1/rates")
            second = await client.post("/api/v1/exchange")

        assert (first.status_code, second.status_code) == (200, 200)

    async def test_health_never_limited(self, fake_redis) -> None:
        async with await _client(_app(fake_redis, limit=1)) as client:
            statuses = {(await client.get("/health")).status_code for _ in range(5)}
        assert statuses == {200}

    async def test_fails_open_when_redis_down(self, fake_redis, caplog) -> None:
        fake_redis.down = True
        async with await _client(_app(fake_redis, limit=1)) as client:
            statuses = [(await client.get("/api/v1/rates")).status_code for _ in range(3)]

        assert statuses == [200, 200, 200]
        assert "Rate limiter unavailable" in caplog.text

    async def test_disabled(self, fake_redis) -> None:
        async with await _client(_app(fake_redis, enabled=False, limit=1)) as client:
            statuses = [(await client.get("/api/v1/rates")).status_code for _ in range(3)]

        assert statuses == [200, 200, 200]
        assert fake_redis.data == {}
