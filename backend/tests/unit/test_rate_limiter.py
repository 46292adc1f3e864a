import pytest
from starlette.requests import Request

from nadiki_dashboard.errors import ApiError
from nadiki_dashboard.middleware.rate_limit import RateLimiter, client_identifier, redact_identifier


class FakeClock:
    def __init__(self, t: float = 1000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


def _request(**headers) -> Request:
    raw = [(k.replace("_", "-").encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)

    results = [limiter.check("k") for _ in range(4)]
    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert all(r.reset_time == 1060.0 for r in results)
    assert results[0].headers() == {
        "X-RateLimit-Limit": "3",
        "X-RateLimit-Remaining": "2",
        "X-RateLimit-Reset": "1060",
    }


def test_window_resets_after_expiry():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    assert limiter.check("k").allowed
    assert not limiter.check("k").allowed

    clock.t = 1061.0
    result = limiter.check("k")
    assert result.allowed
    assert result.reset_time == 1121.0


def test_clients_are_counted_separately():
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    assert limiter.check("a").allowed
    assert limiter.check("b").allowed
    assert not limiter.check("a").allowed


def test_expired_entries_are_purged():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
    limiter.check("old")
    clock.t += 100
    assert limiter.cleanup_expired() == 1
    assert len(limiter) == 0


def test_periodic_purge_runs_on_check():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
    limiter.check("old")
    clock.t += 301
    limiter.check("new")
    assert len(limiter) == 1


@pytest.mark.parametrize("headers, expected", [
    ({"x_api_key": "abc", "x_forwarded_for": "1.2.3.4"}, "api_key:abc"),
    ({"x_forwarded_for": "1.2.3.4, 5.6.7.8"}, "ip:1.2.3.4"),
    ({"x_real_ip": "9.9.9.9"}, "ip:9.9.9.9"),
    ({}, "ip:unknown"),
])
def test_client_identifier(headers, expected):
    assert client_identifier(_request(**headers)) == expected


def test_enforce_raises_429_with_retry_after():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.enforce(_request(x_real_ip="10.0.0.1"))

    clock.t += 20
    with pytest.raises(ApiError) as exc:
        limiter.enforce(_request(x_real_ip="10.0.0.1"))

    err = exc.value
    assert err.status_code == 429
    assert err.error == "Rate limit exceeded"
    assert err.details == (
        "You have exceeded the rate limit of 1 requests per 60 seconds. Please try again later."
    )
    assert err.extra == {"retryAfter": 40}
    assert err.headers["Retry-After"] == "40"
    assert err.headers["X-RateLimit-Remaining"] == "0"


def test_rejection_log_never_contains_the_api_key(caplog):
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    limiter.enforce(_request(x_api_key="super-secret-key"))

    with caplog.at_level("WARNING", logger="nadiki_dashboard.middleware.rate_limit"):
        with pytest.raises(ApiError):
            limiter.enforce(_request(x_api_key="super-secret-key"))

    assert "rate limit exceeded" in caplog.text
    assert "super-secret-key" not in caplog.text
    assert redact_identifier("api_key:super-secret-key") in caplog.text


def test_redact_identifier_keeps_ip_form():
    assert redact_identifier("ip:10.0.0.1") == "ip:10.0.0.1"
    digest = redact_identifier("api_key:abc")
    assert digest.startswith("api_key:sha256:")
    assert len(digest.partition("sha256:")[2]) == 12
    assert redact_identifier("api_key:abc") == digest != redact_identifier("api_key:abd")
