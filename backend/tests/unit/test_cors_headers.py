from starlette.requests import Request

from nadiki_dashboard.middleware.cors import (
    CorsConfig,
    RouteCors,
    cors_headers,
    is_origin_allowed,
    preflight_response,
)


def test_defaults_with_wildcard_origin():
    headers = cors_headers("https://a.example")
    assert headers == {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Api-Key, X-Requested-With",
        "Access-Control-Expose-Headers": "X-RateLimit-Limit, X-RateLimit-Remaining, X-RateLimit-Reset",
        "Access-Control-Max-Age": "86400",
    }


def test_listed_origin_is_echoed():
    cfg = CorsConfig(allowed_origins=["https://a.example", "https://b.example"])
    headers = cors_headers("https://b.example", cfg)
    assert headers["Access-Control-Allow-Origin"] == "https://b.example"
    assert headers["Vary"] == "Origin"


def test_unlisted_or_missing_origin_gets_no_allow_origin():
    cfg = CorsConfig(allowed_origins=["https://a.example"])
    assert "Access-Control-Allow-Origin" not in cors_headers("https://evil.example", cfg)
    assert "Access-Control-Allow-Origin" not in cors_headers(None, cfg)


def test_partial_config_keeps_other_defaults():
    cfg = CorsConfig(allowed_methods=["GET", "OPTIONS"], credentials=True)
    headers = cors_headers(None, cfg)
    assert headers["Access-Control-Allow-Methods"] == "GET, OPTIONS"
    assert headers["Access-Control-Max-Age"] == "86400"
    assert headers["Access-Control-Allow-Credentials"] == "true"


def test_is_origin_allowed():
    assert is_origin_allowed(None, "*")
    assert is_origin_allowed("https://a.example", ["https://a.example"])
    assert not is_origin_allowed("https://a.example", ["https://b.example"])
    assert not is_origin_allowed(None, ["https://a.example"])


def test_preflight_is_204_with_headers():
    request = Request({
        "type": "http",
        "method": "OPTIONS",
        "path": "/",
        "headers": [(b"origin", b"https://a.example")],
    })
    response = preflight_response(request, CorsConfig(allowed_origins=["https://a.example"]))
    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "https://a.example"


def test_route_cors_reads_config_lazily():
    calls = []

    def factory() -> CorsConfig:
        calls.append(1)
        return CorsConfig(max_age=None)

    cors = RouteCors(factory)
    assert cors.config().max_age is None
    assert cors.config().max_age is None
    assert len(calls) == 2
    assert RouteCors().config() == CorsConfig()
