"""End-to-end tests for the HTTP routes and their rate limiting.

Clients are told apart with ``X-Forwarded-For`` (trusted in these apps)
because the test client always connects from the same address.
"""

import pytest
from fastapi.testclient import TestClient

from rateguard.core.app_factory import create_app
from rateguard.core.errors import InvalidConfigError

CLIENT_A = {"X-Forwarded-For": "1.2.3.4"}
CLIENT_B = {"X-Forwarded-For": "5.6.7.8"}


@pytest.fixture
def make_client(settings_factory, clock):
    def _make(**kwargs) -> TestClient:
        return TestClient(create_app(settings_factory(**kwargs), clock=clock))

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def test_home_returns_hello_world(client: TestClient) -> None:
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json() == "Hello World"


def test_login_admits_five_then_rejects(client: TestClient, clock) -> None:
    for _ in range(5):
        resp = client.get("/login", headers=CLIENT_A)
        assert resp.status_code == 200
        assert resp.json() == "Imaginary login form"
        clock.advance(10)

    resp = client.get("/login", headers=CLIENT_A)

    assert resp.status_code == 429
    error = resp.json()["error"]
    assert error["code"] == "rate_limited"
    assert error["message"] == "Too many login requests"
    assert error["details"]["limit"] == 5
    assert "request_id" in error


def test_rejection_carries_rate_limit_headers(client: TestClient) -> None:
    for _ in range(5):
        client.get("/login", headers=CLIENT_A)

    resp = client.get("/login", headers=CLIENT_A)

    assert resp.status_code == 429
    assert resp.headers["X-RateLimit-Limit"] == "5"
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert int(resp.headers["Retry-After"]) == 900
    assert "X-RateLimit-Reset" in resp.headers
    assert resp.headers.get("X-Request-ID")


def test_rejection_headers_can_be_disabled(make_client) -> None:
    client = make_client(include_headers=False)
    for _ in range(5):
        client.get("/login", headers=CLIENT_A)

    resp = client.get("/login", headers=CLIENT_A)

    assert resp.status_code == 429
    assert "Retry-After" not in resp.headers
    assert "X-RateLimit-Limit" not in resp.headers


def test_login_admits_again_after_window(client: TestClient, clock) -> None:
    for _ in range(6):
        client.get("/login", headers=CLIENT_A)

    clock.advance(16 * 60)
    resp = client.get("/login", headers=CLIENT_A)

    assert resp.status_code == 200
    counter = client.app.state.rate_limit_guards["login"].limiter.get("1.2.3.4")
    assert counter.count == 1


def test_exhausted_login_quota_does_not_block_home(client: TestClient) -> None:
    for _ in range(6):
        client.get("/login", headers=CLIENT_A)

    resp = client.get("/", headers=CLIENT_A)

    assert resp.status_code == 200


def test_other_clients_unaffected(client: TestClient) -> None:
    for _ in range(6):
        client.get("/login", headers=CLIENT_A)

    statuses = [client.get("/login", headers=CLIENT_B).status_code for _ in range(5)]

    assert statuses == [200] * 5


def test_general_limiter_off_by_default(client: TestClient) -> None:
    statuses = [client.get("/", headers=CLIENT_A).status_code for _ in range(20)]

    assert statuses == [200] * 20


def test_global_scope_limits_every_route(make_client) -> None:
    client = make_client(scope="global")

    statuses = [client.get("/", headers=CLIENT_A).status_code for _ in range(6)]

    assert statuses == [200] * 5 + [429]
    resp = client.get("/", headers=CLIENT_A)
    assert resp.json()["error"]["message"] == "Too many requests, please try again later."


def test_global_scope_and_login_limiter_both_apply(make_client) -> None:
    client = make_client(scope="global", general={"max_requests": 3})

    statuses = [client.get("/login", headers=CLIENT_A).status_code for _ in range(4)]

    # General limiter (3) trips before the login limiter (5)
    assert statuses == [200, 200, 200, 429]
    resp = client.get("/login", headers=CLIENT_A)
    assert resp.json()["error"]["message"] == "Too many requests, please try again later."


def test_global_scope_login_limiter_trips_first(make_client) -> None:
    client = make_client(scope="global", general={"max_requests": 50}, login={"max_requests": 2})

    statuses = [client.get("/login", headers=CLIENT_A).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    assert client.get("/login", headers=CLIENT_A).json()["error"]["message"] == "Too many login requests"
    assert client.get("/", headers=CLIENT_A).status_code == 200


def test_health_is_never_limited(make_client) -> None:
    client = make_client(scope="global", general={"max_requests": 1})

    statuses = [client.get("/health", headers=CLIENT_A).status_code for _ in range(5)]

    assert statuses == [200] * 5


def test_health_reports_tracked_keys(client: TestClient) -> None:
    client.get("/login", headers=CLIENT_A)
    client.get("/login", headers=CLIENT_B)

    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["tracked_keys"] == {"general": 0, "login": 2}


def test_invalid_limiter_config_prevents_app_creation(settings_factory) -> None:
    with pytest.raises(InvalidConfigError):
        create_app(settings_factory(login={"max_requests": 0}))


@pytest.mark.parametrize("window", ["nan", "inf"])
def test_non_finite_window_prevents_app_creation(settings_factory, window) -> None:
    with pytest.raises(InvalidConfigError) as exc_info:
        create_app(settings_factory(login={"window_seconds": window}))

    assert exc_info.value.code == "invalid_window_duration"


def test_lifespan_starts_and_stops_sweeper(settings_factory, clock) -> None:
    settings = settings_factory()
    settings.app.sweep_interval_seconds = 3600
    app = create_app(settings, clock=clock)

    with TestClient(app) as client:
        assert client.get("/login", headers=CLIENT_A).status_code == 200
