"""Tests for guards, guard chains and client key derivation."""

import pytest
from starlette.requests import Request

from rateguard.adapters.rate_limit import InMemoryFixedWindowRateLimiter, configure
from rateguard.core.errors import InvalidConfigError, InvalidKeyError
from rateguard.core.rate_limit import (
    GENERAL,
    LOGIN,
    GuardChain,
    GuardRegistry,
    RateLimitGuard,
    build_guards,
    client_key_from_request,
)


def _request(client: tuple[str, int] | None = ("1.2.3.4", 50000), headers: dict | None = None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/login",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def _guard(name: str, limit: int, clock) -> RateLimitGuard:
    limiter = InMemoryFixedWindowRateLimiter(configure(900, limit, f"{name} exhausted"), clock=clock)
    return RateLimitGuard(name=name, limiter=limiter)


class TestClientKey:
    def test_uses_remote_address(self) -> None:
        assert client_key_from_request(_request()) == "1.2.3.4"

    def test_ignores_forwarded_for_by_default(self) -> None:
        request = _request(headers={"X-Forwarded-For": "9.9.9.9"})
        assert client_key_from_request(request) == "1.2.3.4"

    def test_uses_first_forwarded_hop_when_trusted(self) -> None:
        request = _request(headers={"X-Forwarded-For": " 9.9.9.9 , 10.0.0.1"})
        assert client_key_from_request(request, trust_forwarded_for=True) == "9.9.9.9"

    def test_falls_back_to_remote_address_on_empty_header(self) -> None:
        request = _request(headers={"X-Forwarded-For": " , "})
        assert client_key_from_request(request, trust_forwarded_for=True) == "1.2.3.4"

    def test_missing_client_fails_closed(self) -> None:
        with pytest.raises(InvalidKeyError) as exc_info:
            client_key_from_request(_request(client=None))

        assert exc_info.value.code == "client_key_missing"


class TestGuardChain:
    def test_admitted_only_when_every_guard_admits(self, clock) -> None:
        general = _guard(GENERAL, 10, clock)
        login = _guard(LOGIN, 2, clock)
        chain = GuardChain([general, login])
        request = _request()

        assert chain.evaluate(request).admitted is True
        assert chain.evaluate(request).admitted is True

        decision = chain.evaluate(request)
        assert decision.admitted is False
        assert decision.message == "login exhausted"

    def test_short_circuits_on_first_rejection(self, clock) -> None:
        strict = _guard("strict", 1, clock)
        loose = _guard("loose", 10, clock)
        chain = GuardChain([strict, loose])
        request = _request()

        chain.evaluate(request)
        assert chain.evaluate(request).rejected is True

        # The loose guard only saw the first request
        assert loose.limiter.get("1.2.3.4").count == 1

    def test_order_does_not_change_outcome(self, clock) -> None:
        outcomes = []
        for order in ((0, 1), (1, 0)):
            guards = [_guard("a", 3, clock), _guard("b", 5, clock)]
            chain = GuardChain(guards[i] for i in order)
            outcomes.append([chain.evaluate(_request()).admitted for _ in range(6)])

        assert outcomes[0] == outcomes[1] == [True, True, True, False, False, False]

    def test_empty_chain_admits(self) -> None:
        assert GuardChain([]).evaluate(_request()).admitted is True

    def test_chains_compose(self, clock) -> None:
        inner = GuardChain([_guard("a", 5, clock)])
        outer = GuardChain([inner, _guard("b", 1, clock)])

        assert outer.evaluate(_request()).admitted is True
        assert outer.evaluate(_request()).admitted is False


class TestRegistry:
    def test_build_guards_uses_settings(self, settings_factory, clock) -> None:
        settings = settings_factory(login={"max_requests": 2, "message": "slow down"})

        registry = build_guards(settings, clock=clock)

        assert GENERAL in registry and LOGIN in registry
        assert registry[LOGIN].limiter.config.max_requests == 2
        assert registry[LOGIN].limiter.config.message == "slow down"
        assert registry[GENERAL].limiter.config.window_seconds == 900.0
        assert registry[GENERAL].limiter.config.message == "Too many requests, please try again later."
        assert registry[GENERAL].limiter is not registry[LOGIN].limiter

    def test_build_guards_applies_forwarded_for_setting(self, settings_factory, clock) -> None:
        registry = build_guards(settings_factory(trust_forwarded_for=True), clock=clock)
        request = _request(headers={"X-Forwarded-For": "5.6.7.8"})

        registry[LOGIN].evaluate(request)

        assert registry[LOGIN].limiter.get("5.6.7.8") is not None

    @pytest.mark.parametrize(
        "override",
        [{"window_seconds": 0}, {"max_requests": 0}, {"max_requests": -1}],
    )
    def test_build_guards_rejects_invalid_config(self, settings_factory, override) -> None:
        with pytest.raises(InvalidConfigError):
            build_guards(settings_factory(login=override))

    def test_duplicate_names_rejected(self, clock) -> None:
        registry = GuardRegistry([_guard("a", 1, clock)])

        with pytest.raises(ValueError):
            registry.add(_guard("a", 1, clock))

    def test_chain_by_name(self, clock) -> None:
        registry = GuardRegistry([_guard("a", 5, clock), _guard("b", 1, clock)])
        chain = registry.chain("a", "b")

        assert chain.evaluate(_request()).admitted is True
        assert chain.evaluate(_request()).admitted is False
        assert len(registry.limiters) == 2
