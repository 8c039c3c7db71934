"""
Digital Ledger Backend: Rate Limiter Tests
===========================================

What we test:
    ✅ Fixed-window counting, expiry, decrement, reset and sweep in the store
    ✅ Segment-wise prefix matching of policies
    ✅ Login: 5 failures allowed, the 6th rejected; successes are not counted
    ✅ Windows reopen after 15 minutes (fake clock, no sleeping)
    ✅ Health checks bypass the general limiter
    ✅ Login and password change requests also spend the general budget
    ✅ RateLimit-* and Retry-After headers, including on failed logins
"""

import pytest
from httpx import ASGITransport, AsyncClient

from ledger.config import Settings
from ledger.security.rate_limit import (
    GENERAL,
    LOGIN,
    PASSWORD_CHANGE,
    InMemoryRateLimitStore,
    RateLimitPolicy,
    default_policies,
)

STUB_PASSWORD = "correct-horse"
LOGIN_LIMIT_MESSAGE = "Too many login attempts from this IP, please try again after 15 minutes."
PASSWORD_CHANGE_LIMIT_MESSAGE = "Too many password change attempts, please try again later."


def make_policy(**overrides) -> RateLimitPolicy:
    fields = dict(
        route_class="test",
        path_prefix="/api/test",
        window_seconds=60,
        max_requests=2,
        message="slow down",
    )
    fields.update(overrides)
    return RateLimitPolicy(**fields)


class TestRateLimitPolicy:
    def test_prefix_matches_whole_segments(self):
        policy = make_policy(path_prefix="/api/auth/login")
        assert policy.applies_to("/api/auth/login")
        assert policy.applies_to("/api/auth/login/callback")
        assert not policy.applies_to("/api/auth/loginx")
        assert not policy.applies_to("/api/auth")

    def test_skip_paths(self):
        policy = make_policy(path_prefix="/api/", skip_paths=frozenset({"/api/health"}))
        assert policy.applies_to("/api/entries")
        assert not policy.applies_to("/api/health")

    def test_default_policies_order_and_budgets(self):
        policies = default_policies(Settings(_env_file=None))
        assert [p.route_class for p in policies] == [GENERAL, LOGIN, "registration", "password-change"]
        assert [p.max_requests for p in policies] == [1000, 5, 3, 5]
        assert [p.window_seconds for p in policies] == [900, 900, 3600, 900]
        assert [p.route_class for p in policies if p.skip_successful] == [LOGIN]


class TestInMemoryRateLimitStore:
    def setup_method(self):
        self.policy = make_policy()

    @pytest.mark.asyncio
    async def test_hits_accumulate_within_window(self, rate_limit_store):
        await rate_limit_store.hit(self.policy, "1.2.3.4")
        record = await rate_limit_store.hit(self.policy, "1.2.3.4")
        assert record.count == 2

    @pytest.mark.asyncio
    async def test_partitions_are_independent(self, rate_limit_store):
        await rate_limit_store.hit(self.policy, "1.1.1.1")
        record = await rate_limit_store.hit(self.policy, "2.2.2.2")
        assert record.count == 1
        other = await rate_limit_store.hit(make_policy(route_class="other"), "1.1.1.1")
        assert other.count == 1

    @pytest.mark.asyncio
    async def test_window_expires_at_reset_time(self, rate_limit_store, clock):
        first = await rate_limit_store.hit(self.policy, "k")
        clock.advance(59.9)
        assert (await rate_limit_store.hit(self.policy, "k")).count == 2
        clock.now = first.reset_at
        record = await rate_limit_store.hit(self.policy, "k")
        assert record.count == 1
        assert record.window_start == clock.now

    @pytest.mark.asyncio
    async def test_decrement_never_goes_negative(self, rate_limit_store):
        await rate_limit_store.hit(self.policy, "k")
        await rate_limit_store.decrement(self.policy, "k")
        await rate_limit_store.decrement(self.policy, "k")
        record = await rate_limit_store.get("test", "k")
        assert record.count == 0

    @pytest.mark.asyncio
    async def test_decrement_without_record_is_noop(self, rate_limit_store):
        await rate_limit_store.decrement(self.policy, "missing")
        assert len(rate_limit_store) == 0

    @pytest.mark.asyncio
    async def test_get_drops_expired_record(self, rate_limit_store, clock):
        await rate_limit_store.hit(self.policy, "k")
        clock.advance(61)
        assert await rate_limit_store.get("test", "k") is None
        assert len(rate_limit_store) == 0

    @pytest.mark.asyncio
    async def test_reset_one_client(self, rate_limit_store):
        await rate_limit_store.hit(self.policy, "a")
        await rate_limit_store.hit(self.policy, "b")
        await rate_limit_store.reset("a")
        assert await rate_limit_store.get("test", "a") is None
        assert await rate_limit_store.get("test", "b") is not None
        await rate_limit_store.reset()
        assert len(rate_limit_store) == 0

    @pytest.mark.asyncio
    async def test_sweep_runs_periodically(self, clock):
        store = InMemoryRateLimitStore(clock=clock)
        store.SWEEP_EVERY = 3
        await store.hit(self.policy, "stale")
        clock.advance(120)
        await store.hit(self.policy, "fresh-1")
        assert len(store) == 2
        await store.hit(self.policy, "fresh-2")
        assert len(store) == 2
        assert await store.get("test", "stale") is None


class TestLoginRateLimit:
    @pytest.mark.asyncio
    async def test_sixth_failed_login_is_rejected(self, dev_client):
        for _ in range(5):
            response = await dev_client.post("/api/auth/login", json={"password": "wrong"})
            assert response.status_code == 401

        response = await dev_client.post("/api/auth/login", json={"password": "wrong"})
        assert response.status_code == 429
        assert response.json()["message"] == LOGIN_LIMIT_MESSAGE
        assert int(response.headers["Retry-After"]) == 900
        assert response.headers["RateLimit-Limit"] == "5"
        assert response.headers["RateLimit-Remaining"] == "0"

    @pytest.mark.asyncio
    async def test_successful_login_is_not_counted(self, dev_client):
        for _ in range(4):
            await dev_client.post("/api/auth/login", json={"password": "wrong"})
        ok = await dev_client.post("/api/auth/login", json={"password": STUB_PASSWORD})
        assert ok.status_code == 200

        fifth_failure = await dev_client.post("/api/auth/login", json={"password": "wrong"})
        assert fifth_failure.status_code == 401
        sixth_failure = await dev_client.post("/api/auth/login", json={"password": "wrong"})
        assert sixth_failure.status_code == 429

    @pytest.mark.asyncio
    async def test_window_reopens_after_fifteen_minutes(self, dev_client, clock):
        for _ in range(6):
            response = await dev_client.post("/api/auth/login", json={"password": "wrong"})
        assert response.status_code == 429

        clock.advance(15 * 60)
        response = await dev_client.post("/api/auth/login", json={"password": "wrong"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_production_uses_generic_message(self, prod_client):
        for _ in range(6):
            response = await prod_client.post("/api/auth/login", json={"password": "wrong"})
        assert response.status_code == 429
        assert response.json() == {"message": "Too many requests, please try again later."}
        assert "Retry-After" in response.headers


class TestGeneralRateLimit:
    @pytest.mark.asyncio
    async def test_general_budget_and_health_bypass(self, stub_app, rate_limit_store):
        app = stub_app(Settings(_env_file=None, rate_limit_general_max=3, log_level="WARNING"))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            for _ in range(5):
                assert (await client.get("/api/health")).status_code == 200
                assert (await client.get("/health")).status_code == 200

            statuses = [(await client.get("/api/ping")).status_code for _ in range(4)]
            assert statuses == [200, 200, 200, 429]

        record = await rate_limit_store.get(GENERAL, "127.0.0.1")
        assert record.count == 4

    @pytest.mark.asyncio
    async def test_rate_limit_headers_on_success(self, dev_client):
        response = await dev_client.get("/api/ping")
        assert response.headers["RateLimit-Limit"] == "1000"
        assert response.headers["RateLimit-Remaining"] == "999"
        assert response.headers["RateLimit-Reset"] == "900"

    @pytest.mark.asyncio
    async def test_registration_budget(self, dev_client):
        statuses = [(await dev_client.post("/api/auth/register")).status_code for _ in range(4)]
        assert statuses == [200, 200, 200, 429]

    @pytest.mark.asyncio
    async def test_login_spends_general_budget_too(self, dev_client, rate_limit_store):
        await dev_client.post("/api/auth/login", json={"password": "wrong"})
        await dev_client.post("/api/auth/login", json={"password": STUB_PASSWORD})

        general = await rate_limit_store.get(GENERAL, "127.0.0.1")
        login = await rate_limit_store.get(LOGIN, "127.0.0.1")
        assert general.count == 2
        assert login.count == 1

    @pytest.mark.asyncio
    async def test_general_exhaustion_blocks_login(self, stub_app):
        app = stub_app(Settings(_env_file=None, rate_limit_general_max=2, log_level="WARNING"))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            await client.get("/api/ping")
            await client.get("/api/ping")
            response = await client.post("/api/auth/login", json={"password": STUB_PASSWORD})

        assert response.status_code == 429
        assert response.headers["RateLimit-Limit"] == "2"

    @pytest.mark.asyncio
    async def test_failed_login_carries_rate_limit_headers(self, dev_client):
        response = await dev_client.post("/api/auth/login", json={"password": "wrong"})
        assert response.status_code == 401
        assert response.headers["RateLimit-Limit"] == "5"
        assert response.headers["RateLimit-Remaining"] == "4"
        assert response.headers["RateLimit-Reset"] == "900"


class TestPasswordChangeRateLimit:
    @pytest.mark.asyncio
    async def test_sixth_attempt_is_rejected(self, dev_client, rate_limit_store):
        for _ in range(5):
            response = await dev_client.post("/api/auth/change-password")
            assert response.status_code == 200

        response = await dev_client.post("/api/auth/change-password")
        assert response.status_code == 429
        assert response.json()["message"] == PASSWORD_CHANGE_LIMIT_MESSAGE
        assert int(response.headers["Retry-After"]) == 900
        assert response.headers["RateLimit-Limit"] == "5"

        record = await rate_limit_store.get(PASSWORD_CHANGE, "127.0.0.1")
        assert record.count == 6

    @pytest.mark.asyncio
    async def test_successes_are_counted(self, dev_client, clock):
        for _ in range(5):
            await dev_client.post("/api/auth/change-password")
        assert (await dev_client.post("/api/auth/change-password")).status_code == 429

        clock.advance(15 * 60)
        assert (await dev_client.post("/api/auth/change-password")).status_code == 200
