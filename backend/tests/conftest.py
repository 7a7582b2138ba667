"""Shared fixtures: simulated clock and in-memory session factory."""
from __future__ import annotations

from typing import Any

import pytest


class FakeClock:
    """Monotonic clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeSessionFactory:
    """Records create/close calls; hands out numbered session tokens."""

    def __init__(self, fail_create: int = 0) -> None:
        self.created: list[int] = []
        self.closed: list[int] = []
        self._fail_create = fail_create

    async def create_session(self) -> Any:
        if self._fail_create > 0:
            self._fail_create -= 1
            raise RuntimeError("browser failed to launch")
        token = len(self.created) + 1
        self.created.append(token)
        return token

    async def close_session(self, session: Any) -> None:
        self.closed.append(session)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sessions() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def flaky_sessions() -> FakeSessionFactory:
    """Factory whose first create_session call fails."""
    return FakeSessionFactory(fail_create=1)


# ── Scripted browser ────────────────────────────────────────────────────

class FakeResponse:
    def __init__(self, status: int) -> None:
        self.status = status

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class FakePage:
    def __init__(self, site: "FakeSite") -> None:
        self._site = site
        self.url = ""
        self.timeouts: dict[str, int] = {}

    def set_default_timeout(self, ms: int) -> None:
        self.timeouts["default"] = ms

    def set_default_navigation_timeout(self, ms: int) -> None:
        self.timeouts["navigation"] = ms

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 0) -> FakeResponse:
        self._site.visits.append(url)
        self.url = self._site.redirects.get(url, url)
        return FakeResponse(self._site.status_for(url))

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        handler = self._site.scripts.get(script)
        if callable(handler):
            return handler(self, arg)
        return handler

    async def wait_for_selector(self, selector: str, **kwargs: Any) -> None:
        return None

    async def query_selector(self, selector: str) -> Any:
        return None

    async def screenshot(self, **kwargs: Any) -> None:
        return None

    async def close(self) -> None:
        self._site.closed.append("page")


class FakeContext:
    def __init__(self, site: "FakeSite") -> None:
        self._site = site
        self.init_scripts: list[str] = []

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)

    async def new_page(self) -> FakePage:
        if self._site.fail_new_page:
            raise RuntimeError("page crashed")
        page = FakePage(self._site)
        self._site.pages.append(page)
        return page

    async def close(self) -> None:
        self._site.closed.append("context")


class FakeBrowser:
    def __init__(self, site: "FakeSite") -> None:
        self._site = site
        self.context_options: dict[str, Any] = {}

    async def new_context(self, **options: Any) -> FakeContext:
        self.context_options = options
        return FakeContext(self._site)

    async def close(self) -> None:
        self._site.closed.append("browser")


class FakeSite:
    """
    Stand-in for Chromium plus the scraped site.

    ``scripts`` maps an in-page script to a value or to ``handler(page, arg)``;
    ``statuses`` maps a URL suffix to an HTTP status.
    """

    def __init__(self) -> None:
        self.scripts: dict[str, Any] = {}
        self.statuses: dict[str, int] = {}
        self.redirects: dict[str, str] = {}
        self.visits: list[str] = []
        self.launches: list[dict[str, Any]] = []
        self.pages: list[FakePage] = []
        self.closed: list[str] = []
        self.fail_new_page = False

    def status_for(self, url: str) -> int:
        for suffix, status in self.statuses.items():
            if url.endswith(suffix):
                return status
        return 200

    async def launch(self, **options: Any) -> FakeBrowser:
        self.launches.append(options)
        return FakeBrowser(self)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def scraper_settings():
    from scraper.config import ScraperSettings

    return ScraperSettings(
        human_delay_min_ms=0,
        human_delay_max_ms=0,
        max_scroll_attempts=3,
        retry_max_attempts=2,
        retry_delay_ms=0,
        debug_screenshots=False,
        use_proxy=False,
        proxy_list="",
    )


@pytest.fixture
def browser_manager(site, clock, scraper_settings):
    from scraper.browser import BrowserSessionManager
    from scraper.fingerprint import UserAgentPool
    from scraper.rate_limiter import HostRateLimiter

    limiter = HostRateLimiter(1000, 10.0, clock=clock, sleep=clock.sleep)
    return BrowserSessionManager(
        scraper_settings,
        limiter,
        user_agents=UserAgentPool(["test-agent"]),
        launcher=site.launch,
        sleep=clock.sleep,
    )


@pytest.fixture
def executor(browser_manager, clock, scraper_settings):
    from scraper.retry import RetryExecutor

    return RetryExecutor(
        browser_manager,
        max_attempts=scraper_settings.retry_max_attempts,
        delay_s=0,
        sleep=clock.sleep,
    )


# ── In-memory Redis ─────────────────────────────────────────────────────

class FakePipeline:
    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._ops: list[tuple[str, str, int]] = []

    def hincrby(self, key: str, field: str, amount: int) -> None:
        self._ops.append((key, field, amount))

    async def execute(self) -> list[int]:
        self._redis.check()
        results = []
        for key, field, amount in self._ops:
            bucket = self._redis.hashes.setdefault(key, {})
            bucket[field] = str(int(bucket.get(field, "0")) + amount)
            results.append(int(bucket[field]))
        return results


class FakeRedis:
    """Subset of redis.asyncio.Redis used by RedisManager (decode_responses=True)."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.down = False

    def check(self) -> None:
        if self.down:
            from redis.exceptions import ConnectionError as RedisConnectionError

            raise RedisConnectionError("Connection refused")

    async def ping(self) -> bool:
        self.check()
        return True

    async def set(self, key: str, value, ex: int | None = None) -> bool:
        self.check()
        self.values[key] = value.decode() if isinstance(value, bytes) else value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def get(self, key: str):
        self.check()
        return self.values.get(key)

    async def delete(self, key: str) -> int:
        self.check()
        return int(self.values.pop(key, None) is not None) + int(self.hashes.pop(key, None) is not None)

    async def hgetall(self, key: str) -> dict[str, str]:
        self.check()
        return dict(self.hashes.get(key, {}))

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def aclose(self) -> None:
        return None


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_manager(fake_redis):
    from shared.config import Settings
    from shared.utils.redis_manager import RedisManager

    return RedisManager(Settings(), client=fake_redis)
