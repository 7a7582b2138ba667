"""Tests for browser session lifecycle and guarded navigation."""
from __future__ import annotations

import pytest

from shared.errors import AntiBotBlocked, PageLoadError
from scraper.fingerprint import STEALTH_INIT_SCRIPT
from scraper.proxy import ProxyRotator, parse_proxy

LISTING = "https://www.bilyoner.com/iddaa"


# ── Session lifecycle ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_session_applies_fingerprint(browser_manager, site) -> None:
    session = await browser_manager.create_session()

    assert session.fingerprint.user_agent == "test-agent"
    options = site.launches[0]
    assert options["headless"] is True
    assert "proxy" not in options
    assert session.browser.context_options["user_agent"] == "test-agent"
    assert session.browser.context_options["viewport"] == {"width": 1366, "height": 768}
    assert session.context.init_scripts == [STEALTH_INIT_SCRIPT]
    assert session.page.timeouts == {"default": 30_000, "navigation": 60_000}


@pytest.mark.asyncio
async def test_proxy_bound_at_launch(site, clock, scraper_settings) -> None:
    from scraper.browser import BrowserSessionManager
    from scraper.rate_limiter import HostRateLimiter

    manager = BrowserSessionManager(
        scraper_settings,
        HostRateLimiter(clock=clock, sleep=clock.sleep),
        proxies=ProxyRotator([parse_proxy("10.0.0.1:8080:u:p")]),
        launcher=site.launch,
        sleep=clock.sleep,
    )
    await manager.create_session()
    assert site.launches[0]["proxy"] == {
        "server": "http://10.0.0.1:8080",
        "username": "u",
        "password": "p",
    }


@pytest.mark.asyncio
async def test_close_order_and_idempotence(browser_manager, site) -> None:
    session = await browser_manager.create_session()

    await browser_manager.close_session(session)
    await browser_manager.close_session(session)

    assert site.closed == ["page", "context", "browser"]
    assert session.closed
    assert session.page is None


@pytest.mark.asyncio
async def test_partial_init_releases_what_was_acquired(browser_manager, site) -> None:
    site.fail_new_page = True

    with pytest.raises(RuntimeError, match="page crashed"):
        await browser_manager.create_session()

    assert site.closed == ["context", "browser"]


@pytest.mark.asyncio
async def test_create_before_start_rejected(scraper_settings, clock) -> None:
    from scraper.browser import BrowserSessionManager
    from scraper.rate_limiter import HostRateLimiter

    manager = BrowserSessionManager(scraper_settings, HostRateLimiter(clock=clock, sleep=clock.sleep))
    with pytest.raises(RuntimeError):
        await manager.create_session()


@pytest.mark.asyncio
async def test_session_context_manager_closes(browser_manager, site) -> None:
    async with browser_manager.session() as session:
        assert not session.closed
    assert site.closed == ["page", "context", "browser"]


# ── Navigation ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_navigate_success(browser_manager, site) -> None:
    async with browser_manager.session() as session:
        await session.navigate(LISTING, wait_for=".sportsbookList")
    assert site.visits == [LISTING]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 500, 503])
async def test_navigate_error_status_raises(browser_manager, site, status: int) -> None:
    site.statuses["/iddaa"] = status
    async with browser_manager.session() as session:
        with pytest.raises(PageLoadError) as exc_info:
            await session.navigate(LISTING)
    assert exc_info.value.details["status"] == status


@pytest.mark.asyncio
async def test_navigate_not_modified_is_accepted(browser_manager, site) -> None:
    site.statuses["/iddaa"] = 304
    async with browser_manager.session() as session:
        await session.navigate(LISTING)


@pytest.mark.asyncio
async def test_challenge_redirect_that_never_clears(browser_manager, site, clock, scraper_settings) -> None:
    site.redirects[LISTING] = "https://challenges.cloudflare.com/cdn-cgi/challenge-platform"
    async with browser_manager.session() as session:
        with pytest.raises(AntiBotBlocked):
            await session.navigate(LISTING)
    assert scraper_settings.anti_bot_grace_ms / 1000.0 in clock.sleeps


@pytest.mark.asyncio
async def test_plain_offhost_redirect_is_not_blocked(browser_manager, site) -> None:
    site.redirects[LISTING] = "https://www.example.com/landing"
    async with browser_manager.session() as session:
        await session.navigate(LISTING)


@pytest.mark.asyncio
async def test_navigation_respects_rate_limiter(site, clock, scraper_settings) -> None:
    from scraper.browser import BrowserSessionManager
    from scraper.rate_limiter import HostRateLimiter

    manager = BrowserSessionManager(
        scraper_settings,
        HostRateLimiter(2, 10.0, clock=clock, sleep=clock.sleep),
        launcher=site.launch,
        sleep=clock.sleep,
    )
    start = clock.now
    async with manager.session() as session:
        for _ in range(3):
            await session.navigate(LISTING)
    assert clock.now > start + 10.0
