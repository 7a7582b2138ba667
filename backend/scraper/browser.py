"""
Headless browser session lifecycle.

A session is one browser process, one isolated context carrying a randomized
fingerprint, and one page. Sessions are created fresh for every retried
operation and are never shared between concurrent operations.
"""
from __future__ import annotations

import asyncio
import os
import random
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import Playwright, async_playwright

from shared.errors import AntiBotBlocked, PageLoadError
from shared.models.domain import SessionFingerprint
from shared.utils.logging import get_logger

from scraper.config import ScraperSettings
from scraper.fingerprint import STEALTH_INIT_SCRIPT, UserAgentPool, build_fingerprint
from scraper.proxy import ProxyRotator
from scraper.rate_limiter import HostRateLimiter, host_for

logger = get_logger(__name__)

Launcher = Callable[..., Awaitable[Any]]

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-default-apps",
    "--disable-sync",
    "--hide-scrollbars",
    "--mute-audio",
    "--disable-blink-features=AutomationControlled",
]

CHALLENGE_MARKERS = ("challenge", "captcha", "cloudflare", "security")


class BrowserSession:
    """One browser/context/page triple bound to a single fingerprint."""

    def __init__(self, manager: "BrowserSessionManager", fingerprint: SessionFingerprint) -> None:
        self._manager = manager
        self.fingerprint = fingerprint
        self.browser: Any = None
        self.context: Any = None
        self.page: Any = None
        self.closed = False

    @property
    def settings(self) -> ScraperSettings:
        return self._manager.settings

    async def navigate(self, url: str, wait_for: Optional[str] = None) -> None:
        """
        Load ``url`` through the host rate limiter.

        Raises:
            PageLoadError: navigation returned a non-2xx status other than 304.
            AntiBotBlocked: redirected off-host to a challenge that did not clear.
        """
        settings = self.settings
        await self._manager.human_delay()
        await self._manager.rate_limiter.acquire(host_for(url))
        logger.debug("navigating", url=url)
        try:
            response = await self.page.goto(
                url, wait_until="networkidle", timeout=settings.navigation_timeout_ms
            )
            if response is not None and not response.ok and response.status != 304:
                raise PageLoadError(
                    f"Failed to load page: status {response.status}",
                    {"url": url, "status": response.status},
                )
            await self._check_anti_bot(url)
            if wait_for:
                await self.page.wait_for_selector(
                    wait_for, state="visible", timeout=settings.element_timeout_ms
                )
        except Exception as exc:
            logger.error("navigation_failed", url=url, error=str(exc))
            await self._debug_screenshot("navigation")
            raise

    async def _check_anti_bot(self, url: str) -> None:
        expected = host_for(url)
        current = self.page.url or ""
        if host_for(current) == expected:
            return
        logger.warning("page_redirected", url=url, current=current)
        if not any(marker in current.lower() for marker in CHALLENGE_MARKERS):
            return
        await self._manager.sleep(self.settings.anti_bot_grace_ms / 1000.0)
        if host_for(self.page.url or "") != expected:
            raise AntiBotBlocked("Blocked by anti-bot protection", {"url": url, "current": current})

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def wait_for(self, selector: str, timeout_ms: Optional[int] = None) -> None:
        await self.page.wait_for_selector(
            selector, state="visible", timeout=timeout_ms or self.settings.element_timeout_ms
        )

    async def click_if_present(self, selector: str) -> bool:
        element = await self.page.query_selector(selector)
        if element is None:
            return False
        await element.click()
        return True

    async def settle(self, ms: Optional[int] = None) -> None:
        await self._manager.sleep((ms if ms is not None else self.settings.tab_settle_ms) / 1000.0)

    async def _debug_screenshot(self, tag: str) -> None:
        if not self.settings.debug_screenshots or self.page is None:
            return
        path = os.path.join(self.settings.screenshot_dir, f"{tag}-error-{int(time.time() * 1000)}.png")
        try:
            os.makedirs(self.settings.screenshot_dir, exist_ok=True)
            await self.page.screenshot(path=path)
            logger.info("error_screenshot_saved", path=path)
        except Exception as exc:
            logger.debug("error_screenshot_failed", error=str(exc))


class BrowserSessionManager:
    """
    Creates and tears down browser sessions.

    ``launcher`` is any coroutine function with the keyword signature of
    ``BrowserType.launch``; when omitted, ``start()`` boots Playwright and uses
    its Chromium launcher.
    """

    def __init__(
        self,
        settings: ScraperSettings,
        rate_limiter: HostRateLimiter,
        proxies: Optional[ProxyRotator] = None,
        user_agents: Optional[UserAgentPool] = None,
        launcher: Optional[Launcher] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self.rate_limiter = rate_limiter
        self._proxies = proxies or ProxyRotator(enabled=False)
        self._user_agents = user_agents or UserAgentPool()
        self._launcher = launcher
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._playwright: Optional[Playwright] = None

    async def start(self) -> None:
        if self._launcher is not None:
            return
        self._playwright = await async_playwright().start()
        self._launcher = self._playwright.chromium.launch
        logger.info("playwright_started", headless=self.settings.headless)

    async def stop(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            self._launcher = None
            logger.info("playwright_stopped")

    async def sleep(self, seconds: float) -> None:
        await self._sleep(seconds)

    async def human_delay(self) -> None:
        low, high = self.settings.human_delay_min_ms, self.settings.human_delay_max_ms
        await self._sleep(self._rng.uniform(low, max(low, high)) / 1000.0)

    def _launch_options(self, fingerprint: SessionFingerprint) -> dict[str, Any]:
        options: dict[str, Any] = {
            "headless": self.settings.headless,
            "chromium_sandbox": False,
            "args": LAUNCH_ARGS,
            "ignore_default_args": ["--enable-automation"],
        }
        if self.settings.chromium_executable_path:
            options["executable_path"] = self.settings.chromium_executable_path
        if fingerprint.proxy is not None:
            options["proxy"] = fingerprint.proxy.to_playwright()
        return options

    async def create_session(self) -> BrowserSession:
        """Launch browser, then context with fingerprint, then page."""
        if self._launcher is None:
            raise RuntimeError("BrowserSessionManager not started. Call start() first.")

        fingerprint = build_fingerprint(self._user_agents, self._proxies.next())
        session = BrowserSession(self, fingerprint)
        try:
            session.browser = await self._launcher(**self._launch_options(fingerprint))
            session.context = await session.browser.new_context(
                user_agent=fingerprint.user_agent,
                viewport={"width": fingerprint.viewport_width, "height": fingerprint.viewport_height},
                locale=fingerprint.locale,
                extra_http_headers=fingerprint.extra_headers,
                ignore_https_errors=True,
            )
            await session.context.add_init_script(STEALTH_INIT_SCRIPT)
            session.page = await session.context.new_page()
            session.page.set_default_timeout(self.settings.element_timeout_ms)
            session.page.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        except BaseException:
            await self.close_session(session)
            raise

        logger.debug(
            "browser_session_created",
            user_agent=fingerprint.user_agent,
            proxy=fingerprint.proxy.server if fingerprint.proxy else None,
        )
        return session

    async def close_session(self, session: Optional[BrowserSession]) -> None:
        """Release page, context and browser in that order. Safe to call repeatedly."""
        if session is None or session.closed:
            return
        session.closed = True
        resources = (("page", session.page), ("context", session.context), ("browser", session.browser))
        session.page = session.context = session.browser = None
        for name, resource in resources:
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as exc:
                logger.warning("browser_close_failed", resource=name, error=str(exc))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        created = await self.create_session()
        try:
            yield created
        finally:
            await self.close_session(created)
