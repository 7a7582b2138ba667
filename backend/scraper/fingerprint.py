"""
Browser fingerprint selection and automation masking.
"""
from __future__ import annotations

import random
from typing import Optional, Sequence

from shared.models.domain import ProxyDescriptor, SessionFingerprint

COMMON_USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36 Edg/123.0.0.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/113.0",
)

DEFAULT_HEADERS: dict[str, str] = {
    "Accept-Language": "en-US,en;q=0.9,tr;q=0.8",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

# Runs before any page script in every new document
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
window.chrome = window.chrome || {};
window.chrome.runtime = window.chrome.runtime || {};
Object.defineProperty(navigator, 'plugins', {
    get: () => [
        { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer' },
        { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai' },
        { name: 'Native Client', filename: 'internal-nacl-plugin' },
    ],
});
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en', 'tr'] });
"""


class UserAgentPool:
    """
    Shuffled pool of user agents, drawn without replacement.

    When the pool empties it is refilled and reshuffled; the first draw after a
    refill never equals the last draw before it.
    """

    def __init__(
        self,
        agents: Sequence[str] = COMMON_USER_AGENTS,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not agents:
            raise ValueError("agents must not be empty")
        self._agents = list(agents)
        self._rng = rng or random.Random()
        self._pool: list[str] = []
        self._last: Optional[str] = None

    def _shuffle(self, items: list[str]) -> None:
        # Fisher-Yates
        for i in range(len(items) - 1, 0, -1):
            j = self._rng.randint(0, i)
            items[i], items[j] = items[j], items[i]

    def _refill(self) -> None:
        self._pool = list(self._agents)
        self._shuffle(self._pool)
        if len(self._pool) > 1 and self._pool[-1] == self._last:
            self._pool[0], self._pool[-1] = self._pool[-1], self._pool[0]

    def next(self) -> str:
        if not self._pool:
            self._refill()
        self._last = self._pool.pop()
        return self._last


def build_fingerprint(
    user_agents: UserAgentPool, proxy: Optional[ProxyDescriptor] = None
) -> SessionFingerprint:
    return SessionFingerprint(
        user_agent=user_agents.next(),
        extra_headers=dict(DEFAULT_HEADERS),
        proxy=proxy,
    )
