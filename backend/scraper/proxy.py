"""Round-robin proxy rotation for browser sessions."""
from __future__ import annotations

import itertools
from typing import Iterable, Optional

from shared.errors import ConfigurationError
from shared.models.domain import ProxyDescriptor
from shared.utils.logging import get_logger

from scraper.config import ScraperSettings

logger = get_logger(__name__)


def parse_proxy(entry: str) -> ProxyDescriptor:
    """Parse ``host:port[:user:pass[:protocol]]``."""
    parts = [p.strip() for p in entry.strip().split(":")]
    if len(parts) < 2 or not parts[0]:
        raise ConfigurationError(f"Invalid proxy entry: {entry!r}")
    try:
        port = int(parts[1])
    except ValueError as exc:
        raise ConfigurationError(f"Invalid proxy port in entry: {parts[0]}") from exc
    return ProxyDescriptor(
        host=parts[0],
        port=port,
        username=parts[2] if len(parts) > 2 and parts[2] else None,
        password=parts[3] if len(parts) > 3 and parts[3] else None,
        protocol=parts[4] if len(parts) > 4 and parts[4] else "http",
    )


class ProxyRotator:
    """Hands out the next proxy in list order, wrapping around."""

    def __init__(self, proxies: Iterable[ProxyDescriptor] = (), enabled: bool = True) -> None:
        self._proxies = list(proxies)
        self._enabled = enabled and bool(self._proxies)
        self._cycle = itertools.cycle(self._proxies) if self._proxies else None

    @classmethod
    def from_settings(cls, settings: ScraperSettings) -> "ProxyRotator":
        entries = [e for e in settings.proxy_list.split(",") if e.strip()]
        proxies = [parse_proxy(e) for e in entries]
        if settings.use_proxy and not proxies:
            logger.warning("proxy_enabled_without_list")
        logger.info("proxy_rotator_ready", enabled=settings.use_proxy, count=len(proxies))
        return cls(proxies, enabled=settings.use_proxy)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def __len__(self) -> int:
        return len(self._proxies)

    def next(self) -> Optional[ProxyDescriptor]:
        if not self._enabled or self._cycle is None:
            return None
        return next(self._cycle)
