"""Basketball extractor: venue and head-to-head history."""
from __future__ import annotations

from typing import Awaitable, Callable

from shared.models.enums import Sport

from scraper.base import ExtractedMatch, Selectors, SiteConfig, SiteExtractor
from scraper.browser import BrowserSession

BASKETBALL_SITE = SiteConfig(
    sport=Sport.BASKETBALL,
    listing_url="https://www.bilyoner.com/iddaa/basketbol",
    match_base_url="https://www.bilyoner.com/mac-karti/basketbol",
    selectors=Selectors(
        h2h_home=".quick-statistics__table:first-child .team-against-row",
        h2h_away=".quick-statistics__table:nth-child(2) .team-against-row",
        h2h_between=".quick-statistics__table--last-5-match .team-against-row",
    ),
)


class BasketballExtractor(SiteExtractor):

    def __init__(self, executor, settings, config: SiteConfig = BASKETBALL_SITE, **kwargs) -> None:
        super().__init__(config, executor, settings, **kwargs)

    async def get_venue(self, match_id: str) -> str:
        async def op(session: BrowserSession) -> str:
            return await self._read_venue(session, match_id)

        return await self._executor.with_retry(op, f"fetch match details: {match_id}")

    def substeps(
        self,
        match_id: str,
        home_team: str,
        away_team: str,
        result: ExtractedMatch,
        notify_venue: Callable[[str], None],
    ) -> list[tuple[str, Callable[[], Awaitable[None]]]]:
        async def details() -> None:
            result.venue = await self.get_venue(match_id)
            notify_venue(result.venue)

        async def h2h() -> None:
            result.recent_results = await self.get_h2h(match_id)

        return [("details", details), ("h2h", h2h)]
