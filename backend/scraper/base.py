"""
Site extractor base.

An extraction is SEARCHING (scroll the listing until the fixture row is
found) then EXTRACTING (sub-steps run concurrently, each in its own
retry-wrapped browser session) then MERGED. A failed sub-step degrades to
empty values; only the search stage can fail the whole extraction.
"""
from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from shared.errors import MatchNotFound
from shared.models.domain import Lineups, RecentResults, Standings, UnavailablePlayers
from shared.models.enums import Sport
from shared.utils.logging import get_logger
from shared.utils.metrics import SUBSTEP_DEGRADED

from scraper.browser import BrowserSession
from scraper.config import ScraperSettings
from scraper.matching import split_row_teams, teams_match
from scraper.retry import RetryExecutor

logger = get_logger(__name__)

VenueHook = Callable[[str], Awaitable[Any]]

# ── In-page scripts ─────────────────────────────────────────────────────
READ_ROWS_SCRIPT = """
({ item, teams }) => Array.from(document.querySelectorAll(item)).map((el) => {
    const link = el.querySelector(teams);
    return { id: el.id || '', text: link ? (link.textContent || '') : '' };
})
"""

SCROLL_SCRIPT = """
({ container, step }) => {
    const el = document.querySelector(container);
    if (el) { el.scrollTop += step; }
    return true;
}
"""

SCROLL_HEIGHT_SCRIPT = """
(container) => {
    const el = document.querySelector(container);
    return el ? el.scrollHeight : 0;
}
"""

TEXT_SCRIPT = """
(selector) => {
    const el = document.querySelector(selector);
    return el ? (el.textContent || '').trim() : null;
}
"""

CLICK_SCRIPT = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) { return false; }
    el.click();
    return true;
}
"""

RESULT_ROWS_SCRIPT = """
({ rows, date, home, away, score, halfTime }) => Array.from(document.querySelectorAll(rows)).map((row) => {
    const text = (sel) => {
        const el = row.querySelector(sel);
        return el ? (el.textContent || '').trim() : null;
    };
    return {
        date: text(date),
        home: text(home),
        away: text(away),
        score: text(score),
        halfTime: text(halfTime),
    };
})
"""


# ── Site configuration ──────────────────────────────────────────────────
@dataclass(frozen=True)
class Selectors:
    list_container: str = ".sportsbookList"
    match_item: str = ".events-container__item"
    team_names: str = ".event-row-prematch__cells__teams"
    venue: str = ".match-detail__match-info__list__item:last-child .match-detail__match-info__list__item__text"
    h2h_home: str = ".quick-statistics__table:nth-child(1) .quick-statistics__table__body .team-against-row"
    h2h_away: str = ".quick-statistics__table:nth-child(2) .quick-statistics__table__body .team-against-row"
    h2h_between: str = ".quick-statistics__table--last-5-match .quick-statistics__table__body .team-against-row"
    h2h_expand: str = ".quick-statistics__table__body__row__open-button"
    h2h_tab: str = 'label[for="tab1_1"]'
    result_date: str = ".team-against-row__date"
    result_home: str = ".team-against-row__home span"
    result_away: str = ".team-against-row__away span"
    result_score: str = ".icon-score"
    result_half_time: str = ".team-against-row__score--half-time"
    between_half_time: str = ".team-against-row__half-time"


@dataclass(frozen=True)
class SiteConfig:
    sport: Sport
    listing_url: str
    match_base_url: str
    selectors: Selectors = field(default_factory=Selectors)
    details_path: str = "detay"
    unavailable_path: str = "sakat-cezali"
    comparison_path: str = "karsilastirma"
    lineups_path: str = "kadro"
    standings_path: str = "puan-durumu"

    def match_url(self, match_id: str, path: str) -> str:
        return f"{self.match_base_url.rstrip('/')}/{match_id}/{path}"


# ── Extraction state ────────────────────────────────────────────────────
class ExtractionState(str, Enum):
    SEARCHING = "searching"
    EXTRACTING = "extracting"
    MERGED = "merged"
    FAILED = "failed"


@dataclass
class ExtractionTrace:
    state: Optional[ExtractionState] = None
    history: list[ExtractionState] = field(default_factory=list)
    degraded: list[str] = field(default_factory=list)

    def transition(self, state: ExtractionState) -> None:
        self.state = state
        self.history.append(state)


@dataclass
class ExtractedMatch:
    """Facts gathered for one fixture; sub-steps fill their own fields."""
    match_id: str
    venue: str = ""
    unavailable_players: UnavailablePlayers = field(default_factory=UnavailablePlayers)
    recent_results: RecentResults = field(default_factory=RecentResults)
    lineups: Lineups = field(default_factory=Lineups)
    standings: Standings = field(default_factory=Standings)
    venue_result: Any = None
    degraded: list[str] = field(default_factory=list)


class _VenueNotifier:
    """Schedules the venue hook at most once per extraction."""

    def __init__(self, hook: Optional[VenueHook]) -> None:
        self._hook = hook
        self.task: Optional[asyncio.Task] = None

    def notify(self, venue: str) -> None:
        if self._hook is None or self.task is not None:
            return
        self.task = asyncio.ensure_future(self._hook(venue))

    async def result(self, venue: str) -> Any:
        self.notify(venue)
        if self.task is None:
            return None
        try:
            return await self.task
        except Exception as exc:
            logger.warning("venue_hook_failed", venue=venue, error=str(exc))
            return None


# ── Helpers ─────────────────────────────────────────────────────────────
def parse_int(text: Any) -> int:
    match = re.search(r"-?\d+", str(text or ""))
    return int(match.group()) if match else 0


def format_result(row: dict[str, Any]) -> str:
    """``"DD.MM.YYYY: Home vs Away (FT: x-y - HT: a-b)"``."""
    date = (row.get("date") or "").split(" ")[0]
    half_time = row.get("halfTime") or ""
    if ":" in half_time:
        half_time = half_time.split(":", 1)[1].strip()
    return (
        f"{date}: {row.get('home') or ''} vs {row.get('away') or ''} "
        f"(FT: {row.get('score') or ''} - HT: {half_time})"
    )


class SiteExtractor(ABC):
    """Locates a fixture on the listing page and extracts its facts."""

    def __init__(
        self,
        config: SiteConfig,
        executor: RetryExecutor,
        settings: ScraperSettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self._executor = executor
        self._settings = settings
        self._sleep = sleep

    @property
    def sport(self) -> Sport:
        return self.config.sport

    # ── Search ──────────────────────────────────────────────────────────
    async def search_match(self, home_team: str, away_team: str) -> str:
        """Return the site's match id for the fixture, or raise MatchNotFound."""
        return await self._executor.with_retry(
            lambda session: self._find_in_listing(session, home_team, away_team),
            f"search for match: {home_team}-{away_team}",
        )

    async def _find_in_listing(self, session: BrowserSession, home_team: str, away_team: str) -> str:
        sel = self.config.selectors
        await session.navigate(self.config.listing_url, wait_for=sel.list_container)
        logger.info("match_search_started", home=home_team, away=away_team)

        last_height = 0
        unchanged = 0
        for _ in range(self._settings.max_scroll_steps):
            rows = await session.evaluate(READ_ROWS_SCRIPT, {"item": sel.match_item, "teams": sel.team_names})
            for row in rows or []:
                teams = split_row_teams(row.get("text", ""))
                if teams and row.get("id") and teams_match(teams[0], teams[1], home_team, away_team):
                    logger.info("match_found", match_id=row["id"], row=row.get("text", "").strip())
                    return row["id"]

            await session.evaluate(
                SCROLL_SCRIPT, {"container": sel.list_container, "step": self._settings.scroll_step_px}
            )
            await self._sleep(self._settings.scroll_delay_ms / 1000.0)
            height = await session.evaluate(SCROLL_HEIGHT_SCRIPT, sel.list_container)
            if height == last_height:
                unchanged += 1
                if unchanged >= self._settings.max_scroll_attempts:
                    break
            else:
                unchanged = 0
                last_height = height

        raise MatchNotFound(
            f"No match found for input: {home_team}-{away_team}",
            {"home_team": home_team, "away_team": away_team},
        )

    # ── Head-to-head ────────────────────────────────────────────────────
    async def get_h2h(self, match_id: str) -> RecentResults:
        return await self._executor.with_retry(
            lambda session: self._read_h2h(session, match_id), f"fetch head-to-head data: {match_id}"
        )

    async def _read_h2h(self, session: BrowserSession, match_id: str) -> RecentResults:
        sel = self.config.selectors
        await session.navigate(self.config.match_url(match_id, self.config.comparison_path))
        await session.settle()

        home = await self._read_result_list(session, sel.h2h_home, sel.result_half_time, expand=True)
        away = await self._read_result_list(session, sel.h2h_away, sel.result_half_time, expand=True)
        await session.evaluate(CLICK_SCRIPT, sel.h2h_tab)
        await session.settle()
        between = await self._read_result_list(session, sel.h2h_between, sel.between_half_time)
        return RecentResults(home=home, away=away, between=between)

    async def _read_result_list(
        self, session: BrowserSession, rows_selector: str, half_time_selector: str, expand: bool = False
    ) -> tuple[str, ...]:
        sel = self.config.selectors
        try:
            if expand and await session.evaluate(CLICK_SCRIPT, sel.h2h_expand):
                await session.settle()
            rows = await session.evaluate(
                RESULT_ROWS_SCRIPT,
                {
                    "rows": rows_selector,
                    "date": sel.result_date,
                    "home": sel.result_home,
                    "away": sel.result_away,
                    "score": sel.result_score,
                    "halfTime": half_time_selector,
                },
            )
        except Exception as exc:
            logger.warning("result_list_failed", selector=rows_selector, error=str(exc))
            return ()
        return tuple(format_result(row) for row in rows or [])

    # ── Venue ───────────────────────────────────────────────────────────
    async def _read_venue(self, session: BrowserSession, match_id: str) -> str:
        """Venue text from the details page; empty when the page or element is missing."""
        try:
            await session.navigate(self.config.match_url(match_id, self.config.details_path))
            venue = await session.evaluate(TEXT_SCRIPT, self.config.selectors.venue)
        except Exception as exc:
            logger.warning("venue_lookup_failed", match_id=match_id, error=str(exc))
            return ""
        return (venue or "").strip()

    # ── Orchestration ───────────────────────────────────────────────────
    @abstractmethod
    def substeps(
        self,
        match_id: str,
        home_team: str,
        away_team: str,
        result: ExtractedMatch,
        notify_venue: Callable[[str], None],
    ) -> list[tuple[str, Callable[[], Awaitable[None]]]]:
        """Named sub-steps that each fill part of ``result``."""

    async def _run_substep(
        self, name: str, step: Callable[[], Awaitable[None]], result: ExtractedMatch
    ) -> None:
        try:
            await step()
        except Exception as exc:
            result.degraded.append(name)
            SUBSTEP_DEGRADED.labels(sport=self.sport.value, substep=name).inc()
            logger.warning("extraction_substep_degraded", substep=name, error=str(exc))

    async def extract(
        self,
        home_team: str,
        away_team: str,
        on_venue: Optional[VenueHook] = None,
        trace: Optional[ExtractionTrace] = None,
    ) -> ExtractedMatch:
        """
        Search for the fixture, then run every sub-step concurrently.

        ``on_venue`` is scheduled once, as soon as the venue is known, and its
        result is stored on ``venue_result``.

        Raises:
            MatchNotFound: the listing was searched to exhaustion.
            ScrapingFailed: the search stage exhausted its retries.
        """
        trace = trace or ExtractionTrace()
        trace.transition(ExtractionState.SEARCHING)
        try:
            match_id = await self.search_match(home_team, away_team)
        except Exception:
            trace.transition(ExtractionState.FAILED)
            raise

        trace.transition(ExtractionState.EXTRACTING)
        result = ExtractedMatch(match_id=match_id)
        notifier = _VenueNotifier(on_venue)

        def notify_venue(venue: str) -> None:
            if venue:
                # A venue once read survives a later failure in its sub-step.
                result.venue = venue
                notifier.notify(venue)

        steps = self.substeps(match_id, home_team, away_team, result, notify_venue)
        await asyncio.gather(*(self._run_substep(name, step, result) for name, step in steps))
        result.venue_result = await notifier.result(result.venue)

        trace.degraded.extend(result.degraded)
        trace.transition(ExtractionState.MERGED)
        logger.info(
            "extraction_merged",
            match_id=match_id,
            venue=result.venue,
            degraded=result.degraded,
        )
        return result
