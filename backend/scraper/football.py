"""
Football extractor: venue, unavailable players, head-to-head, lineups and standings.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from shared.errors import NoDataFound
from shared.models.domain import (
    Lineups,
    PlayerSlot,
    StandingRow,
    Standings,
    TeamLineup,
    TeamStanding,
    UnavailablePlayers,
)
from shared.models.enums import Sport, StandingView
from shared.utils.logging import get_logger

from scraper.base import (
    CLICK_SCRIPT,
    ExtractedMatch,
    SiteConfig,
    SiteExtractor,
    parse_int,
)
from scraper.browser import BrowserSession
from scraper.matching import best_match, normalize_text

logger = get_logger(__name__)

FOOTBALL_SITE = SiteConfig(
    sport=Sport.FOOTBALL,
    listing_url="https://www.bilyoner.com/iddaa",
    match_base_url="https://www.bilyoner.com/mac-karti/futbol",
)

COACH_LABEL = "Teknik Direktör"
ALL_AVAILABLE_MESSAGE = "Tüm oyuncular maç için hazır."

SQUAD_CONTAINER = ".match-detail__squad"
SQUAD_TABS = {"home": 'input[id="match-detail-squad-tab_0"]', "away": 'input[id="match-detail-squad-tab_1"]'}
STANDING_TABS = {
    StandingView.OVERALL: 'input[id="match-card-standing-tab_0"]',
    StandingView.HOME_FORM: 'input[id="match-card-standing-tab_1"]',
    StandingView.AWAY_FORM: 'input[id="match-card-standing-tab_2"]',
}

UNAVAILABLE_SCRIPT = """
() => Array.from(document.querySelectorAll('.injured-banned__content__title')).map((title) => {
    const next = title.nextElementSibling;
    const rows = next && next.classList.contains('injured-banned__table')
        ? Array.from(next.querySelectorAll('.injured-banned__table__body__row')).map((row) => {
            const name = row.querySelector('.injured-banned__table__body__row__columns__column strong');
            const status = row.querySelector('.injured-banned__table__body__row__columns__column span');
            return {
                name: name ? (name.textContent || '').trim() : '',
                status: status ? (status.textContent || '').trim() : '',
            };
        })
        : [];
    return {
        title: (title.textContent || '').trim(),
        message: next ? (next.textContent || '').trim() : '',
        rows,
    };
})
"""

LINEUP_SCRIPT = """
() => {
    const text = (el, sel) => {
        const node = el.querySelector(sel);
        return node && node.textContent ? node.textContent.trim() : null;
    };
    const formation = document.querySelector('.line-up__formation');
    return {
        formation: formation && formation.textContent ? formation.textContent.trim() : null,
        players: Array.from(document.querySelectorAll('.match-detail__squad__formation__list__item')).map((el) => ({
            number: text(el, '.match-detail__squad__formation__list__item__shirt__number'),
            name: text(el, '.match-detail__squad__formation__list__item__player'),
            position: text(el, '.match-detail__squad__formation__list__item__position'),
        })),
    };
}
"""

STANDINGS_SCRIPT = """
() => Array.from(document.querySelectorAll('.team-info-row__row--bold')).map((row) => {
    const columns = Array.from(row.querySelectorAll('.team-info-row__row__column'));
    const info = columns[0];
    const name = info ? info.querySelector('span') : null;
    const order = info ? info.querySelector('.icon-order') : null;
    return {
        team: name ? (name.textContent || '').trim() : '',
        position: order ? (order.textContent || '').trim() : '0',
        columns: columns.slice(1).map((c) => (c.textContent || '').trim()),
    };
})
"""


def parse_player(raw: dict[str, Any]) -> Optional[PlayerSlot]:
    name = raw.get("name")
    if not name or name == COACH_LABEL:
        return None
    number = raw.get("number")
    return PlayerSlot(
        number=parse_int(number) if number else None,
        name=name,
        position=raw.get("position") or None,
    )


def parse_lineup(raw: Optional[dict[str, Any]]) -> TeamLineup:
    if not raw:
        return TeamLineup()
    players = tuple(p for p in (parse_player(r) for r in raw.get("players") or []) if p is not None)
    return TeamLineup(formation=raw.get("formation") or "Unknown", players=players)


def parse_standing_row(raw: dict[str, Any]) -> Optional[StandingRow]:
    """Table row with at least eight numeric columns after the team cell."""
    cols = raw.get("columns") or []
    if len(cols) < 8:
        return None
    played, won, drawn, lost, goals_for, goals_against, goal_difference, points = (
        parse_int(c) for c in cols[:8]
    )
    return StandingRow(
        position=parse_int(raw.get("position")),
        team=raw.get("team") or "",
        played=played,
        won=won,
        drawn=drawn,
        lost=lost,
        goals_for=goals_for,
        goals_against=goals_against,
        goal_difference=goal_difference,
        points=points,
    )


def pick_unavailable(sections: list[dict[str, Any]], team: str, index: int) -> tuple[str, ...]:
    """Players listed under the section titled for ``team`` as ``"Name (status)"``."""
    target = normalize_text(team)
    section = next(
        (s for s in sections if target and target in normalize_text(s.get("title", ""))),
        None,
    )
    if section is None and len(sections) == 2:
        section = sections[index]
    if section is None or ALL_AVAILABLE_MESSAGE in (section.get("message") or ""):
        return ()
    return tuple(f"{r.get('name', '')} ({r.get('status', '')})" for r in section.get("rows") or [])


class FootballExtractor(SiteExtractor):

    def __init__(self, executor, settings, config: SiteConfig = FOOTBALL_SITE, **kwargs) -> None:
        super().__init__(config, executor, settings, **kwargs)

    # ── Details ─────────────────────────────────────────────────────────
    async def get_details(
        self,
        match_id: str,
        home_team: str,
        away_team: str,
        notify_venue: Optional[Callable[[str], None]] = None,
    ) -> tuple[str, UnavailablePlayers]:
        async def op(session: BrowserSession) -> tuple[str, UnavailablePlayers]:
            venue = await self._read_venue(session, match_id)
            if notify_venue is not None:
                notify_venue(venue)
            await session.navigate(self.config.match_url(match_id, self.config.unavailable_path))
            sections = await session.evaluate(UNAVAILABLE_SCRIPT) or []
            players = UnavailablePlayers(
                home=pick_unavailable(sections, home_team, 0),
                away=pick_unavailable(sections, away_team, 1),
            )
            return venue, players

        return await self._executor.with_retry(op, f"fetch match details: {match_id}")

    # ── Lineups ─────────────────────────────────────────────────────────
    async def get_lineups(self, match_id: str) -> Lineups:
        async def op(session: BrowserSession) -> Lineups:
            await session.navigate(
                self.config.match_url(match_id, self.config.lineups_path), wait_for=SQUAD_CONTAINER
            )
            sides: dict[str, TeamLineup] = {}
            for side, tab in SQUAD_TABS.items():
                if await session.evaluate(CLICK_SCRIPT, tab):
                    await session.settle()
                    sides[side] = parse_lineup(await session.evaluate(LINEUP_SCRIPT))
                else:
                    sides[side] = TeamLineup()
            lineups = Lineups(**sides)
            if lineups.is_empty:
                raise NoDataFound("No lineup data found", {"match_id": match_id})
            logger.info(
                "lineups_extracted",
                home_formation=lineups.home.formation,
                away_formation=lineups.away.formation,
            )
            return lineups

        return await self._executor.with_retry(op, f"fetch team lineups: {match_id}")

    # ── Standings ───────────────────────────────────────────────────────
    async def get_standings(self, match_id: str, home_team: str, away_team: str) -> Standings:
        async def op(session: BrowserSession) -> Standings:
            await session.navigate(self.config.match_url(match_id, self.config.standings_path))
            home: dict[str, Optional[StandingRow]] = {}
            away: dict[str, Optional[StandingRow]] = {}
            for view, tab in STANDING_TABS.items():
                await session.evaluate(CLICK_SCRIPT, tab)
                await session.settle()
                raw_rows = await session.evaluate(STANDINGS_SCRIPT) or []
                rows = [r for r in (parse_standing_row(raw) for raw in raw_rows) if r is not None]
                logger.debug("standings_tab_read", view=view.value, teams=len(rows))
                home[view.value] = best_match(home_team, rows, key=lambda r: r.team)
                away[view.value] = best_match(away_team, rows, key=lambda r: r.team)
            return Standings(home=TeamStanding(**home), away=TeamStanding(**away))

        return await self._executor.with_retry(op, f"fetch standings: {match_id}")

    # ── Orchestration ───────────────────────────────────────────────────
    def substeps(
        self,
        match_id: str,
        home_team: str,
        away_team: str,
        result: ExtractedMatch,
        notify_venue: Callable[[str], None],
    ) -> list[tuple[str, Callable[[], Awaitable[None]]]]:
        async def details() -> None:
            result.venue, result.unavailable_players = await self.get_details(
                match_id, home_team, away_team, notify_venue
            )

        async def h2h() -> None:
            result.recent_results = await self.get_h2h(match_id)

        async def lineups() -> None:
            result.lineups = await self.get_lineups(match_id)

        async def standings() -> None:
            result.standings = await self.get_standings(match_id, home_team, away_team)

        return [("details", details), ("h2h", h2h), ("lineups", lineups), ("standings", standings)]
