"""
Site extractor tests against a scripted browser.

The fake page answers each in-page script with canned data, so these cover
search, per-sub-step degradation and the merged result without Chromium.
"""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from shared.errors import MatchNotFound
from scraper.base import (
    CLICK_SCRIPT,
    READ_ROWS_SCRIPT,
    RESULT_ROWS_SCRIPT,
    SCROLL_HEIGHT_SCRIPT,
    SCROLL_SCRIPT,
    TEXT_SCRIPT,
    ExtractionState,
    ExtractionTrace,
    format_result,
)
from scraper.basketball import BasketballExtractor
from scraper.football import (
    LINEUP_SCRIPT,
    STANDINGS_SCRIPT,
    UNAVAILABLE_SCRIPT,
    FootballExtractor,
    parse_lineup,
    parse_standing_row,
    pick_unavailable,
)

H2H_ROW = {
    "date": "01.02.2024 20:00",
    "home": "Fenerbahçe",
    "away": "Galatasaray",
    "score": "2-1",
    "halfTime": "İY: 1-0",
}

LINEUP = {
    "formation": "4-2-3-1",
    "players": [
        {"number": "40", "name": "Livakovic", "position": "GK"},
        {"number": "", "name": "Teknik Direktör", "position": ""},
    ],
}

STANDINGS = [
    {"team": "Galatasaray", "position": "1", "columns": ["10", "9", "1", "0", "28", "6", "22", "28"]},
    {"team": "Fenerbahçe", "position": "2", "columns": ["10", "8", "1", "1", "25", "8", "17", "25"]},
]

UNAVAILABLE = [
    {"title": "Fenerbahçe", "message": "", "rows": [{"name": "Szymanski", "status": "Sakat"}]},
    {"title": "Galatasaray", "message": "Tüm oyuncular maç için hazır.", "rows": []},
]


def _script_site(site, rows=None) -> None:
    site.scripts.update(
        {
            READ_ROWS_SCRIPT: rows if rows is not None else [{"id": "ev-1", "text": "Fenerbahçe - Galatasaray"}],
            SCROLL_SCRIPT: True,
            SCROLL_HEIGHT_SCRIPT: 1200,
            TEXT_SCRIPT: "Ülker Stadyumu",
            CLICK_SCRIPT: True,
            RESULT_ROWS_SCRIPT: [H2H_ROW],
            UNAVAILABLE_SCRIPT: UNAVAILABLE,
            LINEUP_SCRIPT: LINEUP,
            STANDINGS_SCRIPT: STANDINGS,
        }
    )


# ── Parsers ─────────────────────────────────────────────────────────────

class TestParsers:
    def test_format_result(self) -> None:
        assert format_result(H2H_ROW) == "01.02.2024: Fenerbahçe vs Galatasaray (FT: 2-1 - HT: 1-0)"

    def test_parse_lineup_skips_coach(self) -> None:
        lineup = parse_lineup(LINEUP)
        assert lineup.formation == "4-2-3-1"
        assert [p.name for p in lineup.players] == ["Livakovic"]
        assert lineup.players[0].number == 40

    def test_parse_lineup_empty(self) -> None:
        assert parse_lineup(None).formation == "Unknown"

    def test_parse_standing_row(self) -> None:
        row = parse_standing_row(STANDINGS[1])
        assert row.team == "Fenerbahçe"
        assert (row.position, row.played, row.points, row.goal_difference) == (2, 10, 25, 17)

    def test_short_standing_row_rejected(self) -> None:
        assert parse_standing_row({"team": "X", "columns": ["1", "2"]}) is None

    def test_pick_unavailable(self) -> None:
        assert pick_unavailable(UNAVAILABLE, "Fenerbahce", 0) == ("Szymanski (Sakat)",)
        assert pick_unavailable(UNAVAILABLE, "Galatasaray", 1) == ()

    def test_pick_unavailable_positional_fallback(self) -> None:
        sections = [
            {"title": "Ev Sahibi", "rows": [{"name": "A", "status": "Cezalı"}]},
            {"title": "Deplasman", "rows": []},
        ]
        assert pick_unavailable(sections, "Fenerbahce", 0) == ("A (Cezalı)",)


# ── Search ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_search_finds_match_id(executor, scraper_settings, site, clock) -> None:
    _script_site(site)
    extractor = FootballExtractor(executor, scraper_settings, sleep=clock.sleep)

    assert await extractor.search_match("Fenerbahce", "Galatasaray") == "ev-1"
    assert site.visits == ["https://www.bilyoner.com/iddaa"]


@pytest.mark.asyncio
async def test_search_exhausted_raises_match_not_found(executor, scraper_settings, site, clock) -> None:
    _script_site(site, rows=[{"id": "ev-9", "text": "Ajax - Roma"}])
    extractor = FootballExtractor(executor, scraper_settings, sleep=clock.sleep)

    with pytest.raises(MatchNotFound) as exc_info:
        await extractor.search_match("Fenerbahce", "Galatasaray")

    assert exc_info.value.message == "No match found for input: Fenerbahce-Galatasaray"
    assert exc_info.value.status_code == 404
    # Not retried: one browser session only
    assert len(site.launches) == 1


@pytest.mark.asyncio
async def test_search_stops_at_scroll_budget_when_listing_keeps_growing(executor, scraper_settings, site, clock) -> None:
    _script_site(site, rows=[{"id": "ev-9", "text": "Ajax - Roma"}])
    heights = iter(range(1000, 10**6, 500))
    site.scripts[SCROLL_HEIGHT_SCRIPT] = lambda page, arg: next(heights)
    settings = scraper_settings.model_copy(update={"max_scroll_steps": 12})
    extractor = FootballExtractor(executor, settings, sleep=clock.sleep)

    with pytest.raises(MatchNotFound):
        await extractor.search_match("Fenerbahce", "Galatasaray")

    assert next(heights) == 1000 + 12 * 500
    assert len(site.launches) == 1


@pytest.mark.asyncio
async def test_extract_stops_when_search_fails(executor, scraper_settings, site, clock) -> None:
    _script_site(site, rows=[])
    extractor = FootballExtractor(executor, scraper_settings, sleep=clock.sleep)
    trace = ExtractionTrace()

    with pytest.raises(MatchNotFound):
        await extractor.extract("Fenerbahce", "Galatasaray", trace=trace)

    assert trace.history == [ExtractionState.SEARCHING, ExtractionState.FAILED]


# ── Football extraction ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_football_extract_merges_all_substeps(executor, scraper_settings, site, clock) -> None:
    _script_site(site)
    extractor = FootballExtractor(executor, scraper_settings, sleep=clock.sleep)
    on_venue = AsyncMock(return_value="weather")
    trace = ExtractionTrace()

    result = await extractor.extract("Fenerbahce", "Galatasaray", on_venue=on_venue, trace=trace)

    assert result.match_id == "ev-1"
    assert result.venue == "Ülker Stadyumu"
    assert result.unavailable_players.home == ("Szymanski (Sakat)",)
    assert result.recent_results.between == (
        "01.02.2024: Fenerbahçe vs Galatasaray (FT: 2-1 - HT: 1-0)",
    )
    assert result.lineups.home.formation == "4-2-3-1"
    assert result.standings.home.overall.team == "Fenerbahçe"
    assert result.standings.away.overall.team == "Galatasaray"
    assert result.degraded == []
    on_venue.assert_awaited_once_with("Ülker Stadyumu")
    assert result.venue_result == "weather"
    assert trace.history[-1] == ExtractionState.MERGED
    # Every session opened for the run was released
    assert site.closed.count("browser") == len(site.launches)


@pytest.mark.asyncio
async def test_venue_failure_degrades_to_empty(executor, scraper_settings, site, clock) -> None:
    _script_site(site)
    site.statuses["/detay"] = 500
    extractor = FootballExtractor(executor, scraper_settings, sleep=clock.sleep)
    on_venue = AsyncMock(return_value="default-weather")

    result = await extractor.extract("Fenerbahce", "Galatasaray", on_venue=on_venue)

    assert result.venue == ""
    assert result.unavailable_players.home == ("Szymanski (Sakat)",)
    assert not result.lineups.is_empty
    assert "details" not in result.degraded
    on_venue.assert_awaited_once_with("")


@pytest.mark.asyncio
async def test_venue_kept_when_unavailable_players_page_fails(executor, scraper_settings, site, clock) -> None:
    def crash(page, arg):
        raise RuntimeError("injured-banned table missing")

    _script_site(site)
    site.scripts[UNAVAILABLE_SCRIPT] = crash
    extractor = FootballExtractor(executor, scraper_settings, sleep=clock.sleep)
    on_venue = AsyncMock(return_value="weather")

    result = await extractor.extract("Fenerbahce", "Galatasaray", on_venue=on_venue)

    assert result.degraded == ["details"]
    assert result.unavailable_players.home == ()
    assert result.venue == "Ülker Stadyumu"
    on_venue.assert_awaited_once_with("Ülker Stadyumu")
    assert result.venue_result == "weather"


@pytest.mark.asyncio
async def test_failed_substep_degrades_only_its_fields(executor, scraper_settings, site, clock) -> None:
    _script_site(site)
    site.statuses["/kadro"] = 503
    extractor = FootballExtractor(executor, scraper_settings, sleep=clock.sleep)

    result = await extractor.extract("Fenerbahce", "Galatasaray")

    assert result.degraded == ["lineups"]
    assert result.lineups.is_empty
    assert result.venue == "Ülker Stadyumu"
    assert result.standings.home.overall is not None


@pytest.mark.asyncio
async def test_empty_lineups_degrade(executor, scraper_settings, site, clock) -> None:
    _script_site(site)
    site.scripts[LINEUP_SCRIPT] = {"formation": "", "players": []}
    extractor = FootballExtractor(executor, scraper_settings, sleep=clock.sleep)

    result = await extractor.extract("Fenerbahce", "Galatasaray")

    assert "lineups" in result.degraded


# ── Basketball extraction ───────────────────────────────────────────────

@pytest.mark.asyncio
async def test_basketball_extract(executor, scraper_settings, site, clock) -> None:
    _script_site(site, rows=[{"id": "bb-7", "text": "Anadolu Efes - Fenerbahçe Beko"}])
    extractor = BasketballExtractor(executor, scraper_settings, sleep=clock.sleep)

    result = await extractor.extract("Anadolu Efes", "Fenerbahce Beko")

    assert result.match_id == "bb-7"
    assert result.venue == "Ülker Stadyumu"
    assert len(result.recent_results.home) == 1
    assert result.lineups.is_empty
    assert "https://www.bilyoner.com/mac-karti/basketbol/bb-7/karsilastirma" in site.visits
