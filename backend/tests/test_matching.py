"""Unit tests for fuzzy team-name matching (pure functions)."""
from __future__ import annotations

import pytest

from scraper.matching import (
    best_match,
    lcs_length,
    name_similarity,
    normalize_text,
    split_row_teams,
    standing_score,
    teams_match,
)


# ── normalize_text ──────────────────────────────────────────────────────

class TestNormalizeText:
    def test_strips_diacritics_and_punctuation(self) -> None:
        assert normalize_text("Fenerbahçe S.K.") == "fenerbahcesk"

    def test_none_and_empty(self) -> None:
        assert normalize_text("") == ""
        assert normalize_text(None) == ""  # type: ignore[arg-type]


# ── name_similarity / teams_match ───────────────────────────────────────

class TestSimilarity:
    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("Fener", "Fenerbahce", 1.0),
            ("Galatasaray", "galatasaray", 1.0),
            ("Besiktas", "Basaksehir", 0.8),
            ("Ajax", "Roma", 0.0),
            ("A", "Arsenal", 0.0),
        ],
    )
    def test_name_similarity(self, a: str, b: str, expected: float) -> None:
        assert name_similarity(a, b) == expected

    def test_teams_match_accepts_localized_names(self) -> None:
        assert teams_match("Fenerbahçe", "Galatasaray", "Fenerbahce", "Galatasaray")

    def test_teams_match_requires_both_sides(self) -> None:
        assert not teams_match("Fenerbahçe", "Ajax", "Fenerbahce", "Roma")

    def test_empty_row_side_never_matches(self) -> None:
        assert not teams_match("", "", "Fenerbahce", "Galatasaray")


class TestSplitRowTeams:
    def test_two_sides(self) -> None:
        assert split_row_teams("Fenerbahçe - Galatasaray") == ("Fenerbahçe", "Galatasaray")

    def test_rejects_other_shapes(self) -> None:
        assert split_row_teams("Fenerbahçe") is None
        assert split_row_teams("A - B - C") is None


# ── Standings lookup ────────────────────────────────────────────────────

class TestStandingScore:
    def test_lcs_length(self) -> None:
        assert lcs_length("galatasaray", "galatasarayas") == 11
        assert lcs_length("", "abc") == 0

    def test_inclusion_bonus(self) -> None:
        assert standing_score("Galatasaray", "Galatasaray A.Ş.") == pytest.approx(11 / 13 + 0.5)

    def test_best_match_prefers_closest(self) -> None:
        rows = ["Fenerbahçe", "Galatasaray A.Ş.", "Beşiktaş"]
        assert best_match("Galatasaray", rows) == "Galatasaray A.Ş."

    def test_best_match_with_key(self) -> None:
        rows = [{"team": "Trabzonspor"}, {"team": "Konyaspor"}]
        assert best_match("Konya", rows, key=lambda r: r["team"]) == {"team": "Konyaspor"}

    def test_first_listed_wins_ties(self) -> None:
        assert best_match("zz", ["ab", "cd"]) == "ab"

    def test_empty_candidates(self) -> None:
        assert best_match("Galatasaray", []) is None
