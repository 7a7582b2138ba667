"""Prompt construction: a plain data dump plus the expected JSON fields."""
from __future__ import annotations

from typing import Optional, Type

from shared.models.domain import MatchRecord, StandingRow, TeamLineup

from predictor.schema import FootballPrediction, PredictionModel


def _lines(items) -> str:
    return "\n".join(f"  - {item}" for item in items) or "  - none"


def _standing(row: Optional[StandingRow]) -> str:
    if row is None:
        return "n/a"
    return (
        f"#{row.position} {row.team}: P{row.played} W{row.won} D{row.drawn} L{row.lost} "
        f"GF{row.goals_for} GA{row.goals_against} GD{row.goal_difference} Pts{row.points}"
    )


def _lineup(lineup: TeamLineup) -> str:
    players = ", ".join(
        f"{p.number or '-'} {p.name or '?'} ({p.position or '?'})" for p in lineup.players
    )
    return f"{lineup.formation}: {players or 'not announced'}"


def _expected_fields(model: Type[PredictionModel]) -> str:
    fields = [f.alias or name for name, f in model.model_fields.items()]
    return ", ".join(fields)


def build_prompt(record: MatchRecord, model: Type[PredictionModel]) -> str:
    w = record.weather
    sections = [
        f"Match: {record.home_team} vs {record.away_team} ({record.sport.value})",
        f"League: {record.league or 'unknown'}",
        f"Venue: {record.venue or 'unknown'}",
        f"Weather: {w.temperature}C, {w.condition}, humidity {w.humidity}%, wind {w.wind_speed}",
        f"Recent form {record.home_team}:\n{_lines(record.recent_results.iter_home())}",
        f"Recent form {record.away_team}:\n{_lines(record.recent_results.iter_away())}",
        f"Head to head:\n{_lines(record.recent_results.iter_between())}",
    ]
    if model is FootballPrediction:
        s = record.standings
        sections += [
            f"Unavailable {record.home_team}:\n{_lines(record.unavailable_players.home)}",
            f"Unavailable {record.away_team}:\n{_lines(record.unavailable_players.away)}",
            f"Lineup {record.home_team}: {_lineup(record.lineups.home)}",
            f"Lineup {record.away_team}: {_lineup(record.lineups.away)}",
            f"Standings {record.home_team}: overall {_standing(s.home.overall)}; "
            f"home {_standing(s.home.home_form)}; away {_standing(s.home.away_form)}",
            f"Standings {record.away_team}: overall {_standing(s.away.overall)}; "
            f"home {_standing(s.away.home_form)}; away {_standing(s.away.away_form)}",
        ]
    sections.append(
        "Respond with a single JSON object with the fields: "
        f"{_expected_fields(model)}. Percentages are numbers from 0 to 100 and the win "
        "percentages must sum to 100."
    )
    return "\n\n".join(sections)
