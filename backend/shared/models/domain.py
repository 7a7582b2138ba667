"""
Pydantic v2 domain models shared across all MatchScout packages.
These are the canonical wire/internal representations and the cache payload.
"""
from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timezone
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import ProviderName, Sport

_WHITESPACE = re.compile(r"\s+")


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FrozenModel(BaseModel):
    """Immutable value object; replaced, never mutated."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ── Match key ───────────────────────────────────────────────────────────
def normalize_team_name(name: str) -> str:
    """Unicode-compose, collapse internal whitespace, trim and lower-case."""
    composed = unicodedata.normalize("NFKC", name or "")
    return _WHITESPACE.sub(" ", composed).strip().lower()


def make_match_key(home_team: str, away_team: str) -> str:
    """Cache slot and scrape target identifier: ``home-away`` in normalized form."""
    return f"{normalize_team_name(home_team)}-{normalize_team_name(away_team)}"


# ── Weather ─────────────────────────────────────────────────────────────
class WeatherSnapshot(FrozenModel):
    temperature: float
    condition: str
    humidity: float
    wind_speed: float

    @classmethod
    def default(cls) -> "WeatherSnapshot":
        """Documented fallback when geocoding or the weather API is unavailable."""
        return cls(temperature=20, condition="Unknown", humidity=50, wind_speed=5)


# ── Lineups ─────────────────────────────────────────────────────────────
class PlayerSlot(FrozenModel):
    number: Optional[int] = None
    name: Optional[str] = None
    position: Optional[str] = None


class TeamLineup(FrozenModel):
    formation: str = "Unknown"
    players: tuple[PlayerSlot, ...] = ()


class Lineups(FrozenModel):
    home: TeamLineup = Field(default_factory=TeamLineup)
    away: TeamLineup = Field(default_factory=TeamLineup)

    @property
    def is_empty(self) -> bool:
        return not self.home.players and not self.away.players


# ── Standings ───────────────────────────────────────────────────────────
class StandingRow(FrozenModel):
    position: int = 0
    team: str = ""
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0


class TeamStanding(FrozenModel):
    overall: Optional[StandingRow] = None
    home_form: Optional[StandingRow] = None
    away_form: Optional[StandingRow] = None


class Standings(FrozenModel):
    home: TeamStanding = Field(default_factory=TeamStanding)
    away: TeamStanding = Field(default_factory=TeamStanding)


# ── Results and availability ────────────────────────────────────────────
class RecentResults(FrozenModel):
    """Formatted result strings, most recent first."""
    home: tuple[str, ...] = ()
    away: tuple[str, ...] = ()
    between: tuple[str, ...] = ()

    def iter_home(self) -> Iterator[str]:
        yield from self.home

    def iter_away(self) -> Iterator[str]:
        yield from self.away

    def iter_between(self) -> Iterator[str]:
        yield from self.between


class UnavailablePlayers(FrozenModel):
    home: tuple[str, ...] = ()
    away: tuple[str, ...] = ()


# ── Merged record ───────────────────────────────────────────────────────
class MatchRecord(FrozenModel):
    """
    Merged facts for one fixture. Built once per cache miss by the aggregator
    and superseded by a fresh record after the cache TTL expires.
    """
    key: str
    sport: Sport
    home_team: str
    away_team: str
    league: Optional[str] = None
    venue: str = ""
    unavailable_players: UnavailablePlayers = Field(default_factory=UnavailablePlayers)
    recent_results: RecentResults = Field(default_factory=RecentResults)
    lineups: Lineups = Field(default_factory=Lineups)
    standings: Standings = Field(default_factory=Standings)
    weather: WeatherSnapshot = Field(default_factory=WeatherSnapshot.default)
    built_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, payload: bytes | str) -> "MatchRecord":
        return cls.model_validate_json(payload)


# ── Browser session identity ────────────────────────────────────────────
class ProxyDescriptor(FrozenModel):
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    protocol: str = "http"

    @property
    def server(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    def to_playwright(self) -> dict[str, str]:
        proxy = {"server": self.server}
        if self.username:
            proxy["username"] = self.username
        if self.password:
            proxy["password"] = self.password
        return proxy


class SessionFingerprint(FrozenModel):
    user_agent: str
    viewport_width: int = 1366
    viewport_height: int = 768
    locale: str = "en-US"
    extra_headers: dict[str, str] = Field(default_factory=dict)
    proxy: Optional[ProxyDescriptor] = None


# ── Accuracy ────────────────────────────────────────────────────────────
class LeagueAccuracy(DomainModel):
    correct: int = 0
    total: int = 0


class AccuracyRecord(DomainModel):
    provider: ProviderName
    correct_predictions: int = 0
    total_predictions: int = 0
    per_league: dict[str, LeagueAccuracy] = Field(default_factory=dict)


class RankedPrediction(DomainModel):
    """Schema-valid provider response plus a transient ranking weight."""
    provider: ProviderName
    prediction: dict
    weight: float = 1.0
