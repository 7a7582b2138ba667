"""Domain enumerations for MatchScout."""
from __future__ import annotations

from enum import Enum


class Sport(str, Enum):
    FOOTBALL = "football"
    BASKETBALL = "basketball"


class HalfTimeWinner(str, Enum):
    HOME = "home"
    AWAY = "away"
    DRAW = "draw"


class ProviderName(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    COHERE = "cohere"
    ANTHROPIC = "anthropic"
    MISTRAL = "mistral"


class StandingView(str, Enum):
    """Standings table tabs, in the order the site lists them."""
    OVERALL = "overall"
    HOME_FORM = "home_form"
    AWAY_FORM = "away_form"
