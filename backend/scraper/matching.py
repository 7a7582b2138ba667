"""
Fuzzy team-name matching.

Pure functions with no browser dependency: listing rows and standings tables
use abbreviated or localized names, so lookups go through normalize, score,
then threshold.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

SIMILARITY_THRESHOLD = 0.7
INCLUSION_BONUS = 0.5
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_text(text: str) -> str:
    """Lower-case, strip diacritics and drop everything outside ``[a-z0-9]``."""
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("", stripped)


def _includes(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def name_similarity(a: str, b: str) -> float:
    """
    1.0 when one normalized name contains the other, 0.8 when they share any
    character bigram, otherwise 0. Names shorter than two characters score 0.
    """
    a, b = normalize_text(a), normalize_text(b)
    if len(a) < 2 or len(b) < 2:
        return 0.0
    if _includes(a, b):
        return 1.0
    if any(a[i:i + 2] in b for i in range(len(a) - 1)):
        return 0.8
    return 0.0


def teams_match(
    row_home: str,
    row_away: str,
    home: str,
    away: str,
    threshold: float = SIMILARITY_THRESHOLD,
) -> bool:
    """True when a listing row names the requested fixture."""
    rh, ra = normalize_text(row_home), normalize_text(row_away)
    h, a = normalize_text(home), normalize_text(away)
    if _includes(rh, h) and _includes(ra, a):
        return True
    return name_similarity(rh, h) >= threshold and name_similarity(ra, a) >= threshold


def split_row_teams(text: str) -> Optional[tuple[str, str]]:
    """Split ``"Home - Away"`` listing text; None unless exactly two sides."""
    parts = [p.strip() for p in (text or "").split("-")]
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def lcs_length(a: str, b: str) -> int:
    """Length of the longest common subsequence."""
    if not a or not b:
        return 0
    prev = [0] * (len(b) + 1)
    for ch_a in a:
        cur = [0]
        for j, ch_b in enumerate(b, start=1):
            if ch_a == ch_b:
                cur.append(prev[j - 1] + 1)
            else:
                cur.append(max(prev[j], cur[j - 1]))
        prev = cur
    return prev[-1]


def standing_score(target: str, candidate: str) -> float:
    """LCS ratio over the longer name plus a bonus for direct inclusion."""
    t, c = normalize_text(target), normalize_text(candidate)
    longest = max(len(t), len(c))
    if longest == 0:
        return 0.0
    score = lcs_length(t, c) / longest
    if _includes(t, c):
        score += INCLUSION_BONUS
    return score


def best_match(
    target: str,
    candidates: Sequence[T],
    key=lambda item: item,
) -> Optional[T]:
    """Highest ``standing_score`` candidate; the first listed wins exact ties."""
    best: Optional[T] = None
    best_score = float("-inf")
    for candidate in candidates:
        score = standing_score(target, key(candidate))
        if score > best_score:
            best, best_score = candidate, score
    return best
