"""Title heuristics: season/episode numbers, trailing years and base titles."""

import re
from typing import Optional

import structlog

from timelinemeta.models.media import EpisodeHint

logger = structlog.get_logger(__name__)

# Ordered most to least specific; the first match wins
_EPISODE_PATTERNS = (
    # S01E01, s1e1, S01.E01
    re.compile(r"\bS(\d{1,3})[\s.]?E(\d{1,4})\b", re.IGNORECASE),
    # Season 1 Episode 2, Season 1, Episode 2
    re.compile(r"\bSeason\s*(\d{1,3})\s*,?\s*Episode\s*(\d{1,4})\b", re.IGNORECASE),
    # 1x01
    re.compile(r"\b(\d{1,2})x(\d{2,3})\b", re.IGNORECASE),
)

_SEASON_PATTERNS = (
    re.compile(r"\bSeason\s*(\d{1,3})\b", re.IGNORECASE),
    re.compile(r"\bS(\d{1,3})\b", re.IGNORECASE),
)

_TRAILING_YEAR = re.compile(r"^(.*?)\s*\((\d{4})\)\s*$")


def parse_episode_numbers(text: Optional[str]) -> Optional[tuple[int, Optional[int]]]:
    """Extract season and episode numbers from free text.

    Patterns supported:
    - "S01E01", "s1e1", "S01.E01"
    - "Season 1 Episode 2"
    - "1x02"
    - "Season 1", "S01" (season only)

    Args:
        text: Subtitle or display title

    Returns:
        (season, episode) tuple, episode None for season-only text,
        or None if no pattern matched
    """
    if not text:
        return None

    for pattern in _EPISODE_PATTERNS:
        if match := pattern.search(text):
            return int(match.group(1)), int(match.group(2))

    for pattern in _SEASON_PATTERNS:
        if match := pattern.search(text):
            return int(match.group(1)), None

    return None


def resolve_episode_hint(
    subtitle: Optional[str],
    display_name: Optional[str],
) -> Optional[EpisodeHint]:
    """Resolve season/episode numbers for a record.

    The structured subtitle is authoritative; the display title is only
    parsed when the subtitle is absent or yields nothing.

    Args:
        subtitle: Structured hint such as "S02E01" or "Season 2"
        display_name: Rendered title, e.g. "Show: Season 2"

    Returns:
        EpisodeHint or None if neither source has numbers
    """
    if numbers := parse_episode_numbers(subtitle):
        return EpisodeHint(season=numbers[0], episode=numbers[1], origin="subtitle")

    if numbers := parse_episode_numbers(display_name):
        logger.debug(
            "Episode numbers taken from display title",
            display_name=display_name,
            subtitle=subtitle,
        )
        return EpisodeHint(season=numbers[0], episode=numbers[1], origin="display_name")

    return None


def split_title_year(title: str) -> tuple[str, Optional[int]]:
    """Split a trailing "(YYYY)" off a title.

    Args:
        title: Title such as "Dune (2021)"

    Returns:
        (title without year, year or None)
    """
    if match := _TRAILING_YEAR.match(title):
        return match.group(1).strip(), int(match.group(2))
    return title.strip(), None


def base_title(title: str) -> str:
    """Return the part of a title before its first colon."""
    return title.split(":", 1)[0].strip()
