"""Extract provider identifiers from a record's ExternalLinks blob."""

import json
import re
from typing import Any, Optional

import structlog

from timelinemeta.models.media import ExternalIdentifierSet

logger = structlog.get_logger(__name__)

IDENTIFIER_KEYS = ("imdb", "tmdb", "trakt", "tvdb")

_IMDB_ID = re.compile(r"^tt\d+$")
_IMDB_IN_TEXT = re.compile(r"(?:imdb\.com/title/|^)(tt\d+)", re.IGNORECASE)

_URL_PATTERNS = {
    "imdb": re.compile(r"imdb\.com/title/([a-zA-Z0-9]+)", re.IGNORECASE),
    "tmdb": re.compile(r"themoviedb\.org/(?:movie|tv)/(\d+)", re.IGNORECASE),
    "trakt": re.compile(r"trakt\.tv/(?:movies|shows)/([a-zA-Z0-9-]+)", re.IGNORECASE),
    "tvdb": re.compile(r"thetvdb\.com/(?:series|movies)/([a-zA-Z0-9-]+)", re.IGNORECASE),
}


def normalize_imdb_id(value: str) -> Optional[str]:
    """Return the canonical "tt1234567" form of an IMDb id or URL.

    Args:
        value: Bare id or an imdb.com title URL

    Returns:
        Canonical id, or None if no "tt" id could be found
    """
    value = value.strip()
    if _IMDB_ID.match(value):
        return value
    if match := _IMDB_IN_TEXT.search(value):
        return match.group(1).lower()
    return None


def _scalar_to_str(value: Any) -> Optional[str]:
    """Coerce a JSON scalar to a non-empty string; other values are dropped."""
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def _from_mapping(data: dict) -> dict[str, str]:
    ids = {}
    for key in IDENTIFIER_KEYS:
        if (text := _scalar_to_str(data.get(key))) is None:
            continue
        if key == "imdb":
            # Numeric or odd values are kept as-is for the adapter to prefix
            text = normalize_imdb_id(text) or text
        ids[key] = text
    return ids


def _from_text(text: str) -> dict[str, str]:
    ids = {}
    for key, pattern in _URL_PATTERNS.items():
        if match := pattern.search(text):
            ids[key] = match.group(1)
    return ids


def extract_identifiers(external_links: Optional[str]) -> ExternalIdentifierSet:
    """Parse an ExternalLinks blob into provider identifiers.

    The blob is either a JSON object such as '{"imdb": "tt1160419", "tmdb": 438631}'
    or free text containing provider URLs. Unknown or unparsable parts are
    omitted. Never raises.

    Args:
        external_links: Raw ExternalLinks field

    Returns:
        ExternalIdentifierSet (possibly empty)
    """
    if not external_links or not external_links.strip():
        return ExternalIdentifierSet()

    try:
        parsed = json.loads(external_links)
    except (ValueError, TypeError):
        parsed = None

    if isinstance(parsed, dict):
        ids = _from_mapping(parsed)
        logger.debug("Parsed JSON external links", **ids)
    else:
        ids = _from_text(external_links)
        logger.debug("Parsed URL external links", **ids)

    return ExternalIdentifierSet(**ids)
