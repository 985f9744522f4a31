"""Title comparison: candidate validation and similarity scoring."""

import re
from typing import Optional

from timelinemeta.metadata.heuristic import base_title, split_title_year

_TOKEN = re.compile(r"[a-z0-9]+")


def _normalize(title: Optional[str]) -> str:
    return (title or "").strip().lower()


def validate_content_match(candidate_title: Optional[str], expected_title: Optional[str]) -> bool:
    """Check that a provider's title belongs to the record being enriched.

    Rules, first match wins:
    (a) case-insensitive exact match
    (b) expected title contains the candidate title
    (c) expected title's prefix before the first colon equals the candidate
    (d) titles equal once a trailing "(YYYY)" is stripped from both

    Args:
        candidate_title: Title returned by the provider
        expected_title: Record's display title

    Returns:
        True if the candidate is accepted
    """
    candidate = _normalize(candidate_title)
    expected = _normalize(expected_title)
    if not candidate or not expected:
        return False

    if candidate == expected:
        return True
    if candidate in expected:
        return True
    if base_title(expected) == candidate:
        return True
    return split_title_year(expected)[0] == split_title_year(candidate)[0]


def title_similarity(first: Optional[str], second: Optional[str]) -> float:
    """Coarse token-overlap similarity between two titles.

    Jaccard index over lowercase alphanumeric words.

    Returns:
        Score between 0.0 and 1.0
    """
    first_tokens = set(_TOKEN.findall(_normalize(first)))
    second_tokens = set(_TOKEN.findall(_normalize(second)))
    if not first_tokens and not second_tokens:
        return 1.0 if _normalize(first) == _normalize(second) else 0.0
    if not first_tokens or not second_tokens:
        return 0.0
    overlap = first_tokens & second_tokens
    return len(overlap) / len(first_tokens | second_tokens)
