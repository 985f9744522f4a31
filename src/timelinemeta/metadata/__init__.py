"""Metadata resolution components for timelinemeta.

This package contains the provider adapters (OMDb, TMDB, Trakt), identifier
extraction, title matching, rate limiting and the fallback resolver.
"""

from timelinemeta.metadata.identifiers import extract_identifiers
from timelinemeta.metadata.matching import validate_content_match
from timelinemeta.metadata.resolver import SourceFallbackResolver

__all__ = ["SourceFallbackResolver", "extract_identifiers", "validate_content_match"]
