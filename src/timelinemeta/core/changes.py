"""Compute the change set between a record and a candidate."""

from typing import Optional

import structlog

from timelinemeta.models.media import MediaRecord
from timelinemeta.models.update import (
    ChangeSet,
    CoverImageMode,
    ReconciliationOptions,
    UpdateCandidate,
)

logger = structlog.get_logger(__name__)


def _is_empty(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


def _eligible(enabled: bool, current: Optional[str], options: ReconciliationOptions) -> bool:
    if not enabled:
        return False
    return _is_empty(current) if options.only_missing else True


def analyze_changes(
    record: MediaRecord,
    candidate: UpdateCandidate,
    options: ReconciliationOptions,
) -> Optional[ChangeSet]:
    """Derive the fields to update under the run's policy.

    A field is eligible when its option flag is on and, in only-missing
    mode, the record's value is empty. Eligible fields are proposed when
    the candidate value differs. In binary cover mode a cover is proposed
    even when the URL is unchanged, since the image still has to be
    ingested.

    Args:
        record: Current record
        candidate: Validated candidate
        options: Update policy

    Returns:
        ChangeSet, or None if nothing would change
    """
    changes = ChangeSet(candidate=candidate, source=candidate.source)

    if candidate.title and _eligible(options.update_titles, record.display_name, options):
        if candidate.title != record.display_name:
            changes.title = candidate.title

    if candidate.description and _eligible(
        options.update_descriptions, record.description, options
    ):
        if candidate.description != record.description:
            changes.description = candidate.description

    if candidate.cover_image_url and _eligible(
        options.update_cover_images, record.cover_image_url, options
    ):
        binary = options.cover_image_mode == CoverImageMode.BINARY
        if binary or candidate.cover_image_url != record.cover_image_url:
            changes.cover_image_url = candidate.cover_image_url
            changes.binary_cover = binary

    if not changes:
        return None

    logger.debug(
        "Changes detected",
        record_id=record.id,
        fields=changes.changed_fields(),
        source=changes.source,
    )
    return changes
