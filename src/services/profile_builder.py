"""
Turns raw ``users`` rows plus their joined ``casts`` rows into work items.

A user is eligible for enrichment only when it still lacks a summary or
embeddings, a casts record exists for it and that record carries a
``casts.data`` list. Everything else becomes an ineligible item that the
pipeline counts as skipped.
"""

from typing import Any, Dict, List, Sequence

import structlog
from pydantic import ValidationError

from src.models.user import CastRow, ChannelRef, UserProfile, UserRow
from src.models.work_item import WorkItem

logger = structlog.get_logger()

SKIP_INVALID_ROW = "invalid_row"
SKIP_ALREADY_ENRICHED = "already_enriched"
SKIP_MISSING_RELATED = "missing_related"


class ProfileBuilder:
    """Join users with casts and build enrichment payloads"""

    def __init__(self, key_field: str = "fid"):
        self.key_field = key_field

    def keys(self, rows: Sequence[Dict[str, Any]]) -> List[str]:
        """Primary keys of a page, in page order (rows without a key dropped)"""
        return [
            str(row[self.key_field])
            for row in rows
            if row.get(self.key_field) is not None
        ]

    def build(
        self,
        rows: Sequence[Dict[str, Any]],
        related_rows: Sequence[Dict[str, Any]],
    ) -> List[WorkItem]:
        """
        Build one work item per source row.

        Args:
            rows: Raw ``users`` rows of the page
            related_rows: Raw ``casts`` rows for the page's keys

        Returns:
            Work items in page order; ``eligible`` is False for rows that
            cannot be enriched
        """
        casts_by_key: Dict[str, CastRow] = {}
        for raw in related_rows:
            try:
                cast_row = CastRow.model_validate(raw)
            except ValidationError as e:
                logger.warning("invalid_casts_row", error=str(e))
                continue
            casts_by_key[cast_row.fid] = cast_row

        items: List[WorkItem] = []
        for raw in rows:
            key = raw.get(self.key_field)

            try:
                user = UserRow.model_validate(raw)
            except ValidationError as e:
                logger.warning("invalid_user_row", key=key, error=str(e))
                items.append(
                    WorkItem(key=str(key), eligible=False, skip_reason=SKIP_INVALID_ROW)
                )
                continue

            if is_enriched(user):
                items.append(
                    WorkItem(key=user.fid, eligible=False, skip_reason=SKIP_ALREADY_ENRICHED)
                )
                continue

            profile = create_user_profile(user, casts_by_key.get(user.fid))
            if profile is None:
                items.append(
                    WorkItem(key=user.fid, eligible=False, skip_reason=SKIP_MISSING_RELATED)
                )
            else:
                items.append(
                    WorkItem(
                        key=user.fid,
                        payload=profile.model_dump(mode="json"),
                        eligible=True,
                    )
                )

        return items


def is_enriched(user: UserRow) -> bool:
    """Both derived fields already written; a partial row is enriched again."""
    return user.embeddings is not None and user.summary is not None


def create_user_profile(user: UserRow, cast_row: CastRow | None) -> UserProfile | None:
    """Build the enrichment profile, or None when the user has no casts data."""
    if cast_row is None or cast_row.cast_list is None:
        return None

    channels: List[ChannelRef] = [
        ChannelRef(name=c.name, description=c.description)
        for c in (user.channels_following or []) + (user.channels_member or [])
    ]

    return UserProfile(
        fid=user.fid,
        bio=user.description,
        follower_count=user.follower_count,
        following_count=user.following_count,
        channels=channels,
        user_name=user.user_name,
        name=user.user_name,
        casts=cast_row.cast_list,
    )
