"""Announcement reads for the home page."""

from __future__ import annotations

import json
from typing import Iterable, List, Optional

from atelier.domain.announcements.models import Announcement, AnnouncementAudience, AnnouncementMetadata
from atelier.infra.auth import AuthenticatedUser
from atelier.infra.postgres import get_pool


def _metadata(raw: object) -> AnnouncementMetadata:
	if raw is None:
		return AnnouncementMetadata()
	if isinstance(raw, str):
		raw = json.loads(raw)
	return AnnouncementMetadata.model_validate(raw)


async def get_announcements(
	*,
	ids: Optional[Iterable[int]] = None,
	dismissed: Optional[Iterable[int]] = None,
	limit: Optional[int] = None,
	user: Optional[AuthenticatedUser] = None,
) -> List[Announcement]:
	"""Return announcements that are live right now and not dismissed by the viewer."""
	audiences = [AnnouncementAudience.ALL.value]
	audiences.append(
		AnnouncementAudience.AUTHENTICATED.value if user is not None else AnnouncementAudience.UNAUTHENTICATED.value
	)
	params: list[object] = [audiences]
	clauses = [
		"(a.start_date IS NULL OR a.start_date <= NOW())",
		"(a.end_date IS NULL OR a.end_date >= NOW())",
		"COALESCE(a.metadata->>'target_audience', 'all') = ANY($1::text[])",
	]
	if ids is not None:
		params.append(list(ids))
		clauses.append(f"a.id = ANY(${len(params)}::int[])")
	hidden = list(dismissed or [])
	if hidden:
		params.append(hidden)
		clauses.append(f"NOT (a.id = ANY(${len(params)}::int[]))")
	limit_clause = ""
	if limit:
		params.append(limit)
		limit_clause = f"LIMIT ${len(params)}"

	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT a.id, a.title, a.content, a.emoji, a.color, a.start_date, a.end_date, a.metadata
			FROM announcements a
			WHERE {" AND ".join(clauses)}
			ORDER BY a.start_date DESC NULLS LAST, a.id DESC
			{limit_clause}
			""",
			*params,
		)
	return [
		Announcement(
			id=row["id"],
			title=row["title"],
			content=row["content"],
			emoji=row["emoji"],
			color=row["color"],
			start_date=row["start_date"],
			end_date=row["end_date"],
			metadata=_metadata(row["metadata"]),
		)
		for row in rows
	]
