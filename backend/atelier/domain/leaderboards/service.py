"""Leaderboard reads backing the home page leaderboard blocks."""

from __future__ import annotations

import json
from collections import defaultdict
from typing import Dict, List, Sequence

from atelier.domain.leaderboards.models import LeaderboardResult, LeaderboardWithResults
from atelier.infra.cache import JsonCache
from atelier.infra.postgres import get_pool
from atelier.settings import settings

_cache = JsonCache("lb:home:")


def _metrics(raw: object) -> Dict[str, object]:
	if raw is None:
		return {}
	if isinstance(raw, str):
		try:
			decoded = json.loads(raw)
		except json.JSONDecodeError:
			return {}
		return decoded if isinstance(decoded, dict) else {}
	return dict(raw)  # type: ignore[call-overload]


def _cache_suffix(ids: Sequence[str], is_moderator: bool) -> str:
	scope = "mod" if is_moderator else "public"
	return f"{scope}:{','.join(sorted(ids))}"


async def _load_leaderboards(ids: Sequence[str], is_moderator: bool) -> List[dict]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		leaderboard_rows = await conn.fetch(
			"""
			SELECT id, title, description, score_rating_label, public, index
			FROM leaderboards
			WHERE id = ANY($1::text[]) AND active = TRUE AND (public = TRUE OR $2)
			ORDER BY index ASC
			""",
			list(ids),
			is_moderator,
		)
		if not leaderboard_rows:
			return []
		result_rows = await conn.fetch(
			"""
			SELECT lr.leaderboard_id, lr.position, lr.user_id, u.username, lr.score, lr.metrics, lr.date
			FROM leaderboard_results lr
			LEFT JOIN users u ON u.id = lr.user_id
			WHERE lr.leaderboard_id = ANY($1::text[])
			  AND lr.date = (
				SELECT MAX(x.date) FROM leaderboard_results x WHERE x.leaderboard_id = lr.leaderboard_id
			  )
			  AND lr.position <= $2
			ORDER BY lr.leaderboard_id, lr.position
			""",
			[row["id"] for row in leaderboard_rows],
			settings.leaderboard_top_positions,
		)

	results: Dict[str, List[LeaderboardResult]] = defaultdict(list)
	for row in result_rows:
		results[row["leaderboard_id"]].append(
			LeaderboardResult(
				position=row["position"],
				user_id=row["user_id"],
				username=row["username"],
				score=float(row["score"]),
				metrics=_metrics(row["metrics"]),
				date=row["date"],
			)
		)
	return [
		LeaderboardWithResults(
			id=row["id"],
			title=row["title"],
			description=row["description"],
			score_rating_label=row["score_rating_label"],
			public=row["public"],
			index=row["index"],
			results=results.get(row["id"], []),
		).model_dump(mode="json")
		for row in leaderboard_rows
	]


async def get_leaderboards_with_results(*, ids: Sequence[str], is_moderator: bool = False) -> List[LeaderboardWithResults]:
	"""Return the requested leaderboards with their latest top results.

	Non-moderators only see public leaderboards. Results are cached in Redis per
	id set and audience.
	"""
	if not ids:
		return []
	payload = await _cache.get_or_build(
		_cache_suffix(ids, is_moderator),
		ttl=settings.leaderboard_cache_ttl_seconds,
		builder=lambda: _load_leaderboards(ids, is_moderator),
	)
	return [LeaderboardWithResults.model_validate(item) for item in payload]

