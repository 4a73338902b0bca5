"""Read helpers for collections shown on the home page."""

from __future__ import annotations

from typing import Iterable, List, Optional

from atelier.domain.collections.models import Collection, CollectionItem, CollectionItemStatus
from atelier.infra.postgres import get_pool

DEFAULT_ITEM_LIMIT = 8


async def get_collection_by_id(collection_id: int) -> Optional[Collection]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		row = await conn.fetchrow(
			"""
			SELECT id, name, description, type, user_id, nsfw
			FROM collections
			WHERE id = $1
			""",
			collection_id,
		)
	if not row:
		return None
	return Collection(**dict(row))


async def get_collection_items_by_collection_id(
	collection_id: int,
	*,
	limit: Optional[int] = None,
	excluded_user_ids: Iterable[int] = (),
	excluded_image_ids: Iterable[int] = (),
) -> List[CollectionItem]:
	"""Return accepted items, newest first, honouring the viewer's hidden users and images."""
	params: list[object] = [collection_id, CollectionItemStatus.ACCEPTED.value]
	clauses = ["ci.collection_id = $1", "ci.status = $2"]
	hidden_users = list(excluded_user_ids)
	if hidden_users:
		params.append(hidden_users)
		clauses.append(f"(ci.user_id IS NULL OR NOT (ci.user_id = ANY(${len(params)}::int[])))")
	hidden_images = list(excluded_image_ids)
	if hidden_images:
		params.append(hidden_images)
		clauses.append(f"(ci.image_id IS NULL OR NOT (ci.image_id = ANY(${len(params)}::int[])))")
	params.append(limit or DEFAULT_ITEM_LIMIT)

	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT ci.id, ci.collection_id, ci.status, ci.image_id, ci.model_id, ci.post_id,
			       ci.article_id, ci.user_id, ci.created_at
			FROM collection_items ci
			WHERE {" AND ".join(clauses)}
			ORDER BY ci.created_at DESC, ci.id DESC
			LIMIT ${len(params)}
			""",
			*params,
		)
	return [CollectionItem(**dict(row)) for row in rows]
