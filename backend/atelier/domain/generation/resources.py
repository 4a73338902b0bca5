"""Resolution of model version ids to the metadata generation needs."""

from __future__ import annotations

from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from atelier.domain.generation.constants import ModelType
from atelier.infra.postgres import get_pool


class GenerationCoverage(BaseModel):
	covered: bool = False


class ResourceModel(BaseModel):
	id: int
	name: str
	type: ModelType
	poi: bool = False
	nsfw: bool = False


class GenerationResource(BaseModel):
	"""A model version as seen by the generation pipeline."""

	id: int
	name: str
	base_model: str
	trained_words: List[str] = Field(default_factory=list)
	model: ResourceModel
	generation_coverage: Optional[GenerationCoverage] = None


async def get_resource_data(version_ids: Iterable[int]) -> List[GenerationResource]:
	ids = sorted(set(version_ids))
	if not ids:
		return []
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			"""
			SELECT mv.id, mv.name, mv.base_model, mv.trained_words,
			       m.id AS model_id, m.name AS model_name, m.type AS model_type, m.poi, m.nsfw,
			       gc.covered
			FROM model_versions mv
			JOIN models m ON m.id = mv.model_id
			LEFT JOIN generation_coverage gc ON gc.model_version_id = mv.id
			WHERE mv.id = ANY($1::int[])
			""",
			ids,
		)
	return [
		GenerationResource(
			id=row["id"],
			name=row["name"],
			base_model=row["base_model"],
			trained_words=list(row["trained_words"] or []),
			model=ResourceModel(
				id=row["model_id"],
				name=row["model_name"],
				type=row["model_type"],
				poi=bool(row["poi"]),
				nsfw=bool(row["nsfw"]),
			),
			generation_coverage=GenerationCoverage(covered=bool(row["covered"])) if row["covered"] is not None else None,
		)
		for row in rows
	]
