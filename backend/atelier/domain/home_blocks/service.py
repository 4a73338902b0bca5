"""Assembly of home page blocks from their stored configuration."""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from atelier.domain.announcements.service import get_announcements
from atelier.domain.collections.models import CollectionWithItems
from atelier.domain.collections.service import get_collection_by_id, get_collection_items_by_collection_id
from atelier.domain.common import errors
from atelier.domain.home_blocks.models import HomeBlock, HomeBlockMeta, HomeBlockType
from atelier.domain.home_blocks.schemas import GetHomeBlockByIdInput, GetHomeBlocksInput, HomeBlockData
from atelier.domain.leaderboards.service import get_leaderboards_with_results
from atelier.infra.auth import AuthenticatedUser
from atelier.infra.postgres import get_pool
from atelier.obs import metrics as obs_metrics
from atelier.obs.logging import get_logger

logger = get_logger(__name__)

HOME_BLOCK_COLUMNS = frozenset({"id", "type", "metadata", "index", "user_id"})
DEFAULT_COLUMNS = ("id", "type", "metadata", "index")

# announcements without an explicit index sort after the indexed ones
_UNINDEXED_ANNOUNCEMENT = 999

# rounds of dropping invalid metadata entries before giving up on the whole document
_METADATA_REPAIR_ROUNDS = 3


def _decode_metadata(raw: Any) -> Optional[Dict[str, Any]]:
	if raw is None:
		return None
	if isinstance(raw, str):
		return json.loads(raw)
	return dict(raw)


_DROPPED = object()


def _drop_invalid(raw: Dict[str, Any], loc: Sequence[Any]) -> str:
	"""Remove the value an error location points at; list entries are removed whole."""
	positions = [i for i, part in enumerate(loc) if isinstance(part, int)]
	cut = positions[-1] + 1 if positions else len(loc)
	parent: Any = raw
	for part in loc[: cut - 1]:
		parent = parent[part]
	key = loc[cut - 1]
	if isinstance(parent, list):
		parent[key] = _DROPPED
	else:
		parent.pop(key, None)
	return ".".join(str(part) for part in loc[:cut])


def _prune(value: Any) -> Any:
	if isinstance(value, dict):
		return {k: _prune(v) for k, v in value.items()}
	if isinstance(value, list):
		return [_prune(item) for item in value if item is not _DROPPED]
	return value


def _parse_meta(home_block: HomeBlock) -> HomeBlockMeta:
	"""Validate block metadata, dropping only the entries that fail validation."""
	raw: Dict[str, Any] = copy.deepcopy(home_block.metadata or {})
	for _ in range(_METADATA_REPAIR_ROUNDS):
		try:
			return HomeBlockMeta.model_validate(raw)
		except ValidationError as exc:
			dropped = sorted({_drop_invalid(raw, error["loc"]) for error in exc.errors() if error["loc"]})
			raw = _prune(raw)
		logger.warning("home_block_invalid_metadata", extra={"home_block_id": home_block.id, "dropped": dropped})
		if not dropped:
			break
	logger.error("home_block_unusable_metadata", extra={"home_block_id": home_block.id})
	return HomeBlockMeta()


async def get_home_blocks(*, columns: Sequence[str] = DEFAULT_COLUMNS) -> List[Dict[str, Any]]:
	"""Return home block rows ordered by their display index."""
	selected = [column for column in columns if column in HOME_BLOCK_COLUMNS]
	unknown = set(columns) - HOME_BLOCK_COLUMNS
	if unknown or not selected:
		raise ValueError(f"unsupported home block columns: {sorted(unknown) or list(columns)}")

	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f'SELECT {", ".join(f"hb.{column}" for column in selected)} FROM home_blocks hb ORDER BY hb.index ASC'
		)
	blocks: List[Dict[str, Any]] = []
	for row in rows:
		block = dict(row)
		if "metadata" in block:
			block["metadata"] = _decode_metadata(block["metadata"])
		blocks.append(block)
	return blocks


async def get_home_block_by_id(
	data: GetHomeBlockByIdInput, user: Optional[AuthenticatedUser] = None
) -> Optional[HomeBlockData]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		row = await conn.fetchrow(
			"SELECT id, metadata, type FROM home_blocks WHERE id = $1",
			data.id,
		)
	if not row:
		raise errors.not_found("home_block_not_found")

	home_block = _as_block({"id": row["id"], "type": row["type"], "metadata": _decode_metadata(row["metadata"])})
	if home_block is None:
		return None
	return await get_home_block_data(home_block, user=user, data=data)


async def get_home_block_data(
	home_block: HomeBlock,
	*,
	user: Optional[AuthenticatedUser],
	data: GetHomeBlocksInput,
) -> Optional[HomeBlockData]:
	"""Resolve what a block renders; None means the block should be hidden."""
	metadata = _parse_meta(home_block)
	block = await _resolve_block(home_block, metadata, user=user, data=data)
	obs_metrics.inc_home_block(home_block.type.value, block is not None)
	return block


async def _resolve_block(
	home_block: HomeBlock,
	metadata: HomeBlockMeta,
	*,
	user: Optional[AuthenticatedUser],
	data: GetHomeBlocksInput,
) -> Optional[HomeBlockData]:
	if home_block.type is HomeBlockType.COLLECTION:
		if not metadata.collection or not metadata.collection.id:
			return None

		collection = await get_collection_by_id(metadata.collection.id)
		if collection is None:
			return None

		# TODO: let callers request a per-block item limit instead of the configured one
		items = await get_collection_items_by_collection_id(
			collection.id,
			limit=metadata.collection.limit,
			excluded_user_ids=data.excluded_user_ids,
			excluded_image_ids=data.excluded_image_ids,
		)
		return HomeBlockData(
			id=home_block.id,
			type=HomeBlockType.COLLECTION,
			metadata=metadata,
			collection=CollectionWithItems(**collection.model_dump(), items=items),
		)

	if home_block.type is HomeBlockType.LEADERBOARD:
		if metadata.leaderboards is None:
			return None

		positions = {entry.id: entry.index for entry in metadata.leaderboards}
		leaderboards = await get_leaderboards_with_results(
			ids=[entry.id for entry in metadata.leaderboards],
			is_moderator=bool(user and user.is_moderator),
		)
		leaderboards.sort(key=lambda leaderboard: positions.get(leaderboard.id) or 0)
		return HomeBlockData(
			id=home_block.id,
			type=home_block.type,
			metadata=metadata,
			leaderboards=leaderboards,
		)

	if home_block.type is HomeBlockType.ANNOUNCEMENT:
		if metadata.announcements is None:
			return None

		announcements = await get_announcements(
			ids=metadata.announcements.ids,
			dismissed=data.dismissed,
			limit=metadata.announcements.limit,
			user=user,
		)
		if not announcements:
			# the viewer dismissed everything this block would show
			return None

		announcements.sort(
			key=lambda announcement: (
				announcement.metadata.index
				if announcement.metadata.index is not None
				else _UNINDEXED_ANNOUNCEMENT
			)
		)
		return HomeBlockData(
			id=home_block.id,
			type=home_block.type,
			metadata=metadata,
			announcements=announcements,
		)

	return HomeBlockData(id=home_block.id, type=home_block.type, metadata=metadata)


async def get_home_blocks_with_data(
	data: GetHomeBlocksInput, user: Optional[AuthenticatedUser] = None
) -> List[HomeBlockData]:
	"""Resolve every configured block in display order, dropping hidden ones."""
	rows = await get_home_blocks(columns=("id", "type", "metadata"))
	resolved: List[HomeBlockData] = []
	for home_block in _as_blocks(rows):
		block = await get_home_block_data(home_block, user=user, data=data)
		if block is not None:
			resolved.append(block)
		if len(resolved) >= data.limit:
			break
	return resolved


def _as_block(row: Dict[str, Any]) -> Optional[HomeBlock]:
	"""Build a block from its row; blocks of a type this service does not render are hidden."""
	try:
		return HomeBlock(**row)
	except ValidationError:
		logger.warning("home_block_unknown_type", extra={"home_block_id": row.get("id"), "type": row.get("type")})
		return None


def _as_blocks(rows: Iterable[Dict[str, Any]]) -> Iterable[HomeBlock]:
	for row in rows:
		home_block = _as_block(row)
		if home_block is not None:
			yield home_block
