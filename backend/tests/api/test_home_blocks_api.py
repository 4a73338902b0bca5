from unittest.mock import AsyncMock, patch

import pytest

from atelier.domain.home_blocks.models import HomeBlockMeta, HomeBlockType
from atelier.domain.home_blocks.schemas import HomeBlockData


@pytest.mark.asyncio
async def test_list_home_blocks_is_public(api_client):
	blocks = [HomeBlockData(id=1, type=HomeBlockType.SOCIAL, metadata=HomeBlockMeta(title="Follow"))]
	with patch(
		"atelier.domain.home_blocks.service.get_home_blocks_with_data", new=AsyncMock(return_value=blocks)
	) as resolve:
		resp = await api_client.get("/home-blocks", params={"limit": 3, "dismissed": [4, 5]})

	assert resp.status_code == 200
	body = resp.json()
	assert body == [{"id": 1, "type": "Social", "metadata": {"title": "Follow", "with_icon": False}}]
	data, user = resolve.await_args.args
	assert data.limit == 3
	assert data.dismissed == [4, 5]
	assert user is None


@pytest.mark.asyncio
async def test_list_home_blocks_passes_viewer(api_client):
	with patch(
		"atelier.domain.home_blocks.service.get_home_blocks_with_data", new=AsyncMock(return_value=[])
	) as resolve:
		resp = await api_client.get(
			"/home-blocks",
			params={"excluded_user_ids": [7]},
			headers={"X-User-Id": "12", "X-User-Roles": "moderator"},
		)

	assert resp.status_code == 200
	data, user = resolve.await_args.args
	assert data.excluded_user_ids == [7]
	assert user.id == 12 and user.is_moderator


@pytest.mark.asyncio
async def test_home_block_limit_validation(api_client):
	resp = await api_client.get("/home-blocks", params={"limit": 0})
	assert resp.status_code == 422
	assert resp.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_get_home_block_not_found_carries_request_id(api_client, mock_pool, mock_conn):
	mock_conn.fetchrow.return_value = None
	with patch("atelier.domain.home_blocks.service.get_pool", new=AsyncMock(return_value=mock_pool)):
		resp = await api_client.get("/home-blocks/99", headers={"X-Request-Id": "req-1"})

	assert resp.status_code == 404
	assert resp.json() == {"detail": "home_block_not_found", "request_id": "req-1"}
