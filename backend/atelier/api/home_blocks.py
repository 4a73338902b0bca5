"""Public routes serving the home page blocks."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from atelier.domain.home_blocks import service
from atelier.domain.home_blocks.schemas import GetHomeBlockByIdInput, GetHomeBlocksInput, HomeBlockData
from atelier.infra.auth import AuthenticatedUser, get_optional_user

router = APIRouter(prefix="/home-blocks", tags=["home-blocks"])


@router.get("", response_model=List[HomeBlockData], response_model_exclude_none=True)
async def list_home_blocks(
	limit: int = Query(default=8, ge=1, le=100),
	dismissed: Optional[List[int]] = Query(default=None),
	excluded_user_ids: Optional[List[int]] = Query(default=None),
	excluded_image_ids: Optional[List[int]] = Query(default=None),
	user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> List[HomeBlockData]:
	data = GetHomeBlocksInput(
		limit=limit,
		dismissed=dismissed,
		excluded_user_ids=excluded_user_ids or [],
		excluded_image_ids=excluded_image_ids or [],
	)
	return await service.get_home_blocks_with_data(data, user)


@router.get("/{home_block_id}", response_model=Optional[HomeBlockData], response_model_exclude_none=True)
async def get_home_block(
	home_block_id: int,
	dismissed: Optional[List[int]] = Query(default=None),
	excluded_user_ids: Optional[List[int]] = Query(default=None),
	excluded_image_ids: Optional[List[int]] = Query(default=None),
	user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> Optional[HomeBlockData]:
	data = GetHomeBlockByIdInput(
		id=home_block_id,
		dismissed=dismissed,
		excluded_user_ids=excluded_user_ids or [],
		excluded_image_ids=excluded_image_ids or [],
	)
	return await service.get_home_block_by_id(data, user)
