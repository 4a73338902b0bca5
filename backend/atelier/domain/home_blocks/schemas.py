"""Pydantic schemas for home block APIs."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from atelier.domain.announcements.models import Announcement
from atelier.domain.collections.models import CollectionWithItems
from atelier.domain.home_blocks.models import HomeBlockMeta, HomeBlockType
from atelier.domain.leaderboards.models import LeaderboardWithResults


class GetHomeBlocksInput(BaseModel):
	limit: int = Field(default=8, ge=1, le=100)
	dismissed: Optional[List[int]] = None
	# viewer preferences forwarded to collection item reads
	excluded_user_ids: List[int] = Field(default_factory=list)
	excluded_image_ids: List[int] = Field(default_factory=list)


class GetHomeBlockByIdInput(GetHomeBlocksInput):
	id: int


class HomeBlockData(BaseModel):
	id: int
	type: HomeBlockType
	metadata: HomeBlockMeta
	collection: Optional[CollectionWithItems] = None
	leaderboards: Optional[List[LeaderboardWithResults]] = None
	announcements: Optional[List[Announcement]] = None
