"""Domain models for configurable home page blocks."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HomeBlockType(str, Enum):
	COLLECTION = "Collection"
	LEADERBOARD = "Leaderboard"
	ANNOUNCEMENT = "Announcement"
	SOCIAL = "Social"
	EVENT = "Event"


class CollectionBlockMeta(BaseModel):
	id: Optional[int] = None
	limit: Optional[int] = Field(default=None, ge=1)
	rows: Optional[int] = Field(default=None, ge=1)


class LeaderboardBlockEntry(BaseModel):
	id: str
	index: Optional[int] = None


class AnnouncementBlockMeta(BaseModel):
	ids: Optional[List[int]] = None
	limit: Optional[int] = Field(default=None, ge=1)


class HomeBlockMeta(BaseModel):
	title: Optional[str] = None
	description: Optional[str] = None
	link: Optional[str] = None
	link_text: Optional[str] = None
	with_icon: bool = False
	collection: Optional[CollectionBlockMeta] = None
	leaderboards: Optional[List[LeaderboardBlockEntry]] = None
	announcements: Optional[AnnouncementBlockMeta] = None

	model_config = ConfigDict(extra="allow")


class HomeBlock(BaseModel):
	"""A stored home block row: what to render and how to configure it."""

	id: int
	type: HomeBlockType
	metadata: Optional[Dict[str, Any]] = None
	index: Optional[int] = None
