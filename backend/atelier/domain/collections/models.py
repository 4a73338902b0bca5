"""Domain models for curated collections."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CollectionItemStatus(str, Enum):
	ACCEPTED = "ACCEPTED"
	REVIEW = "REVIEW"
	REJECTED = "REJECTED"


class Collection(BaseModel):
	id: int
	name: str
	description: Optional[str] = None
	type: Optional[str] = None
	user_id: int
	nsfw: bool = False

	model_config = ConfigDict(from_attributes=True)


class CollectionItem(BaseModel):
	id: int
	collection_id: int
	status: CollectionItemStatus
	image_id: Optional[int] = None
	model_id: Optional[int] = None
	post_id: Optional[int] = None
	article_id: Optional[int] = None
	user_id: Optional[int] = None
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class CollectionWithItems(Collection):
	items: list[CollectionItem] = []
