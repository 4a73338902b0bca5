"""Domain models for site announcements."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class AnnouncementAudience(str, Enum):
	ALL = "all"
	AUTHENTICATED = "authenticated"
	UNAUTHENTICATED = "unauthenticated"


class AnnouncementAction(BaseModel):
	type: str = "button"
	link: str
	link_text: str
	variant: Optional[str] = None


class AnnouncementMetadata(BaseModel):
	index: Optional[int] = None
	target_audience: AnnouncementAudience = AnnouncementAudience.ALL
	dismissible: bool = True
	actions: List[AnnouncementAction] = Field(default_factory=list)


class Announcement(BaseModel):
	id: int
	title: str
	content: str
	emoji: Optional[str] = None
	color: Optional[str] = None
	start_date: Optional[datetime] = None
	end_date: Optional[datetime] = None
	metadata: AnnouncementMetadata = Field(default_factory=AnnouncementMetadata)
