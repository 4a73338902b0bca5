"""Domain models for content leaderboards."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class LeaderboardResult(BaseModel):
	"""A ranked entry on a leaderboard's latest results date."""

	position: int = Field(..., ge=1)
	user_id: int
	username: Optional[str] = None
	score: float
	metrics: Dict[str, Any] = Field(default_factory=dict)
	date: date


class LeaderboardWithResults(BaseModel):
	id: str
	title: str
	description: Optional[str] = None
	score_rating_label: Optional[str] = None
	public: bool = True
	index: int = 0
	results: List[LeaderboardResult] = Field(default_factory=list)
