"""Pydantic schemas for club membership CRUD."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from atelier.domain.clubs.models import ClubMembershipRole, ClubMembershipSort
from atelier.domain.common.pagination import InfiniteQuerySchema


class GetInfiniteClubMembershipsSchema(InfiniteQuerySchema):
    user_id: Optional[int] = None
    club_id: int
    limit: int = Field(default=60, ge=1, le=200)
    roles: Optional[List[ClubMembershipRole]] = None
    club_tier_id: Optional[int] = None
    sort: ClubMembershipSort = ClubMembershipSort.NEXT_BILLING_DATE


class CreateClubMembershipInput(BaseModel):
    user_id: Optional[int] = None
    club_tier_id: int


class UpdateClubMembershipInput(BaseModel):
    club_tier_id: int
    user_id: Optional[int] = None
    role: Optional[ClubMembershipRole] = None


class ClubMembershipOnClubInput(BaseModel):
    club_id: int


class OwnerRemoveClubMembershipInput(BaseModel):
    user_id: int
    club_id: int


class CancelClubMembershipInput(BaseModel):
    user_id: Optional[int] = None
    club_id: int


class ClubMembershipResponse(BaseModel):
    id: int
    club_id: int
    club_tier_id: int
    user_id: int
    role: ClubMembershipRole
    started_at: datetime
    next_billing_at: Optional[datetime] = None
    unit_amount: int
    currency: str
    cancelled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    username: Optional[str] = None


class ClubMembershipPage(BaseModel):
    items: List[ClubMembershipResponse]
    next_cursor: Optional[str] = None
