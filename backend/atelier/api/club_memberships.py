"""FastAPI routes for club memberships."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import ValidationError

from atelier.domain.clubs import schemas
from atelier.domain.clubs.models import ClubMembershipRole, ClubMembershipSort
from atelier.domain.clubs.service import ClubMembershipService
from atelier.domain.common import errors
from atelier.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/club-memberships", tags=["club-memberships"])

_membership_service = ClubMembershipService()


@router.get("", response_model=schemas.ClubMembershipPage)
async def list_club_memberships_endpoint(
    club_id: int,
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
    user_id: Optional[int] = None,
    roles: Optional[List[ClubMembershipRole]] = Query(default=None),
    club_tier_id: Optional[int] = None,
    sort: Optional[ClubMembershipSort] = None,
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dict:
    raw = {
        "club_id": club_id,
        "cursor": cursor,
        "limit": limit,
        "user_id": user_id,
        "roles": roles,
        "club_tier_id": club_tier_id,
        "sort": sort,
    }
    try:
        query = schemas.GetInfiniteClubMembershipsSchema(**{k: v for k, v in raw.items() if v is not None})
    except ValidationError as exc:
        raise errors.from_validation_error(exc) from exc
    return await _membership_service.get_infinite_club_memberships(query, auth_user)


@router.get("/on-club", response_model=Optional[schemas.ClubMembershipResponse])
async def get_membership_on_club_endpoint(
    club_id: int,
    auth_user: AuthenticatedUser = Depends(get_current_user),
):
    return await _membership_service.get_club_membership_on_club(
        schemas.ClubMembershipOnClubInput(club_id=club_id), auth_user
    )


@router.post("", response_model=schemas.ClubMembershipResponse, status_code=status.HTTP_201_CREATED)
async def create_club_membership_endpoint(
    payload: schemas.CreateClubMembershipInput,
    auth_user: AuthenticatedUser = Depends(get_current_user),
):
    return await _membership_service.create_club_membership(payload, auth_user)


@router.patch("", response_model=schemas.ClubMembershipResponse)
async def update_club_membership_endpoint(
    payload: schemas.UpdateClubMembershipInput,
    auth_user: AuthenticatedUser = Depends(get_current_user),
):
    return await _membership_service.update_club_membership(payload, auth_user)


@router.post("/cancel", response_model=schemas.ClubMembershipResponse)
async def cancel_club_membership_endpoint(
    payload: schemas.CancelClubMembershipInput,
    auth_user: AuthenticatedUser = Depends(get_current_user),
):
    return await _membership_service.cancel_club_membership(payload, auth_user)


@router.post("/owner-remove", status_code=status.HTTP_204_NO_CONTENT)
async def owner_remove_club_membership_endpoint(
    payload: schemas.OwnerRemoveClubMembershipInput,
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Response:
    await _membership_service.owner_remove_club_membership(payload, auth_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
