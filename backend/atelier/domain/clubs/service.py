"""Service for club memberships."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import asyncpg

from atelier.domain.clubs.models import ClubMembership, ClubMembershipRole, ClubMembershipSort
from atelier.domain.clubs.schemas import (
    CancelClubMembershipInput,
    ClubMembershipOnClubInput,
    CreateClubMembershipInput,
    GetInfiniteClubMembershipsSchema,
    OwnerRemoveClubMembershipInput,
    UpdateClubMembershipInput,
)
from atelier.domain.common import errors
from atelier.domain.common.pagination import decode_cursor, encode_cursor
from atelier.infra.auth import AuthenticatedUser
from atelier.infra.postgres import get_pool
from atelier.obs.logging import get_logger

audit_logger = get_logger("audit.clubs")

BILLING_PERIOD = timedelta(days=30)

_MEMBERSHIP_COLUMNS = """
    cm.id, cm.club_id, cm.club_tier_id, cm.user_id, cm.role, cm.started_at,
    cm.next_billing_at, cm.unit_amount, cm.currency, cm.cancelled_at, cm.expires_at
"""

_ACTIVE = "(cm.expires_at IS NULL OR cm.expires_at > NOW())"

# sort -> (key expression, direction)
_SORTS = {
    ClubMembershipSort.MOST_RECENT: ("cm.started_at", "DESC"),
    ClubMembershipSort.NEXT_BILLING_DATE: ("COALESCE(cm.next_billing_at, '9999-12-31'::timestamptz)", "ASC"),
    ClubMembershipSort.MOST_EXPENSIVE: ("COALESCE(cm.unit_amount, 0)", "DESC"),
}


def _audit(event: str, user: AuthenticatedUser, **meta: object) -> None:
    audit_logger.info(event, extra={"actor_id": user.id, **meta})


class ClubMembershipService:
    async def _fetch_active_membership(
        self, conn: asyncpg.Connection, club_id: int, user_id: int
    ) -> Optional[ClubMembership]:
        row = await conn.fetchrow(
            f"""
            SELECT {_MEMBERSHIP_COLUMNS}
            FROM club_memberships cm
            WHERE cm.club_id = $1 AND cm.user_id = $2 AND {_ACTIVE}
            """,
            club_id,
            user_id,
        )
        return ClubMembership.from_row(row) if row else None

    async def _ensure_can_manage(
        self, conn: asyncpg.Connection, club_id: int, user: AuthenticatedUser
    ) -> None:
        """Owners, club admins and moderators may manage a club's members."""
        owner_id = await conn.fetchval("SELECT user_id FROM clubs WHERE id = $1", club_id)
        if owner_id is None:
            raise errors.not_found("club_not_found")
        if user.is_moderator or owner_id == user.id:
            return
        membership = await self._fetch_active_membership(conn, club_id, user.id)
        if membership is None or membership.role is not ClubMembershipRole.ADMIN:
            raise errors.forbidden("insufficient_club_role")

    async def get_infinite_club_memberships(
        self, data: GetInfiniteClubMembershipsSchema, user: AuthenticatedUser
    ) -> dict:
        """Page through a club's active memberships."""
        sort_expr, direction = _SORTS[data.sort]
        clauses = ["cm.club_id = $1", _ACTIVE]
        params: List[object] = [data.club_id]

        if data.user_id is not None:
            params.append(data.user_id)
            clauses.append(f"cm.user_id = ${len(params)}")
        if data.roles:
            params.append([role.value for role in data.roles])
            clauses.append(f"cm.role = ANY(${len(params)}::text[])")
        if data.club_tier_id is not None:
            params.append(data.club_tier_id)
            clauses.append(f"cm.club_tier_id = ${len(params)}")
        if data.cursor:
            try:
                last_value, last_id = decode_cursor(data.cursor, scope=data.sort.value)
            except ValueError:
                raise errors.bad_request("invalid_cursor")
            op = "<" if direction == "DESC" else ">"
            params.extend([last_value, last_id])
            clauses.append(f"({sort_expr}, cm.id) {op} (${len(params) - 1}, ${len(params)})")

        params.append(data.limit + 1)
        query = f"""
            SELECT {_MEMBERSHIP_COLUMNS}, u.username, {sort_expr} AS sort_key
            FROM club_memberships cm
            LEFT JOIN users u ON u.id = cm.user_id
            WHERE {" AND ".join(clauses)}
            ORDER BY sort_key {direction}, cm.id {direction}
            LIMIT ${len(params)}
        """

        pool = await get_pool()
        async with pool.acquire() as conn:
            await self._ensure_can_manage(conn, data.club_id, user)
            rows = await conn.fetch(query, *params)

        next_cursor = None
        if len(rows) > data.limit:
            rows = rows[: data.limit]
            last = rows[-1]
            next_cursor = encode_cursor(last["sort_key"], last["id"], scope=data.sort.value)
        return {"items": [ClubMembership.from_row(row) for row in rows], "next_cursor": next_cursor}

    async def get_club_membership_on_club(
        self, data: ClubMembershipOnClubInput, user: AuthenticatedUser
    ) -> Optional[ClubMembership]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await self._fetch_active_membership(conn, data.club_id, user.id)

    async def create_club_membership(
        self, data: CreateClubMembershipInput, user: AuthenticatedUser
    ) -> ClubMembership:
        """Join a club on the given tier."""
        target_user_id = data.user_id if data.user_id is not None else user.id
        if target_user_id != user.id and not user.is_moderator:
            raise errors.forbidden("cannot_act_for_other_user")

        pool = await get_pool()
        async with pool.acquire() as conn:
            tier = await conn.fetchrow(
                """
                SELECT t.id, t.club_id, t.unit_amount, t.currency, t.member_limit, t.joinable,
                       c.user_id AS owner_id
                FROM club_tiers t
                JOIN clubs c ON c.id = t.club_id
                WHERE t.id = $1
                """,
                data.club_tier_id,
            )
            if not tier:
                raise errors.not_found("club_tier_not_found")
            if not tier["joinable"] and not user.is_moderator:
                raise errors.bad_request("This tier is not available for new members")
            if tier["owner_id"] == target_user_id:
                raise errors.bad_request("Club owners cannot join their own club")

            existing = await self._fetch_active_membership(conn, tier["club_id"], target_user_id)
            if existing is not None:
                raise errors.conflict("already_a_member")

            if tier["member_limit"] is not None:
                member_count = await conn.fetchval(
                    f"""
                    SELECT COUNT(*) FROM club_memberships cm
                    WHERE cm.club_tier_id = $1 AND {_ACTIVE}
                    """,
                    tier["id"],
                )
                if member_count >= tier["member_limit"]:
                    raise errors.bad_request("This tier has reached its member limit")

            now = datetime.now(timezone.utc)
            row = await conn.fetchrow(
                """
                INSERT INTO club_memberships
                    (club_id, club_tier_id, user_id, role, started_at, next_billing_at, unit_amount, currency)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING id, club_id, club_tier_id, user_id, role, started_at, next_billing_at,
                          unit_amount, currency, cancelled_at, expires_at
                """,
                tier["club_id"],
                tier["id"],
                target_user_id,
                ClubMembershipRole.MEMBER.value,
                now,
                now + BILLING_PERIOD,
                tier["unit_amount"],
                tier["currency"],
            )

        membership = ClubMembership.from_row(row)
        _audit(
            "club_membership.create",
            user,
            club_id=membership.club_id,
            club_tier_id=membership.club_tier_id,
            member_id=membership.user_id,
        )
        return membership

    async def update_club_membership(
        self, data: UpdateClubMembershipInput, user: AuthenticatedUser
    ) -> ClubMembership:
        """Move a membership to another tier of the same club, optionally changing role."""
        target_user_id = data.user_id if data.user_id is not None else user.id

        pool = await get_pool()
        async with pool.acquire() as conn:
            tier = await conn.fetchrow(
                """
                SELECT t.id, t.club_id, t.unit_amount, t.currency, c.user_id AS owner_id
                FROM club_tiers t
                JOIN clubs c ON c.id = t.club_id
                WHERE t.id = $1
                """,
                data.club_tier_id,
            )
            if not tier:
                raise errors.not_found("club_tier_not_found")

            is_manager = user.is_moderator or tier["owner_id"] == user.id
            if target_user_id != user.id and not is_manager:
                raise errors.forbidden("cannot_act_for_other_user")
            if data.role is not None:
                if not is_manager:
                    raise errors.forbidden("insufficient_club_role")
                if data.role is ClubMembershipRole.OWNER:
                    raise errors.bad_request("The owner role cannot be assigned")

            membership = await self._fetch_active_membership(conn, tier["club_id"], target_user_id)
            if membership is None:
                raise errors.not_found("membership_not_found")

            role = data.role or membership.role
            row = await conn.fetchrow(
                """
                UPDATE club_memberships
                SET club_tier_id = $1, role = $2, unit_amount = $3, currency = $4
                WHERE id = $5
                RETURNING id, club_id, club_tier_id, user_id, role, started_at, next_billing_at,
                          unit_amount, currency, cancelled_at, expires_at
                """,
                tier["id"],
                role.value,
                tier["unit_amount"],
                tier["currency"],
                membership.id,
            )

        updated = ClubMembership.from_row(row)
        _audit(
            "club_membership.update",
            user,
            club_id=updated.club_id,
            club_tier_id=updated.club_tier_id,
            member_id=updated.user_id,
            role=updated.role.value,
        )
        return updated

    async def cancel_club_membership(
        self, data: CancelClubMembershipInput, user: AuthenticatedUser
    ) -> ClubMembership:
        """Stop renewal; the membership stays valid until the next billing date."""
        target_user_id = data.user_id if data.user_id is not None else user.id
        if target_user_id != user.id and not user.is_moderator:
            raise errors.forbidden("cannot_act_for_other_user")

        pool = await get_pool()
        async with pool.acquire() as conn:
            membership = await self._fetch_active_membership(conn, data.club_id, target_user_id)
            if membership is None:
                raise errors.not_found("membership_not_found")
            if membership.is_cancelled:
                return membership

            row = await conn.fetchrow(
                """
                UPDATE club_memberships
                SET cancelled_at = NOW(), expires_at = COALESCE(next_billing_at, NOW())
                WHERE id = $1
                RETURNING id, club_id, club_tier_id, user_id, role, started_at, next_billing_at,
                          unit_amount, currency, cancelled_at, expires_at
                """,
                membership.id,
            )

        cancelled = ClubMembership.from_row(row)
        _audit("club_membership.cancel", user, club_id=cancelled.club_id, member_id=cancelled.user_id)
        return cancelled

    async def owner_remove_club_membership(
        self, data: OwnerRemoveClubMembershipInput, user: AuthenticatedUser
    ) -> None:
        """Remove a member from a club as its owner (or a moderator)."""
        pool = await get_pool()
        async with pool.acquire() as conn:
            owner_id = await conn.fetchval("SELECT user_id FROM clubs WHERE id = $1", data.club_id)
            if owner_id is None:
                raise errors.not_found("club_not_found")
            if owner_id != user.id and not user.is_moderator:
                raise errors.forbidden("only_owner_can_remove_members")
            if data.user_id == owner_id:
                raise errors.bad_request("The club owner cannot be removed")

            deleted = await conn.fetchval(
                """
                DELETE FROM club_memberships
                WHERE club_id = $1 AND user_id = $2
                RETURNING id
                """,
                data.club_id,
                data.user_id,
            )
            if deleted is None:
                raise errors.not_found("membership_not_found")

        _audit("club_membership.owner_remove", user, club_id=data.club_id, member_id=data.user_id)
