"""Domain models for club memberships."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional


class ClubMembershipRole(str, Enum):
    OWNER = "Owner"
    ADMIN = "Admin"
    CONTRIBUTOR = "Contributor"
    MEMBER = "Member"


class ClubMembershipSort(str, Enum):
    MOST_RECENT = "MostRecent"
    NEXT_BILLING_DATE = "NextBillingDate"
    MOST_EXPENSIVE = "MostExpensive"


@dataclass
class ClubMembership:
    id: int
    club_id: int
    club_tier_id: int
    user_id: int
    role: ClubMembershipRole
    started_at: datetime
    next_billing_at: Optional[datetime] = None
    unit_amount: int = 0
    currency: str = "BUZZ"
    cancelled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    # Non-DB fields populated by queries
    username: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ClubMembership":
        return cls(
            id=row["id"],
            club_id=row["club_id"],
            club_tier_id=row["club_tier_id"],
            user_id=row["user_id"],
            role=ClubMembershipRole(row["role"]),
            started_at=row["started_at"],
            next_billing_at=row.get("next_billing_at"),
            unit_amount=row.get("unit_amount") or 0,
            currency=row.get("currency") or "BUZZ",
            cancelled_at=row.get("cancelled_at"),
            expires_at=row.get("expires_at"),
            username=row.get("username"),
        )
