"""
Domain: Kit licenses.

A License is one unit of kit entitlement tied to a purchase (or a physical
card). It is created `pending` by the issuance flow and leaves `pending` at
most once.

State machine:
- pending -> claimed           (claim; performed by the claim engine)
- pending -> rejected          (reject; performed by the claim engine)
- claimed_by_other             (terminal; written by the issuance flow only)

Invariants enforced here:
- owner_id is set iff status is `claimed`.
- claimed_at is set iff status is `claimed`.
- A license that left `pending` carries no claim_token.
- All timestamps are UTC.

This module contains only pure domain entities: no I/O, no database, no frameworks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


class LicenseStatus(str, Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    REJECTED = "rejected"
    CLAIMED_BY_OTHER = "claimed_by_other"

    @property
    def is_terminal(self) -> bool:
        return self is not LicenseStatus.PENDING


class LicenseSource(str, Enum):
    ONLINE_PURCHASE = "online_purchase"
    PHYSICAL_CARD = "physical_card"


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Emails are compared case-insensitively and without surrounding whitespace."""

    if email is None:
        return None
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class License:
    """
    Immutable snapshot of a license row.

    `product_name` is presentation data joined from the products table; it
    is not part of the license's own state.
    """

    license_id: UUID
    code: str
    status: LicenseStatus
    product_id: UUID
    created_at: datetime
    customer_email: Optional[str] = None
    owner_id: Optional[UUID] = None
    claimed_at: Optional[datetime] = None
    claim_token: Optional[str] = None
    source: Optional[LicenseSource] = None
    product_name: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.claimed_at is not None:
            require_utc_timestamp("claimed_at", self.claimed_at)

        is_claimed = self.status is LicenseStatus.CLAIMED
        if is_claimed != (self.owner_id is not None):
            raise ValueError("owner_id must be set if and only if status is 'claimed'")
        if is_claimed != (self.claimed_at is not None):
            raise ValueError("claimed_at must be set if and only if status is 'claimed'")
        if self.status.is_terminal and self.claim_token is not None:
            raise ValueError("claim_token must be cleared once a license leaves 'pending'")

    @property
    def is_pending(self) -> bool:
        return self.status is LicenseStatus.PENDING and self.owner_id is None

    def matches_email(self, email: Optional[str]) -> bool:
        """True when the purchase email equals `email` (case-insensitive)."""

        ours = normalize_email(self.customer_email)
        theirs = normalize_email(email)
        return ours is not None and theirs is not None and ours == theirs
