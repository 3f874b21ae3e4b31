"""
Kit read side: what an account owns and what is waiting to be claimed.

Both views are recomputed from the license store on every call.
"""

from __future__ import annotations

from typing import List

from domain.account import AccountIdentity
from domain.kit import Kit, aggregate_kits
from domain.license import License
from repositories.license_repository import (
    list_claimed_licenses,
    list_pending_licenses_for_email,
)


def list_kits_for_user(user: AccountIdentity) -> List[Kit]:
    """Claimed licenses of the account, grouped into kits."""

    licenses = list_claimed_licenses(user.user_id)
    return aggregate_kits(licenses, owner_id=user.user_id)


def list_pending_licenses_for_user(user: AccountIdentity) -> List[License]:
    """Pending licenses issued against the account's verified email."""

    return list_pending_licenses_for_email(user.email)


__all__ = ["list_kits_for_user", "list_pending_licenses_for_user"]
