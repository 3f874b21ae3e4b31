"""
Domain: Acting account identity.

The claim engine authorizes purely by email equality: a license issued
against a purchase email may be claimed or rejected by any signed-in account
whose verified email matches. There is no separate ACL.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from .license import normalize_email


@dataclass(frozen=True, slots=True)
class AccountIdentity:
    """
    Verified identity of the account performing a claim action.

    `email` must be the address verified by the auth provider, never a value
    taken from the request body.
    """

    user_id: UUID
    email: str

    def __post_init__(self) -> None:
        if not self.email or not self.email.strip():
            raise ValueError("email is required for license actions")

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)  # type: ignore[return-value]
