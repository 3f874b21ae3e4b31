"""
Request dependencies.

Resolves the acting account from the Supabase access token sent as
`Authorization: Bearer <jwt>`. Sessions are issued elsewhere; this module
only verifies them.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import AuthApiError

from domain.account import AccountIdentity
from repositories.client import get_supabase

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> AccountIdentity:
    """
    Verify the bearer token and return the account's identity.

    Raises:
        HTTPException 401: missing or invalid token
        HTTPException 403: account email not verified

    Configuration and transport failures are not authentication failures
    and propagate as server errors.
    """

    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        response = get_supabase().auth.get_user(credentials.credentials)
    except AuthApiError as e:
        logger.warning("Rejected access token: %s", e)
        raise HTTPException(status_code=401, detail="Authentication required") from None

    user = getattr(response, "user", None)
    if user is None or not getattr(user, "email", None):
        raise HTTPException(status_code=401, detail="Authentication required")

    if not getattr(user, "email_confirmed_at", None):
        raise HTTPException(status_code=403, detail="Please verify your email address first")

    return AccountIdentity(user_id=UUID(str(user.id)), email=str(user.email))
