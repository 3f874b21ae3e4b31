"""
Achievement dispatch for kit claims.

Achievement computation lives in the database (`check_kit_claim_achievements`
function). This service only triggers it after a claim has committed.

The check is best-effort: `run_kit_claim_achievement_check` never raises, so
it can be handed to a background scheduler (FastAPI BackgroundTasks) without
affecting the claim result already returned to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional
from uuid import UUID

from repositories.client import get_supabase

logger = logging.getLogger(__name__)

_ACHIEVEMENT_RPC: str = "check_kit_claim_achievements"

# Signature of a post-commit scheduler, e.g. BackgroundTasks.add_task.
AfterCommit = Callable[..., Any]


def check_kit_claim_achievements(user_id: UUID) -> None:
    """Ask the database to evaluate kit-related achievements for an account."""

    response = get_supabase().rpc(_ACHIEVEMENT_RPC, {"p_user_id": str(user_id)}).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to check kit achievements: {error}")


def run_kit_claim_achievement_check(user_id: UUID) -> None:
    """Fire-and-forget wrapper: failures are logged and swallowed."""

    try:
        check_kit_claim_achievements(user_id)
    except Exception:
        logger.exception("Error checking kit achievements for user %s", user_id)


def schedule_achievement_check(after_commit: Optional[AfterCommit], user_id: UUID) -> None:
    """
    Hand the achievement check to the post-commit scheduler.

    Without a scheduler (scripts, direct service calls) nothing is dispatched.
    """

    if after_commit is None:
        return
    try:
        after_commit(run_kit_claim_achievement_check, user_id)
    except Exception:
        logger.exception("Failed to schedule kit achievement check for user %s", user_id)


__all__ = [
    "AfterCommit",
    "check_kit_claim_achievements",
    "run_kit_claim_achievement_check",
    "schedule_achievement_check",
]
