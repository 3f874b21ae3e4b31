"""
Batch reconciler for pending licenses ("claim all" / "reject all").

Strategy: best effort, item by item. There is no cross-item transaction;
each license goes through the same conditional transition as a single
claim, and one item's failure never stops the others. The caller always
gets per-item results and is expected to retry only the failed subset.

The batch as a whole is refused, before any storage access, only for
malformed input (empty list, duplicate ids, too many ids).
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence
from uuid import UUID

from domain.account import AccountIdentity
from domain.claim import (
    BatchItemResult,
    BatchResult,
    ClaimAction,
    ClaimError,
    ClaimErrorKind,
)
from services.achievement_service import AfterCommit, schedule_achievement_check
from services.claim_service import process_license_action

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE: int = 100


def validate_batch(license_ids: Sequence[UUID]) -> Optional[ClaimError]:
    """
    Check a batch request before touching storage.

    Returns:
        ClaimError (VALIDATION) describing the problem, or None if the batch may run.
    """

    if not license_ids:
        return ClaimError.of(ClaimErrorKind.VALIDATION, "License IDs array is required")

    if len(license_ids) > MAX_BATCH_SIZE:
        return ClaimError.of(ClaimErrorKind.VALIDATION, f"Maximum {MAX_BATCH_SIZE} licenses per batch")

    if len(set(license_ids)) != len(license_ids):
        return ClaimError.of(ClaimErrorKind.VALIDATION, "License IDs must not contain duplicates")

    return None


def reconcile_licenses(
    license_ids: Sequence[UUID],
    action: ClaimAction,
    user: AccountIdentity,
    *,
    after_commit: Optional[AfterCommit] = None,
) -> BatchResult:
    """
    Apply one action to many licenses independently.

    Process:
    1. Validate the id list (whole batch refused on failure, nothing touched)
    2. For each id, run the single-license transition with the same preconditions
    3. Collect {license_id, success, error} per item
    4. If any claim succeeded, schedule one achievement check

    Args:
        license_ids: Licenses to act on (unique, 1..MAX_BATCH_SIZE)
        action: ClaimAction.CLAIM or ClaimAction.REJECT
        user: Verified identity of the acting account
        after_commit: Scheduler for post-commit work

    Returns:
        BatchResult; per-item failures never fail the batch.

    Example:
        result = reconcile_licenses([a_id, b_id], ClaimAction.CLAIM, user)
        print(f"{result.success_count} claimed, {result.error_count} failed")
    """

    invalid = validate_batch(license_ids)
    if invalid is not None:
        return BatchResult(action=action, rejected=invalid)

    results: List[BatchItemResult] = []

    for license_id in license_ids:
        # The per-item call must not dispatch its own achievement check.
        outcome = process_license_action(license_id, action, user, after_commit=None)

        if outcome.success:
            results.append(BatchItemResult(license_id=license_id, success=True))
            continue

        error = outcome.error or ClaimError.of(ClaimErrorKind.STORE_FAILURE)
        results.append(
            BatchItemResult(
                license_id=license_id,
                success=False,
                error=error.message,
                error_kind=error.kind,
            )
        )

    batch = BatchResult(action=action, results=results)

    if batch.error_count:
        logger.warning(
            "Batch %s for user %s finished with %d succeeded, %d failed",
            action.value,
            user.user_id,
            batch.success_count,
            batch.error_count,
        )

    if action is ClaimAction.CLAIM and batch.success_count > 0:
        schedule_achievement_check(after_commit, user.user_id)

    return batch


__all__ = ["MAX_BATCH_SIZE", "validate_batch", "reconcile_licenses"]
