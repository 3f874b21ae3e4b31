"""
Claim engine: single-license claim and reject.

Handles:
- Precondition checks (existence, purchase-email match, pending state)
- The atomic conditional transition in the license store
- Classification of every failure into a ClaimErrorKind
- Post-commit dispatch of the kit achievement check

Concurrency is resolved entirely by the store's conditional UPDATE. The
read that precedes it only exists to produce a precise error; it never
decides the outcome of a race. If the read says `pending` but the write
matches zero rows, the attempt lost a race and reports ALREADY_PROCESSED.

Entry points:
- process_license_action: by license id, authorized by purchase email (pending licenses flow)
- claim_license_by_code: by human-entered activation code
- claim_license_by_token: by emailed single-use claim token
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from domain.account import AccountIdentity
from domain.claim import ClaimAction, ClaimErrorKind, ClaimOutcome
from domain.license import License, LicenseStatus
from domain.license_code import (
    MIN_SUBMITTED_CODE_LENGTH,
    code_character_count,
    is_valid_claim_token,
    prepare_code_for_submission,
)
from domain.time import utc_now
from repositories.license_repository import (
    LicenseStoreError,
    claim_license_if_pending,
    get_license_by_claim_token,
    get_license_by_code,
    get_license_by_id,
    reject_license_if_pending,
)
from services.achievement_service import AfterCommit, schedule_achievement_check

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid kit code. Please check and try again."
INVALID_TOKEN_MESSAGE = "Invalid or expired claim link. Please check your email for a valid link."


def classify_settled_license(license: License, user: AccountIdentity) -> ClaimErrorKind:
    """
    Map a license that is no longer pending to the reason it cannot be acted on.

    claimed_by_other is written by the issuance flow; it is reported the same
    way as a claim by another account.
    """

    if license.status is LicenseStatus.CLAIMED:
        if license.owner_id == user.user_id:
            return ClaimErrorKind.ALREADY_CLAIMED_BY_SELF
        return ClaimErrorKind.ALREADY_CLAIMED_BY_OTHER
    if license.status is LicenseStatus.CLAIMED_BY_OTHER:
        return ClaimErrorKind.ALREADY_CLAIMED_BY_OTHER
    if license.status is LicenseStatus.REJECTED:
        return ClaimErrorKind.ALREADY_REJECTED
    return ClaimErrorKind.ALREADY_PROCESSED


def _store_failure(action: ClaimAction, license_id: Optional[UUID], user: AccountIdentity) -> ClaimOutcome:
    logger.exception(
        "License store failure (action=%s, license_id=%s, user_id=%s)",
        action.value,
        license_id,
        user.user_id,
    )
    return ClaimOutcome.failed(action, ClaimErrorKind.STORE_FAILURE, license_id=license_id)


def _transition(
    license: License,
    action: ClaimAction,
    user: AccountIdentity,
    *,
    claim_token: Optional[str] = None,
    after_commit: Optional[AfterCommit] = None,
) -> ClaimOutcome:
    """Run the conditional write for a license that was observed pending."""

    try:
        if action is ClaimAction.CLAIM:
            updated = claim_license_if_pending(
                license.license_id,
                user.user_id,
                utc_now(),
                customer_email=license.customer_email,
                claim_token=claim_token,
                product_name=license.product_name,
            )
        else:
            updated = reject_license_if_pending(
                license.license_id,
                customer_email=license.customer_email,
                product_name=license.product_name,
            )
    except LicenseStoreError:
        return _store_failure(action, license.license_id, user)

    if updated is None:
        logger.info(
            "Conditional %s matched no rows; license %s was processed concurrently",
            action.value,
            license.license_id,
        )
        return ClaimOutcome.failed(action, ClaimErrorKind.ALREADY_PROCESSED, license_id=license.license_id)

    if action is ClaimAction.CLAIM:
        schedule_achievement_check(after_commit, user.user_id)

    return ClaimOutcome.succeeded(action, license.license_id, license.product_name)


def _act_on_resolved(
    license: License,
    action: ClaimAction,
    user: AccountIdentity,
    *,
    require_email_match: bool,
    claim_token: Optional[str] = None,
    after_commit: Optional[AfterCommit] = None,
) -> ClaimOutcome:
    if require_email_match and not license.matches_email(user.email):
        return ClaimOutcome.failed(action, ClaimErrorKind.FORBIDDEN, license_id=license.license_id)

    if not license.is_pending:
        kind = classify_settled_license(license, user)
        return ClaimOutcome.failed(action, kind, license_id=license.license_id)

    return _transition(license, action, user, claim_token=claim_token, after_commit=after_commit)


def process_license_action(
    license_id: UUID,
    action: ClaimAction,
    user: AccountIdentity,
    *,
    after_commit: Optional[AfterCommit] = None,
) -> ClaimOutcome:
    """
    Claim or reject a pending license addressed to the acting account's email.

    Process:
    1. Load the license (NOT_FOUND if missing)
    2. Require purchase email == verified account email (FORBIDDEN otherwise)
    3. Classify non-pending licenses (ALREADY_CLAIMED_BY_SELF / _BY_OTHER / ALREADY_REJECTED)
    4. Conditional write; zero rows -> ALREADY_PROCESSED
    5. On a successful claim, schedule the achievement check via `after_commit`

    Args:
        license_id: License to act on
        action: ClaimAction.CLAIM or ClaimAction.REJECT
        user: Verified identity of the acting account
        after_commit: Scheduler for post-commit work (e.g. BackgroundTasks.add_task)

    Returns:
        ClaimOutcome; expected failures are never raised.
    """

    try:
        license = get_license_by_id(license_id)
    except LicenseStoreError:
        return _store_failure(action, license_id, user)

    if license is None:
        return ClaimOutcome.failed(action, ClaimErrorKind.NOT_FOUND, license_id=license_id)

    return _act_on_resolved(
        license,
        action,
        user,
        require_email_match=True,
        after_commit=after_commit,
    )


def claim_license_by_code(
    raw_code: str,
    user: AccountIdentity,
    *,
    after_commit: Optional[AfterCommit] = None,
) -> ClaimOutcome:
    """
    Claim a license from a human-entered activation code.

    The input is normalized (separators, case, length) and then matched
    exactly against stored codes. Licenses bound to a purchase email still
    require the acting account to own that email; physical-card licenses
    carry no email and are claimable by whoever holds the code.
    """

    action = ClaimAction.CLAIM
    code = prepare_code_for_submission(raw_code or "")
    if code_character_count(code) < MIN_SUBMITTED_CODE_LENGTH:
        return ClaimOutcome.failed(action, ClaimErrorKind.VALIDATION, message="Invalid code format")

    try:
        license = get_license_by_code(code)
    except LicenseStoreError:
        return _store_failure(action, None, user)

    if license is None:
        return ClaimOutcome.failed(action, ClaimErrorKind.NOT_FOUND, message=INVALID_CODE_MESSAGE)

    return _act_on_resolved(
        license,
        action,
        user,
        require_email_match=license.customer_email is not None,
        after_commit=after_commit,
    )


def claim_license_by_token(
    claim_token: str,
    user: AccountIdentity,
    *,
    after_commit: Optional[AfterCommit] = None,
) -> ClaimOutcome:
    """
    Claim a license through an emailed claim link.

    The token is the credential: whichever account opens the link becomes
    the owner, regardless of its email. The token is single-use: the
    claiming write clears it and is guarded on the token still matching,
    and it is only honored while the license is still pending.
    """

    action = ClaimAction.CLAIM
    if not is_valid_claim_token(claim_token):
        return ClaimOutcome.failed(action, ClaimErrorKind.VALIDATION, message="Invalid claim token")

    try:
        license = get_license_by_claim_token(claim_token)
    except LicenseStoreError:
        return _store_failure(action, None, user)

    if license is None:
        return ClaimOutcome.failed(action, ClaimErrorKind.NOT_FOUND, message=INVALID_TOKEN_MESSAGE)

    return _act_on_resolved(
        license,
        action,
        user,
        require_email_match=False,
        claim_token=claim_token,
        after_commit=after_commit,
    )


__all__ = [
    "classify_settled_license",
    "process_license_action",
    "claim_license_by_code",
    "claim_license_by_token",
]
