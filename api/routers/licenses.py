"""
License API Endpoints.

Endpoints for claiming and rejecting kit licenses and for reading the
account's kits. Rate limiting runs in front of this service.

Expected failures come back from the services as values and are rendered as
`{"error": "..."}` with the status code of their kind. Only infrastructure
failures produce a 500, with a generic message.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_current_user
from api.models import (
    BatchActionRequest,
    BatchActionResponse,
    BatchItemResponse,
    ClaimCodeRequest,
    ClaimedLicenseResponse,
    ClaimTokenRequest,
    ErrorResponse,
    KitListResponse,
    KitResponse,
    LicenseActionRequest,
    LicenseActionResponse,
    PendingLicenseListResponse,
    PendingLicenseResponse,
)
from domain.account import AccountIdentity
from domain.claim import ClaimAction, ClaimErrorKind, ClaimOutcome
from domain.kit import total_licenses
from repositories.license_repository import LicenseStoreError
from services.batch_claim_service import reconcile_licenses
from services.claim_service import (
    claim_license_by_code,
    claim_license_by_token,
    process_license_action,
)
from services.kit_service import list_kits_for_user, list_pending_licenses_for_user

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    401: {"model": ErrorResponse, "description": "Authentication required"},
    403: {"model": ErrorResponse, "description": "License belongs to another email"},
    404: {"model": ErrorResponse, "description": "License not found"},
    409: {"model": ErrorResponse, "description": "License already claimed, rejected or processed"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _failure(outcome: ClaimOutcome) -> JSONResponse:
    kind = outcome.error.kind if outcome.error else ClaimErrorKind.STORE_FAILURE
    return _error(kind.http_status, outcome.message)


def _store_unavailable() -> JSONResponse:
    return _error(500, ClaimErrorKind.STORE_FAILURE.default_message)


@router.post(
    "/licenses/claim-pending",
    response_model=LicenseActionResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Claim or Reject a Pending License",
    description="Claim a pending license addressed to your email, or permanently decline it."
)
def act_on_pending_license(
    request: LicenseActionRequest,
    background_tasks: BackgroundTasks,
    user: AccountIdentity = Depends(get_current_user),
):
    """
    Claim or reject one pending license.

    **Rules:**
    - The license's purchase email must match your verified email
    - Only `pending` licenses can be acted on
    - Concurrent requests for the same license resolve to exactly one winner;
      the others get 409

    **Success response (claim):**
    ```json
    {
      "success": true,
      "action": "claimed",
      "productName": "Starter Robotics Kit",
      "message": "Successfully claimed Starter Robotics Kit!"
    }
    ```
    """
    action = ClaimAction(request.action)
    outcome = process_license_action(
        request.license_id,
        action,
        user,
        after_commit=background_tasks.add_task,
    )

    if not outcome.success:
        return _failure(outcome)

    return LicenseActionResponse(
        success=True,
        action=action.past_tense,
        product_name=(outcome.product_name or "Kit") if action is ClaimAction.CLAIM else None,
        message=outcome.message,
    )


@router.post(
    "/licenses/claim-pending/batch",
    response_model=BatchActionResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Claim or Reject Pending Licenses in Bulk",
    description="Best-effort batch: each license is processed independently and reported per item."
)
def act_on_pending_licenses(
    request: BatchActionRequest,
    background_tasks: BackgroundTasks,
    user: AccountIdentity = Depends(get_current_user),
):
    """
    Claim or reject up to 100 pending licenses.

    **Partial failure:**
    Items are not processed as a transaction. A batch with mixed outcomes
    returns 200 with `success: false` and per-item errors; retry only the
    failed subset.

    **Whole-batch rejection (400):**
    Empty list, duplicate ids, or more than 100 ids. No license is touched.
    """
    result = reconcile_licenses(
        request.license_ids,
        ClaimAction(request.action),
        user,
        after_commit=background_tasks.add_task,
    )

    if result.rejected is not None:
        return _error(result.rejected.kind.http_status, result.rejected.message)

    return BatchActionResponse(
        success=result.success,
        results=[
            BatchItemResponse(license_id=item.license_id, success=item.success, error=item.error)
            for item in result.results
        ],
        success_count=result.success_count,
        error_count=result.error_count,
    )


@router.post(
    "/licenses/claim-code",
    response_model=ClaimedLicenseResponse,
    responses=_ERROR_RESPONSES,
    summary="Claim a Kit by Code",
    description="Claim a kit from its activation code (XXXX-XXXX-XXXX-XXXX). Formatting is forgiving."
)
def claim_by_code(
    request: ClaimCodeRequest,
    background_tasks: BackgroundTasks,
    user: AccountIdentity = Depends(get_current_user),
):
    """
    Claim a kit by entering its code.

    Separators, spaces and case are ignored: `ab12 cd34-ef56.gh78` is read
    as `AB12-CD34-EF56-GH78`.
    """
    outcome = claim_license_by_code(request.code, user, after_commit=background_tasks.add_task)
    if not outcome.success:
        return _failure(outcome)

    product_name = outcome.product_name or "Kit"
    return ClaimedLicenseResponse(
        license_id=outcome.license_id,
        product_name=product_name,
        message=f"{product_name} claimed successfully!",
    )


@router.post(
    "/licenses/claim-token",
    response_model=ClaimedLicenseResponse,
    responses=_ERROR_RESPONSES,
    summary="Claim a Kit from an Emailed Link",
    description="Claim a kit using the single-use token from a claim email."
)
def claim_by_token(
    request: ClaimTokenRequest,
    background_tasks: BackgroundTasks,
    user: AccountIdentity = Depends(get_current_user),
):
    outcome = claim_license_by_token(request.token, user, after_commit=background_tasks.add_task)
    if not outcome.success:
        return _failure(outcome)

    product_name = outcome.product_name or "Kit"
    return ClaimedLicenseResponse(
        license_id=outcome.license_id,
        product_name=product_name,
        message=f"{product_name} claimed successfully!",
    )


@router.get(
    "/licenses/pending",
    response_model=PendingLicenseListResponse,
    responses=_ERROR_RESPONSES,
    summary="List Pending Licenses",
    description="Licenses purchased under your email that are waiting to be claimed or rejected."
)
def get_pending_licenses(user: AccountIdentity = Depends(get_current_user)):
    try:
        licenses = list_pending_licenses_for_user(user)
    except LicenseStoreError:
        logger.exception("Failed to list pending licenses for user %s", user.user_id)
        return _store_unavailable()

    return PendingLicenseListResponse(
        licenses=[
            PendingLicenseResponse(
                license_id=lic.license_id,
                code=lic.code,
                product_id=lic.product_id,
                product_name=lic.product_name,
                created_at=lic.created_at,
            )
            for lic in licenses
        ],
        total_count=len(licenses),
    )


@router.get(
    "/kits",
    response_model=KitListResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="List My Kits",
    description="Claimed licenses grouped by product, with quantity and first claim date."
)
def get_kits(user: AccountIdentity = Depends(get_current_user)):
    try:
        kits = list_kits_for_user(user)
    except LicenseStoreError:
        logger.exception("Failed to load kits for user %s", user.user_id)
        return _store_unavailable()

    return KitListResponse(
        kits=[
            KitResponse(
                product_id=kit.product_id,
                product_name=kit.product_name,
                quantity=kit.quantity,
                earliest_claimed_at=kit.earliest_claimed_at,
            )
            for kit in kits
        ],
        total_licenses=total_licenses(kits),
    )
