"""
Domain: Claim actions and their outcomes.

Every expected outcome of a claim or reject attempt is a value, not an
exception. `ClaimErrorKind` is a closed set so callers (HTTP layer, batch
reconciler) can switch on it exhaustively:

- VALIDATION                malformed input, empty or duplicate batch ids
- NOT_FOUND                 no license with that id / code / token
- FORBIDDEN                 purchase email does not match the acting account
- ALREADY_CLAIMED_BY_SELF   claimed, and the acting account is the owner
- ALREADY_CLAIMED_BY_OTHER  claimed (or claimed_by_other) by another account
- ALREADY_REJECTED          rejected earlier
- ALREADY_PROCESSED         looked pending, but the conditional write lost a race
- STORE_FAILURE             storage error; detail stays in the server log
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from uuid import UUID


class ClaimAction(str, Enum):
    CLAIM = "claim"
    REJECT = "reject"

    @property
    def past_tense(self) -> str:
        return "claimed" if self is ClaimAction.CLAIM else "rejected"


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    STORE_FAILURE = "store_failure"


class ClaimErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    ALREADY_CLAIMED_BY_SELF = "already_claimed_by_self"
    ALREADY_CLAIMED_BY_OTHER = "already_claimed_by_other"
    ALREADY_REJECTED = "already_rejected"
    ALREADY_PROCESSED = "already_processed"
    STORE_FAILURE = "store_failure"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.category]

    @property
    def default_message(self) -> str:
        return _MESSAGES[self]


_CATEGORIES = {
    ClaimErrorKind.VALIDATION: ErrorCategory.VALIDATION,
    ClaimErrorKind.NOT_FOUND: ErrorCategory.NOT_FOUND,
    ClaimErrorKind.FORBIDDEN: ErrorCategory.FORBIDDEN,
    ClaimErrorKind.ALREADY_CLAIMED_BY_SELF: ErrorCategory.CONFLICT,
    ClaimErrorKind.ALREADY_CLAIMED_BY_OTHER: ErrorCategory.CONFLICT,
    ClaimErrorKind.ALREADY_REJECTED: ErrorCategory.CONFLICT,
    ClaimErrorKind.ALREADY_PROCESSED: ErrorCategory.CONFLICT,
    ClaimErrorKind.STORE_FAILURE: ErrorCategory.STORE_FAILURE,
}

_HTTP_STATUS = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.FORBIDDEN: 403,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.STORE_FAILURE: 500,
}

_MESSAGES = {
    ClaimErrorKind.VALIDATION: "Invalid request",
    ClaimErrorKind.NOT_FOUND: "License not found",
    ClaimErrorKind.FORBIDDEN: "You don't have permission to modify this license",
    ClaimErrorKind.ALREADY_CLAIMED_BY_SELF: "You already claimed this license",
    ClaimErrorKind.ALREADY_CLAIMED_BY_OTHER: "This license was claimed by another account",
    ClaimErrorKind.ALREADY_REJECTED: "You already rejected this license",
    ClaimErrorKind.ALREADY_PROCESSED: "This license is no longer pending.",
    ClaimErrorKind.STORE_FAILURE: "An error occurred. Please try again.",
}


@dataclass(frozen=True, slots=True)
class ClaimError:
    """A classified failure with a message safe to show to the user."""

    kind: ClaimErrorKind
    message: str

    @staticmethod
    def of(kind: ClaimErrorKind, message: Optional[str] = None) -> "ClaimError":
        return ClaimError(kind=kind, message=message or kind.default_message)


@dataclass(frozen=True, slots=True)
class ClaimOutcome:
    """
    Result of a single claim or reject attempt.

    success: True if this call performed the transition
    license_id: License acted on (None when the input never resolved to one)
    product_name: Product display name, when known
    error: Classified failure (None if success=True)
    """

    success: bool
    action: ClaimAction
    license_id: Optional[UUID] = None
    product_name: Optional[str] = None
    error: Optional[ClaimError] = None

    @staticmethod
    def succeeded(action: ClaimAction, license_id: UUID, product_name: Optional[str]) -> "ClaimOutcome":
        return ClaimOutcome(success=True, action=action, license_id=license_id, product_name=product_name)

    @staticmethod
    def failed(
        action: ClaimAction,
        kind: ClaimErrorKind,
        *,
        license_id: Optional[UUID] = None,
        message: Optional[str] = None,
    ) -> "ClaimOutcome":
        return ClaimOutcome(
            success=False,
            action=action,
            license_id=license_id,
            error=ClaimError.of(kind, message),
        )

    @property
    def message(self) -> str:
        """User-facing summary for this outcome."""

        if self.error is not None:
            return self.error.message
        if self.action is ClaimAction.CLAIM:
            return f"Successfully claimed {self.product_name or 'Kit'}!"
        return "License rejected"


@dataclass(frozen=True, slots=True)
class BatchItemResult:
    license_id: UUID
    success: bool
    error: Optional[str] = None
    error_kind: Optional[ClaimErrorKind] = None


@dataclass(frozen=True, slots=True)
class BatchResult:
    """
    Result of a batch claim/reject.

    rejected: set when the batch as a whole was refused before any license
        was touched (empty list, duplicate ids, too many ids). In that case
        `results` is empty.
    success: True iff every item succeeded.
    """

    action: ClaimAction
    results: List[BatchItemResult] = field(default_factory=list)
    rejected: Optional[ClaimError] = None

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success(self) -> bool:
        return self.rejected is None and self.error_count == 0


__all__ = [
    "ClaimAction",
    "ErrorCategory",
    "ClaimErrorKind",
    "ClaimError",
    "ClaimOutcome",
    "BatchItemResult",
    "BatchResult",
]
