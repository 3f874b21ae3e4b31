"""
License repository (persistence).

This module provides the persistence operations for the License domain
entity. It is the only module that touches the `licenses` table.

Writes to `status`, `owner_id`, `claimed_at` and `claim_token` are only ever
*conditional*: every transition re-asserts `status = 'pending' AND owner_id
IS NULL` (plus the purchase email) inside the UPDATE itself. An update that
affects zero rows means another request got there first; that is reported by
returning None, not by raising.

Infrastructure failures raise LicenseStoreError.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from domain.license import License, LicenseSource, LicenseStatus, normalize_email
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.client import get_supabase

# Supabase table name for licenses.
# Keep this aligned with your database schema.
_LICENSES_TABLE: str = "licenses"

# Embed the product name for user-facing messages.
_LICENSE_COLUMNS: str = "*, products(name)"

_PENDING: str = LicenseStatus.PENDING.value


class LicenseStoreError(RuntimeError):
    """Storage failure not attributable to license state."""


def _execute(query: Any, what: str) -> List[Mapping[str, Any]]:
    """Run a PostgREST query and return its rows, normalizing every failure to LicenseStoreError."""

    try:
        response = query.execute()
    except APIError as e:
        raise LicenseStoreError(f"Failed to {what}: {e}") from e

    error = getattr(response, "error", None)
    if error:
        raise LicenseStoreError(f"Failed to {what}: {error}")

    data = getattr(response, "data", None) or []
    if isinstance(data, Mapping):
        return [data]
    return list(data)


def _product_name(row: Mapping[str, Any]) -> Optional[str]:
    product = row.get("products")
    if isinstance(product, list):
        product = product[0] if product else None
    if isinstance(product, Mapping):
        name = product.get("name")
        return str(name) if name else None
    return None


def _row_to_license(row: Mapping[str, Any], *, product_name: Optional[str] = None) -> License:
    """Convert a Supabase row into a License."""

    owner_id = row.get("owner_id")
    claimed_at = row.get("claimed_at")
    source = row.get("source")
    return License(
        license_id=UUID(str(row["id"])),
        code=str(row["code"]),
        status=LicenseStatus(str(row.get("status") or _PENDING)),
        product_id=UUID(str(row["product_id"])),
        created_at=parse_utc_datetime(row["created_at"]),
        customer_email=row.get("customer_email"),
        owner_id=UUID(str(owner_id)) if owner_id is not None else None,
        claimed_at=parse_utc_datetime(claimed_at) if claimed_at is not None else None,
        claim_token=row.get("claim_token"),
        source=LicenseSource(str(source)) if source else None,
        product_name=_product_name(row) or product_name,
    )


def _to_licenses(rows: List[Mapping[str, Any]], *, product_name: Optional[str] = None) -> List[License]:
    """Map rows to Licenses; a row that violates the License invariants is a store failure."""

    try:
        return [_row_to_license(row, product_name=product_name) for row in rows]
    except (KeyError, TypeError, ValueError) as e:
        raise LicenseStoreError(f"Malformed license row: {e}") from e


def _single(rows: List[Mapping[str, Any]], *, product_name: Optional[str] = None) -> Optional[License]:
    licenses = _to_licenses(rows[:1], product_name=product_name)
    return licenses[0] if licenses else None


def get_license_by_id(license_id: UUID) -> Optional[License]:
    """
    Retrieve a license by its ID.

    Returns:
        License or None if not found
    """

    query = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .select(_LICENSE_COLUMNS)
        .eq("id", str(license_id))
        .limit(1)
    )
    return _single(_execute(query, "fetch license"))


def get_license_by_code(code: str) -> Optional[License]:
    """Retrieve a license by exact (canonical) activation code."""

    query = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .select(_LICENSE_COLUMNS)
        .eq("code", code)
        .limit(1)
    )
    return _single(_execute(query, "fetch license by code"))


def get_license_by_claim_token(claim_token: str) -> Optional[License]:
    """Retrieve the license an emailed claim link points at."""

    query = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .select(_LICENSE_COLUMNS)
        .eq("claim_token", claim_token)
        .limit(1)
    )
    return _single(_execute(query, "fetch license by claim token"))


def list_claimed_licenses(owner_id: UUID) -> List[License]:
    """
    Retrieve every license claimed by an account (input to kit aggregation).

    Returns:
        List[License] ordered by claimed_at (possibly empty)
    """

    query = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .select(_LICENSE_COLUMNS)
        .eq("owner_id", str(owner_id))
        .eq("status", LicenseStatus.CLAIMED.value)
        .order("claimed_at")
    )
    return _to_licenses(_execute(query, "list claimed licenses"))


def list_pending_licenses_for_email(email: str) -> List[License]:
    """
    Retrieve pending licenses issued against a purchase email.

    `ilike` treats `_` and `%` as wildcards, so rows are re-checked for exact
    (case-insensitive) equality before being returned.
    """

    wanted = normalize_email(email)
    query = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .select(_LICENSE_COLUMNS)
        .eq("status", _PENDING)
        .is_("owner_id", "null")
        .ilike("customer_email", wanted)
        .order("created_at")
    )
    licenses = _to_licenses(_execute(query, "list pending licenses"))
    return [lic for lic in licenses if lic.matches_email(wanted)]


def _pending_guard(query: Any, license_id: UUID, customer_email: Optional[str]) -> Any:
    """Apply the full precondition set to an UPDATE: id, purchase email, pending, unowned."""

    query = query.eq("id", str(license_id))
    if customer_email is None:
        query = query.is_("customer_email", "null")
    else:
        query = query.eq("customer_email", customer_email)
    return query.eq("status", _PENDING).is_("owner_id", "null")


def claim_license_if_pending(
    license_id: UUID,
    owner_id: UUID,
    claimed_at: datetime,
    *,
    customer_email: Optional[str],
    claim_token: Optional[str] = None,
    product_name: Optional[str] = None,
) -> Optional[License]:
    """
    Atomically claim a pending license.

    Sets status='claimed', owner_id, claimed_at and clears claim_token in a
    single UPDATE guarded by `status = 'pending' AND owner_id IS NULL`.

    Args:
        license_id: License to claim
        owner_id: Account that becomes the owner
        claimed_at: UTC timestamp of the claim
        customer_email: Purchase email as stored on the row (re-asserted in the write)
        claim_token: When claiming through an emailed link, the token must still match
        product_name: Carried onto the returned License for messages

    Returns:
        The claimed License, or None if the guard matched zero rows
        (missing, no longer pending, or already owned).
    """

    payload: dict[str, Any] = {
        "status": LicenseStatus.CLAIMED.value,
        "owner_id": str(owner_id),
        "claimed_at": to_iso_utc(claimed_at, name="claimed_at"),
        "claim_token": None,
    }

    query = _pending_guard(
        get_supabase().table(_LICENSES_TABLE).update(payload),
        license_id,
        customer_email,
    )
    if claim_token is not None:
        query = query.eq("claim_token", claim_token)

    return _single(_execute(query, "claim license"), product_name=product_name)


def reject_license_if_pending(
    license_id: UUID,
    *,
    customer_email: Optional[str],
    product_name: Optional[str] = None,
) -> Optional[License]:
    """
    Atomically reject a pending license.

    Sets status='rejected' and clears claim_token (an outstanding claim link
    dies with the rejection) under the same guard as claiming.

    Returns:
        The rejected License, or None if the guard matched zero rows.
    """

    payload: dict[str, Any] = {
        "status": LicenseStatus.REJECTED.value,
        "claim_token": None,
    }

    query = _pending_guard(
        get_supabase().table(_LICENSES_TABLE).update(payload),
        license_id,
        customer_email,
    )

    return _single(_execute(query, "reject license"), product_name=product_name)


def insert_pending_licenses(licenses: Iterable[Mapping[str, Any]]) -> List[str]:
    """
    Insert new pending licenses, skipping any whose code already exists.

    Used by issuance tooling only. Rows are inserted with status='pending'
    and no owner.

    Returns:
        Codes that were actually inserted.
    """

    payload = [
        {
            **row,
            "status": _PENDING,
            "owner_id": None,
            "claimed_at": None,
        }
        for row in licenses
    ]
    if not payload:
        return []

    query = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .upsert(payload, on_conflict="code", ignore_duplicates=True)
    )
    return [str(row["code"]) for row in _execute(query, "insert licenses")]


__all__ = [
    "LicenseStoreError",
    "get_license_by_id",
    "get_license_by_code",
    "get_license_by_claim_token",
    "list_claimed_licenses",
    "list_pending_licenses_for_email",
    "claim_license_if_pending",
    "reject_license_if_pending",
    "insert_pending_licenses",
]
