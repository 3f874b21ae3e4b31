"""
Domain: Kits (read-side view of claimed licenses).

A Kit is a derived aggregate with no lifecycle of its own: claimed licenses
grouped by product, with a quantity and the date the customer first claimed
that product. It is recomputed on every read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from .license import License, LicenseStatus


@dataclass(frozen=True, slots=True)
class Kit:
    product_id: UUID
    quantity: int
    earliest_claimed_at: datetime
    product_name: Optional[str] = None


def aggregate_kits(licenses: Iterable[License], owner_id: Optional[UUID] = None) -> List[Kit]:
    """
    Fold claimed licenses into one Kit per product.

    - Only `claimed` licenses are counted; when `owner_id` is given, only
      those owned by that account.
    - quantity is the number of licenses for the product.
    - earliest_claimed_at is the minimum claimed_at of the group, so it stays
      stable when duplicates are claimed later.
    - Output follows the order in which each product was first seen.
    """

    kits: Dict[UUID, Kit] = {}

    for license in licenses:
        if license.status is not LicenseStatus.CLAIMED or license.claimed_at is None:
            continue
        if owner_id is not None and license.owner_id != owner_id:
            continue

        existing = kits.get(license.product_id)
        if existing is None:
            kits[license.product_id] = Kit(
                product_id=license.product_id,
                quantity=1,
                earliest_claimed_at=license.claimed_at,
                product_name=license.product_name,
            )
            continue

        kits[license.product_id] = Kit(
            product_id=existing.product_id,
            quantity=existing.quantity + 1,
            earliest_claimed_at=min(existing.earliest_claimed_at, license.claimed_at),
            product_name=existing.product_name or license.product_name,
        )

    return list(kits.values())


def total_licenses(kits: Iterable[Kit]) -> int:
    return sum(kit.quantity for kit in kits)


__all__ = ["Kit", "aggregate_kits", "total_licenses"]
