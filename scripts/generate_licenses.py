#!/usr/bin/env python3
"""
License Generation Script

Issues new pending licenses for a product with unique activation codes.
Codes are generated in rounds and inserted with ON CONFLICT (code) DO NOTHING,
so collisions with existing codes are skipped rather than checked one by one.

Usage:
    python scripts/generate_licenses.py --product-id <uuid> --quantity 50
    python scripts/generate_licenses.py --product-id <uuid> --quantity 1 \\
        --customer-email buyer@example.com --source online_purchase
    python scripts/generate_licenses.py --product-id <uuid> --quantity 10 --dry-run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, List, Optional
from uuid import UUID

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.license import LicenseSource, normalize_email
from domain.license_code import generate_claim_token, generate_license_code
from domain.time import to_iso_utc, utc_now

MAX_QUANTITY: int = 500
MAX_ROUNDS: int = 10


def build_license_rows(
    product_id: UUID,
    count: int,
    source: LicenseSource,
    customer_email: Optional[str] = None,
) -> List[dict]:
    """
    Build `count` insert payloads with distinct codes.

    Licenses bound to a customer email also get a claim token for the
    emailed claim link.
    """
    codes: set[str] = set()
    while len(codes) < count:
        codes.add(generate_license_code())

    created_at = to_iso_utc(utc_now(), name="created_at")
    email = normalize_email(customer_email)
    return [
        {
            "code": code,
            "product_id": str(product_id),
            "source": source.value,
            "customer_email": email,
            "claim_token": generate_claim_token() if email else None,
            "created_at": created_at,
        }
        for code in sorted(codes)
    ]


def validate_quantity(quantity: int) -> None:
    """Raise ValueError unless 1 <= quantity <= MAX_QUANTITY."""
    if quantity < 1:
        raise ValueError("Quantity must be at least 1")
    if quantity > MAX_QUANTITY:
        raise ValueError(f"Quantity too large (max {MAX_QUANTITY})")


def generate_licenses(
    product_id: UUID,
    quantity: int,
    source: LicenseSource,
    customer_email: Optional[str] = None,
    insert: Optional[Callable[[List[dict]], List[str]]] = None,
) -> List[str]:
    """
    Insert `quantity` new pending licenses and return their codes.

    Args:
        product_id: Product the licenses entitle
        quantity: Number of licenses (1..MAX_QUANTITY)
        source: online_purchase or physical_card
        customer_email: Purchase email, if the licenses belong to an order
        insert: Insert function (defaults to the license repository)

    Raises:
        ValueError: quantity out of range
        RuntimeError: could not produce enough unique codes
    """
    validate_quantity(quantity)

    if insert is None:
        from repositories.license_repository import insert_pending_licenses

        insert = insert_pending_licenses

    inserted: List[str] = []
    for _ in range(MAX_ROUNDS):
        remaining = quantity - len(inserted)
        if remaining <= 0:
            break
        # Only `remaining` rows per round: every inserted row is a real license.
        rows = build_license_rows(product_id, remaining, source, customer_email)
        inserted.extend(insert(rows))

    if len(inserted) < quantity:
        raise RuntimeError("Could not generate enough unique codes")

    return inserted[:quantity]


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Issue pending kit licenses for a product",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--product-id", "-p", required=True, type=UUID, help="Product UUID")
    parser.add_argument("--quantity", "-n", type=int, default=1, help=f"Licenses to issue (max {MAX_QUANTITY})")
    parser.add_argument(
        "--source",
        choices=[s.value for s in LicenseSource],
        default=LicenseSource.PHYSICAL_CARD.value,
        help="Where the licenses come from",
    )
    parser.add_argument("--customer-email", "-e", default=None, help="Purchase email to bind the licenses to")
    parser.add_argument("--dry-run", action="store_true", help="Print codes without inserting")
    args = parser.parse_args()

    source = LicenseSource(args.source)

    try:
        validate_quantity(args.quantity)
        if args.dry_run:
            rows = build_license_rows(args.product_id, args.quantity, source, args.customer_email)
            codes = [row["code"] for row in rows]
        else:
            codes = generate_licenses(args.product_id, args.quantity, source, args.customer_email)
    except (ValueError, RuntimeError) as e:
        print(f"[ERROR] {e}")
        return 1

    label = "Would issue" if args.dry_run else "Issued"
    print(f"[SUCCESS] {label} {len(codes)} license(s) for product {args.product_id}")
    for code in codes:
        print(f"  {code}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
