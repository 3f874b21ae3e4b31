"""
Tests for `services/batch_claim_service.py`.

Covers:
- Mixed batches: each item is processed independently, failures are
  reported per item, and successes stand regardless of other items.
- Whole-batch validation (empty, duplicate ids, too many) happens before
  any license is touched.
- One achievement check per batch with at least one successful claim.
"""

from __future__ import annotations

from uuid import uuid4

from conftest import BUYER, BUYER_TWIN
from domain.claim import ClaimAction, ClaimErrorKind
from services.batch_claim_service import MAX_BATCH_SIZE, reconcile_licenses


class RecordingScheduler:
    def __init__(self) -> None:
        self.tasks = []

    def __call__(self, func, *args) -> None:
        self.tasks.append((func, args))


def test_mixed_batch_claims_what_it_can(fake_db, product_id) -> None:
    """A (pending, mine) is claimed even though B (claimed by another account) fails."""

    a = fake_db.add_license(product_id=product_id, code="AAAA-AAAA-AAAA-AAAA")
    b = fake_db.add_license(product_id=product_id, code="BBBB-BBBB-BBBB-BBBB")
    fake_db.set_fields(b, status="claimed", owner_id=str(BUYER_TWIN.user_id), claimed_at="2025-01-05T00:00:00+00:00")

    result = reconcile_licenses([a, b], ClaimAction.CLAIM, BUYER)

    assert result.rejected is None
    assert result.success is False
    assert result.success_count == 1
    assert result.error_count == 1
    assert [r.license_id for r in result.results] == [a, b]
    assert result.results[0].success is True
    assert result.results[0].error is None
    assert result.results[1].success is False
    assert result.results[1].error_kind is ClaimErrorKind.ALREADY_CLAIMED_BY_OTHER
    assert result.results[1].error == "This license was claimed by another account"
    assert fake_db.row(a)["status"] == "claimed"
    assert fake_db.row(b)["owner_id"] == str(BUYER_TWIN.user_id)


def test_failures_of_every_kind_do_not_stop_the_batch(fake_db, product_id) -> None:
    missing = uuid4()
    foreign = fake_db.add_license(product_id=product_id, code="AAAA-AAAA-AAAA-AAAA", customer_email="x@y.com")
    rejected = fake_db.add_license(product_id=product_id, code="BBBB-BBBB-BBBB-BBBB", status="rejected")
    broken = fake_db.add_license(product_id=product_id, code="CCCC-CCCC-CCCC-CCCC")
    good = fake_db.add_license(product_id=product_id, code="DDDD-DDDD-DDDD-DDDD")

    # The first conditional write (for `broken`) hits a storage error.
    fake_db.fail("update")
    result = reconcile_licenses([missing, foreign, rejected, broken, good], ClaimAction.CLAIM, BUYER)

    kinds = [r.error_kind for r in result.results]
    assert kinds == [
        ClaimErrorKind.NOT_FOUND,
        ClaimErrorKind.FORBIDDEN,
        ClaimErrorKind.ALREADY_REJECTED,
        ClaimErrorKind.STORE_FAILURE,
        None,
    ]
    assert result.success_count == 1
    assert result.error_count == 4
    assert fake_db.row(good)["status"] == "claimed"
    assert fake_db.row(broken)["status"] == "pending"


def test_all_succeeded_batch_reject(fake_db, product_id) -> None:
    ids = [
        fake_db.add_license(product_id=product_id, code=f"{c}{c}{c}{c}-AAAA-AAAA-AAAA", claim_token=c.lower() * 64)
        for c in "ABC"
    ]
    scheduler = RecordingScheduler()

    result = reconcile_licenses(ids, ClaimAction.REJECT, BUYER, after_commit=scheduler)

    assert result.success is True
    assert result.success_count == 3
    assert result.error_count == 0
    assert all(fake_db.row(i)["status"] == "rejected" for i in ids)
    assert all(fake_db.row(i)["claim_token"] is None for i in ids)
    assert scheduler.tasks == []


def test_duplicate_ids_reject_whole_batch_before_touching_storage(fake_db, product_id) -> None:
    a = fake_db.add_license(product_id=product_id, code="AAAA-AAAA-AAAA-AAAA")
    fake_db.fail("select", times=100)

    result = reconcile_licenses([a, a], ClaimAction.CLAIM, BUYER)

    assert result.rejected is not None
    assert result.rejected.kind is ClaimErrorKind.VALIDATION
    assert result.results == []
    assert result.success is False
    # No query ran: the injected failures are all still pending.
    assert fake_db.failing_ops["select"] == 100
    assert fake_db.row(a)["status"] == "pending"


def test_empty_and_oversized_batches_are_rejected(fake_db) -> None:
    empty = reconcile_licenses([], ClaimAction.CLAIM, BUYER)
    oversized = reconcile_licenses([uuid4() for _ in range(MAX_BATCH_SIZE + 1)], ClaimAction.CLAIM, BUYER)

    assert empty.rejected.kind is ClaimErrorKind.VALIDATION
    assert oversized.rejected.kind is ClaimErrorKind.VALIDATION
    assert oversized.rejected.message == f"Maximum {MAX_BATCH_SIZE} licenses per batch"


def test_single_achievement_check_per_batch(fake_db, product_id) -> None:
    ids = [
        fake_db.add_license(product_id=product_id, code="AAAA-AAAA-AAAA-AAAA"),
        fake_db.add_license(product_id=product_id, code="BBBB-BBBB-BBBB-BBBB"),
    ]
    scheduler = RecordingScheduler()

    result = reconcile_licenses(ids, ClaimAction.CLAIM, BUYER, after_commit=scheduler)

    assert result.success_count == 2
    assert len(scheduler.tasks) == 1
    assert scheduler.tasks[0][1] == (BUYER.user_id,)


def test_retrying_a_batch_is_idempotent(fake_db, product_id) -> None:
    ids = [
        fake_db.add_license(product_id=product_id, code="AAAA-AAAA-AAAA-AAAA"),
        fake_db.add_license(product_id=product_id, code="BBBB-BBBB-BBBB-BBBB"),
    ]

    first = reconcile_licenses(ids, ClaimAction.CLAIM, BUYER)
    rows = [fake_db.row(i) for i in ids]
    retry = reconcile_licenses(ids, ClaimAction.CLAIM, BUYER)

    assert first.success_count == 2
    assert retry.success_count == 0
    assert {r.error_kind for r in retry.results} == {ClaimErrorKind.ALREADY_CLAIMED_BY_SELF}
    assert [fake_db.row(i) for i in ids] == rows
