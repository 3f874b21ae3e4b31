"""
In-memory stand-in for the Supabase client used by repository tests.

Implements the subset of the PostgREST query builder the license repository
uses: select / update / upsert, eq / is_ / ilike / order / limit, execute,
plus rpc(). Rows are stored the way PostgREST returns them (JSON-ish dicts
with string ids and ISO timestamps).

UPDATEs evaluate their filters and apply the payload under one lock, which
gives the same at-most-one-winner behavior as a conditional UPDATE in Postgres.
"""

from __future__ import annotations

import copy
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID, uuid4

from postgrest.exceptions import APIError


@dataclass
class FakeResponse:
    data: Any
    count: Optional[int] = None


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE)


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._payload: Any = None
        self._on_conflict: Optional[str] = None
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None

    # --- operations -------------------------------------------------------

    def select(self, columns: str = "*") -> "FakeQuery":
        self._op = "select"
        self._columns = columns
        return self

    def update(self, payload: Dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._payload = dict(payload)
        return self

    def upsert(self, rows: List[Dict[str, Any]], on_conflict: str = "", ignore_duplicates: bool = False) -> "FakeQuery":
        self._op = "upsert"
        self._payload = [dict(r) for r in rows]
        self._on_conflict = on_conflict
        return self

    # --- filters ----------------------------------------------------------

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def is_(self, column: str, value: str) -> "FakeQuery":
        if value != "null":
            raise NotImplementedError("FakeQuery.is_ only supports 'null'")
        self._filters.append(lambda row: row.get(column) is None)
        return self

    def ilike(self, column: str, pattern: str) -> "FakeQuery":
        regex = _like_to_regex(pattern)
        self._filters.append(lambda row: row.get(column) is not None and bool(regex.fullmatch(row[column])))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    # --- execution --------------------------------------------------------

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(f(row) for f in self._filters)

    def execute(self) -> FakeResponse:
        self._db.maybe_fail(self._op)

        if self._op == "select":
            with self._db.lock:
                rows = [copy.deepcopy(r) for r in self._db.tables[self._table] if self._matches(r)]
            if self._order is not None:
                column, desc = self._order
                rows.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
            if self._limit is not None:
                rows = rows[: self._limit]
            if "products(" in self._columns:
                for row in rows:
                    name = self._db.products.get(row.get("product_id"))
                    row["products"] = {"name": name} if name is not None else None
            self._db.run_after_select()
            return FakeResponse(data=rows)

        if self._op == "update":
            with self._db.lock:
                updated = []
                for row in self._db.tables[self._table]:
                    if self._matches(row):
                        row.update(self._payload)
                        updated.append(copy.deepcopy(row))
            return FakeResponse(data=updated)

        if self._op == "upsert":
            inserted = []
            with self._db.lock:
                existing = {r.get(self._on_conflict) for r in self._db.tables[self._table]}
                for row in self._payload:
                    if row.get(self._on_conflict) in existing:
                        continue
                    stored = {"id": str(uuid4()), **row}
                    self._db.tables[self._table].append(stored)
                    existing.add(row.get(self._on_conflict))
                    inserted.append(copy.deepcopy(stored))
            return FakeResponse(data=inserted)

        raise NotImplementedError(self._op)


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]) -> None:
        self._db = db
        self._name = name
        self._params = params

    def execute(self) -> FakeResponse:
        self._db.maybe_fail("rpc")
        self._db.rpc_calls.append((self._name, dict(self._params)))
        return FakeResponse(data=None)


@dataclass
class FakeSupabase:
    tables: Dict[str, List[Dict[str, Any]]] = field(default_factory=lambda: {"licenses": []})
    products: Dict[str, str] = field(default_factory=dict)
    rpc_calls: List[tuple] = field(default_factory=list)
    after_select: List[Callable[[], None]] = field(default_factory=list)
    failing_ops: Dict[str, int] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def table(self, name: str) -> FakeQuery:
        self.tables.setdefault(name, [])
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)

    # --- test helpers -----------------------------------------------------

    def fail(self, op: str, times: int = 1) -> None:
        """Make the next `times` executions of `op` raise APIError."""
        self.failing_ops[op] = times

    def maybe_fail(self, op: str) -> None:
        remaining = self.failing_ops.get(op, 0)
        if remaining > 0:
            self.failing_ops[op] = remaining - 1
            raise APIError({"message": "connection reset by peer", "code": "08006"})

    def run_after_select(self) -> None:
        for hook in list(self.after_select):
            hook()

    def add_product(self, name: str, product_id: Optional[UUID] = None) -> UUID:
        pid = product_id or uuid4()
        self.products[str(pid)] = name
        return pid

    def add_license(
        self,
        *,
        product_id: UUID,
        code: str,
        status: str = "pending",
        customer_email: Optional[str] = "buyer@example.com",
        owner_id: Optional[UUID] = None,
        claimed_at: Optional[datetime] = None,
        claim_token: Optional[str] = None,
        source: Optional[str] = "online_purchase",
        created_at: Optional[datetime] = None,
        license_id: Optional[UUID] = None,
    ) -> UUID:
        lid = license_id or uuid4()
        created = created_at or datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        self.tables["licenses"].append(
            {
                "id": str(lid),
                "code": code,
                "status": status,
                "product_id": str(product_id),
                "customer_email": customer_email,
                "owner_id": str(owner_id) if owner_id is not None else None,
                "claimed_at": claimed_at.isoformat() if claimed_at is not None else None,
                "claim_token": claim_token,
                "source": source,
                "created_at": created.isoformat(),
            }
        )
        return lid

    def row(self, license_id: UUID) -> Dict[str, Any]:
        for row in self.tables["licenses"]:
            if row["id"] == str(license_id):
                return copy.deepcopy(row)
        raise KeyError(license_id)

    def set_fields(self, license_id: UUID, **fields: Any) -> None:
        with self.lock:
            for row in self.tables["licenses"]:
                if row["id"] == str(license_id):
                    row.update(fields)
