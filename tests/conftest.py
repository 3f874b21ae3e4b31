"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides an in-memory Supabase double
wired into every module that talks to the database.
"""

import sys
from pathlib import Path
from uuid import UUID

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from domain.account import AccountIdentity  # noqa: E402
from fake_supabase import FakeSupabase  # noqa: E402

BUYER_EMAIL = "buyer@example.com"
BUYER = AccountIdentity(user_id=UUID("00000000-0000-0000-0000-0000000000a1"), email=BUYER_EMAIL)
# Second account signed up with the same purchase email (e.g. a duplicate sign-up).
BUYER_TWIN = AccountIdentity(user_id=UUID("00000000-0000-0000-0000-0000000000a2"), email="Buyer@Example.com")
STRANGER = AccountIdentity(user_id=UUID("00000000-0000-0000-0000-0000000000b1"), email="someone@else.com")


@pytest.fixture
def fake_db(monkeypatch: pytest.MonkeyPatch) -> FakeSupabase:
    """Route all Supabase access through an in-memory FakeSupabase."""

    db = FakeSupabase()
    monkeypatch.setattr("repositories.license_repository.get_supabase", lambda: db)
    monkeypatch.setattr("services.achievement_service.get_supabase", lambda: db)
    return db


@pytest.fixture
def product_id(fake_db: FakeSupabase) -> UUID:
    return fake_db.add_product("Starter Robotics Kit")
