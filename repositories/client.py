"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes
`get_supabase()` for other repository and service modules to use.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend;
  license transitions must bypass row-level security)

The client is created on first use so that importing the package (tests,
scripts that only print help) does not require credentials.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

# Load environment variables from the project's .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_client: Optional[Client] = None


def _require_env(name: str, hint: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. {hint}")
    return value


def get_supabase() -> Client:
    """Return the process-wide Supabase client, creating it on first call."""

    global _client
    if _client is None:
        url = _require_env("SUPABASE_URL", "Set SUPABASE_URL to your Supabase project URL.")
        key = _require_env("SUPABASE_KEY", "Set SUPABASE_KEY to your Supabase API key.")
        _client = create_client(url, key)
    return _client


__all__ = ["get_supabase"]
