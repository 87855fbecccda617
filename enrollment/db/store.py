"""The process-wide Store.

Mirrors engine.py and redis.py: PostgreSQL when DATABASE_URL is set,
in-memory otherwise.
"""

from __future__ import annotations

from enrollment.db.engine import async_session_factory
from enrollment.repos.memory_store import InMemoryStore
from enrollment.repos.pg_store import PgStore
from enrollment.repos.unit_of_work import Store

store: Store = (
    PgStore(async_session_factory) if async_session_factory else InMemoryStore()
)
