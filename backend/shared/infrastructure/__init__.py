"""
Infrastructure module: Database sessions and request correlation.

Provides:
- Async database engine, sessions and transactions (db.py)
- Request ID middleware and logging filter (correlation.py)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    build_engine,
    build_session_factory,
    get_db,
    get_db_context,
    safe_commit,
)
from shared.infrastructure.correlation import (
    CorrelationIdMiddleware,
    get_request_id,
)

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "get_db",
    "get_db_context",
    "safe_commit",
    # correlation
    "CorrelationIdMiddleware",
    "get_request_id",
]
