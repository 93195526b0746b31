"""
Shared module for common utilities used by the REST API.

STRUCTURE:
- shared.security: Authentication and rate limiting
  - auth.py: JWT verification, current_user_context
  - rate_limit.py: IP limiter (slowapi) and keyed limiter (limits)

- shared.infrastructure: Database and request plumbing
  - db.py: Async SQLAlchemy engine, sessions, safe_commit()
  - correlation.py: X-Request-ID propagation

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Roles, statuses, transition tables, limits

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - validators.py: Input sanitization
  - schemas.py, kitchen_schemas.py: Pydantic request/response schemas
  - clock.py: Injectable time source

IMPORT EXAMPLES:
    from shared.security.auth import verify_jwt, current_user_context
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Role, OrderItemStatus
    from shared.utils.exceptions import NotFoundError, ForbiddenError
"""
