"""
Shared infrastructure for the POS engine.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Statuses, table names, capabilities

- shared.infrastructure: Remote store and messaging
  - db.py: Optional SQLAlchemy engine, session_scope(), safe_commit()
  - events/: Redis change feed, circuit breaker

- shared.security:
  - password.py: Bcrypt hashing

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Entity models (pydantic, camelCase persisted form)

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, EntityTable
    from shared.utils.exceptions import NotFoundError, EmptyOrderError
    from shared.utils.schemas import MenuItem, parse_order
"""
