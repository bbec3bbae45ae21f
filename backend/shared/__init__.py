"""
Shared module for the REST API and the session client.

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Statuses, origins, approval modes

- shared.infrastructure: Database and messaging
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: Request correlation IDs
  - events/: Per-session change-feed over Redis pub/sub

- shared.security: Rate limiting for guest endpoints

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, ApprovalStatus
    from shared.utils.exceptions import NotFoundError, NotHostError
"""
