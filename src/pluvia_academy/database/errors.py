from __future__ import annotations

import logging

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConflictError, DependencyError, DomainError

logger = logging.getLogger(__name__)

RETRYABLE_ERRNOS = {
    errorcode.ER_LOCK_WAIT_TIMEOUT,
    errorcode.ER_LOCK_DEADLOCK,
    errorcode.ER_DUP_ENTRY,
}


def translate_mysql_error(exc: mysql.connector.Error, *, operation: str) -> DomainError:
    """Map a connector error onto the domain taxonomy, logging the context.

    The returned exception never carries the driver message: callers surface
    it to HTTP clients as-is.
    """

    errno = getattr(exc, "errno", None)
    if errno in RETRYABLE_ERRNOS:
        logger.warning("Datastore conflict during %s (errno=%s): %s", operation, errno, exc)
        return ConflictError(f"Concurrent update collided during {operation}, please retry")

    logger.error("Datastore failure during %s (errno=%s): %s", operation, errno, exc)
    return DependencyError(f"Datastore unavailable during {operation}")
