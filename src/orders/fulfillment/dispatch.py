"""Command dispatch boundary for the HTTP layer.

Domain errors (the ``orders.errors`` taxonomy and protean's validation and
not-found errors) pass through untouched. Anything else escaping a command
is a storage or commit failure: it has already rolled the unit of work back,
so the command can be retried as a whole. Once retries run out the failure
surfaces as ``PersistenceError`` and the original exception only reaches
the logs. A version conflict that outlasts the retries is still a conflict:
it surfaces as the retryable ``ConcurrentUpdate``.
"""

import os

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from orders.errors import ConcurrentUpdate, OrderingError, PersistenceError

logger = structlog.get_logger(__name__)

_PASSTHROUGH = (OrderingError, ValidationError, ObjectNotFoundError)


def commit_retries() -> int:
    return int(os.getenv("ORDERS_COMMIT_RETRIES", "2"))


def _version_conflict(exc: BaseException | None) -> bool:
    seen = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, ExpectedVersionError):
            return True
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return False


def dispatch(command, retries: int = 0):
    attempt = 0
    while True:
        try:
            return current_domain.process(command, asynchronous=False)
        except _PASSTHROUGH:
            raise
        except Exception as exc:
            logger.exception(
                "transaction_failed",
                command=command.__class__.__name__,
                attempt=attempt + 1,
            )
            if attempt >= retries:
                if _version_conflict(exc):
                    raise ConcurrentUpdate(
                        "The records changed while the operation ran; nothing was changed, try again"
                    ) from exc
                raise PersistenceError("The operation could not be completed; nothing was changed") from exc
            attempt += 1
