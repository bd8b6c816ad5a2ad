import functools
import logging

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

# ids are Integer columns; anything outside this range cannot name a row
MAX_ROW_ID = 2**31 - 1


class ForumError(Exception):
    pass


class NotFound(ForumError):
    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


def ensure_row_id(entity: str, entity_id) -> int:
    """Raise NotFound for ids no row can have, before they reach the driver."""
    if entity_id is None or not 0 < entity_id <= MAX_ROW_ID:
        raise NotFound(entity, entity_id)
    return entity_id


class InvalidRequest(ForumError):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class StorageFailure(ForumError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Failed to {operation}")


def storage_operation(operation: str):
    """Wrap a service coroutine so store errors surface as StorageFailure.

    Keyword arguments are logged as the scope of the failed call.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except ForumError:
                raise
            except SQLAlchemyError as e:
                scope = {k: v for k, v in kwargs.items() if k != "db"}
                logger.exception("%s failed %s: %s", func.__name__, scope, e)
                raise StorageFailure(operation) from e
        return wrapper
    return decorator
