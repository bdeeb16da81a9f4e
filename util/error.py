import logging
import redis
from contextlib import contextmanager

logger = logging.getLogger(__name__)


@contextmanager
def handle_redis_error(operation):
    """Log and suppress cache failures; callers fall back to the database."""
    try:
        yield
    except redis.RedisError as e:
        logger.warning("Cache unavailable while %s: %s", operation, e)
    except ValueError as e:
        # Undecodable cached payload
        logger.warning("Ignoring corrupt cache entry while %s: %s", operation, e)
