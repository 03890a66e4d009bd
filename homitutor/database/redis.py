from homitutor.config import get_settings
from typing import Optional
import redis

# Cache keys shared by the routers that fill and invalidate them
FEATURED_TUTORS_KEY = "featured_tutors"
SUBJECTS_KEY = "subjects"
ADMIN_STATS_KEY = "admin_stats"

class RedisClient:
    """
    Redis client wrapper for caching and token management.

    This class provides a simplified interface for Redis operations used in the application,
    primarily for managing refresh tokens and caching read-heavy public listings
    (featured tutors, the subject catalog) and the admin statistics.

    Attributes:
        redis_host (str): Redis server hostname/IP
        redis_port (int): Redis server port
        redis_password (str): Redis server password
        client (redis.StrictRedis): Redis client instance
    """

    def __init__(self):
        settings = get_settings()
        self.redis_host = settings.redis_host
        self.redis_port = settings.redis_port
        self.redis_password = settings.redis_password
        self.default_expiration = settings.cache_expire_seconds

        # decode_responses makes every reply a str, so callers never decode bytes.
        # The connection is opened lazily on the first command.
        self.client = redis.StrictRedis(
            host=self.redis_host,
            port=self.redis_port,
            password=self.redis_password,
            decode_responses=True
        )

    def set_refresh_token(self, token: str, token_id: str, expiration: int):
        """
        Store a refresh token in Redis with an expiration time.

        Args:
            token (str): The refresh token to store
            token_id (str): Unique identifier for the token
            expiration (int): Time in seconds until the token expires
        """
        self.client.setex(f"refresh:{token_id}", expiration, token)

    def get_refresh_token(self, token_id: str) -> Optional[str]:
        """
        Retrieve a refresh token from Redis.

        Args:
            token_id (str): Unique identifier for the token

        Returns:
            str: The refresh token if found, None otherwise
        """
        return self.client.get(f"refresh:{token_id}")

    def delete_refresh_token(self, token_id: str):
        """
        Delete a refresh token from Redis.

        Args:
            token_id (str): Unique identifier for the token to delete
        """
        self.client.delete(f"refresh:{token_id}")

    def set_cache(self, key: str, value: str, expiration: Optional[int] = None):
        """
        Set a cached value with expiration time.

        Args:
            key (str): Cache key
            value (str): Value to cache
            expiration (int): Time in seconds until the cache expires, defaults to CACHE_EXPIRE_SECONDS
        """
        self.client.setex(key, expiration or self.default_expiration, value)

    def get_cache(self, key: str) -> Optional[str]:
        """
        Retrieve a cached value.

        Args:
            key (str): Cache key to retrieve

        Returns:
            str: The cached value if found, None otherwise
        """
        return self.client.get(key)

    def delete_cache(self, *keys: str):
        """
        Delete one or more cached values.

        Args:
            keys (str): Cache keys to delete
        """
        if keys:
            self.client.delete(*keys)

# Global Redis client instance
redis_client = RedisClient()
