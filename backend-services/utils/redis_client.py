"""
Redis Client Factory

Builds the asyncio Redis client used by the shared rate-limit backend.
"""

import logging

from redis.asyncio import Redis

logger = logging.getLogger('turnstile.gateway')


def create_redis_client(
    url: str,
    socket_timeout: float = 2.0,
    socket_connect_timeout: float = 2.0,
    max_connections: int = 50,
) -> Redis:
    """
    Create an asyncio Redis client from a URL

    Args:
        url: redis:// or rediss:// connection URL
        socket_timeout: Per-command timeout in seconds
        socket_connect_timeout: Connection timeout in seconds
        max_connections: Maximum connections in pool
    """
    client = Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_connect_timeout,
        max_connections=max_connections,
    )
    logger.info('Redis client configured for rate limiting')
    return client
