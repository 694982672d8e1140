"""
Redis Session Manager
Stores dashboard login sessions in Redis with automatic expiration

Uses async Redis (redis.asyncio) to avoid blocking the event loop.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Dict
from uuid import UUID
import redis.asyncio as aioredis
from redis.asyncio.sentinel import Sentinel

from identity_service.config import get_redis_config

logger = logging.getLogger(__name__)

# Global async Redis client instance
_redis_client: Optional[aioredis.Redis] = None


async def init_redis_client() -> aioredis.Redis:
    """Initialize async Redis client, through Sentinel when enabled"""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    config = get_redis_config()

    if config.sentinel_enabled:
        sentinel_hosts = [(h.strip(), config.sentinel_port) for h in config.sentinel_host.split(",")]
        logger.info(f"Initializing async Redis with Sentinel: hosts={sentinel_hosts}, master={config.sentinel_master}")

        sentinel = Sentinel(
            sentinel_hosts,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
            socket_keepalive=True,
            retry_on_timeout=True
        )
        client = sentinel.master_for(
            config.sentinel_master,
            socket_timeout=5.0,
            password=config.password,
            db=config.db,
            decode_responses=True,
            retry_on_timeout=True
        )
    else:
        client = aioredis.Redis(
            host=config.host,
            port=config.port,
            password=config.password or None,
            db=config.db,
            decode_responses=True,
            socket_keepalive=True,
            health_check_interval=30
        )

    await client.ping()
    _redis_client = client
    logger.info("Async Redis client initialized successfully")
    return _redis_client


async def get_redis_client() -> aioredis.Redis:
    """Get async Redis client instance"""
    if _redis_client is None:
        return await init_redis_client()
    return _redis_client


async def close_redis_client():
    """Close async Redis client connection"""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Async Redis client closed")


class RedisSessionManager:
    """Manages login sessions in Redis with automatic expiration (async)"""

    SESSION_PREFIX = "session"

    @staticmethod
    def _key(session_token: str) -> str:
        return f"{RedisSessionManager.SESSION_PREFIX}:{session_token}"

    @staticmethod
    def _serialize(data: Dict) -> str:
        """Serialize data to JSON string"""
        def convert(obj):
            if isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            if isinstance(obj, list):
                return [convert(item) for item in obj]
            if isinstance(obj, (UUID, datetime)):
                return str(obj)
            return obj

        return json.dumps(convert(data))

    @staticmethod
    def _deserialize(data):
        """Deserialize JSON string to data"""
        if data is None:
            return None
        try:
            return json.loads(data)
        except (json.JSONDecodeError, TypeError):
            return None

    @staticmethod
    async def create_session(
        user_id: str,
        session_token: str,
        expires_at: datetime,
        user_data: Optional[Dict] = None
    ) -> bool:
        """
        Create a new session in Redis (async)

        Args:
            user_id: Profile ID
            session_token: Unique session token
            expires_at: Session expiration datetime
            user_data: Optional user data to store with session

        Returns:
            bool: Success status
        """
        try:
            redis_client = await get_redis_client()

            ttl = int((expires_at - datetime.now(timezone.utc)).total_seconds())
            if ttl <= 0:
                logger.error(f"Invalid TTL for session: {ttl}")
                return False

            session_data = {
                'user_id': user_id,
                'created_at': datetime.now(timezone.utc).isoformat(),
                'expires_at': expires_at.isoformat(),
                'is_active': True
            }
            if user_data:
                session_data.update(user_data)

            success = await redis_client.setex(
                RedisSessionManager._key(session_token),
                ttl,
                RedisSessionManager._serialize(session_data)
            )

            if success:
                logger.info(f"Session created for user {user_id} with TTL {ttl}s")
            else:
                logger.error(f"Failed to create session for user {user_id}")

            return bool(success)

        except Exception as e:
            logger.error(f"Error creating session: {e}")
            return False

    @staticmethod
    async def get_session(session_token: str) -> Optional[Dict]:
        """
        Get session data from Redis (async)

        Returns:
            dict: Session data or None if not found/expired
        """
        try:
            redis_client = await get_redis_client()
            raw = await redis_client.get(RedisSessionManager._key(session_token))

            if raw:
                return RedisSessionManager._deserialize(raw)

            logger.debug(f"Session not found or expired for token {session_token[:10]}...")
            return None

        except Exception as e:
            logger.error(f"Error retrieving session: {e}")
            return None

    @staticmethod
    async def delete_session(session_token: str) -> bool:
        """Delete session from Redis (logout)"""
        try:
            redis_client = await get_redis_client()
            deleted = await redis_client.delete(RedisSessionManager._key(session_token))

            if deleted > 0:
                logger.info(f"Session deleted: {session_token[:10]}...")
                return True

            logger.warning(f"Session not found for deletion: {session_token[:10]}...")
            return False

        except Exception as e:
            logger.error(f"Error deleting session: {e}")
            return False
