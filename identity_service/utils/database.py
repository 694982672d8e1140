"""
Database Connection Utilities
Connects to the TrueNamePath identity database
"""

import asyncpg
from typing import Optional, List
from datetime import datetime
import logging
from contextlib import asynccontextmanager

from identity_service.config import get_db_config

logger = logging.getLogger(__name__)

# Database connection pool
_pool: Optional[asyncpg.Pool] = None


async def init_database():
    """Initialize database connection pool"""
    global _pool

    config = get_db_config()

    try:
        _pool = await asyncpg.create_pool(
            config.get_database_url(),
            min_size=config.db_pool_min_size,
            max_size=config.db_pool_max_size,
            command_timeout=config.db_command_timeout
        )
        logger.info("Database connection pool initialized successfully")

        # Test connection
        async with _pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
            logger.info("Database connection test successful")

    except Exception as e:
        logger.error(f"Failed to initialize database pool: {e}")
        raise


async def get_database_pool() -> asyncpg.Pool:
    """Get database connection pool"""
    global _pool
    if _pool is None:
        await init_database()
    return _pool


@asynccontextmanager
async def get_database_connection():
    """Get database connection from pool"""
    pool = await get_database_pool()
    async with pool.acquire() as connection:
        yield connection


async def close_database():
    """Close database connection pool"""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database connection pool closed")


def affected_rows(status: Optional[str]) -> int:
    """Row count from an asyncpg command status such as 'DELETE 3'"""
    if not status:
        return 0
    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0


class DatabaseManager:
    """Thin query helpers over the shared pool"""

    async def execute_query(self, query: str, *args):
        """Execute a query and return results"""
        async with get_database_connection() as conn:
            return await conn.fetch(query, *args)

    async def execute_single(self, query: str, *args):
        """Execute a query and return single result"""
        async with get_database_connection() as conn:
            return await conn.fetchrow(query, *args)

    async def execute_value(self, query: str, *args):
        """Execute a query and return single value"""
        async with get_database_connection() as conn:
            return await conn.fetchval(query, *args)

    async def execute_command(self, query: str, *args):
        """Execute a command (INSERT, UPDATE, DELETE)"""
        async with get_database_connection() as conn:
            return await conn.execute(query, *args)


# Global database manager instance
db_manager = DatabaseManager()


def _row(result) -> Optional[dict]:
    return dict(result) if result else None


class IdentityDatabase:
    """Database operations for profiles, names, contexts and OAuth state"""

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    @staticmethod
    async def create_account(
        email: str,
        password_hash: str,
        given_name: str,
        family_name: str,
        context_name: str
    ) -> dict:
        """
        Create a profile with its permanent context and starter names

        The full name, given name and family name are stored as name
        variants and assigned to the matching OIDC properties of the
        permanent context, all inside one transaction.

        Returns:
            dict: profile id and permanent context id
        """
        full_name = f"{given_name} {family_name}"

        async with get_database_connection() as conn:
            async with conn.transaction():
                profile_id = await conn.fetchval(
                    """
                    INSERT INTO profiles (email, password_hash, email_verified, is_active, created_at, updated_at)
                    VALUES ($1, $2, false, true, NOW(), NOW())
                    RETURNING id
                    """,
                    email, password_hash
                )

                context_id = await conn.fetchval(
                    """
                    INSERT INTO user_contexts (user_id, context_name, description, is_permanent, created_at, updated_at)
                    VALUES ($1, $2, $3, true, NOW(), NOW())
                    RETURNING id
                    """,
                    profile_id, context_name, "Default identity shared with every application"
                )

                name_ids = {}
                for oidc_property, name_text, preferred in (
                    ("name", full_name, True),
                    ("given_name", given_name, False),
                    ("family_name", family_name, False),
                ):
                    name_ids[oidc_property] = await conn.fetchval(
                        """
                        INSERT INTO names (user_id, name_text, is_preferred, created_at)
                        VALUES ($1, $2, $3, NOW())
                        RETURNING id
                        """,
                        profile_id, name_text, preferred
                    )

                for oidc_property, name_id in name_ids.items():
                    await conn.execute(
                        """
                        INSERT INTO context_oidc_assignments
                            (user_id, context_id, oidc_property, name_id, created_at, updated_at)
                        VALUES ($1, $2, $3, $4, NOW(), NOW())
                        """,
                        profile_id, context_id, oidc_property, name_id
                    )

        logger.info(f"Profile created with ID: {profile_id}")
        return {'profile_id': str(profile_id), 'context_id': str(context_id)}

    @staticmethod
    async def get_profile_by_email(email: str) -> Optional[dict]:
        query = """
        SELECT id, email, password_hash, email_verified, is_active, created_at, updated_at
        FROM profiles
        WHERE email = $1
        """
        return _row(await db_manager.execute_single(query, email))

    @staticmethod
    async def get_profile_by_id(profile_id: str) -> Optional[dict]:
        query = """
        SELECT id, email, password_hash, email_verified, is_active, created_at, updated_at
        FROM profiles
        WHERE id = $1
        """
        return _row(await db_manager.execute_single(query, profile_id))

    # ------------------------------------------------------------------
    # Client registry
    # ------------------------------------------------------------------

    @staticmethod
    async def get_client_by_domain_and_app(publisher_domain: str, app_name: str) -> Optional[dict]:
        query = """
        SELECT client_id, display_name, app_name, publisher_domain, created_at, last_used_at
        FROM oauth_client_registry
        WHERE publisher_domain = $1 AND app_name = $2
        """
        return _row(await db_manager.execute_single(query, publisher_domain, app_name))

    @staticmethod
    async def get_client(client_id: str) -> Optional[dict]:
        query = """
        SELECT client_id, display_name, app_name, publisher_domain, created_at, last_used_at
        FROM oauth_client_registry
        WHERE client_id = $1
        """
        return _row(await db_manager.execute_single(query, client_id))

    @staticmethod
    async def touch_client(client_id: str) -> Optional[datetime]:
        """Set last_used_at to now and return it"""
        query = """
        UPDATE oauth_client_registry
        SET last_used_at = NOW()
        WHERE client_id = $1
        RETURNING last_used_at
        """
        return await db_manager.execute_value(query, client_id)

    @staticmethod
    async def insert_client(
        client_id: str,
        display_name: str,
        app_name: str,
        publisher_domain: str
    ) -> dict:
        """
        Insert a registry row

        Raises:
            asyncpg.exceptions.UniqueViolationError: on client id or
                (publisher_domain, app_name) collision
        """
        query = """
        INSERT INTO oauth_client_registry
            (client_id, display_name, app_name, publisher_domain, created_at, last_used_at)
        VALUES ($1, $2, $3, $4, NOW(), NOW())
        RETURNING client_id, display_name, app_name, publisher_domain, created_at, last_used_at
        """
        return dict(await db_manager.execute_single(query, client_id, display_name, app_name, publisher_domain))

    # ------------------------------------------------------------------
    # Contexts and names
    # ------------------------------------------------------------------

    @staticmethod
    async def get_user_context(user_id: str, context_id: str) -> Optional[dict]:
        query = """
        SELECT id, user_id, context_name, description, is_permanent, created_at, updated_at
        FROM user_contexts
        WHERE id = $1 AND user_id = $2
        """
        return _row(await db_manager.execute_single(query, context_id, user_id))

    @staticmethod
    async def get_permanent_context(user_id: str) -> Optional[dict]:
        query = """
        SELECT id, user_id, context_name, description, is_permanent, created_at, updated_at
        FROM user_contexts
        WHERE user_id = $1 AND is_permanent = true
        LIMIT 1
        """
        return _row(await db_manager.execute_single(query, user_id))

    @staticmethod
    async def get_name(name_id: str) -> Optional[dict]:
        query = """
        SELECT id, user_id, name_text, is_preferred, created_at
        FROM names
        WHERE id = $1
        """
        return _row(await db_manager.execute_single(query, name_id))

    @staticmethod
    async def count_user_names(user_id: str) -> int:
        query = "SELECT COUNT(*) FROM names WHERE user_id = $1"
        return await db_manager.execute_value(query, user_id) or 0

    # ------------------------------------------------------------------
    # Context OIDC assignments
    # ------------------------------------------------------------------

    @staticmethod
    async def list_context_assignments(context_id: str) -> List[dict]:
        query = """
        SELECT a.id, a.context_id, a.name_id, a.oidc_property, n.name_text,
               a.created_at, a.updated_at
        FROM context_oidc_assignments a
        JOIN names n ON n.id = a.name_id
        WHERE a.context_id = $1
        ORDER BY a.oidc_property
        """
        return [dict(row) for row in await db_manager.execute_query(query, context_id)]

    @staticmethod
    async def upsert_context_assignment(
        user_id: str,
        context_id: str,
        name_id: str,
        oidc_property: str
    ) -> dict:
        """Insert or replace the assignment; 'inserted' tells which happened"""
        query = """
        INSERT INTO context_oidc_assignments
            (user_id, context_id, oidc_property, name_id, created_at, updated_at)
        VALUES ($1, $2, $3, $4, NOW(), NOW())
        ON CONFLICT (context_id, oidc_property)
        DO UPDATE SET name_id = EXCLUDED.name_id, updated_at = NOW()
        RETURNING id, context_id, name_id, oidc_property, created_at, updated_at,
                  (xmax = 0) AS inserted
        """
        return dict(await db_manager.execute_single(query, user_id, context_id, oidc_property, name_id))

    @staticmethod
    async def delete_context_assignment(context_id: str, oidc_property: str) -> bool:
        query = """
        DELETE FROM context_oidc_assignments
        WHERE context_id = $1 AND oidc_property = $2
        """
        return affected_rows(await db_manager.execute_command(query, context_id, oidc_property)) > 0

    @staticmethod
    async def count_context_assignments(context_id: str) -> int:
        query = "SELECT COUNT(*) FROM context_oidc_assignments WHERE context_id = $1"
        return await db_manager.execute_value(query, context_id) or 0

    @staticmethod
    async def get_permanent_contexts_using_name(user_id: str, name_id: str) -> List[dict]:
        query = """
        SELECT DISTINCT c.id, c.context_name
        FROM context_oidc_assignments a
        JOIN user_contexts c ON c.id = a.context_id
        WHERE a.user_id = $1 AND a.name_id = $2 AND c.is_permanent = true
        ORDER BY c.context_name
        """
        return [dict(row) for row in await db_manager.execute_query(query, user_id, name_id)]

    @staticmethod
    async def copy_context_assignments(user_id: str, source_context_id: str, target_context_id: str) -> int:
        """Copy every assignment of one context into another, returns rows copied"""
        query = """
        INSERT INTO context_oidc_assignments
            (user_id, context_id, oidc_property, name_id, created_at, updated_at)
        SELECT $1, $3, oidc_property, name_id, NOW(), NOW()
        FROM context_oidc_assignments
        WHERE context_id = $2
        ON CONFLICT (context_id, oidc_property) DO NOTHING
        """
        status = await db_manager.execute_command(query, user_id, source_context_id, target_context_id)
        return affected_rows(status)

    # ------------------------------------------------------------------
    # Application context assignments
    # ------------------------------------------------------------------

    @staticmethod
    async def upsert_app_assignment(profile_id: str, client_id: str, context_id: str) -> dict:
        query = """
        INSERT INTO app_context_assignments (profile_id, client_id, context_id, created_at, updated_at)
        VALUES ($1, $2, $3, NOW(), NOW())
        ON CONFLICT (profile_id, client_id)
        DO UPDATE SET context_id = EXCLUDED.context_id, updated_at = NOW()
        RETURNING id, profile_id, client_id, context_id, created_at, updated_at
        """
        return dict(await db_manager.execute_single(query, profile_id, client_id, context_id))

    @staticmethod
    async def get_app_assignment(profile_id: str, client_id: str) -> Optional[dict]:
        query = """
        SELECT a.id, a.profile_id, a.client_id, a.context_id, c.context_name,
               a.created_at, a.updated_at
        FROM app_context_assignments a
        JOIN user_contexts c ON c.id = a.context_id
        WHERE a.profile_id = $1 AND a.client_id = $2
        """
        return _row(await db_manager.execute_single(query, profile_id, client_id))

    @staticmethod
    async def update_app_assignment(profile_id: str, client_id: str, context_id: str) -> bool:
        query = """
        UPDATE app_context_assignments
        SET context_id = $3, updated_at = NOW()
        WHERE profile_id = $1 AND client_id = $2
        """
        return affected_rows(await db_manager.execute_command(query, profile_id, client_id, context_id)) > 0

    @staticmethod
    async def delete_app_assignment(profile_id: str, client_id: str) -> bool:
        query = """
        DELETE FROM app_context_assignments
        WHERE profile_id = $1 AND client_id = $2
        """
        return affected_rows(await db_manager.execute_command(query, profile_id, client_id)) > 0

    @staticmethod
    async def count_apps_using_context(context_id: str) -> int:
        query = "SELECT COUNT(*) FROM app_context_assignments WHERE context_id = $1"
        return await db_manager.execute_value(query, context_id) or 0

    @staticmethod
    async def list_connected_apps(profile_id: str) -> List[dict]:
        """Assignments joined with registry info, context and usage counts"""
        query = """
        SELECT a.client_id, a.context_id, c.context_name, a.created_at AS connected_at,
               a.updated_at, r.display_name, r.app_name, r.publisher_domain, r.last_used_at,
               COALESCE(u.usage_count, 0) AS usage_count, u.last_activity
        FROM app_context_assignments a
        JOIN user_contexts c ON c.id = a.context_id
        LEFT JOIN oauth_client_registry r ON r.client_id = a.client_id
        LEFT JOIN (
            SELECT client_id, COUNT(*) AS usage_count, MAX(created_at) AS last_activity
            FROM app_usage_log
            WHERE profile_id = $1 AND success = true
            GROUP BY client_id
        ) u ON u.client_id = a.client_id
        WHERE a.profile_id = $1
        ORDER BY COALESCE(u.last_activity, r.last_used_at, a.updated_at) DESC NULLS LAST
        """
        return [dict(row) for row in await db_manager.execute_query(query, profile_id)]

    # ------------------------------------------------------------------
    # OAuth sessions
    # ------------------------------------------------------------------

    @staticmethod
    async def insert_session(
        profile_id: str,
        client_id: str,
        session_token: str,
        return_url: str,
        state: Optional[str],
        expires_at: datetime
    ) -> dict:
        """
        Insert an OAuth session row

        Raises:
            asyncpg.exceptions.UniqueViolationError: on token collision
        """
        query = """
        INSERT INTO oauth_sessions
            (profile_id, client_id, session_token, return_url, state, expires_at, created_at)
        VALUES ($1, $2, $3, $4, $5, $6, NOW())
        RETURNING id, profile_id, client_id, session_token, expires_at, created_at
        """
        return dict(await db_manager.execute_single(
            query, profile_id, client_id, session_token, return_url, state, expires_at
        ))

    @staticmethod
    async def get_active_session(session_token: str) -> Optional[dict]:
        query = """
        SELECT id, profile_id, client_id, session_token, expires_at, used_at, created_at
        FROM oauth_sessions
        WHERE session_token = $1 AND expires_at > NOW()
        """
        return _row(await db_manager.execute_single(query, session_token))

    @staticmethod
    async def mark_session_used(session_id: str) -> None:
        query = "UPDATE oauth_sessions SET used_at = NOW() WHERE id = $1"
        await db_manager.execute_command(query, session_id)

    @staticmethod
    async def list_sessions(profile_id: str) -> List[dict]:
        query = """
        SELECT s.id, s.client_id, r.display_name, r.app_name, s.expires_at, s.used_at, s.created_at,
               (s.expires_at > NOW()) AS is_active
        FROM oauth_sessions s
        LEFT JOIN oauth_client_registry r ON r.client_id = s.client_id
        WHERE s.profile_id = $1
        ORDER BY s.created_at DESC
        """
        return [dict(row) for row in await db_manager.execute_query(query, profile_id)]

    @staticmethod
    async def delete_session(profile_id: str, session_id: str) -> bool:
        query = "DELETE FROM oauth_sessions WHERE id = $1 AND profile_id = $2"
        return affected_rows(await db_manager.execute_command(query, session_id, profile_id)) > 0

    @staticmethod
    async def delete_client_sessions(profile_id: str, client_id: str) -> int:
        query = "DELETE FROM oauth_sessions WHERE profile_id = $1 AND client_id = $2"
        return affected_rows(await db_manager.execute_command(query, profile_id, client_id))

    # ------------------------------------------------------------------
    # Usage log
    # ------------------------------------------------------------------

    @staticmethod
    async def log_app_usage(
        profile_id: str,
        client_id: str,
        action: str,
        success: bool = True,
        context_id: Optional[str] = None,
        session_id: Optional[str] = None,
        response_time_ms: Optional[float] = None,
        error_type: Optional[str] = None
    ) -> None:
        query = """
        INSERT INTO app_usage_log
            (profile_id, client_id, context_id, session_id, action, success,
             response_time_ms, error_type, created_at)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, NOW())
        """
        await db_manager.execute_command(
            query, profile_id, client_id, context_id, session_id, action, success,
            response_time_ms, error_type
        )


async def record_usage(**kwargs) -> None:
    """Write a usage-log row, never failing the caller"""
    try:
        await IdentityDatabase.log_app_usage(**kwargs)
    except Exception as e:
        logger.warning(f"Failed to record app usage ({kwargs.get('action')}): {e}")
