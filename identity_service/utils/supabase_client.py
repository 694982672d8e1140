"""
Supabase Client Configuration
Optional second source of authenticated users
"""

from supabase import create_client, Client
from typing import Optional
import logging

from identity_service.config import get_app_config

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Supabase client wrapper for token verification"""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        config = get_app_config()
        self.url: str = url if url is not None else config.supabase_url
        self.key: str = key if key is not None else config.supabase_anon_key
        self.client: Optional[Client] = None

        if self.url and self.key:
            try:
                self.client = create_client(self.url, self.key)
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize Supabase client: {e}")
                self.client = None
        else:
            logger.info("Supabase credentials not configured, using local sessions only")

    def is_available(self) -> bool:
        """Check if Supabase is available and configured"""
        return self.client is not None

    async def verify_token(self, token: str) -> dict:
        """
        Verify a Supabase access token

        Args:
            token: JWT access token

        Returns:
            dict: Token verification response
        """
        if not self.client:
            return {
                "success": False,
                "error": "Supabase client not available"
            }

        try:
            response = self.client.auth.get_user(token)

            if response and response.user:
                return {
                    "success": True,
                    "user_id": response.user.id,
                    "email": response.user.email
                }
            return {
                "success": False,
                "error": "Invalid token"
            }

        except Exception as e:
            logger.warning(f"Supabase token verification error: {e}")
            return {
                "success": False,
                "error": str(e)
            }


# Global Supabase client instance
supabase_client = SupabaseClient()
