"""
Client Registry Service
Issues OAuth client identifiers per (publisher domain, app name)
"""

import re
import logging
from typing import Dict, Optional
from urllib.parse import urlparse

from asyncpg.exceptions import UniqueViolationError

from shared.utils.security import generate_client_id, is_valid_client_id
from identity_service.config import get_app_config
from identity_service.models.oauth import ClientRegistryInfo
from identity_service.utils.database import IdentityDatabase

logger = logging.getLogger(__name__)

DOMAIN_PATTERN = re.compile(r'^[a-z0-9]([a-z0-9\-.]*[a-z0-9])?$')
APP_NAME_PATTERN = re.compile(r'^[a-z0-9-]+$')
APP_NAME_MAX_LENGTH = 50


class ClientRegistryService:
    """OAuth client registration"""

    @staticmethod
    def format_display_name(app_name: str) -> str:
        """'demo-hr' -> 'Demo Hr'"""
        return " ".join(word[:1].upper() + word[1:] for word in app_name.split("-"))

    @staticmethod
    def _hostname(url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        try:
            return urlparse(url).hostname
        except ValueError:
            return None

    @staticmethod
    def extract_domain(origin: Optional[str], referer: Optional[str]) -> Optional[str]:
        """
        Publisher domain of a request

        The Origin header wins; Referer is used when Origin is absent or
        cannot be parsed.
        """
        return ClientRegistryService._hostname(origin) or ClientRegistryService._hostname(referer)

    @staticmethod
    def validate_domain(domain: str) -> bool:
        return bool(DOMAIN_PATTERN.match(domain))

    @staticmethod
    def validate_app_name(app_name: Optional[str]) -> Optional[str]:
        """Return an error message, None when the app name is valid"""
        if not app_name:
            return "App name is required"
        if len(app_name) > APP_NAME_MAX_LENGTH:
            return f"App name must be at most {APP_NAME_MAX_LENGTH} characters"
        if not APP_NAME_PATTERN.match(app_name):
            return "App name may only contain lowercase letters, numbers and hyphens"
        return None

    @staticmethod
    async def get_client(client_id: str) -> Optional[ClientRegistryInfo]:
        if not is_valid_client_id(client_id):
            return None
        row = await IdentityDatabase.get_client(client_id)
        return ClientRegistryInfo.from_row(row) if row else None

    @staticmethod
    async def get_or_create_client(publisher_domain: str, app_name: str) -> Dict:
        """
        Look up or register the client for a domain/app pair

        Args:
            publisher_domain: Validated publisher domain
            app_name: Validated app name

        Returns:
            dict: {'success': True, 'client': ClientRegistryInfo, 'created': bool}
                  or {'success': False, 'error_code', 'error'}
        """
        try:
            existing = await IdentityDatabase.get_client_by_domain_and_app(publisher_domain, app_name)
        except Exception as e:
            logger.error(f"Registry lookup error for {publisher_domain}/{app_name}: {e}")
            return {
                'success': False,
                'error_code': 'DATABASE_ERROR',
                'error': 'Failed to check client registry'
            }

        if existing:
            client = ClientRegistryInfo.from_row(existing)
            client.last_used_at = await IdentityDatabase.touch_client(client.client_id) or client.last_used_at
            return {'success': True, 'client': client, 'created': False}

        max_attempts = get_app_config().client_id_max_attempts
        display_name = ClientRegistryService.format_display_name(app_name)

        for attempt in range(1, max_attempts + 1):
            client_id = generate_client_id()
            try:
                row = await IdentityDatabase.insert_client(client_id, display_name, app_name, publisher_domain)
                logger.info(f"Registered client {client_id} for {publisher_domain}/{app_name}")
                return {'success': True, 'client': ClientRegistryInfo.from_row(row), 'created': True}
            except UniqueViolationError:
                logger.warning(f"Client ID collision on attempt {attempt}/{max_attempts}")
                try:
                    existing = await IdentityDatabase.get_client_by_domain_and_app(publisher_domain, app_name)
                except Exception as e:
                    logger.error(f"Registry lookup error for {publisher_domain}/{app_name}: {e}")
                    break
                if existing:
                    logger.info(f"Client for {publisher_domain}/{app_name} was registered concurrently")
                    return {'success': True, 'client': ClientRegistryInfo.from_row(existing), 'created': False}
            except Exception as e:
                logger.error(f"Client creation failed for {publisher_domain}/{app_name}: {e}")
                break

        return {
            'success': False,
            'error_code': 'CLIENT_ID_GENERATION_FAILED',
            'error': 'Failed to generate unique client ID after multiple attempts'
        }
