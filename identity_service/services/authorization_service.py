"""
Authorization Service
Binds a user's chosen context to a client and issues session tokens
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from asyncpg.exceptions import UniqueViolationError

from shared.utils.security import generate_session_token
from shared.utils.logger import get_audit_logger
from identity_service.config import get_app_config
from identity_service.utils.database import IdentityDatabase, record_usage

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


class AuthorizationService:
    """OAuth authorization (session-token issuance)"""

    @staticmethod
    def build_redirect_url(return_url: str, token: str, state: Optional[str] = None) -> str:
        """
        Append the token (and state) to the return URL

        Existing query parameters are kept; token and state replace any
        parameters with the same name.
        """
        parts = urlsplit(return_url)
        replaced = {'token', 'state'} if state else {'token'}
        params = [
            (key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in replaced
        ]
        params.append(('token', token))
        if state:
            params.append(('state', state))

        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))

    @staticmethod
    async def _create_session(
        user_id: str,
        client_id: str,
        return_url: str,
        state: Optional[str],
        expires_at: datetime
    ) -> Optional[dict]:
        """Insert a session, retrying with a fresh token on collision"""
        max_attempts = get_app_config().session_token_max_attempts

        for attempt in range(1, max_attempts + 1):
            token = generate_session_token()
            try:
                return await IdentityDatabase.insert_session(
                    user_id, client_id, token, return_url, state, expires_at
                )
            except UniqueViolationError:
                logger.warning(f"Session token collision on attempt {attempt}/{max_attempts}")

        return None

    @staticmethod
    async def authorize(
        user_id: str,
        client_id: str,
        context_id: str,
        return_url: str,
        state: Optional[str] = None
    ) -> Dict:
        """
        Authorize a client to see the given context

        Args:
            user_id: Authenticated profile ID
            client_id: Registered client ID
            context_id: Context chosen by the user
            return_url: Client callback URL
            state: Optional CSRF state echoed back to the client

        Returns:
            dict: authorization result or {'success': False, 'error_code', 'error'}
        """
        client = await IdentityDatabase.get_client(client_id)
        if not client:
            return {
                'success': False,
                'error_code': 'CLIENT_NOT_FOUND',
                'error': 'OAuth client is not registered'
            }

        context = await IdentityDatabase.get_user_context(user_id, context_id)
        if not context:
            return {
                'success': False,
                'error_code': 'CONTEXT_NOT_FOUND',
                'error': 'Context not found or access denied'
            }

        # Most recent authorization decides which context the app sees
        await IdentityDatabase.upsert_app_assignment(user_id, client_id, context_id)

        expires_at = datetime.now(timezone.utc) + timedelta(hours=get_app_config().oauth_session_hours)
        session = await AuthorizationService._create_session(user_id, client_id, return_url, state, expires_at)
        if not session:
            audit_logger.log_oauth_event(user_id, 'authorize', client_id, context_id, success=False)
            return {
                'success': False,
                'error_code': 'TOKEN_GENERATION_FAILED',
                'error': 'Failed to generate a unique session token'
            }

        await record_usage(
            profile_id=user_id,
            client_id=client_id,
            action='authorize',
            context_id=context_id,
            session_id=session['id']
        )
        audit_logger.log_oauth_event(user_id, 'authorize', client_id, context_id)

        token = session['session_token']
        return {
            'success': True,
            'session_token': token,
            'expires_at': expires_at.isoformat(),
            'redirect_url': AuthorizationService.build_redirect_url(return_url, token, state),
            'client': {
                'client_id': client['client_id'],
                'display_name': client['display_name'],
                'publisher_domain': client['publisher_domain']
            },
            'context': {
                'id': str(context['id']),
                'context_name': context['context_name']
            }
        }
