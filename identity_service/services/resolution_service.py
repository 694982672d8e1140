"""
Resolution Service
Turns an OAuth session token into the OIDC claims of the assigned context
"""

import time
import uuid
import logging
from typing import Dict, Optional

from shared.utils.logger import get_audit_logger, performance_timer
from shared.utils.security import is_valid_session_token
from identity_service.config import get_app_config
from identity_service.utils.database import IdentityDatabase, record_usage

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

TOKEN_TYPE = "bearer_demo"
TOKEN_NOTE = "Bearer token - claims informational only"

# Resolution failure -> (API error code, HTTP status)
RESOLUTION_ERRORS = {
    'invalid_token': ('INVALID_TOKEN', 401),
    'no_context_assigned': ('NO_CONTEXT_ASSIGNED', 400),
}


def resolution_error(error: str):
    """API error code and status for a resolution failure"""
    return RESOLUTION_ERRORS.get(error, ('RESOLUTION_FAILED', 400))


def _epoch(value) -> Optional[int]:
    return int(value.timestamp()) if value else None


class ResolutionService:
    """OIDC claim resolution"""

    @staticmethod
    def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
        """Session token from 'Authorization: Bearer tnp_...', None when malformed"""
        if not authorization or not authorization.startswith("Bearer "):
            return None
        token = authorization[len("Bearer "):]
        return token if is_valid_session_token(token) else None

    @staticmethod
    def build_claims(
        session: dict,
        client: dict,
        profile: Optional[dict],
        context_name: str,
        assignments: Dict[str, str],
        issued_at: Optional[int] = None
    ) -> Dict:
        """Assemble the claim set; name assignments override base claims"""
        config = get_app_config()
        iat = issued_at if issued_at is not None else int(time.time())
        profile = profile or {}

        claims = {
            'sub': str(session['profile_id']),
            'iss': config.oidc_issuer,
            'aud': client['app_name'],
            'iat': iat,
            'exp': iat + config.claims_lifetime_seconds,
            'nbf': iat,
            'jti': str(uuid.uuid4()),
            'email': profile.get('email'),
            'email_verified': bool(profile.get('email_verified', False)),
            'updated_at': _epoch(profile.get('updated_at')) or iat,
            'locale': config.oidc_locale,
            'zoneinfo': config.oidc_zoneinfo,
            'context_name': context_name,
            'client_id': client['client_id'],
            'app_name': client['app_name'],
            '_token_type': TOKEN_TYPE,
            '_note': TOKEN_NOTE,
        }
        claims.update(assignments)
        return claims

    @staticmethod
    async def _fail(session: Optional[dict], error: str, message: str, elapsed_ms: float) -> Dict:
        if session:
            await record_usage(
                profile_id=session['profile_id'],
                client_id=session['client_id'],
                action='resolve',
                success=False,
                session_id=session['id'],
                response_time_ms=elapsed_ms,
                error_type=error
            )
            audit_logger.log_oauth_event(
                str(session['profile_id']), 'resolve', session['client_id'],
                details={'error': error}, success=False
            )
        return {'success': False, 'error': error, 'message': message}

    @staticmethod
    async def resolve_claims(session_token: str) -> Dict:
        """
        Resolve OIDC claims for a session token

        Args:
            session_token: Bearer token issued by authorize

        Returns:
            dict: {'success': True, 'claims', 'response_time_ms'} or
                  {'success': False, 'error', 'message'}
        """
        session = None
        with performance_timer('resolve_claims', 'resolution_service') as timer:
            try:
                session = await IdentityDatabase.get_active_session(session_token)
                if not session:
                    return await ResolutionService._fail(
                        None, 'invalid_token', 'Token is invalid or expired', timer.elapsed_ms
                    )

                client = await IdentityDatabase.get_client(session['client_id'])
                if not client:
                    return await ResolutionService._fail(
                        session, 'client_not_registered', 'OAuth client is no longer registered', timer.elapsed_ms
                    )

                profile = await IdentityDatabase.get_profile_by_id(session['profile_id'])

                await IdentityDatabase.mark_session_used(session['id'])

                app_assignment = await IdentityDatabase.get_app_assignment(session['profile_id'], session['client_id'])
                if not app_assignment:
                    return await ResolutionService._fail(
                        session, 'no_context_assigned', 'No context assigned to this application', timer.elapsed_ms
                    )

                rows = await IdentityDatabase.list_context_assignments(app_assignment['context_id'])
                assignments = {row['oidc_property']: row['name_text'] for row in rows}

                claims = ResolutionService.build_claims(
                    session, client, profile, app_assignment['context_name'], assignments
                )
                response_time_ms = round(timer.elapsed_ms, 2)
            except Exception as e:
                logger.error(f"Claim resolution failed: {e}")
                return await ResolutionService._fail(
                    session, 'resolution_failed', 'Failed to resolve OIDC claims', timer.elapsed_ms
                )

        await record_usage(
            profile_id=session['profile_id'],
            client_id=session['client_id'],
            action='resolve',
            context_id=app_assignment['context_id'],
            session_id=session['id'],
            response_time_ms=response_time_ms
        )
        audit_logger.log_oauth_event(
            str(session['profile_id']), 'resolve', session['client_id'], str(app_assignment['context_id'])
        )

        return {'success': True, 'claims': claims, 'response_time_ms': response_time_ms}
