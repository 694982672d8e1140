"""
Connected Apps Service
Lists, re-targets and revokes the applications a user has authorized
"""

import logging
from typing import Dict, Optional

from shared.utils.logger import get_audit_logger
from identity_service.utils.database import IdentityDatabase, record_usage

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


class ConnectedAppsService:
    """Per-user management of authorized applications"""

    @staticmethod
    async def list_connected_apps(user_id: str) -> Dict:
        rows = await IdentityDatabase.list_connected_apps(user_id)
        apps = [
            {
                'client_id': row['client_id'],
                'display_name': row.get('display_name') or row['client_id'],
                'app_name': row.get('app_name'),
                'publisher_domain': row.get('publisher_domain'),
                'context_id': str(row['context_id']),
                'context_name': row['context_name'],
                'connected_at': _iso(row.get('connected_at')),
                'last_used_at': _iso(row.get('last_activity') or row.get('last_used_at')),
                'usage_count': row.get('usage_count', 0)
            }
            for row in rows
        ]
        return {'success': True, 'apps': apps, 'total': len(apps)}

    @staticmethod
    async def update_app_context(user_id: str, client_id: str, context_id: str) -> Dict:
        """Move an authorized application to another of the user's contexts"""
        assignment = await IdentityDatabase.get_app_assignment(user_id, client_id)
        if not assignment:
            return {
                'success': False,
                'error_code': 'ASSIGNMENT_NOT_FOUND',
                'error': 'Application is not connected to this account'
            }

        context = await IdentityDatabase.get_user_context(user_id, context_id)
        if not context:
            return {
                'success': False,
                'error_code': 'CONTEXT_NOT_FOUND',
                'error': 'Context not found or access denied'
            }

        await IdentityDatabase.update_app_assignment(user_id, client_id, context_id)
        logger.info(f"Client {client_id} moved to context {context_id} for user {user_id}")

        return {
            'success': True,
            'client_id': client_id,
            'previous_context_id': str(assignment['context_id']),
            'context_id': str(context['id']),
            'context_name': context['context_name']
        }

    @staticmethod
    async def revoke_app(user_id: str, client_id: str, remove_assignment: bool = True) -> Dict:
        """
        Revoke an application's access

        Deletes every session the application holds for the user and, when
        asked, forgets which context it was assigned.
        """
        assignment = await IdentityDatabase.get_app_assignment(user_id, client_id)
        if not assignment:
            return {
                'success': False,
                'error_code': 'ASSIGNMENT_NOT_FOUND',
                'error': 'Application is not connected to this account'
            }

        revoked_sessions = await IdentityDatabase.delete_client_sessions(user_id, client_id)
        assignment_removed = False
        if remove_assignment:
            assignment_removed = await IdentityDatabase.delete_app_assignment(user_id, client_id)

        await record_usage(
            profile_id=user_id,
            client_id=client_id,
            action='revoke',
            context_id=assignment['context_id']
        )
        audit_logger.log_oauth_event(
            user_id, 'revoke', client_id, str(assignment['context_id']),
            details={'revoked_sessions': revoked_sessions, 'assignment_removed': assignment_removed}
        )

        return {
            'success': True,
            'client_id': client_id,
            'revoked_sessions': revoked_sessions,
            'assignment_removed': assignment_removed
        }

    @staticmethod
    async def list_sessions(user_id: str) -> Dict:
        rows = await IdentityDatabase.list_sessions(user_id)
        sessions = [
            {
                'id': str(row['id']),
                'client_id': row['client_id'],
                'display_name': row.get('display_name'),
                'app_name': row.get('app_name'),
                'expires_at': _iso(row['expires_at']),
                'used_at': _iso(row.get('used_at')),
                'created_at': _iso(row.get('created_at')),
                'is_active': bool(row.get('is_active'))
            }
            for row in rows
        ]
        return {'success': True, 'sessions': sessions, 'total': len(sessions)}

    @staticmethod
    async def delete_session(user_id: str, session_id: str) -> Dict:
        if not await IdentityDatabase.delete_session(user_id, session_id):
            return {
                'success': False,
                'error_code': 'SESSION_NOT_FOUND',
                'error': 'Session not found'
            }

        logger.info(f"OAuth session {session_id} deleted by user {user_id}")
        return {'success': True, 'session_id': str(session_id)}
