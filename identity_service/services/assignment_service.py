"""
Assignment Service
Context to OIDC property assignments, completeness and deletion protection
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List

from shared.schemas.identity import OIDCProperty, REQUIRED_OIDC_PROPERTIES
from identity_service.utils.database import IdentityDatabase

logger = logging.getLogger(__name__)

OIDC_PROPERTIES = {prop.value for prop in OIDCProperty}


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _serialize_assignment(row: dict) -> dict:
    return {
        'id': str(row['id']),
        'context_id': str(row['context_id']),
        'name_id': str(row['name_id']),
        'oidc_property': row['oidc_property'],
        'name_text': row.get('name_text')
    }


class AssignmentService:
    """Context assignment decision logic"""

    @staticmethod
    def _not_found(what: str) -> Dict:
        return {
            'success': False,
            'error_code': 'NOT_FOUND',
            'error': f"{what} not found or access denied"
        }

    @staticmethod
    async def list_assignments(user_id: str, context_id: str) -> Dict:
        context = await IdentityDatabase.get_user_context(user_id, context_id)
        if not context:
            return AssignmentService._not_found("Context")

        rows = await IdentityDatabase.list_context_assignments(context_id)
        return {
            'success': True,
            'context': {'id': str(context['id']), 'context_name': context['context_name']},
            'assignments': [_serialize_assignment(row) for row in rows]
        }

    @staticmethod
    async def set_assignment(user_id: str, context_id: str, name_id: str, oidc_property: str) -> Dict:
        """
        Create or replace the name behind an OIDC property of a context

        Returns:
            dict: {'success': True, 'assignment', 'operation': 'CREATED'|'UPDATED'}
        """
        if oidc_property not in OIDC_PROPERTIES:
            return {
                'success': False,
                'error_code': 'VALIDATION_ERROR',
                'error': f"Unknown OIDC property: {oidc_property}"
            }

        context = await IdentityDatabase.get_user_context(user_id, context_id)
        if not context:
            return AssignmentService._not_found("Context")

        name = await IdentityDatabase.get_name(name_id)
        if not name or str(name['user_id']) != str(user_id):
            return AssignmentService._not_found("Name")

        row = await IdentityDatabase.upsert_context_assignment(user_id, context_id, name_id, oidc_property)
        operation = 'CREATED' if row.get('inserted') else 'UPDATED'
        logger.info(f"OIDC assignment {operation.lower()}: {oidc_property} in context {context_id}")

        assignment = _serialize_assignment(row)
        assignment['name_text'] = name['name_text']
        return {'success': True, 'assignment': assignment, 'operation': operation}

    @staticmethod
    async def remove_assignment(user_id: str, context_id: str, oidc_property: str) -> Dict:
        context = await IdentityDatabase.get_user_context(user_id, context_id)
        if not context:
            return AssignmentService._not_found("Context")

        if context['is_permanent'] and oidc_property in REQUIRED_OIDC_PROPERTIES:
            return {
                'success': False,
                'error_code': 'PROTECTED_ASSIGNMENT',
                'error': f"'{oidc_property}' is required in the permanent context and cannot be removed"
            }

        if not await IdentityDatabase.delete_context_assignment(context_id, oidc_property):
            return AssignmentService._not_found("Assignment")

        logger.info(f"OIDC assignment removed: {oidc_property} from context {context_id}")
        return {'success': True, 'context_id': str(context_id), 'oidc_property': oidc_property}

    @staticmethod
    async def get_context_completeness(user_id: str, context_id: str) -> Dict:
        """Report which required OIDC properties a context still lacks"""
        context = await IdentityDatabase.get_user_context(user_id, context_id)
        if not context:
            return AssignmentService._not_found("Context")

        rows = await IdentityDatabase.list_context_assignments(context_id)
        assigned = sorted({row['oidc_property'] for row in rows})
        missing = sorted(set(REQUIRED_OIDC_PROPERTIES) - set(assigned))

        return {
            'success': True,
            'completeness': {
                'context_id': str(context['id']),
                'context_name': context['context_name'],
                'is_complete': not missing,
                'required_properties': list(REQUIRED_OIDC_PROPERTIES),
                'assigned_properties': assigned,
                'missing_properties': missing,
                'assignment_count': len(rows)
            }
        }

    @staticmethod
    async def can_delete_name(user_id: str, name_id: str) -> Dict:
        """
        Decide whether a name variant may be deleted

        Checks run in priority order: ownership, use by a permanent
        context, last remaining name.
        """
        name = await IdentityDatabase.get_name(name_id)
        if not name or str(name['user_id']) != str(user_id):
            return {
                'can_delete': False,
                'reason': 'Name not found or not owned by user',
                'reason_code': 'OWNERSHIP_ERROR',
                'protection_type': 'ownership',
                'name_count': 0,
                'permanent_contexts': []
            }

        name_count = await IdentityDatabase.count_user_names(user_id)
        permanent = await IdentityDatabase.get_permanent_contexts_using_name(user_id, name_id)
        permanent_contexts = [
            {'id': str(row['id']), 'context_name': row['context_name']} for row in permanent
        ]

        if permanent_contexts:
            result = {
                'can_delete': False,
                'reason': f"Cannot delete name assigned to {_plural(len(permanent_contexts), 'permanent context')}",
                'reason_code': 'PERMANENT_CONTEXT_ASSIGNED',
                'protection_type': 'permanent_context'
            }
        elif name_count <= 1:
            result = {
                'can_delete': False,
                'reason': 'Cannot delete last remaining name',
                'reason_code': 'LAST_NAME_PROTECTION',
                'protection_type': 'last_name'
            }
        else:
            result = {
                'can_delete': True,
                'reason': 'Name can be safely deleted',
                'reason_code': 'DELETION_ALLOWED',
                'protection_type': 'none'
            }

        result['name_count'] = name_count
        result['permanent_contexts'] = permanent_contexts
        return result

    @staticmethod
    async def can_delete_context(user_id: str, context_id: str) -> Dict:
        context = await IdentityDatabase.get_user_context(user_id, context_id)
        if not context:
            return AssignmentService._not_found("Context")

        if context['is_permanent']:
            return {
                'success': True,
                'can_delete': False,
                'requires_force': False,
                'impact': {
                    'name_assignments': 0,
                    'connected_apps': 0,
                    'details': ['Cannot delete the default context as it is permanent']
                }
            }

        assignment_count = await IdentityDatabase.count_context_assignments(context_id)
        app_count = await IdentityDatabase.count_apps_using_context(context_id)
        has_dependencies = assignment_count > 0 or app_count > 0

        details: List[str] = []
        if assignment_count:
            details.append(f"{_plural(assignment_count, 'name assignment')} will be removed")
        if app_count:
            details.append(f"{_plural(app_count, 'connected app')} will be moved to the Public context")

        return {
            'success': True,
            'can_delete': True,
            'requires_force': has_dependencies,
            'impact': {
                'name_assignments': assignment_count,
                'connected_apps': app_count,
                'details': details
            } if has_dependencies else None
        }

    @staticmethod
    async def auto_populate_context(user_id: str, context_id: str) -> Dict:
        """
        Seed a new context with the permanent context's assignments

        Permanent contexts and contexts that already carry assignments are
        skipped rather than overwritten.
        """
        context = await IdentityDatabase.get_user_context(user_id, context_id)
        if not context:
            return {
                'success': False,
                'error': 'context_not_found',
                'message': 'Target context does not exist or does not belong to user'
            }

        if context['is_permanent']:
            return {
                'success': True,
                'skipped': True,
                'reason': 'permanent_context',
                'message': 'Permanent contexts are not auto-populated'
            }

        source = await IdentityDatabase.get_permanent_context(user_id)
        if not source:
            return {
                'success': False,
                'error': 'no_permanent_context',
                'message': 'User has no permanent context'
            }

        available = await IdentityDatabase.count_context_assignments(source['id'])
        if available == 0:
            return {
                'success': False,
                'error': 'empty_source_context',
                'message': f"Source context \"{source['context_name']}\" has no OIDC assignments to copy"
            }

        if await IdentityDatabase.count_context_assignments(context_id) > 0:
            return {
                'success': True,
                'skipped': True,
                'reason': 'context_has_assignments',
                'message': f"Context \"{context['context_name']}\" already has OIDC assignments"
            }

        copied = await IdentityDatabase.copy_context_assignments(user_id, source['id'], context_id)
        logger.info(f"Auto-populated context {context_id} with {copied} assignments")

        return {
            'success': True,
            'skipped': False,
            'context_id': str(context_id),
            'context_name': context['context_name'],
            'source_context_id': str(source['id']),
            'source_context_name': source['context_name'],
            'assignments_copied': copied,
            'available_assignments': available,
            'populated_at': datetime.now(timezone.utc).isoformat()
        }

    @staticmethod
    async def assign_default_context_to_app(user_id: str, client_id: str) -> Dict:
        """Point an application at the user's permanent context"""
        permanent = await IdentityDatabase.get_permanent_context(user_id)
        if not permanent:
            return {
                'success': False,
                'error_code': 'NO_PERMANENT_CONTEXT',
                'error': 'User has no permanent context'
            }

        await IdentityDatabase.upsert_app_assignment(user_id, client_id, permanent['id'])
        return {
            'success': True,
            'client_id': client_id,
            'context_id': str(permanent['id']),
            'context_name': permanent['context_name']
        }
