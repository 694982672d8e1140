"""
Context Assignment Decision Logic Tests
"""

import uuid
import pytest

from identity_service.services.assignment_service import AssignmentService


def _assignment(context_id, prop, text):
    return {
        'id': uuid.uuid4(),
        'context_id': context_id,
        'name_id': uuid.uuid4(),
        'oidc_property': prop,
        'name_text': text,
    }


class TestSetAssignment:
    @pytest.mark.asyncio
    async def test_created(self, mock_db, user_id, sample_context):
        name_id = uuid.uuid4()
        mock_db.get_user_context.return_value = sample_context
        mock_db.get_name.return_value = {'id': name_id, 'user_id': uuid.UUID(user_id), 'name_text': 'Ada'}
        row = _assignment(sample_context['id'], 'nickname', None)
        row['inserted'] = True
        mock_db.upsert_context_assignment.return_value = row

        result = await AssignmentService.set_assignment(
            user_id, str(sample_context['id']), str(name_id), 'nickname'
        )

        assert result['success'] is True
        assert result['operation'] == 'CREATED'
        assert result['assignment']['name_text'] == 'Ada'

    @pytest.mark.asyncio
    async def test_updated(self, mock_db, user_id, sample_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.get_name.return_value = {'id': uuid.uuid4(), 'user_id': user_id, 'name_text': 'Ada'}
        row = _assignment(sample_context['id'], 'name', None)
        row['inserted'] = False
        mock_db.upsert_context_assignment.return_value = row

        result = await AssignmentService.set_assignment(user_id, str(sample_context['id']), "n", 'name')

        assert result['operation'] == 'UPDATED'

    @pytest.mark.asyncio
    async def test_unknown_property(self, mock_db, user_id):
        result = await AssignmentService.set_assignment(user_id, "ctx", "name", 'birthdate')

        assert result['error_code'] == 'VALIDATION_ERROR'
        mock_db.get_user_context.assert_not_called()

    @pytest.mark.asyncio
    async def test_name_of_another_user(self, mock_db, user_id, sample_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.get_name.return_value = {'id': uuid.uuid4(), 'user_id': uuid.uuid4(), 'name_text': 'Eve'}

        result = await AssignmentService.set_assignment(user_id, str(sample_context['id']), "n", 'name')

        assert result['error_code'] == 'NOT_FOUND'
        mock_db.upsert_context_assignment.assert_not_called()


class TestRemoveAssignment:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("prop", ['name', 'given_name', 'family_name'])
    async def test_required_properties_of_permanent_context_are_protected(
        self, mock_db, user_id, permanent_context, prop
    ):
        mock_db.get_user_context.return_value = permanent_context

        result = await AssignmentService.remove_assignment(user_id, str(permanent_context['id']), prop)

        assert result['error_code'] == 'PROTECTED_ASSIGNMENT'
        mock_db.delete_context_assignment.assert_not_called()

    @pytest.mark.asyncio
    async def test_optional_property_of_permanent_context(self, mock_db, user_id, permanent_context):
        mock_db.get_user_context.return_value = permanent_context
        mock_db.delete_context_assignment.return_value = True

        result = await AssignmentService.remove_assignment(user_id, str(permanent_context['id']), 'nickname')

        assert result['success'] is True

    @pytest.mark.asyncio
    async def test_missing_assignment(self, mock_db, user_id, sample_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.delete_context_assignment.return_value = False

        result = await AssignmentService.remove_assignment(user_id, str(sample_context['id']), 'name')

        assert result['error_code'] == 'NOT_FOUND'


class TestContextCompleteness:
    @pytest.mark.asyncio
    async def test_incomplete_context(self, mock_db, user_id, sample_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.list_context_assignments.return_value = [
            _assignment(sample_context['id'], 'nickname', 'Ada'),
            _assignment(sample_context['id'], 'given_name', 'Ada'),
        ]

        result = await AssignmentService.get_context_completeness(user_id, str(sample_context['id']))

        completeness = result['completeness']
        assert completeness['is_complete'] is False
        assert completeness['assigned_properties'] == ['given_name', 'nickname']
        assert completeness['missing_properties'] == ['family_name', 'name']
        assert completeness['assignment_count'] == 2
        assert completeness['context_name'] == 'Work'

    @pytest.mark.asyncio
    async def test_complete_context(self, mock_db, user_id, permanent_context):
        mock_db.get_user_context.return_value = permanent_context
        mock_db.list_context_assignments.return_value = [
            _assignment(permanent_context['id'], prop, 'x')
            for prop in ('name', 'given_name', 'family_name')
        ]

        result = await AssignmentService.get_context_completeness(user_id, str(permanent_context['id']))

        assert result['completeness']['is_complete'] is True
        assert result['completeness']['missing_properties'] == []


class TestCanDeleteName:
    @pytest.mark.asyncio
    async def test_ownership_error_takes_priority(self, mock_db, user_id):
        mock_db.get_name.return_value = None

        result = await AssignmentService.can_delete_name(user_id, str(uuid.uuid4()))

        assert result['can_delete'] is False
        assert result['reason_code'] == 'OWNERSHIP_ERROR'
        mock_db.count_user_names.assert_not_called()

    @pytest.mark.asyncio
    async def test_permanent_context_assignment(self, mock_db, user_id, permanent_context):
        mock_db.get_name.return_value = {'id': uuid.uuid4(), 'user_id': user_id}
        mock_db.count_user_names.return_value = 1
        mock_db.get_permanent_contexts_using_name.return_value = [permanent_context]

        result = await AssignmentService.can_delete_name(user_id, str(uuid.uuid4()))

        assert result['reason_code'] == 'PERMANENT_CONTEXT_ASSIGNED'
        assert result['reason'] == 'Cannot delete name assigned to 1 permanent context'
        assert result['permanent_contexts'] == [
            {'id': str(permanent_context['id']), 'context_name': 'Public'}
        ]

    @pytest.mark.asyncio
    async def test_last_name_protection(self, mock_db, user_id):
        mock_db.get_name.return_value = {'id': uuid.uuid4(), 'user_id': user_id}
        mock_db.count_user_names.return_value = 1
        mock_db.get_permanent_contexts_using_name.return_value = []

        result = await AssignmentService.can_delete_name(user_id, str(uuid.uuid4()))

        assert result['reason_code'] == 'LAST_NAME_PROTECTION'
        assert result['name_count'] == 1

    @pytest.mark.asyncio
    async def test_deletion_allowed(self, mock_db, user_id):
        mock_db.get_name.return_value = {'id': uuid.uuid4(), 'user_id': user_id}
        mock_db.count_user_names.return_value = 4
        mock_db.get_permanent_contexts_using_name.return_value = []

        result = await AssignmentService.can_delete_name(user_id, str(uuid.uuid4()))

        assert result['can_delete'] is True
        assert result['reason_code'] == 'DELETION_ALLOWED'


class TestCanDeleteContext:
    @pytest.mark.asyncio
    async def test_permanent_context(self, mock_db, user_id, permanent_context):
        mock_db.get_user_context.return_value = permanent_context

        result = await AssignmentService.can_delete_context(user_id, str(permanent_context['id']))

        assert result['can_delete'] is False
        assert result['impact']['details'] == ['Cannot delete the default context as it is permanent']

    @pytest.mark.asyncio
    async def test_context_with_dependencies(self, mock_db, user_id, sample_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.count_context_assignments.return_value = 1
        mock_db.count_apps_using_context.return_value = 2

        result = await AssignmentService.can_delete_context(user_id, str(sample_context['id']))

        assert result['can_delete'] is True
        assert result['requires_force'] is True
        assert result['impact']['details'] == [
            "1 name assignment will be removed",
            "2 connected apps will be moved to the Public context",
        ]

    @pytest.mark.asyncio
    async def test_unused_context(self, mock_db, user_id, sample_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.count_context_assignments.return_value = 0
        mock_db.count_apps_using_context.return_value = 0

        result = await AssignmentService.can_delete_context(user_id, str(sample_context['id']))

        assert result['requires_force'] is False
        assert result['impact'] is None

    @pytest.mark.asyncio
    async def test_missing_context(self, mock_db, user_id):
        mock_db.get_user_context.return_value = None

        result = await AssignmentService.can_delete_context(user_id, "ctx")

        assert result['success'] is False
        assert result['error_code'] == 'NOT_FOUND'


class TestAutoPopulate:
    @pytest.mark.asyncio
    async def test_copies_permanent_assignments(self, mock_db, user_id, sample_context, permanent_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.get_permanent_context.return_value = permanent_context
        mock_db.count_context_assignments.side_effect = lambda context_id: (
            3 if context_id == permanent_context['id'] else 0
        )
        mock_db.copy_context_assignments.return_value = 3

        result = await AssignmentService.auto_populate_context(user_id, str(sample_context['id']))

        assert result['success'] is True
        assert result['skipped'] is False
        assert result['assignments_copied'] == 3
        assert result['source_context_name'] == 'Public'
        mock_db.copy_context_assignments.assert_awaited_once_with(
            user_id, permanent_context['id'], str(sample_context['id'])
        )

    @pytest.mark.asyncio
    async def test_skips_permanent_context(self, mock_db, user_id, permanent_context):
        mock_db.get_user_context.return_value = permanent_context

        result = await AssignmentService.auto_populate_context(user_id, str(permanent_context['id']))

        assert result['skipped'] is True
        assert result['reason'] == 'permanent_context'

    @pytest.mark.asyncio
    async def test_skips_context_with_assignments(self, mock_db, user_id, sample_context, permanent_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.get_permanent_context.return_value = permanent_context
        mock_db.count_context_assignments.return_value = 2

        result = await AssignmentService.auto_populate_context(user_id, str(sample_context['id']))

        assert result['skipped'] is True
        assert result['reason'] == 'context_has_assignments'
        mock_db.copy_context_assignments.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_source(self, mock_db, user_id, sample_context, permanent_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.get_permanent_context.return_value = permanent_context
        mock_db.count_context_assignments.return_value = 0

        result = await AssignmentService.auto_populate_context(user_id, str(sample_context['id']))

        assert result['success'] is False
        assert result['error'] == 'empty_source_context'

    @pytest.mark.asyncio
    async def test_no_permanent_context(self, mock_db, user_id, sample_context):
        mock_db.get_user_context.return_value = sample_context
        mock_db.get_permanent_context.return_value = None

        result = await AssignmentService.auto_populate_context(user_id, str(sample_context['id']))

        assert result['error'] == 'no_permanent_context'


class TestAssignDefaultContext:
    @pytest.mark.asyncio
    async def test_assigns_permanent_context(self, mock_db, user_id, permanent_context):
        mock_db.get_permanent_context.return_value = permanent_context

        result = await AssignmentService.assign_default_context_to_app(user_id, "tnp_0123456789abcdef")

        assert result['context_name'] == 'Public'
        mock_db.upsert_app_assignment.assert_awaited_once_with(
            user_id, "tnp_0123456789abcdef", permanent_context['id']
        )

    @pytest.mark.asyncio
    async def test_without_permanent_context(self, mock_db, user_id):
        mock_db.get_permanent_context.return_value = None

        result = await AssignmentService.assign_default_context_to_app(user_id, "tnp_0123456789abcdef")

        assert result['error_code'] == 'NO_PERMANENT_CONTEXT'
