"""
OIDC Claim Resolution Tests
"""

import uuid
import pytest
from datetime import datetime, timezone

from identity_service.services.resolution_service import (
    ResolutionService,
    resolution_error,
    TOKEN_TYPE,
    TOKEN_NOTE,
)

VALID_TOKEN = "tnp_" + "0123456789abcdef" * 2


class TestExtractBearerToken:
    def test_valid_header(self):
        assert ResolutionService.extract_bearer_token(f"Bearer {VALID_TOKEN}") == VALID_TOKEN

    @pytest.mark.parametrize("header", [
        None,
        "",
        VALID_TOKEN,
        f"Basic {VALID_TOKEN}",
        f"bearer {VALID_TOKEN}",
        "Bearer tnp_short",
        f"Bearer {VALID_TOKEN.upper()}",
    ])
    def test_invalid_headers(self, header):
        assert ResolutionService.extract_bearer_token(header) is None


class TestErrorMapping:
    def test_known_errors(self):
        assert resolution_error('invalid_token') == ('INVALID_TOKEN', 401)
        assert resolution_error('no_context_assigned') == ('NO_CONTEXT_ASSIGNED', 400)

    def test_unknown_errors_default(self):
        assert resolution_error('client_not_registered') == ('RESOLUTION_FAILED', 400)


class TestBuildClaims:
    def test_claim_set(self, sample_session, sample_client, sample_profile):
        claims = ResolutionService.build_claims(
            sample_session, sample_client, sample_profile, "Work",
            {'name': 'Ada Lovelace', 'nickname': 'Ada'}, issued_at=1700000000
        )

        assert claims['sub'] == str(sample_session['profile_id'])
        assert claims['iss'] == "https://truenameapi.demo"
        assert claims['aud'] == "demo-hr"
        assert claims['iat'] == claims['nbf'] == 1700000000
        assert claims['exp'] == 1700003600
        assert uuid.UUID(claims['jti'])
        assert claims['email'] == 'ada@example.com'
        assert claims['email_verified'] is True
        assert claims['updated_at'] == int(sample_profile['updated_at'].timestamp())
        assert claims['locale'] == 'en-GB'
        assert claims['zoneinfo'] == 'Europe/London'
        assert claims['context_name'] == 'Work'
        assert claims['client_id'] == sample_client['client_id']
        assert claims['_token_type'] == TOKEN_TYPE
        assert claims['_note'] == TOKEN_NOTE
        assert claims['name'] == 'Ada Lovelace'
        assert claims['nickname'] == 'Ada'

    def test_updated_at_falls_back_to_iat(self, sample_session, sample_client):
        claims = ResolutionService.build_claims(
            sample_session, sample_client, None, "Public", {}, issued_at=1700000000
        )
        assert claims['updated_at'] == 1700000000
        assert claims['email'] is None
        assert claims['email_verified'] is False

    def test_assignments_override_base_claims(self, sample_session, sample_client, sample_profile):
        claims = ResolutionService.build_claims(
            sample_session, sample_client, sample_profile, "Work", {'email': 'override'}
        )
        assert claims['email'] == 'override'


class TestResolveClaims:
    @pytest.mark.asyncio
    async def test_resolve_success(self, mock_db, sample_session, sample_client, sample_profile):
        context_id = uuid.uuid4()
        mock_db.get_active_session.return_value = sample_session
        mock_db.get_client.return_value = sample_client
        mock_db.get_profile_by_id.return_value = sample_profile
        mock_db.get_app_assignment.return_value = {'context_id': context_id, 'context_name': 'Work'}
        mock_db.list_context_assignments.return_value = [
            {'oidc_property': 'name', 'name_text': 'Ada Lovelace'},
            {'oidc_property': 'given_name', 'name_text': 'Ada'},
        ]

        result = await ResolutionService.resolve_claims(sample_session['session_token'])

        assert result['success'] is True
        assert result['claims']['name'] == 'Ada Lovelace'
        assert result['claims']['given_name'] == 'Ada'
        assert result['claims']['context_name'] == 'Work'
        assert result['response_time_ms'] >= 0
        mock_db.mark_session_used.assert_awaited_once_with(sample_session['id'])
        mock_db.list_context_assignments.assert_awaited_once_with(context_id)

        usage = mock_db.log_app_usage.call_args.kwargs
        assert usage['action'] == 'resolve'
        assert usage.get('success', True) is True
        assert usage['context_id'] == context_id

    @pytest.mark.asyncio
    async def test_expired_or_unknown_token(self, mock_db):
        mock_db.get_active_session.return_value = None

        result = await ResolutionService.resolve_claims(VALID_TOKEN)

        assert result == {
            'success': False,
            'error': 'invalid_token',
            'message': 'Token is invalid or expired'
        }
        mock_db.log_app_usage.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_no_longer_registered(self, mock_db, sample_session):
        mock_db.get_active_session.return_value = sample_session
        mock_db.get_client.return_value = None

        result = await ResolutionService.resolve_claims(sample_session['session_token'])

        assert result['error'] == 'client_not_registered'
        usage = mock_db.log_app_usage.call_args.kwargs
        assert usage['success'] is False
        assert usage['error_type'] == 'client_not_registered'
        mock_db.mark_session_used.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_context_assigned(self, mock_db, sample_session, sample_client, sample_profile):
        mock_db.get_active_session.return_value = sample_session
        mock_db.get_client.return_value = sample_client
        mock_db.get_profile_by_id.return_value = sample_profile
        mock_db.get_app_assignment.return_value = None

        result = await ResolutionService.resolve_claims(sample_session['session_token'])

        assert result['error'] == 'no_context_assigned'
        mock_db.mark_session_used.assert_awaited_once()
        assert mock_db.log_app_usage.call_args.kwargs['error_type'] == 'no_context_assigned'

    @pytest.mark.asyncio
    async def test_database_error_is_resolution_failure(self, mock_db, sample_session, sample_client):
        mock_db.get_active_session.return_value = sample_session
        mock_db.get_client.return_value = sample_client
        mock_db.get_profile_by_id.side_effect = RuntimeError("connection lost")

        result = await ResolutionService.resolve_claims(sample_session['session_token'])

        assert result['success'] is False
        assert result['error'] == 'resolution_failed'
        assert resolution_error(result['error']) == ('RESOLUTION_FAILED', 400)
        usage = mock_db.log_app_usage.call_args.kwargs
        assert usage['success'] is False
        assert usage['error_type'] == 'resolution_failed'

    @pytest.mark.asyncio
    async def test_session_lookup_error_is_resolution_failure(self, mock_db, sample_session):
        mock_db.get_active_session.side_effect = RuntimeError("connection lost")

        result = await ResolutionService.resolve_claims(sample_session['session_token'])

        assert result['error'] == 'resolution_failed'
        mock_db.log_app_usage.assert_not_called()

    @pytest.mark.asyncio
    async def test_claims_expire_an_hour_after_issue(
        self, mock_db, sample_session, sample_client, sample_profile
    ):
        mock_db.get_active_session.return_value = sample_session
        mock_db.get_client.return_value = sample_client
        mock_db.get_profile_by_id.return_value = sample_profile
        mock_db.get_app_assignment.return_value = {'context_id': uuid.uuid4(), 'context_name': 'Public'}
        mock_db.list_context_assignments.return_value = []

        result = await ResolutionService.resolve_claims(sample_session['session_token'])

        claims = result['claims']
        assert claims['exp'] - claims['iat'] == 3600
        assert abs(claims['iat'] - int(datetime.now(timezone.utc).timestamp())) < 5
