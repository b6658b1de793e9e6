"""
API tests for formation, operations, documents, tasks and home endpoints.

Tests:
- Authentication and permission enforcement
- The setup wizard over HTTP
- Workflow steps and phase advancement
- Operations gating and the compliance calendar
- Document generation and lifecycle
- Task CRUD with pagination
- Tenant isolation
"""
import pytest

from apps.formation.models import ComplianceItem, DocumentInstance, Task
from apps.formation.tests.conftest import ADDRESS


@pytest.mark.django_db
class TestAuthentication:

    def test_requires_credentials(self, api_client):
        response = api_client.get('/v1/formation/setup/status')

        assert response.status_code == 401
        assert response.json()['error']['code'] == 'UNAUTHORIZED'

    def test_viewer_can_read_but_not_write(self, viewer_client):
        assert viewer_client.get('/v1/formation/setup/status').status_code == 200

        response = viewer_client.post(
            '/v1/formation/setup/start', {'archetype': 'retail'}, format='json'
        )
        assert response.status_code == 403
        assert response.json()['error']['code'] == 'FORBIDDEN'

    def test_member_can_write(self, member_client):
        response = member_client.post(
            '/v1/formation/setup/start', {'archetype': 'retail'}, format='json'
        )
        assert response.status_code == 201


@pytest.mark.django_db
class TestSetupWizardAPI:

    def test_full_wizard(self, owner_client):
        response = owner_client.post(
            '/v1/formation/setup/start',
            {'archetype': 'professional_services', 'business_name': 'Acme Ventures LLC'},
            format='json',
        )
        assert response.status_code == 201
        body = response.json()
        assert body['archetype_name'] == 'Professional Services'
        assert body['recommended_entity_types'] == ['llc', 'sole_proprietorship']
        assert body['current_step'] == 'entity_type'

        response = owner_client.post('/v1/formation/setup/entity-type', {'entity_type': 'llc'}, format='json')
        assert response.json()['current_step'] == 'state'

        response = owner_client.post('/v1/formation/setup/state', {'state': 'de'}, format='json')
        assert response.json()['state'] == 'DE'
        assert response.json()['current_step'] == 'business_info'

        response = owner_client.post(
            '/v1/formation/setup/business-info', {'business_address': ADDRESS}, format='json'
        )
        assert response.json()['current_step'] == 'formation'

        response = owner_client.post('/v1/formation/setup/complete', format='json')
        assert response.status_code == 200
        body = response.json()
        assert body['setup_complete'] is True
        assert body['business_profile']['formation_status'] == 'in_progress'
        assert body['next_action']['action'] == 'start_formation'

        response = owner_client.get('/v1/formation/workflow')
        assert response.json()['id'] == body['workflow_id']

    def test_invalid_state_code(self, owner_client, profile):
        response = owner_client.post('/v1/formation/setup/state', {'state': 'ZZ'}, format='json')

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'VALIDATION_ERROR'
        assert 'state' in response.json()['error']['details']

    def test_step_before_start_is_404(self, owner_client):
        response = owner_client.post('/v1/formation/setup/entity-type', {'entity_type': 'llc'}, format='json')

        assert response.status_code == 404
        assert response.json()['error']['message'] == 'Business profile not found'

    def test_complete_with_missing_steps(self, owner_client):
        owner_client.post('/v1/formation/setup/start', {'archetype': 'retail'}, format='json')

        response = owner_client.post('/v1/formation/setup/complete', format='json')

        assert response.status_code == 400
        error = response.json()['error']
        assert error['code'] == 'PREREQUISITES_NOT_MET'
        assert error['details']['missing'] == ['entity_type', 'state', 'business_info']

    def test_empty_business_info_rejected(self, owner_client, profile):
        response = owner_client.post('/v1/formation/setup/business-info', {}, format='json')
        assert response.status_code == 400

    def test_formation_status_and_progress(self, owner_client, profile):
        response = owner_client.put(
            '/v1/formation/status',
            {'formation_status': 'filed', 'sos_filing_number': 'DE-2026-1234', 'formation_date': '2026-03-01'},
            format='json',
        )
        assert response.status_code == 200
        assert response.json()['formation_date'] == '2026-03-01'

        response = owner_client.get('/v1/formation/progress')
        assert response.json()['percentage'] == 75
        milestones = {m['key']: m['complete'] for m in response.json()['milestones']}
        assert milestones == {
            'entity_type': True,
            'business_info': True,
            'formation_filed': True,
            'ein_received': False,
        }

    def test_invalid_ein_format(self, owner_client, profile):
        response = owner_client.put('/v1/formation/status', {'ein': '123456789'}, format='json')
        assert response.status_code == 400


@pytest.mark.django_db
class TestWorkflowAPI:

    def test_update_step(self, owner_client, workflow):
        response = owner_client.put(
            '/v1/formation/workflow/steps/business_type',
            {'status': 'completed', 'data': {'entity_type': 'llc'}},
            format='json',
        )

        assert response.status_code == 200
        body = response.json()
        assert body['current_step'] == 'business_name'
        assert body['progress']['completed'] == 1

    def test_unknown_step(self, owner_client, workflow):
        response = owner_client.put(
            '/v1/formation/workflow/steps/notarize', {'status': 'completed'}, format='json'
        )
        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_INPUT'

    def test_advance_until_final_phase(self, owner_client, workflow):
        for _ in range(7):
            response = owner_client.post('/v1/formation/workflow/advance', {}, format='json')
            assert response.status_code == 200
        assert response.json()['current_phase'] == 'growth'
        assert response.json()['status'] == 'completed'

        response = owner_client.post('/v1/formation/workflow/advance', {}, format='json')
        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_TRANSITION'


@pytest.mark.django_db
class TestOperationsAPI:

    def test_locked_before_filing(self, owner_client, profile):
        response = owner_client.get('/v1/operations/status')
        assert response.json()['unlocked'] is False

        response = owner_client.put('/v1/operations/banking', {'status': 'account_opened'}, format='json')
        assert response.status_code == 400
        assert response.json()['error']['code'] == 'PREREQUISITES_NOT_MET'

    def test_operations_after_filing(self, owner_client, filed_profile):
        response = owner_client.put(
            '/v1/operations/banking', {'status': 'account_opened', 'bank_name': 'First Bank'}, format='json'
        )
        assert response.status_code == 200
        assert response.json()['bank_name'] == 'First Bank'

        response = owner_client.put('/v1/operations/operating-agreement', {'status': 'signed'}, format='json')
        assert response.json()['operating_agreement_status'] == 'signed'

        response = owner_client.post('/v1/operations/compliance/setup', format='json')
        assert response.status_code == 201

        response = owner_client.get('/v1/operations/status')
        body = response.json()
        assert body['progress'] == 100
        assert body['compliance']['status'] == 'active'

    def test_compliance_items(self, owner_client, filed_profile):
        owner_client.post('/v1/operations/compliance/setup', format='json')

        response = owner_client.get('/v1/operations/compliance/items')
        items = response.json()['results']
        assert [item['due_date'] for item in items] == ['2026-05-30', '2027-03-01', '2027-03-01', '2027-04-15']

        annual = ComplianceItem.objects.get(item_type=ComplianceItem.TYPE_ANNUAL_REPORT)
        response = owner_client.post(f'/v1/operations/compliance/items/{annual.id}/complete', format='json')
        assert response.status_code == 200
        assert response.json()['next_item']['due_date'] == '2028-03-01'

        response = owner_client.post(f'/v1/operations/compliance/items/{annual.id}/complete', format='json')
        assert response.status_code == 400


@pytest.mark.django_db
class TestDocumentAPI:

    def test_generate_edit_and_review(self, owner_client, profile):
        response = owner_client.post(
            '/v1/documents/generate',
            {'template_key': 'operating_agreement', 'custom_data': {'member_names': 'Olivia Owner'}},
            format='json',
        )
        assert response.status_code == 201
        document_id = response.json()['id']
        assert 'Olivia Owner' in response.json()['content']

        response = owner_client.put(
            f'/v1/documents/{document_id}', {'content': 'Revised agreement', 'notes': 'Edit'}, format='json'
        )
        assert response.json()['version'] == 2

        response = owner_client.post(
            f'/v1/documents/{document_id}/transition', {'status': 'pending_review'}, format='json'
        )
        assert response.json()['status'] == 'pending_review'

        response = owner_client.put(f'/v1/documents/{document_id}', {'content': 'Late edit'}, format='json')
        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_TRANSITION'

        response = owner_client.get(f'/v1/documents/{document_id}/versions')
        body = response.json()
        assert body['current_version'] == 2
        assert [v['version'] for v in body['versions']] == [2, 1]

    def test_invalid_transition(self, owner_client, profile):
        response = owner_client.post('/v1/documents/generate', {'template_key': 'banking_resolution'}, format='json')
        document_id = response.json()['id']

        response = owner_client.post(
            f'/v1/documents/{document_id}/transition', {'status': 'final'}, format='json'
        )

        assert response.status_code == 400
        assert response.json()['error']['details'] == {'from': 'draft', 'to': 'final'}

    def test_unknown_template(self, owner_client, profile):
        response = owner_client.post('/v1/documents/generate', {'template_key': 'prenup'}, format='json')
        assert response.status_code == 404

    def test_templates_for_entity_type(self, owner_client, profile):
        response = owner_client.get('/v1/documents/templates')
        keys = [t['key'] for t in response.json()['results']]
        assert 'articles_of_incorporation' not in keys
        assert 'operating_agreement' in keys

    def test_viewer_cannot_generate(self, viewer_client, profile):
        response = viewer_client.post(
            '/v1/documents/generate', {'template_key': 'banking_resolution'}, format='json'
        )
        assert response.status_code == 403
        assert DocumentInstance.objects.count() == 0


@pytest.mark.django_db
class TestTaskAPI:

    def test_create_and_list_with_pagination(self, owner_client, workflow):
        response = owner_client.post(
            '/v1/tasks', {'title': 'Order business cards', 'priority': 'low'}, format='json'
        )
        assert response.status_code == 201
        assert response.json()['status'] == 'pending'

        response = owner_client.get('/v1/tasks', {'limit': 2})
        body = response.json()
        assert len(body['results']) == 2
        assert body['pagination'] == {
            'page': 1,
            'limit': 2,
            'total': 5,
            'total_pages': 3,
            'has_next': True,
            'has_prev': False,
        }

    def test_title_required(self, owner_client):
        response = owner_client.post('/v1/tasks', {'priority': 'low'}, format='json')

        assert response.status_code == 400
        assert 'title' in response.json()['error']['details']

    def test_complete_update_delete(self, owner_client, owner_user, tenant):
        task_id = owner_client.post('/v1/tasks', {'title': 'Get insurance'}, format='json').json()['id']

        response = owner_client.post(f'/v1/tasks/{task_id}/complete', format='json')
        assert response.status_code == 200
        assert response.json()['completed_at'] is not None

        response = owner_client.post(f'/v1/tasks/{task_id}/complete', format='json')
        assert response.status_code == 400

        response = owner_client.put(f'/v1/tasks/{task_id}', {'status': 'in_progress'}, format='json')
        assert response.json()['completed_at'] is None

        assert owner_client.delete(f'/v1/tasks/{task_id}').status_code == 204
        assert owner_client.get(f'/v1/tasks/{task_id}').status_code == 404

    def test_viewer_reads_tasks_only(self, viewer_client, workflow):
        assert viewer_client.get('/v1/tasks').status_code == 200
        assert viewer_client.post('/v1/tasks', {'title': 'Nope'}, format='json').status_code == 403


@pytest.mark.django_db
class TestTenantIsolation:

    def test_other_tenant_cannot_see_task(self, owner_client, client_for, tenant, other_tenant, owner_user):
        task_id = owner_client.post('/v1/tasks', {'title': 'Private'}, format='json').json()['id']
        outsider = other_tenant.tenant_users.first().user
        outsider_client = client_for(outsider, for_tenant=other_tenant)

        response = outsider_client.get(f'/v1/tasks/{task_id}')

        assert response.status_code == 404
        assert Task.objects.filter(id=task_id).exists()

    def test_non_member_cannot_use_tenant_header(self, client_for, tenant, other_tenant):
        outsider = other_tenant.tenant_users.first().user

        response = client_for(outsider, for_tenant=tenant).get('/v1/tasks')

        assert response.status_code == 403
        assert response.json()['error']['code'] == 'TENANT_ACCESS_DENIED'


@pytest.mark.django_db
class TestHomeAPI:

    def test_home_before_setup(self, owner_client):
        response = owner_client.get('/v1/home')

        assert response.status_code == 200
        assert response.json()['has_setup'] is False
        assert response.json()['tasks'] == []

    def test_home_with_workflow(self, owner_client, workflow):
        body = owner_client.get('/v1/home').json()

        assert body['business']['name'] == 'Acme Ventures LLC'
        assert body['progress']['setup'] == 100
        assert len(body['tasks']) == 4
        assert body['tasks'][0]['priority'] == 'high'
