# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HTTP tests for the workflow endpoints using the Flask test client.
"""

import pytest
from unittest.mock import Mock

from models.entities import GeoPoint, VeterinaryDetails
from services.store import ANIMALS, NOTIFICATIONS

from conftest import APPLICATION_MESSAGE, SANTIAGO_LAT, SANTIAGO_LON, headers_for, seed_profile


PROBLEM_BASE = "https://api.rescue-workflow.org/problems/"


class TestPrincipal:
    """Gateway principal headers."""

    def test_missing_headers_is_401(self, client, report_payload):
        response = client.post('/api/reports', json=report_payload)

        assert response.status_code == 401
        data = response.get_json()
        assert data['type'] == PROBLEM_BASE + 'authentication-required'
        assert data['instance'] == '/api/reports'

    def test_unknown_role_is_401(self, client, report_payload):
        response = client.post(
            '/api/reports',
            json=report_payload,
            headers={'X-User-Id': 'u1', 'X-User-Role': 'superuser'}
        )

        assert response.status_code == 401


class TestReportEndpoints:
    """Report intake and triage."""

    def test_create_report(self, client, citizen, report_payload):
        response = client.post('/api/reports', json=report_payload, headers=headers_for(citizen))

        assert response.status_code == 201
        data = response.get_json()
        assert data['status'] == 'pending'
        assert data['reporterId'] == citizen.id
        assert data['location'] == {'type': 'Point', 'coordinates': [SANTIAGO_LON, SANTIAGO_LAT]}
        assert data['_links']['self']['href'].endswith(f"/api/reports/{data['id']}")
        assert 'assign' in data['_links']

    def test_create_report_rejects_bad_coordinates(self, client, citizen, report_payload):
        payload = dict(report_payload, latitude=123.0)

        response = client.post('/api/reports', json=payload, headers=headers_for(citizen))

        assert response.status_code == 400
        assert response.get_json()['type'] == PROBLEM_BASE + 'validation-error'

    def test_create_report_requires_json_object(self, client, citizen):
        response = client.post('/api/reports', json=["not", "an", "object"], headers=headers_for(citizen))

        assert response.status_code == 400

    def test_assign_organization(self, client, store, report, organization):
        response = client.patch(
            f'/api/reports/{report.id}',
            json={'organizationId': organization.id},
            headers=headers_for(organization)
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'pending'
        assert data['organizationId'] == organization.id
        assert data['_embedded']['organization'] == {
            'id': organization.id, 'name': 'Happy Paws Shelter', 'role': 'organization'
        }
        assert store.count(NOTIFICATIONS, {'userId': organization.id, 'type': 'new_case'}) == 1

    def test_invalid_transition_is_422(self, client, report, admin):
        response = client.patch(f'/api/reports/{report.id}', json={'status': 'assigned'}, headers=headers_for(admin))

        assert response.status_code == 422
        data = response.get_json()
        assert data['type'] == PROBLEM_BASE + 'invalid-transition'
        assert data['errors']

    def test_citizen_cannot_triage(self, client, report, citizen):
        response = client.patch(f'/api/reports/{report.id}', json={'status': 'closed'}, headers=headers_for(citizen))

        assert response.status_code == 403

    def test_unknown_report_is_404(self, client, admin):
        response = client.patch('/api/reports/nope', json={'status': 'closed'}, headers=headers_for(admin))

        assert response.status_code == 404

    def test_nearby_reports(self, client, report, citizen, engine, citizen_principal, report_payload):
        from models.requests import CreateReportRequest
        far_away = dict(report_payload, latitude=SANTIAGO_LAT + 1)
        engine.create_report(citizen_principal, CreateReportRequest.model_validate(far_away))

        response = client.get(
            f'/api/reports/nearby?latitude={SANTIAGO_LAT}&longitude={SANTIAGO_LON}&maxDistance=5000',
            headers=headers_for(citizen)
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data['total'] == 1
        assert data['items'][0]['id'] == report.id
        assert data['items'][0]['distanceMeters'] == 0

    def test_nearby_bad_coordinates_is_400(self, client, citizen):
        response = client.get('/api/reports/nearby?latitude=95&longitude=0', headers=headers_for(citizen))

        assert response.status_code == 400

    def test_nearby_fractional_radius(self, client, report, citizen):
        response = client.get(
            f"/api/reports/nearby?latitude={SANTIAGO_LAT}&longitude={SANTIAGO_LON}&maxDistance=0.5",
            headers=headers_for(citizen)
        )

        assert response.status_code == 200
        assert response.get_json()["total"] == 1

    def test_nearby_negative_radius_is_400(self, client, citizen):
        response = client.get(
            '/api/reports/nearby?latitude=0&longitude=0&maxDistance=-5', headers=headers_for(citizen)
        )

        assert response.status_code == 400


class TestAnimalEndpoints:
    """Animal profiles."""

    def test_create_animal(self, client, store, organization, animal_payload):
        response = client.post('/api/animals', json=animal_payload, headers=headers_for(organization))

        assert response.status_code == 201
        data = response.get_json()
        assert data['status'] == 'available'
        assert data['organizationId'] == organization.id
        assert data['_embedded']['organization']['name'] == 'Happy Paws Shelter'
        assert 'adopt' in data['_links']
        assert store.get('users', organization.id)['capacityLedger']['currentAnimals'] == 1

    def test_create_animal_requires_photo(self, client, organization, animal_payload):
        payload = dict(animal_payload, photoUrls=[])

        response = client.post('/api/animals', json=payload, headers=headers_for(organization))

        assert response.status_code == 400

    def test_update_animal(self, client, animal, organization):
        response = client.patch(
            f'/api/animals/{animal.id}',
            json={'status': 'adopted', 'story': 'Found a family'},
            headers=headers_for(organization)
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'adopted'
        assert data['story'] == 'Found a family'
        assert data['adoptedAt'] is not None
        assert 'adopt' not in data['_links']

    def test_delete_animal(self, client, store, animal, organization):
        response = client.delete(f'/api/animals/{animal.id}', headers=headers_for(organization))

        assert response.status_code == 200
        assert response.get_json() == {'message': 'Animal deleted', 'id': animal.id}
        assert store.get(ANIMALS, animal.id)['isDeleted'] is True

        again = client.delete(f'/api/animals/{animal.id}', headers=headers_for(organization))
        assert again.status_code == 404


class TestAdoptionEndpoints:
    """Adoption applications."""

    def _payload(self, animal, adopter_info):
        return {
            'animalId': animal.id,
            'applicationMessage': APPLICATION_MESSAGE,
            'adopterInfo': adopter_info
        }

    def test_submit_and_duplicate(self, client, animal, adopter, adopter_info):
        first = client.post('/api/adoptions', json=self._payload(animal, adopter_info), headers=headers_for(adopter))
        second = client.post('/api/adoptions', json=self._payload(animal, adopter_info), headers=headers_for(adopter))

        assert first.status_code == 201
        data = first.get_json()
        assert data['status'] == 'pending'
        assert data['_embedded']['animal']['name'] == 'Firulais'
        assert 'cancel' in data['_links']

        assert second.status_code == 409
        assert second.get_json()['type'] == PROBLEM_BASE + 'resource-conflict'

    def test_short_message_is_400(self, client, animal, adopter, adopter_info):
        payload = dict(self._payload(animal, adopter_info), applicationMessage='Please')

        response = client.post('/api/adoptions', json=payload, headers=headers_for(adopter))

        assert response.status_code == 400

    def test_approve_then_complete(self, client, adoption, organization):
        approved = client.put(
            f'/api/adoptions/{adoption.id}/status', json={'status': 'approved'}, headers=headers_for(organization)
        )
        completed = client.put(
            f'/api/adoptions/{adoption.id}/status', json={'status': 'completed'}, headers=headers_for(organization)
        )

        assert approved.status_code == 200
        assert approved.get_json()['_embedded']['animal']['status'] == 'pending_adoption'
        assert completed.status_code == 200
        assert completed.get_json()['_embedded']['animal']['status'] == 'adopted'
        assert 'cancel' not in completed.get_json()['_links']

    def test_cancel(self, client, adoption, adopter, organization):
        forbidden = client.put(f'/api/adoptions/{adoption.id}/cancel', headers=headers_for(organization))
        cancelled = client.put(f'/api/adoptions/{adoption.id}/cancel', headers=headers_for(adopter))

        assert forbidden.status_code == 403
        assert cancelled.status_code == 200
        assert cancelled.get_json()['status'] == 'cancelled'


class TestMedicalRecordEndpoints:
    """Veterinary visits."""

    def test_create_and_complete(self, client, animal, veterinary):
        created = client.post(
            '/api/medical-records',
            json={'animalId': animal.id, 'visitType': 'discharge', 'estimatedCost': 80},
            headers=headers_for(veterinary)
        )

        assert created.status_code == 201
        record = created.get_json()
        assert record['totalCost'] == 80
        assert record['_embedded']['animal']['id'] == animal.id
        assert record['_embedded']['veterinary']['name'] == 'Clinica Vet Central'

        completed = client.patch(
            f"/api/medical-records/{record['id']}",
            json={'status': 'completed', 'actualCost': 95.5},
            headers=headers_for(veterinary)
        )

        assert completed.status_code == 200
        data = completed.get_json()
        assert data['status'] == 'completed'
        assert data['dischargeDate'] is not None
        assert data['totalCost'] == 95.5

    def test_organization_cannot_create(self, client, animal, organization):
        response = client.post(
            '/api/medical-records',
            json={'animalId': animal.id, 'visitType': 'initial_exam'},
            headers=headers_for(organization)
        )

        assert response.status_code == 403


class TestVeterinaryEndpoints:
    """Clinic directory."""

    def test_nearby_clinics_only_verified(self, client, store, veterinary, citizen):
        seed_profile(
            store,
            email="unverified@vet.cl",
            name="Unverified Vet",
            role="veterinary",
            verified=False,
            veterinary_details=VeterinaryDetails(location=GeoPoint.from_lat_lng(SANTIAGO_LAT, SANTIAGO_LON))
        )

        response = client.get(
            f'/api/veterinaries/nearby?latitude={SANTIAGO_LAT}&longitude={SANTIAGO_LON}',
            headers=headers_for(citizen)
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data['total'] == 1
        item = data['items'][0]
        assert item['id'] == veterinary.id
        assert item['name'] == 'Clinica Vet Central'
        assert item['veterinaryDetails']['locationAddress'] == 'Av. Providencia 1234'
        assert item['distanceMeters'] == 0


class TestNotificationEndpoints:
    """Caller-scoped mailbox."""

    @pytest.fixture
    def inbox(self, engine, report, org_principal, organization):
        from models.requests import TransitionReportRequest
        engine.transition_report(org_principal, report.id, TransitionReportRequest(organization_id=organization.id))
        return engine.notifier.list(org_principal)[0].items

    def test_list(self, client, inbox, organization):
        response = client.get('/api/notifications', headers=headers_for(organization))

        assert response.status_code == 200
        data = response.get_json()
        assert data['total'] == 1
        assert data['unreadCount'] == 1
        item = data['_embedded']['items'][0]
        assert item['type'] == 'new_case'
        assert 'mark_read' in item['_links']

    def test_unread_count_and_mark_read(self, client, inbox, organization):
        notification_id = inbox[0].id

        marked = client.put(f'/api/notifications/{notification_id}/read', headers=headers_for(organization))
        count = client.get('/api/notifications/unread-count', headers=headers_for(organization))

        assert marked.status_code == 200
        assert marked.get_json()['isRead'] is True
        assert count.get_json() == {'unreadCount': 0}

    def test_foreign_notification_is_403(self, client, inbox, citizen):
        response = client.put(f'/api/notifications/{inbox[0].id}/read', headers=headers_for(citizen))

        assert response.status_code == 403

    def test_missing_notification_is_404(self, client, organization):
        response = client.delete('/api/notifications/missing', headers=headers_for(organization))

        assert response.status_code == 404

    def test_read_all_and_clear(self, client, store, inbox, organization):
        read_all = client.put('/api/notifications/read-all', headers=headers_for(organization))
        cleared = client.delete('/api/notifications/clear-read', headers=headers_for(organization))

        assert read_all.get_json()['count'] == 1
        assert cleared.get_json()['count'] == 1
        assert store.count(NOTIFICATIONS, {'userId': organization.id}) == 0


class TestOrganizationEndpoints:
    """Capacity counters."""

    def test_capacity(self, client, animal, organization):
        response = client.get(f'/api/organizations/{organization.id}/capacity', headers=headers_for(organization))

        assert response.status_code == 200
        data = response.get_json()
        assert data['capacity'] == {'max': 30, 'current': 1, 'available': 29}
        assert data['totalRescues'] == 0
        assert data['_links']['self']['href'].endswith(f'/api/organizations/{organization.id}/capacity')

    def test_capacity_of_other_organization_is_403(self, client, organization, other_organization):
        response = client.get(
            f'/api/organizations/{organization.id}/capacity', headers=headers_for(other_organization)
        )

        assert response.status_code == 403

    def test_capacity_of_unknown_organization_is_404(self, client, admin):
        response = client.get('/api/organizations/missing/capacity', headers=headers_for(admin))

        assert response.status_code == 404


class TestHealth:
    """Dependency health endpoint."""

    def test_healthy(self, client):
        response = client.get('/api/healthz')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'healthy'
        assert data['dependencies']['store']['backend'] == 'memory'
        assert data['dependencies']['amqp'] == {'status': 'disabled'}
        assert data['_links']['self']['href'].endswith('/api/healthz')

    def test_store_down_is_503(self, client, store, monkeypatch):
        monkeypatch.setattr(store, 'health_check', Mock(return_value={'status': 'unhealthy', 'error': 'down'}))

        response = client.get('/api/healthz')

        assert response.status_code == 503
        assert response.get_json()['status'] == 'unhealthy'

    def test_broker_down_is_degraded(self, store):
        from app import create_app
        amqp = Mock()
        amqp.health_check.return_value = {'status': 'unhealthy'}

        app = create_app(store=store, amqp_service=amqp)
        response = app.test_client().get('/api/healthz')

        assert response.status_code == 200
        assert response.get_json()['status'] == 'degraded'
