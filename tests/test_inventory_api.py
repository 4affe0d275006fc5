from datetime import timedelta

import pytest
from django.utils import timezone

from inventory.models import BloodUnit, StorageLog


@pytest.mark.django_db
def test_create_unit_via_api(admin_client):
    response = admin_client.post('/api/inventory/', {
        'blood_type': 'O-', 'collection_date': '2024-01-01', 'volume': 450,
    }, format='json')

    assert response.status_code == 201
    assert response.data['unit']['expiry_date'] == '2024-02-12'
    assert len(response.data['unit']['status_history']) == 1


@pytest.mark.django_db
def test_invalid_transition_returns_400(admin_client, make_unit):
    unit = make_unit()
    admin_client.patch(f'/api/inventory/{unit.id}/status/', {'status': 'discarded'}, format='json')

    response = admin_client.patch(f'/api/inventory/{unit.id}/status/', {'status': 'available'}, format='json')
    assert response.status_code == 400
    assert BloodUnit.objects.get(pk=unit.id).status == 'discarded'


@pytest.mark.django_db
def test_available_filter_hides_expired(admin_client, make_unit):
    make_unit(blood_type='A+')
    stale = make_unit(blood_type='A+', status='quarantine',
                      collection_date=timezone.localdate() - timedelta(days=60))
    BloodUnit.objects.filter(pk=stale.pk).update(status='available')

    response = admin_client.get('/api/inventory/', {'status': 'available'})
    assert response.data['pagination']['total'] == 1

    availability = admin_client.get('/api/inventory/availability/', {'blood_type': 'AB+', 'units': 2})
    a_pos = next(row for row in availability.data['inventory'] if row['blood_type'] == 'A+')
    assert a_pos['units'] == 1
    assert availability.data['request']['compatible_available'] == 1
    assert availability.data['request']['can_fulfill'] is False


@pytest.mark.django_db
def test_temperature_endpoint_and_resolution(admin_client):
    response = admin_client.post('/api/inventory/storage/temperature/', {
        'facility_id': 'F1', 'refrigerator_id': 'R1', 'temperature': 1.5,
    }, format='json')
    assert response.status_code == 201
    assert response.data['log']['severity'] == 'critical'
    assert response.data['alert'] is True

    alert_id = response.data['log']['id']
    resolve = {'alert_id': alert_id, 'resolved_by': 'tech', 'resolution': 'Compressor reset'}
    first = admin_client.put('/api/inventory/storage/temperature/', resolve, format='json')
    second = admin_client.put('/api/inventory/storage/temperature/', resolve, format='json')
    assert first.data['message'] == 'Alert resolved'
    assert second.data['message'] == 'Alert already resolved'

    history = admin_client.get('/api/inventory/storage/temperature/', {'duration': '24h'})
    assert history.data['stats']['readings'] == 1


@pytest.mark.django_db
def test_resolve_requires_fields(admin_client):
    response = admin_client.put('/api/inventory/storage/temperature/', {'alert_id': 1}, format='json')
    assert response.status_code == 400


@pytest.mark.django_db
def test_bad_temperature_value(admin_client):
    response = admin_client.post('/api/inventory/storage/temperature/', {
        'facility_id': 'F1', 'refrigerator_id': 'R1', 'temperature': 'hot',
    }, format='json')
    assert response.status_code == 400


@pytest.mark.django_db
def test_maintenance_cycle(admin_client, make_unit):
    unit = make_unit(facility='F1', refrigerator='R1')
    scheduled = admin_client.post('/api/inventory/storage/maintenance/', {
        'facility_id': 'F1', 'refrigerator_id': 'R1',
        'scheduled_date': (timezone.now() - timedelta(minutes=5)).isoformat(),
        'description': 'Compressor service',
    }, format='json')
    assert scheduled.status_code == 201
    assert scheduled.data['units_affected'] == 1
    unit.refresh_from_db()
    assert unit.storage_status == 'maintenance'

    completed = admin_client.put('/api/inventory/storage/maintenance/', {
        'maintenance_id': scheduled.data['maintenance']['id'], 'outcome': 'successful',
    }, format='json')
    assert completed.status_code == 200
    unit.refresh_from_db()
    assert unit.storage_status == 'operational'
    assert StorageLog.objects.get(pk=scheduled.data['maintenance']['id']).resolved is True


@pytest.mark.django_db
def test_relocation_records_history(admin_client, make_unit):
    unit = make_unit(facility='F1', refrigerator='R1', shelf='A')
    response = admin_client.put('/api/inventory/storage/', {
        'unit_ids': [unit.unit_id], 'shelf': 'C', 'position': '4',
    }, format='json')

    assert response.status_code == 200
    unit.refresh_from_db()
    assert unit.shelf == 'C'
    assert 'Relocated' in unit.status_history.last().reason


@pytest.mark.django_db
def test_availability_reports_volume_and_expiring_volume(admin_client, make_unit):
    make_unit(blood_type='B-')
    make_unit(blood_type='B-', volume=300, collection_date=timezone.localdate() - timedelta(days=40))

    response = admin_client.get('/api/inventory/availability/')

    assert response.status_code == 200
    b_neg = next(row for row in response.data['inventory'] if row['blood_type'] == 'B-')
    assert b_neg['units'] == 2
    assert b_neg['volume'] == 750
    assert b_neg['expiring_units'] == 1
    assert b_neg['expiring_volume'] == 300


@pytest.mark.django_db
def test_form_encoded_unit_update(admin_client, make_unit):
    unit = make_unit()

    response = admin_client.put(f'/api/inventory/{unit.id}/', {
        'shelf': 'A1', 'status': 'discarded', 'reason': 'Bag damaged',
    })

    assert response.status_code == 200
    unit.refresh_from_db()
    assert unit.shelf == 'A1'
    assert unit.status == 'discarded'
    assert unit.status_history.filter(reason='Bag damaged').exists()
