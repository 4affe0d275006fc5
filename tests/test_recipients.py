import pytest

from common.exceptions import ValidationFailed
from inventory.models import BloodUnit
from recipients.models import BloodRequest, Recipient
from recipients.workflows import create_blood_request, record_transfusion, reserve_for_recipient, update_request_status


@pytest.mark.django_db
def test_request_approved_when_compatible_stock_exists(make_unit, recipient):
    make_unit(blood_type='O-')
    make_unit(blood_type='A+')

    blood_request, available, reserved = create_blood_request(recipient, blood_type='A+', units_needed=2)

    assert available == 2
    assert blood_request.status == 'approved'
    assert reserved == []


@pytest.mark.django_db
def test_request_pending_without_stock(make_unit, recipient):
    make_unit(blood_type='B+')
    blood_request, available, _ = create_blood_request(recipient, blood_type='A+', units_needed=1)
    assert available == 0
    assert blood_request.status == 'pending'


@pytest.mark.django_db
def test_emergency_request_reserves_what_exists(make_unit, recipient):
    make_unit(blood_type='A+')
    blood_request, _, reserved = create_blood_request(recipient, blood_type='A+', units_needed=3,
                                                      urgency='emergency')

    assert len(reserved) == 1
    assert blood_request.status == 'pending'
    unit = BloodUnit.objects.get()
    assert unit.status == 'reserved'
    assert unit.reserved_request == blood_request


@pytest.mark.django_db
def test_cancelling_request_releases_units(make_unit, recipient):
    make_unit(blood_type='A+')
    blood_request, _, _ = create_blood_request(recipient, blood_type='A+', units_needed=1, urgency='emergency')

    blood_request, released = update_request_status(blood_request.pk, 'cancelled')

    assert released == 1
    assert BloodUnit.objects.get().status == 'available'


@pytest.mark.django_db
def test_fulfilled_request_is_terminal(recipient):
    blood_request = BloodRequest.objects.create(recipient=recipient, blood_type='A+', units_needed=1,
                                                status='approved')
    blood_request, _ = update_request_status(blood_request.pk, 'fulfilled')
    assert blood_request.fulfillment_date is not None

    with pytest.raises(ValidationFailed):
        update_request_status(blood_request.pk, 'cancelled')


@pytest.mark.django_db
def test_transfusion_marks_units_transfused(make_unit, recipient, staff_user):
    units = [make_unit(blood_type='O-'), make_unit(blood_type='A+')]

    transfusion = record_transfusion(recipient, [unit.unit_id for unit in units], recorded_by=staff_user,
                                     administered_by='Nurse Joy')

    assert transfusion.units == 2
    for unit in units:
        unit.refresh_from_db()
        assert unit.status == 'transfused'
        assert unit.transfusion['recipient_id'] == recipient.pk
        assert unit.status_history.last().new_status == 'transfused'


@pytest.mark.django_db
def test_transfusion_refuses_unavailable_units(make_unit, recipient):
    ready = make_unit(blood_type='A+')
    held = make_unit(blood_type='A+', status='quarantine')

    with pytest.raises(ValidationFailed) as exc:
        record_transfusion(recipient, [ready.unit_id, held.unit_id, 'BU-MISSING'], administered_by='Nurse')

    assert exc.value.message == 'Some blood units are not available'
    assert set(exc.value.extra['unavailable_units']) == {held.unit_id, 'BU-MISSING'}
    ready.refresh_from_db()
    assert ready.status == 'available'


@pytest.mark.django_db
def test_transfusion_refuses_unit_reserved_for_someone_else(make_unit, make_recipient):
    first, second = make_recipient(), make_recipient()
    make_unit(blood_type='A+')
    _, reserved = reserve_for_recipient(first, 'A+', 1)

    with pytest.raises(ValidationFailed):
        record_transfusion(second, [reserved[0].unit_id], administered_by='Nurse')

    transfusion = record_transfusion(first, [reserved[0].unit_id], administered_by='Nurse')
    assert transfusion.blood_units.get().status == 'transfused'


@pytest.mark.django_db
def test_transfusion_refuses_incompatible_units(make_unit, make_recipient):
    recipient = make_recipient(blood_type='O-')
    unit = make_unit(blood_type='A+')

    with pytest.raises(ValidationFailed):
        record_transfusion(recipient, [unit.unit_id], administered_by='Nurse')


@pytest.mark.django_db
def test_transfusion_fulfils_linked_request(make_unit, recipient):
    unit = make_unit(blood_type='A+')
    blood_request, _, _ = create_blood_request(recipient, blood_type='A+', units_needed=1)

    record_transfusion(recipient, [unit.unit_id], blood_request=blood_request, administered_by='Nurse')

    blood_request.refresh_from_db()
    assert blood_request.status == 'fulfilled'


@pytest.mark.django_db
def test_unit_request_insufficient_stock(admin_client, recipient, make_unit):
    make_unit(blood_type='A+')
    response = admin_client.post('/api/requests/', {
        'recipient_id': recipient.id, 'blood_type': 'A+', 'units': 3,
    }, format='json')

    assert response.status_code == 400
    assert response.data['available'] == 1
    assert response.data['requested'] == 3
    assert BloodUnit.objects.get().status == 'available'


@pytest.mark.django_db
def test_unit_request_reserves_and_lists(admin_client, recipient, make_unit):
    make_unit(blood_type='A+')
    make_unit(blood_type='A+')
    response = admin_client.post('/api/requests/', {
        'recipient_id': recipient.id, 'blood_type': 'A+', 'units': 2,
    }, format='json')
    assert response.status_code == 201
    assert response.data['request']['status'] == 'approved'

    listing = admin_client.get('/api/requests/')
    assert listing.data['pagination']['total'] == 2


@pytest.mark.django_db
def test_transfusion_api_with_stats(admin_client, recipient, make_unit):
    unit = make_unit(blood_type='A+')
    response = admin_client.post('/api/recipients/transfusions/', {
        'recipient_id': recipient.id,
        'unit_ids': [unit.unit_id],
        'administered_by': 'Nurse Joy',
        'reactions': [{'type': 'fever', 'severity': 'mild'}],
    }, format='json')
    assert response.status_code == 201

    listing = admin_client.get('/api/recipients/transfusions/', {'recipient': recipient.id})
    assert listing.data['stats']['total'] == 1
    assert listing.data['stats']['reaction_rate'] == 100.0


@pytest.mark.django_db
def test_recipient_delete_is_soft(admin_client, recipient):
    response = admin_client.delete(f'/api/recipients/{recipient.id}/')
    assert response.status_code == 200
    assert Recipient.objects.get(pk=recipient.id).status == 'inactive'


@pytest.mark.django_db
def test_clinical_note(admin_client, recipient):
    response = admin_client.post(f'/api/recipients/{recipient.id}/notes/', {
        'note': 'Stable after transfusion', 'category': 'post-transfusion',
    }, format='json')
    assert response.status_code == 201

    detail = admin_client.get(f'/api/recipients/{recipient.id}/')
    assert detail.data['clinical_notes'][0]['note'] == 'Stable after transfusion'
