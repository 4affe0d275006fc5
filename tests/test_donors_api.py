from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from donors.contact import get_or_create_contact, send_communication
from donors.models import Communication, DoNotContactPeriod, Donor
from common.exceptions import ValidationFailed

DONOR_PAYLOAD = {
    'first_name': 'Alex',
    'last_name': 'Rivera',
    'date_of_birth': '1988-04-12',
    'gender': 'male',
    'blood_type': 'B+',
    'national_id': 'NID-API-1',
    'email': 'alex@example.com',
    'phone': '555-0111',
}


@pytest.mark.django_db
def test_create_and_list_donors(admin_client):
    response = admin_client.post('/api/donors/', DONOR_PAYLOAD, format='json')
    assert response.status_code == 201

    response = admin_client.get('/api/donors/', {'blood_type': 'B+'})
    assert response.status_code == 200
    assert response.data['pagination']['total'] == 1
    assert response.data['donors'][0]['can_donate_now'] is True


@pytest.mark.django_db
def test_duplicate_donor_conflicts(admin_client, make_donor):
    make_donor(email='alex@example.com')
    response = admin_client.post('/api/donors/', DONOR_PAYLOAD, format='json')
    assert response.status_code == 400
    assert 'already exists' in response.data['error']


@pytest.mark.django_db
def test_list_requires_authentication(api_client):
    assert api_client.get('/api/donors/').status_code == 401


@pytest.mark.django_db
def test_post_donation_then_too_soon(admin_client, donor):
    today = timezone.localdate()
    url = f'/api/donors/{donor.id}/donations/'

    first = admin_client.post(url, {'donation_date': str(today - timedelta(days=10)), 'units': 1}, format='json')
    assert first.status_code == 201
    assert first.data['summary']['total_donations'] == 1

    second = admin_client.post(url, {'donation_date': str(today), 'units': 1}, format='json')
    assert second.status_code == 400
    assert second.data['error'] == 'Donor must wait 56 days between donations'


@pytest.mark.django_db
def test_donation_validation_errors_are_listed(admin_client, donor):
    future = timezone.localdate() + timedelta(days=3)
    response = admin_client.post(f'/api/donors/{donor.id}/donations/',
                                 {'donation_date': str(future), 'units': 0}, format='json')

    assert response.status_code == 400
    assert 'donation_date: Donation date cannot be in the future' in response.data['errors']
    assert 'units: Units must be greater than 0' in response.data['errors']


@pytest.mark.django_db
def test_history_post_creates_quarantined_unit(admin_client, donor):
    collected = timezone.localdate() - timedelta(days=1)
    response = admin_client.post(f'/api/donors/{donor.id}/history/',
                                 {'donation_date': str(collected), 'units': 1}, format='json')

    assert response.status_code == 201
    unit = donor.blood_units.get()
    assert unit.status == 'quarantine'
    assert unit.blood_type == donor.blood_type
    assert unit.expiry_date == collected + timedelta(days=42)

    history = admin_client.get(f'/api/donors/{donor.id}/history/')
    assert history.data['stats']['total_donations'] == 1
    assert history.data['stats']['status_counts'] == {'quarantine': 1}


@pytest.mark.django_db
def test_delete_donor(admin_client, donor):
    response = admin_client.delete(f'/api/donors/{donor.id}/')
    assert response.status_code == 200
    assert not Donor.objects.filter(pk=donor.id).exists()


@pytest.mark.django_db
def test_status_post_places_deferral(admin_client, donor):
    end = timezone.now() + timedelta(days=14)
    response = admin_client.post('/api/donors/status/', {
        'donor_id': donor.id,
        'deferral': {'type': 'temporary', 'reason': 'Recent tattoo', 'end_date': end.isoformat()},
    }, format='json')

    assert response.status_code == 201
    assert response.data['eligibility']['eligible'] is False
    assert response.data['active_deferral']['reason'] == 'Recent tattoo'


@pytest.mark.django_db
def test_schedule_slot_cannot_be_double_booked(admin_client, make_donor):
    day = timezone.localdate() + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    first_donor, second_donor = make_donor(), make_donor()

    booked = admin_client.post('/api/donors/schedule/', {
        'donor': first_donor.id, 'scheduled_date': str(day), 'time_slot': '10:00',
    }, format='json')
    assert booked.status_code == 201

    clash = admin_client.post('/api/donors/schedule/', {
        'donor': second_donor.id, 'scheduled_date': str(day), 'time_slot': '10:00',
    }, format='json')
    assert clash.status_code == 400
    assert clash.data['error'] == 'This time slot is already booked'

    free = admin_client.get('/api/donors/schedule/', {'start_date': str(day), 'end_date': str(day)})
    slots = [slot['time_slot'] for slot in free.data['available_slots']]
    assert '10:00' not in slots
    assert len(slots) == 7


@pytest.mark.django_db
def test_opted_out_donor_is_not_contacted(donor):
    contact = get_or_create_contact(donor)
    contact.opt_out = True
    contact.save()

    with pytest.raises(ValidationFailed):
        send_communication(contact, 'email', 'Please donate')
    assert not Communication.objects.exists()
    assert len(mail.outbox) == 0


@pytest.mark.django_db
def test_do_not_contact_window_refuses(admin_client, donor):
    now = timezone.now()
    contact = get_or_create_contact(donor)
    DoNotContactPeriod.objects.create(contact=contact, start_date=now - timedelta(days=1),
                                      end_date=now + timedelta(days=1), reason='Travelling')

    response = admin_client.post('/api/donors/contact/', {
        'donor_id': donor.id,
        'communication': {'type': 'email', 'content': 'We need O+ donors'},
    }, format='json')

    assert response.status_code == 400
    assert response.data['error'] == 'Donor cannot be contacted at this time'
    assert not Communication.objects.exists()


@pytest.mark.django_db
def test_email_communication_is_sent(admin_client, donor):
    response = admin_client.post('/api/donors/contact/', {
        'donor_id': donor.id,
        'communication': {'type': 'email', 'subject': 'Thanks', 'content': 'Thank you for donating'},
    }, format='json')

    assert response.status_code == 201
    assert response.data['communication']['status'] == 'sent'
    assert mail.outbox[0].to == [donor.email]


@pytest.mark.django_db
def test_sms_communication_is_recorded_failed(donor):
    contact = get_or_create_contact(donor)
    communication = send_communication(contact, 'sms', 'Reminder')
    contact.refresh_from_db()

    assert communication.status == 'failed'
    assert contact.contact_attempts == 1
    assert contact.successful_contacts == 0
