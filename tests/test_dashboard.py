from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from dashboard.metrics import calculate_trend, history_start, percentage
from common.exceptions import ValidationFailed
from donors.donations import record_donation


def test_trend_from_zero_is_100():
    assert calculate_trend(5, 0) == 100
    assert calculate_trend(0, 0) == 100


def test_trend_percentage():
    assert calculate_trend(15, 10) == 50.0
    assert calculate_trend(5, 10) == -50.0


def test_percentage_of_nothing():
    assert percentage(3, 0) == 0
    assert percentage(1, 4) == 25.0


def test_invalid_history_period():
    with pytest.raises(ValidationFailed):
        history_start('decade', timezone.now())


@pytest.mark.django_db
def test_stats_shape(admin_client, make_unit, donor):
    make_unit(blood_type='O+')
    response = admin_client.get('/api/dashboard/stats/', {'time_range': 'week'})

    assert response.status_code == 200
    assert set(response.data) >= {'stats', 'blood_stock', 'donation_trends', 'alerts'}
    assert response.data['stats']['available_units'] == 1
    assert response.data['stats']['trends']['donors']['trend'] == 100
    low_stock = [alert for alert in response.data['alerts'] if alert['type'] == 'low_stock']
    assert len(low_stock) == 8


@pytest.mark.django_db
def test_stats_rejects_unknown_range(admin_client):
    response = admin_client.get('/api/dashboard/stats/', {'time_range': 'century'})
    assert response.status_code == 400


@pytest.mark.django_db
def test_analytics_has_twelve_months(admin_client):
    response = admin_client.get('/api/analytics/')
    assert response.status_code == 200
    assert len(response.data['monthly_donations']) == 12


@pytest.mark.django_db
def test_search_donor_by_name(admin_client, make_donor):
    make_donor(first_name='Morgan')
    make_donor(first_name='Quinn')

    response = admin_client.get('/api/search/', {'type': 'donor', 'query': 'morg'})
    assert response.status_code == 200
    assert response.data['count'] == 1


@pytest.mark.django_db
def test_search_invalid_type(admin_client):
    response = admin_client.get('/api/search/', {'type': 'hospital', 'query': 'x'})
    assert response.status_code == 400


@pytest.mark.django_db
def test_notifications_sorted_by_severity(admin_client, make_unit, donor):
    make_unit(blood_type='O+', collection_date=timezone.localdate() - timedelta(days=40))
    record_donation(donor.pk, timezone.localdate() - timedelta(days=120))

    response = admin_client.get('/api/notifications/')
    severities = [item['severity'] for item in response.data['notifications']]
    order = {'critical': 0, 'warning': 1, 'info': 2}

    assert severities == sorted(severities, key=order.get)
    types = {item['type'] for item in response.data['notifications']}
    assert {'low_inventory', 'expiring_unit', 'donor_eligible'} <= types


@pytest.mark.django_db
def test_post_notification(admin_client):
    response = admin_client.post('/api/notifications/', {
        'notification_type': 'general', 'recipient_email': 'ops@example.com', 'message': 'Drill at noon',
    }, format='json')

    assert response.status_code == 202
    assert mail.outbox[0].to == ['ops@example.com']


@pytest.mark.django_db
def test_post_notification_unknown_type(admin_client):
    response = admin_client.post('/api/notifications/', {
        'notification_type': 'pager', 'recipient_email': 'ops@example.com', 'message': 'x',
    }, format='json')
    assert response.status_code == 400
