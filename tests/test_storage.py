from datetime import timedelta

import pytest
from django.utils import timezone

from common.exceptions import ValidationFailed
from inventory.models import StorageLog
from inventory.storage import check_maintenance_needed, classify_temperature, record_temperature, temperature_stats


def test_classification():
    assert classify_temperature(4.0) == ('info', True)
    assert classify_temperature(2.5) == ('warning', True)
    assert classify_temperature(1.5) == ('critical', False)
    assert classify_temperature(7) == ('critical', False)


def test_non_numeric_temperature_rejected():
    with pytest.raises(ValidationFailed):
        classify_temperature('warm')


@pytest.mark.django_db
def test_critical_reading_opens_alert():
    log = StorageLog.objects.create(facility_id='F1', refrigerator_id='R1', type='temperature', value=1.5,
                                    recorded_by='tech')
    assert log.severity == 'critical'
    assert log.resolved is False
    assert (log.alert_min, log.alert_max) == (2.0, 6.0)


@pytest.mark.django_db
def test_normal_reading_is_resolved():
    log = StorageLog.objects.create(facility_id='F1', refrigerator_id='R1', type='temperature', value=4.0,
                                    recorded_by='tech')
    assert log.severity == 'info'
    assert log.resolved is True


@pytest.mark.django_db
def test_resolve_is_idempotent():
    log = StorageLog.objects.create(facility_id='F1', refrigerator_id='R1', type='temperature', value=8.0,
                                    recorded_by='tech')

    assert log.resolve('tech', 'Door was open') is True
    first_resolved_at = log.resolved_at
    assert log.resolve('other tech', 'Again') is False
    assert log.resolved_by == 'tech'
    assert log.resolved_at == first_resolved_at


@pytest.mark.django_db
def test_maintenance_due_without_history():
    check = check_maintenance_needed('F1', 'R1')
    assert check['maintenance_needed'] is True
    assert check['reason'] == 'Regular maintenance due'


@pytest.mark.django_db
def test_maintenance_due_after_repeated_critical_readings():
    now = timezone.now()
    StorageLog.objects.create(facility_id='F1', refrigerator_id='R1', type='maintenance', value={},
                              recorded_by='tech', resolved=True, resolved_at=now - timedelta(days=5))
    for _ in range(4):
        StorageLog.objects.create(facility_id='F1', refrigerator_id='R1', type='temperature', value=9.0,
                                  recorded_by='tech')

    check = check_maintenance_needed('F1', 'R1', now)
    assert check['temperature_issues'] == 4
    assert check['reason'] == 'Multiple temperature issues detected'


@pytest.mark.django_db
def test_recent_maintenance_clears_check():
    now = timezone.now()
    StorageLog.objects.create(facility_id='F1', refrigerator_id='R1', type='maintenance', value={},
                              recorded_by='tech', resolved=True, resolved_at=now - timedelta(days=10))
    assert check_maintenance_needed('F1', 'R1', now)['maintenance_needed'] is False


@pytest.mark.django_db
def test_record_temperature_opens_single_maintenance_alert():
    _, maintenance, alert = record_temperature('F1', 'R1', 4.2, 'tech')
    assert maintenance['maintenance_needed'] is True
    assert alert is not None

    _, _, second_alert = record_temperature('F1', 'R1', 4.1, 'tech')
    assert second_alert is None
    assert StorageLog.objects.filter(type='alert', resolved=False).count() == 1


def test_temperature_stats():
    class Reading:
        def __init__(self, value):
            self.value = value

    stats = temperature_stats([Reading(4.0), Reading(1.0), Reading(5.0)])
    assert stats['current'] == 4.0
    assert stats['min'] == 1.0
    assert stats['max'] == 5.0
    assert stats['out_of_range'] == 1
    assert stats['average'] == pytest.approx(3.33)
