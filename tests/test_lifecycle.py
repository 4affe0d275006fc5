from datetime import date, timedelta

import pytest
from django.utils import timezone

from common.exceptions import ConflictError, InvalidTransition, ValidationFailed
from inventory.lifecycle import (
    can_transition, change_status, compute_expiry, create_unit, release_expired_reservations, reserve_units,
)
from inventory.models import BloodUnit


def test_expiry_is_42_days_after_collection():
    assert compute_expiry(date(2024, 1, 1)) == date(2024, 2, 12)


def test_transition_table():
    assert can_transition('quarantine', 'available')
    assert can_transition('available', 'reserved')
    assert can_transition('reserved', 'transfused')
    assert not can_transition('discarded', 'available')
    assert not can_transition('transfused', 'available')
    assert not can_transition('quarantine', 'transfused')


@pytest.mark.django_db
def test_create_unit_sets_expiry_and_history():
    unit = create_unit(blood_type='A-', collection_date=date(2024, 1, 1))

    assert unit.status == 'quarantine'
    assert unit.expiry_date == date(2024, 2, 12)
    assert unit.unit_id.startswith('BU')
    history = list(unit.status_history.all())
    assert len(history) == 1
    assert history[0].previous_status == ''
    assert history[0].new_status == 'quarantine'


@pytest.mark.django_db
def test_duplicate_unit_id_conflicts(make_unit):
    make_unit(unit_id='BU-DUP-1')
    with pytest.raises(ConflictError):
        make_unit(unit_id='BU-DUP-1')


@pytest.mark.django_db
def test_status_change_records_history(make_unit, staff_user):
    unit = make_unit(status='quarantine')
    unit = change_status(unit.pk, 'available', changed_by=staff_user, reason='Tests cleared')

    last = unit.status_history.last()
    assert unit.status == 'available'
    assert (last.previous_status, last.new_status) == ('quarantine', 'available')
    assert last.changed_by == staff_user
    assert last.reason == 'Tests cleared'


@pytest.mark.django_db
def test_terminal_status_cannot_change(make_unit):
    unit = make_unit()
    change_status(unit.pk, 'discarded', reason='Damaged bag')

    with pytest.raises(InvalidTransition):
        change_status(unit.pk, 'available')
    assert BloodUnit.objects.get(pk=unit.pk).status == 'discarded'


@pytest.mark.django_db
def test_reserved_only_through_reservation(make_unit):
    unit = make_unit()
    with pytest.raises(ValidationFailed):
        change_status(unit.pk, 'reserved')


@pytest.mark.django_db
def test_expired_unit_cannot_become_available(make_unit):
    unit = make_unit(status='quarantine', collection_date=timezone.localdate() - timedelta(days=50))
    with pytest.raises(InvalidTransition):
        change_status(unit.pk, 'available')


@pytest.mark.django_db
def test_available_excludes_expired_units(make_unit):
    fresh = make_unit()
    stale = make_unit(status='quarantine', collection_date=timezone.localdate() - timedelta(days=50))
    BloodUnit.objects.filter(pk=stale.pk).update(status='available')
    stale.refresh_from_db()

    assert list(BloodUnit.objects.available()) == [fresh]
    assert stale.effective_status == 'expired'
    assert list(BloodUnit.objects.expired()) == [stale]


@pytest.mark.django_db
def test_reserve_units_picks_soonest_expiry(make_unit, recipient):
    today = timezone.localdate()
    later = make_unit(blood_type='A+', collection_date=today - timedelta(days=1))
    sooner = make_unit(blood_type='A+', collection_date=today - timedelta(days=30))

    reserved = reserve_units(['A+'], 1, recipient)

    assert [unit.pk for unit in reserved] == [sooner.pk]
    sooner.refresh_from_db()
    later.refresh_from_db()
    assert sooner.status == 'reserved'
    assert sooner.reserved_for == recipient
    assert sooner.reservation_expires_at is not None
    assert later.status == 'available'


@pytest.mark.django_db
def test_lapsed_reservations_are_released(make_unit, recipient):
    unit = make_unit(blood_type='A+')
    reserve_units(['A+'], 1, recipient)
    BloodUnit.objects.filter(pk=unit.pk).update(reservation_expires_at=timezone.now() - timedelta(hours=1))

    assert release_expired_reservations() == 1
    unit.refresh_from_db()
    assert unit.status == 'available'
    assert unit.reserved_for is None
