from datetime import timedelta

import pytest
from django.utils import timezone

from common.exceptions import InvalidTransition, ValidationFailed
from donors.deferrals import end_deferral, place_deferral, reactivate_deferral
from donors.models import DonorDeferral


@pytest.mark.django_db
def test_temporary_deferral_blocks_donation(donor):
    place_deferral(donor.pk, type='temporary', reason='Recent surgery',
                   end_date=timezone.now() + timedelta(days=10))
    donor.refresh_from_db()

    ok, message = donor.can_donate()
    assert not ok
    assert 'temporary deferral' in message
    assert donor.status == 'deferred'


@pytest.mark.django_db
def test_new_deferral_replaces_active_one(donor):
    first = place_deferral(donor.pk, type='temporary', reason='Travel',
                           end_date=timezone.now() + timedelta(days=30))
    second = place_deferral(donor.pk, type='permanent', reason='Infectious disease')

    first.refresh_from_db()
    assert first.active is False
    assert list(DonorDeferral.objects.filter(donor=donor, active=True)) == [second]


@pytest.mark.django_db
def test_temporary_deferral_requires_end_date(donor):
    with pytest.raises(ValidationFailed):
        place_deferral(donor.pk, type='temporary', reason='Medication')
    assert not DonorDeferral.objects.exists()


@pytest.mark.django_db
def test_expired_deferral_no_longer_applies(donor):
    now = timezone.now()
    place_deferral(donor.pk, type='temporary', reason='Cold', start_date=now - timedelta(days=20),
                   end_date=now - timedelta(days=5))
    donor.refresh_from_db()
    assert donor.can_donate()[0] is True


@pytest.mark.django_db
def test_ending_deferral_restores_donor(donor):
    deferral = place_deferral(donor.pk, type='temporary', reason='Low hemoglobin',
                              end_date=timezone.now() + timedelta(days=14))
    end_deferral(deferral.pk)

    donor.refresh_from_db()
    assert donor.status == 'active'
    assert donor.can_donate()[0] is True


@pytest.mark.django_db
def test_permanent_deferral_cannot_be_reactivated(donor):
    deferral = place_deferral(donor.pk, type='permanent', reason='Lifestyle risk')
    end_deferral(deferral.pk)

    with pytest.raises(InvalidTransition):
        reactivate_deferral(deferral.pk, reason='Appeal')


@pytest.mark.django_db
def test_reactivate_temporary_deferral(donor, staff_user):
    deferral = place_deferral(donor.pk, type='temporary', reason='Travel',
                              end_date=timezone.now() + timedelta(days=7))
    end_deferral(deferral.pk)

    reactivated = reactivate_deferral(deferral.pk, modified_by=staff_user, reason='Returned early',
                                      end_date=timezone.now() + timedelta(days=3))
    donor.refresh_from_db()
    assert reactivated.active is True
    assert 'Returned early' in reactivated.notes
    assert donor.status == 'deferred'
