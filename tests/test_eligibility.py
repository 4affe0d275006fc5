from datetime import date, timedelta

import pytest
from django.utils import timezone

from common.exceptions import ValidationFailed
from donors import eligibility
from donors.donations import record_donation


def test_no_previous_donation_is_eligible():
    assert eligibility.check_donation_interval(None, date(2024, 3, 1), 56) == (True, eligibility.ELIGIBLE_MESSAGE)


def test_interval_boundary():
    last = date(2024, 1, 1)
    assert eligibility.check_donation_interval(last, last + timedelta(days=55), 56)[0] is False
    assert eligibility.check_donation_interval(last, last + timedelta(days=56), 56)[0] is True


def test_rejection_message_names_interval():
    ok, message = eligibility.check_donation_interval(date(2024, 1, 1), date(2024, 1, 15), 56)
    assert not ok
    assert message == 'Donor must wait 56 days between donations'


def test_intervals_per_surface():
    assert eligibility.interval_for('donations') == 56
    assert eligibility.interval_for('management') == 90
    with pytest.raises(ValueError):
        eligibility.interval_for('nowhere')


def test_days_until_eligible():
    last = date(2024, 1, 1)
    assert eligibility.days_until_eligible(last, 56, date(2024, 1, 15)) == 42
    assert eligibility.days_until_eligible(last, 56, date(2024, 3, 1)) == 0
    assert eligibility.days_until_eligible(None, 56, date(2024, 3, 1)) == 0


def test_future_donation_date_rejected():
    today = date(2024, 6, 1)
    with pytest.raises(ValidationFailed) as exc:
        eligibility.validate_donation_date('2024-06-02', today)
    assert exc.value.message == 'Donation date cannot be in the future'
    assert eligibility.validate_donation_date('2024-05-31', today) == date(2024, 5, 31)


def test_unparseable_donation_date():
    with pytest.raises(ValidationFailed):
        eligibility.validate_donation_date('not-a-date', date(2024, 6, 1))


@pytest.mark.django_db
def test_donation_history_drives_eligibility(donor):
    record_donation(donor.pk, date(2024, 1, 1))

    with pytest.raises(ValidationFailed) as exc:
        record_donation(donor.pk, date(2024, 1, 15))
    assert '56 days' in exc.value.message

    donor, donation = record_donation(donor.pk, date(2024, 2, 26), units=2)
    assert donor.last_donation_date == date(2024, 2, 26)
    assert donor.total_donations == 2
    assert donation.units == 2


@pytest.mark.django_db
def test_blocked_donor_cannot_donate(make_donor):
    donor = make_donor(status='blocked')
    ok, message = donor.can_donate()
    assert not ok
    assert message == 'Donor is blocked from donating'


@pytest.mark.django_db
def test_management_surface_uses_longer_interval(donor):
    today = timezone.localdate()
    record_donation(donor.pk, today - timedelta(days=60))
    donor.refresh_from_db()

    assert donor.can_donate(surface='donations')[0] is True
    assert donor.can_donate(surface='management')[0] is False
