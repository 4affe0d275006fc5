"""
Donation interval rules. These functions are pure: callers pass in the dates
and the interval so the same rule serves every surface.
"""
from datetime import timedelta

from common.conf import get_setting
from common.dates import to_date
from common.exceptions import ValidationFailed

ELIGIBLE_MESSAGE = "Eligible to donate"


def interval_for(surface):
    """Days required between donations on a named surface (donations, management, schedule...)."""
    intervals = get_setting('DONATION_INTERVAL_DAYS')
    try:
        return intervals[surface]
    except KeyError:
        raise ValueError(f"No donation interval configured for '{surface}'")


def check_donation_interval(last_donation, candidate, interval_days):
    if last_donation is None:
        return True, ELIGIBLE_MESSAGE

    if (candidate - last_donation).days < interval_days:
        return False, f"Donor must wait {interval_days} days between donations"

    return True, ELIGIBLE_MESSAGE


def next_eligible_date(last_donation, interval_days):
    if last_donation is None:
        return None
    return last_donation + timedelta(days=interval_days)


def days_until_eligible(last_donation, interval_days, today):
    next_date = next_eligible_date(last_donation, interval_days)
    if next_date is None or next_date <= today:
        return 0
    return (next_date - today).days


def validate_donation_date(value, today):
    donation_date = to_date(value, 'donation date')
    if donation_date > today:
        raise ValidationFailed('Donation date cannot be in the future')
    return donation_date
