import logging

from django.db import transaction

from common.exceptions import ValidationFailed
from .models import Donor

logger = logging.getLogger(__name__)


def record_donation(donor_id, donation_date, units=1, location='', notes='', surface='donations', now=None):
    """
    Append a donation after the eligibility check. The check, the insert and the
    last_donation_date recompute share one transaction on the locked donor row.
    """
    with transaction.atomic():
        donor = Donor.objects.select_for_update().get(pk=donor_id)

        eligible, reason = donor.can_donate(on=donation_date, surface=surface, now=now)
        if not eligible:
            raise ValidationFailed(reason)

        donation = donor.donations.create(
            donation_date=donation_date,
            units=units,
            location=location,
            notes=notes,
        )
        donor.refresh_donation_summary()

    logger.info(f"Donation recorded for donor {donor.id} on {donation_date}")
    return donor, donation


def update_donation(donor_id, donation_id, **changes):
    with transaction.atomic():
        donor = Donor.objects.select_for_update().get(pk=donor_id)
        donation = donor.donations.get(pk=donation_id)

        for field, value in changes.items():
            setattr(donation, field, value)
        donation.save()
        donor.refresh_donation_summary()

    return donor, donation
