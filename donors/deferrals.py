import logging

from django.db import transaction
from django.utils import timezone

from common.exceptions import InvalidTransition
from .models import Donor, DonorDeferral

logger = logging.getLogger(__name__)


def active_deferral_for(donor, now=None):
    return DonorDeferral.objects.in_effect(now).filter(donor=donor).order_by('-start_date').first()


def place_deferral(donor_id, created_by=None, **fields):
    """
    Replace any active deferral for the donor with a new one. The donor row is
    locked for the whole swap so concurrent requests cannot leave two active.
    """
    with transaction.atomic():
        donor = Donor.objects.select_for_update().get(pk=donor_id)

        deferral = DonorDeferral(donor=donor, created_by=created_by, active=True, **fields)
        deferral.validate()

        donor.deferrals.filter(active=True).update(
            active=False,
            modified_by=created_by,
            updated_at=timezone.now(),
        )
        deferral.save()

        if deferral.is_in_effect():
            donor.status = 'deferred'
            donor.save(update_fields=['status', 'updated_at'])
        else:
            _release_donor_if_clear(donor, timezone.now())

    logger.info(f"{deferral.type.capitalize()} deferral placed on donor {donor.id}: {deferral.reason}")
    return deferral


def _release_donor_if_clear(donor, now):
    if donor.status == 'deferred' and not DonorDeferral.objects.in_effect(now).filter(donor=donor).exists():
        donor.status = 'active'
        donor.save(update_fields=['status', 'updated_at'])


def end_deferral(deferral_id, modified_by=None, now=None):
    """End a deferral now. The donor goes back to active when nothing else defers them."""
    now = now or timezone.now()
    with transaction.atomic():
        deferral = DonorDeferral.objects.select_for_update().get(pk=deferral_id)
        donor = Donor.objects.select_for_update().get(pk=deferral.donor_id)

        deferral.end_date = now
        deferral.active = False
        deferral.modified_by = modified_by
        deferral.save(update_fields=['end_date', 'active', 'modified_by', 'updated_at'])

        _release_donor_if_clear(donor, now)

    logger.info(f"Deferral {deferral.id} for donor {donor.id} ended early")
    return deferral


def reactivate_deferral(deferral_id, modified_by=None, reason='', end_date=None, now=None):
    now = now or timezone.now()
    with transaction.atomic():
        deferral = DonorDeferral.objects.select_for_update().get(pk=deferral_id)
        if deferral.type == 'permanent':
            raise InvalidTransition('Cannot reactivate a permanent deferral')

        donor = Donor.objects.select_for_update().get(pk=deferral.donor_id)
        donor.deferrals.filter(active=True).exclude(pk=deferral.pk).update(
            active=False,
            modified_by=modified_by,
            updated_at=now,
        )

        if end_date is not None:
            deferral.end_date = end_date
        deferral.active = True
        deferral.modified_by = modified_by
        actor = modified_by.email if modified_by else 'system'
        deferral.notes = f"{deferral.notes}\nReactivated by {actor}: {reason}".strip()
        deferral.validate()
        deferral.save()

        if deferral.is_in_effect(now):
            donor.status = 'deferred'
            donor.save(update_fields=['status', 'updated_at'])
        else:
            _release_donor_if_clear(donor, now)

    return deferral
