import logging

from django.db import transaction
from django.utils import timezone

from common.exceptions import InvalidTransition, ValidationFailed
from inventory.lifecycle import mark_transfused, release_request_units, reserve_units
from inventory.models import BloodUnit
from .compatibility import can_receive, compatible_donor_types
from .models import BloodRequest, Transfusion

logger = logging.getLogger(__name__)


def compatible_availability(blood_type):
    compatible = compatible_donor_types(blood_type)
    return compatible, BloodUnit.objects.available().filter(blood_type__in=compatible).count()


def create_blood_request(recipient, created_by=None, **fields):
    """
    Open a request, approving it straight away when compatible stock covers it.
    Emergency requests also reserve whatever compatible units exist, up to the
    number needed, in the same transaction.
    """
    with transaction.atomic():
        compatible, available = compatible_availability(fields['blood_type'])
        units_needed = fields['units_needed']

        blood_request = BloodRequest.objects.create(
            recipient=recipient,
            status='approved' if available >= units_needed else 'pending',
            created_by=created_by,
            **fields
        )

        reserved = []
        if blood_request.urgency == 'emergency' and available > 0:
            reserved = reserve_units(
                compatible,
                min(available, units_needed),
                recipient,
                blood_request=blood_request,
                reserved_by=created_by,
            )

    logger.info(
        f"Blood request {blood_request.pk} for recipient {recipient.pk}: {units_needed} x {blood_request.blood_type}, "
        f"{available} compatible available, {len(reserved)} reserved, status {blood_request.status}"
    )
    return blood_request, available, reserved


def update_request_status(request_pk, new_status, changed_by=None, notes=''):
    with transaction.atomic():
        blood_request = BloodRequest.objects.select_for_update().get(pk=request_pk)
        if new_status not in dict(BloodRequest.STATUS_CHOICES):
            raise ValidationFailed(f"Invalid status '{new_status}'")
        if not blood_request.can_transition(new_status):
            raise InvalidTransition(f"Cannot change request status from {blood_request.status} to {new_status}")

        blood_request.status = new_status
        if new_status == 'fulfilled':
            blood_request.fulfillment_date = timezone.now()
        if notes:
            blood_request.notes = f"{blood_request.notes}\n{notes}".strip()
        blood_request.save()

        released = 0
        if new_status in ('cancelled', 'rejected'):
            released = release_request_units(blood_request, changed_by, f"Blood request {new_status}")

    return blood_request, released


def reserve_for_recipient(recipient, blood_type, units, urgency='routine', reserved_by=None, **fields):
    """Reserve exactly `units` units of one blood type under a new approved request, or nothing."""
    with transaction.atomic():
        available = BloodUnit.objects.available().filter(blood_type=blood_type).count()
        if available < units:
            raise ValidationFailed('Insufficient blood units available', available=available, requested=units)

        blood_request = BloodRequest.objects.create(
            recipient=recipient,
            blood_type=blood_type,
            units_needed=units,
            urgency=urgency,
            status='approved',
            created_by=reserved_by,
            **fields
        )
        reserved = reserve_units([blood_type], units, recipient, blood_request=blood_request, reserved_by=reserved_by)
        if len(reserved) < units:
            raise ValidationFailed('Insufficient blood units available', available=len(reserved), requested=units)

    return blood_request, reserved


def record_transfusion(recipient, unit_ids, recorded_by=None, blood_request=None, **details):
    """
    Transfuse the given units into the recipient. Each unit must be live, in
    date, compatible, and either available or reserved for this recipient.
    """
    unit_ids = list(dict.fromkeys(unit_ids))
    if not unit_ids:
        raise ValidationFailed('At least one blood unit is required')

    with transaction.atomic():
        units = list(BloodUnit.objects.select_for_update().filter(unit_id__in=unit_ids).order_by('id'))
        found = {unit.unit_id for unit in units}
        unavailable = [unit_id for unit_id in unit_ids if unit_id not in found]

        for unit in units:
            usable = unit.status == 'available' or (
                unit.status == 'reserved' and unit.reserved_for_id == recipient.pk
            )
            if not usable or unit.is_expired():
                unavailable.append(unit.unit_id)
        if unavailable:
            raise ValidationFailed('Some blood units are not available', unavailable_units=unavailable)

        incompatible = [unit.unit_id for unit in units if not can_receive(recipient.blood_type, unit.blood_type)]
        if incompatible:
            raise ValidationFailed('Some blood units are not compatible with the recipient',
                                   incompatible_units=incompatible)

        details.setdefault('blood_type', recipient.blood_type)
        transfusion = Transfusion.objects.create(
            recipient=recipient,
            blood_request=blood_request,
            units=len(units),
            recorded_by=recorded_by,
            **details
        )
        transfusion.blood_units.set(units)

        for unit in units:
            mark_transfused(unit, recipient, {
                'transfusion_id': transfusion.pk,
                'date': transfusion.date.isoformat(),
                'hospital': transfusion.hospital,
                'administered_by': transfusion.administered_by,
            }, changed_by=recorded_by, reason=f"Transfused to recipient {recipient.pk}")

        if blood_request is not None and blood_request.status == 'approved':
            blood_request.status = 'fulfilled'
            blood_request.fulfillment_date = timezone.now()
            blood_request.save(update_fields=['status', 'fulfillment_date', 'updated_at'])

    logger.info(f"Transfusion {transfusion.pk} recorded for recipient {recipient.pk} ({len(units)} units)")
    return transfusion


def update_transfusion(transfusion_pk, **changes):
    with transaction.atomic():
        transfusion = Transfusion.objects.select_for_update().get(pk=transfusion_pk)
        for field, value in changes.items():
            setattr(transfusion, field, value)
        transfusion.save()

        follow_up = {key: changes[key] for key in ('reactions', 'outcome', 'notes') if key in changes}
        if follow_up:
            for unit in transfusion.blood_units.select_for_update():
                unit.transfusion = {**unit.transfusion, **follow_up}
                unit.save(update_fields=['transfusion', 'updated_at'])

    return transfusion
