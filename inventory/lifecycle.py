"""
Blood unit state machine. Every status change goes through _apply_status so the
history entry is written before the new status lands.
"""
import logging
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.utils import timezone

from common.conf import get_setting
from common.exceptions import ConflictError, InvalidTransition, ValidationFailed
from .models import BloodUnit, UnitStatusChange

logger = logging.getLogger(__name__)

TRANSITIONS = {
    'quarantine': {'available', 'discarded'},
    'available': {'reserved', 'discarded', 'transfused'},
    'reserved': {'available', 'transfused', 'discarded'},
    'discarded': set(),
    'transfused': set(),
}

INITIAL_STATUSES = ('quarantine', 'available')


def compute_expiry(collection_date):
    return collection_date + timedelta(days=get_setting('UNIT_SHELF_LIFE_DAYS'))


def can_transition(current, new):
    return new in TRANSITIONS.get(current, set())


def generate_unit_id(today=None):
    today = today or timezone.localdate()
    prefix = f"BU{today:%Y%m%d}"
    count = BloodUnit.objects.filter(unit_id__startswith=prefix).count()
    return f"{prefix}{count + 1:04d}"


def create_unit(changed_by=None, reason='Unit collected', **fields):
    unit = BloodUnit(**fields)
    if unit.status not in INITIAL_STATUSES:
        raise ValidationFailed('New units must start in quarantine or available')
    if not unit.expiry_date:
        unit.expiry_date = compute_expiry(unit.collection_date)
    if unit.expiry_date <= unit.collection_date:
        raise ValidationFailed('Expiry date must be after collection date')
    if unit.status == 'available' and unit.is_expired():
        raise InvalidTransition('Expired units cannot be made available')

    try:
        with transaction.atomic():
            if not unit.unit_id:
                unit.unit_id = generate_unit_id()
            unit.save()
            UnitStatusChange.objects.create(
                unit=unit,
                previous_status='',
                new_status=unit.status,
                changed_by=changed_by,
                reason=reason,
            )
    except IntegrityError:
        raise ConflictError(f"Blood unit {unit.unit_id} already exists")

    logger.info(f"Blood unit {unit.unit_id} created ({unit.blood_type}, {unit.status})")
    return unit


def _apply_status(unit, new_status, changed_by=None, reason='', today=None):
    if new_status not in dict(BloodUnit.STATUS_CHOICES):
        raise ValidationFailed(f"Invalid status '{new_status}'")
    if new_status == unit.status:
        raise InvalidTransition(f"Unit {unit.unit_id} is already {unit.status}")
    if not can_transition(unit.status, new_status):
        raise InvalidTransition(f"Cannot change unit status from {unit.status} to {new_status}")
    if new_status == 'available' and unit.is_expired(today):
        raise InvalidTransition('Expired units cannot be made available')

    UnitStatusChange.objects.create(
        unit=unit,
        previous_status=unit.status,
        new_status=new_status,
        changed_by=changed_by,
        reason=reason,
    )
    if unit.status == 'reserved' and new_status != 'transfused':
        unit.clear_reservation()
    unit.status = new_status


def change_status(unit_pk, new_status, changed_by=None, reason=''):
    """Lock the unit, validate the transition, record history and save."""
    if new_status == 'reserved':
        raise ValidationFailed('Reserve units through a blood request so they reference a recipient')

    with transaction.atomic():
        unit = BloodUnit.objects.select_for_update().get(pk=unit_pk)
        _apply_status(unit, new_status, changed_by, reason)
        unit.save()

    logger.info(f"Blood unit {unit.unit_id} moved to {new_status}")
    return unit


def reserve_units(blood_types, count, recipient, blood_request=None, reserved_by=None, now=None):
    """
    Reserve up to `count` available, unexpired units of the given types for a
    recipient, soonest expiry first. Runs on locked rows so two requests can
    never reserve the same unit.
    """
    if count <= 0:
        return []

    now = now or timezone.now()
    today = timezone.localdate(now)
    hold_until = now + timedelta(hours=get_setting('RESERVATION_HOLD_HOURS'))
    reason = f"Reserved for recipient {recipient.pk}"
    if blood_request is not None:
        reason = f"{reason} (request {blood_request.pk})"

    with transaction.atomic():
        units = list(
            BloodUnit.objects.select_for_update()
            .available(today)
            .filter(blood_type__in=list(blood_types))
            .order_by('expiry_date', 'id')[:count]
        )
        for unit in units:
            _apply_status(unit, 'reserved', reserved_by, reason, today)
            unit.reserved_for = recipient
            unit.reserved_request = blood_request
            unit.reserved_at = now
            unit.reservation_expires_at = hold_until
            unit.save()

    logger.info(f"Reserved {len(units)} of {count} requested units for recipient {recipient.pk}")
    return units


def release_unit(unit_pk, changed_by=None, reason='Reservation released'):
    return change_status(unit_pk, 'available', changed_by, reason)


def release_request_units(blood_request, changed_by=None, reason='Blood request cancelled'):
    released = 0
    for unit_pk in blood_request.reserved_units.filter(status='reserved').values_list('pk', flat=True):
        try:
            release_unit(unit_pk, changed_by, reason)
            released += 1
        except InvalidTransition as e:
            logger.warning(f"Could not release unit {unit_pk} for request {blood_request.pk}: {e.message}")
    return released


def release_expired_reservations(now=None, changed_by=None):
    """Return reservations whose hold lapsed to available. Expired units are left for discard."""
    now = now or timezone.now()
    stale = BloodUnit.objects.filter(status='reserved', reservation_expires_at__lt=now)

    released = 0
    for unit_pk in stale.values_list('pk', flat=True):
        try:
            release_unit(unit_pk, changed_by, 'Reservation hold expired')
            released += 1
        except InvalidTransition as e:
            logger.warning(f"Skipped releasing unit {unit_pk}: {e.message}")
    return released


def mark_transfused(unit, recipient, details, changed_by=None, reason='Transfused'):
    """Caller holds the row lock and the transaction."""
    _apply_status(unit, 'transfused', changed_by, reason)
    unit.transfusion = {'recipient_id': recipient.pk, **details}
    unit.save()
    return unit
