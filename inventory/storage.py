import math
from datetime import timedelta

from django.db.models import Count, Max, Min, Q
from django.utils import timezone

from common.conf import get_setting
from common.exceptions import ValidationFailed


def parse_temperature(value):
    try:
        temperature = float(value)
    except (TypeError, ValueError):
        raise ValidationFailed('Invalid temperature value')
    if not math.isfinite(temperature):
        raise ValidationFailed('Invalid temperature value')
    return temperature


def classify_temperature(value):
    """
    Return (severity, resolved) for a reading. Outside the critical range the
    reading opens an unresolved critical alert; outside the warning range it is
    a warning.
    """
    temperature = parse_temperature(value)
    critical_min, critical_max = get_setting('TEMPERATURE_CRITICAL_RANGE')
    warning_min, warning_max = get_setting('TEMPERATURE_WARNING_RANGE')

    if temperature < critical_min or temperature > critical_max:
        return 'critical', False
    if temperature < warning_min or temperature > warning_max:
        return 'warning', True
    return 'info', True


def is_out_of_range(value):
    critical_min, critical_max = get_setting('TEMPERATURE_CRITICAL_RANGE')
    return value < critical_min or value > critical_max


def check_maintenance_needed(facility_id, refrigerator_id, now=None):
    from .models import StorageLog

    now = now or timezone.now()
    lookback = now - timedelta(days=get_setting('MAINTENANCE_LOOKBACK_DAYS'))

    logs = StorageLog.objects.filter(facility_id=facility_id, refrigerator_id=refrigerator_id)
    temperature_issues = logs.filter(
        type='temperature',
        severity='critical',
        recorded_at__gte=lookback,
    ).count()

    last_maintenance = logs.filter(type='maintenance', resolved=True).order_by('-resolved_at', '-recorded_at').first()
    last_maintenance_at = None
    if last_maintenance:
        last_maintenance_at = last_maintenance.resolved_at or last_maintenance.recorded_at

    reason = None
    if temperature_issues > get_setting('MAINTENANCE_CRITICAL_EVENT_LIMIT'):
        reason = 'Multiple temperature issues detected'
    elif last_maintenance_at is None or (now - last_maintenance_at).days > get_setting('MAINTENANCE_INTERVAL_DAYS'):
        reason = 'Regular maintenance due'

    return {
        'maintenance_needed': reason is not None,
        'reason': reason,
        'last_maintenance': last_maintenance_at,
        'temperature_issues': temperature_issues,
    }


def record_temperature(facility_id, refrigerator_id, value, recorded_by, notes='', now=None):
    """
    Log a reading, then run the maintenance check and open a maintenance alert
    for the refrigerator when one is needed and none is already open.
    """
    from .models import StorageLog

    now = now or timezone.now()
    log = StorageLog.objects.create(
        facility_id=facility_id,
        refrigerator_id=refrigerator_id,
        type='temperature',
        value=value,
        notes=notes,
        recorded_by=recorded_by,
        recorded_at=now,
    )

    maintenance = check_maintenance_needed(facility_id, refrigerator_id, now)
    alert = None
    if maintenance['maintenance_needed']:
        open_alert = StorageLog.objects.filter(
            facility_id=facility_id,
            refrigerator_id=refrigerator_id,
            type='alert',
            resolved=False,
            value__kind='maintenance',
        ).exists()
        if not open_alert:
            alert = StorageLog.objects.create(
                facility_id=facility_id,
                refrigerator_id=refrigerator_id,
                type='alert',
                value={'kind': 'maintenance', 'reason': maintenance['reason']},
                notes=maintenance['reason'],
                recorded_by='system',
                recorded_at=now,
                severity='warning',
                resolved=False,
            )
    return log, maintenance, alert


def temperature_stats(logs):
    """Aggregate current/average/min/max and out-of-range count over temperature logs."""
    critical_min, critical_max = get_setting('TEMPERATURE_CRITICAL_RANGE')
    readings = [float(log.value) for log in logs]
    if not readings:
        return {'current': None, 'average': None, 'min': None, 'max': None, 'out_of_range': 0, 'readings': 0}

    return {
        'current': readings[0],
        'average': round(sum(readings) / len(readings), 2),
        'min': min(readings),
        'max': max(readings),
        'out_of_range': sum(1 for reading in readings if reading < critical_min or reading > critical_max),
        'readings': len(readings),
    }


def occupancy_by_location(units):
    """Count live units per facility and refrigerator."""
    rows = units.values('facility', 'refrigerator').annotate(
        total=Count('id'),
        available=Count('id', filter=Q(status='available')),
        reserved=Count('id', filter=Q(status='reserved')),
        quarantine=Count('id', filter=Q(status='quarantine')),
        earliest_expiry=Min('expiry_date'),
        latest_expiry=Max('expiry_date'),
    ).order_by('facility', 'refrigerator')

    facilities = {}
    for row in rows:
        facility = facilities.setdefault(row['facility'] or 'unassigned', {
            'facility': row['facility'] or 'unassigned',
            'total_units': 0,
            'refrigerators': [],
        })
        facility['total_units'] += row['total']
        facility['refrigerators'].append({
            'refrigerator': row['refrigerator'] or 'unassigned',
            'total': row['total'],
            'available': row['available'],
            'reserved': row['reserved'],
            'quarantine': row['quarantine'],
            'earliest_expiry': row['earliest_expiry'],
            'latest_expiry': row['latest_expiry'],
        })
    return list(facilities.values())
