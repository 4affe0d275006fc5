import logging
from datetime import timedelta

from django.db import transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.exceptions import BloodBankError, RecordNotFound, ValidationFailed, error_response, validate_or_raise
from .models import BloodUnit, StorageLog, UnitStatusChange
from .serializers import (
    MaintenanceCompleteSerializer, MaintenanceScheduleSerializer, RelocationSerializer, ResolveAlertSerializer,
    StorageLogSerializer, TemperatureReadingSerializer,
)
from .storage import check_maintenance_needed, occupancy_by_location, record_temperature, temperature_stats

logger = logging.getLogger(__name__)

DURATIONS = {
    '24h': timedelta(hours=24),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
}

LIVE_STATUSES = ('quarantine', 'available', 'reserved')


def refrigerator_units(facility_id, refrigerator_id):
    return BloodUnit.objects.filter(facility=facility_id, refrigerator=refrigerator_id, status__in=LIVE_STATUSES)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def storage(request):
    try:
        if request.method == 'GET':
            units = BloodUnit.objects.filter(status__in=LIVE_STATUSES)
            facility = request.query_params.get('facility')
            if facility:
                units = units.filter(facility=facility)

            open_alerts = StorageLog.objects.filter(resolved=False)
            if facility:
                open_alerts = open_alerts.filter(facility_id=facility)

            return Response({
                'locations': occupancy_by_location(units),
                'active_alerts': StorageLogSerializer(open_alerts[:50], many=True).data,
            })

        if request.method == 'POST':
            data = validate_or_raise(TemperatureReadingSerializer(data=request.data))
            recorded_by = data.get('recorded_by') or request.user.email
            log, maintenance, alert = record_temperature(
                data['facility_id'], data['refrigerator_id'], data['temperature'], recorded_by, data['notes']
            )

            status_log = None
            if data.get('status'):
                status_log = StorageLog.objects.create(
                    facility_id=data['facility_id'],
                    refrigerator_id=data['refrigerator_id'],
                    type='status',
                    value=data['status'],
                    notes=data['notes'],
                    recorded_by=recorded_by,
                )

            return Response({
                'message': 'Storage log recorded',
                'temperature_log': StorageLogSerializer(log).data,
                'status_log': StorageLogSerializer(status_log).data if status_log else None,
                'maintenance': maintenance,
            }, status=status.HTTP_201_CREATED)

        data = validate_or_raise(RelocationSerializer(data=request.data))
        with transaction.atomic():
            units = list(BloodUnit.objects.select_for_update().filter(unit_id__in=data['unit_ids']))
            missing = sorted(set(data['unit_ids']) - {unit.unit_id for unit in units})
            if missing:
                raise RecordNotFound('Some blood units were not found', missing_units=missing)

            for unit in units:
                previous = f"{unit.facility}/{unit.refrigerator}/{unit.shelf}/{unit.position}"
                unit.facility = data.get('facility', unit.facility)
                unit.refrigerator = data.get('refrigerator', unit.refrigerator)
                unit.shelf = data['shelf']
                unit.position = data.get('position', unit.position)
                unit.save()
                current = f"{unit.facility}/{unit.refrigerator}/{unit.shelf}/{unit.position}"
                # Location history rides on the status log with the status unchanged.
                UnitStatusChange.objects.create(
                    unit=unit,
                    previous_status=unit.status,
                    new_status=unit.status,
                    changed_by=request.user,
                    reason=f"Relocated from {previous} to {current}. {data['reason']}".strip(),
                )

        logger.info(f"Relocated {len(units)} units by {request.user.email}")
        return Response({'message': f'Relocated {len(units)} units', 'relocated': len(units)})

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Storage error: {str(e)}")
        return Response({'error': 'Failed to process storage request'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def temperature(request):
    try:
        if request.method == 'GET':
            duration = request.query_params.get('duration', '24h')
            if duration not in DURATIONS:
                raise ValidationFailed('Invalid duration. Use 24h, 7d or 30d')

            since = timezone.now() - DURATIONS[duration]
            logs = StorageLog.objects.filter(type='temperature', recorded_at__gte=since)
            alerts = StorageLog.objects.filter(resolved=False)

            facility_id = request.query_params.get('facility_id')
            refrigerator_id = request.query_params.get('refrigerator_id')
            if facility_id:
                logs = logs.filter(facility_id=facility_id)
                alerts = alerts.filter(facility_id=facility_id)
            if refrigerator_id:
                logs = logs.filter(refrigerator_id=refrigerator_id)
                alerts = alerts.filter(refrigerator_id=refrigerator_id)

            logs = list(logs)
            return Response({
                'duration': duration,
                'history': StorageLogSerializer(logs, many=True).data,
                'active_alerts': StorageLogSerializer(alerts, many=True).data,
                'stats': temperature_stats(logs),
            })

        if request.method == 'POST':
            data = validate_or_raise(TemperatureReadingSerializer(data=request.data))
            log, maintenance, alert = record_temperature(
                data['facility_id'],
                data['refrigerator_id'],
                data['temperature'],
                data.get('recorded_by') or request.user.email,
                data['notes'],
            )
            if log.severity == 'critical':
                logger.warning(
                    f"Critical temperature {log.value} at {log.facility_id}/{log.refrigerator_id}"
                )
            return Response({
                'message': 'Temperature recorded',
                'log': StorageLogSerializer(log).data,
                'alert': log.severity != 'info',
                'maintenance': maintenance,
                'maintenance_alert': StorageLogSerializer(alert).data if alert else None,
            }, status=status.HTTP_201_CREATED)

        data = validate_or_raise(ResolveAlertSerializer(data=request.data))
        log = StorageLog.objects.get(pk=data['alert_id'])
        changed = log.resolve(data['resolved_by'], data['resolution'])
        return Response({
            'message': 'Alert resolved' if changed else 'Alert already resolved',
            'alert': StorageLogSerializer(log).data,
        })

    except StorageLog.DoesNotExist:
        return Response({'error': 'Alert not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Temperature error: {str(e)}")
        return Response({'error': 'Failed to process temperature request'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def maintenance(request):
    try:
        now = timezone.now()

        if request.method == 'GET':
            logs = StorageLog.objects.filter(type='maintenance')
            maintenance_status = request.query_params.get('status')
            if maintenance_status == 'completed':
                logs = logs.filter(resolved=True)
            elif maintenance_status == 'scheduled':
                logs = logs.filter(resolved=False, scheduled_date__gte=now)
            elif maintenance_status == 'overdue':
                logs = logs.filter(resolved=False, scheduled_date__lt=now)
            elif maintenance_status:
                raise ValidationFailed('Invalid status. Use scheduled, completed or overdue')

            facility_id = request.query_params.get('facility_id')
            if facility_id:
                logs = logs.filter(facility_id=facility_id)

            results = []
            for log in logs:
                entry = StorageLogSerializer(log).data
                entry['check'] = check_maintenance_needed(log.facility_id, log.refrigerator_id, now)
                results.append(entry)
            return Response({'maintenance': results})

        if request.method == 'POST':
            data = validate_or_raise(MaintenanceScheduleSerializer(data=request.data))
            with transaction.atomic():
                log = StorageLog.objects.create(
                    facility_id=data['facility_id'],
                    refrigerator_id=data['refrigerator_id'],
                    type='maintenance',
                    value={'description': data['description']},
                    notes=data['description'],
                    recorded_by=data.get('recorded_by') or request.user.email,
                    scheduled_date=data['scheduled_date'],
                    resolved=False,
                )
                affected = 0
                if data['scheduled_date'] <= now:
                    affected = refrigerator_units(data['facility_id'], data['refrigerator_id']).update(
                        storage_status='maintenance'
                    )

            return Response({
                'message': 'Maintenance scheduled',
                'maintenance': StorageLogSerializer(log).data,
                'units_affected': affected,
            }, status=status.HTTP_201_CREATED)

        data = validate_or_raise(MaintenanceCompleteSerializer(data=request.data))
        resolved_by = data.get('resolved_by') or request.user.email
        with transaction.atomic():
            log = StorageLog.objects.select_for_update().get(pk=data['maintenance_id'], type='maintenance')
            if log.resolved:
                raise ValidationFailed('Maintenance already completed')

            log.outcome = data['outcome']
            log.save(update_fields=['outcome'])
            log.resolve(resolved_by, data['notes'], now)

            restored = 0
            if data['outcome'] == 'successful':
                restored = refrigerator_units(log.facility_id, log.refrigerator_id).update(
                    storage_status='operational'
                )

            next_log = None
            if data.get('next_scheduled_date'):
                next_log = StorageLog.objects.create(
                    facility_id=log.facility_id,
                    refrigerator_id=log.refrigerator_id,
                    type='maintenance',
                    value={'description': 'Scheduled follow-up maintenance'},
                    notes='Scheduled follow-up maintenance',
                    recorded_by=resolved_by,
                    scheduled_date=data['next_scheduled_date'],
                    resolved=False,
                )

        return Response({
            'message': 'Maintenance completed',
            'maintenance': StorageLogSerializer(log).data,
            'units_restored': restored,
            'next_maintenance': StorageLogSerializer(next_log).data if next_log else None,
        })

    except StorageLog.DoesNotExist:
        return Response({'error': 'Maintenance record not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Maintenance error: {str(e)}")
        return Response({'error': 'Failed to process maintenance request'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)
