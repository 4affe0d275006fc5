import logging
from datetime import timedelta

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.conf import get_setting
from common.exceptions import BloodBankError, ValidationFailed, error_response, validate_or_raise
from common.pagination import paginate
from donors.models import BLOOD_TYPES
from .filters import BloodUnitFilter
from .lifecycle import change_status, create_unit, release_expired_reservations
from .models import BloodUnit
from .serializers import (
    BloodUnitCreateSerializer, BloodUnitDetailSerializer, BloodUnitSerializer, BloodUnitUpdateSerializer,
)

logger = logging.getLogger(__name__)


def available_summary(today=None):
    """Available (unexpired) units and volume per blood type, all eight types included."""
    today = today or timezone.localdate()
    warning_cutoff = today + timedelta(days=get_setting('EXPIRY_WARNING_DAYS'))
    rows = BloodUnit.objects.available(today).values('blood_type').annotate(
        units=Count('id'),
        total_volume=Sum('volume'),
        expiring_units=Count('id', filter=Q(expiry_date__lte=warning_cutoff)),
        expiring_total=Sum('volume', filter=Q(expiry_date__lte=warning_cutoff)),
    )
    by_type = {row['blood_type']: row for row in rows}
    return [
        {
            'blood_type': blood_type,
            'units': by_type.get(blood_type, {}).get('units', 0),
            'volume': by_type.get(blood_type, {}).get('total_volume') or 0,
            'expiring_units': by_type.get(blood_type, {}).get('expiring_units', 0),
            'expiring_volume': by_type.get(blood_type, {}).get('expiring_total') or 0,
        }
        for blood_type in BLOOD_TYPES
    ]


def apply_unit_update(unit, data, user):
    """Field updates plus an optional lifecycle transition, in one transaction."""
    # Form bodies arrive as a QueryDict.
    data = data.dict() if hasattr(data, 'dict') else dict(data)
    new_status = data.pop('status', None)
    reason = data.pop('reason', '')

    with transaction.atomic():
        serializer = BloodUnitUpdateSerializer(unit, data=data, partial=True)
        validate_or_raise(serializer)
        unit = serializer.save()
        if new_status and new_status != unit.status:
            unit = change_status(unit.pk, new_status, changed_by=user, reason=reason or 'Status updated')
    return unit


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def inventory_list(request):
    try:
        if request.method == 'GET':
            unit_filter = BloodUnitFilter(request.GET, queryset=BloodUnit.objects.select_related('donor'))
            if not unit_filter.is_valid():
                raise ValidationFailed('Invalid filter', errors=[f"{k}: {v[0]}" for k, v in unit_filter.errors.items()])

            items, pagination = paginate(unit_filter.qs, request, default_limit=20)
            return Response({
                'units': BloodUnitSerializer(items, many=True).data,
                'pagination': pagination
            })

        data = validate_or_raise(BloodUnitCreateSerializer(data=request.data))
        unit = create_unit(changed_by=request.user, **data)
        return Response({
            'message': 'Blood unit added successfully',
            'unit': BloodUnitDetailSerializer(unit).data
        }, status=status.HTTP_201_CREATED)

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Inventory list error: {str(e)}")
        return Response({'error': 'Failed to process inventory request'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def inventory_detail(request, unit_pk):
    try:
        unit = BloodUnit.objects.select_related('donor').get(pk=unit_pk)

        if request.method == 'GET':
            return Response(BloodUnitDetailSerializer(unit).data)

        if request.method == 'PUT':
            unit = apply_unit_update(unit, request.data, request.user)
            return Response({
                'message': 'Blood unit updated successfully',
                'unit': BloodUnitDetailSerializer(unit).data
            })

        unit.delete()
        logger.info(f"Blood unit {unit.unit_id} deleted by {request.user.email}")
        return Response({'message': 'Blood unit deleted successfully'})

    except BloodUnit.DoesNotExist:
        return Response({'error': 'Blood unit not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Inventory detail error: {str(e)}")
        return Response({'error': 'Failed to process blood unit'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def unit_status(request, unit_pk):
    try:
        new_status = request.data.get('status')
        if not new_status:
            raise ValidationFailed('Status is required')

        unit = change_status(unit_pk, new_status, changed_by=request.user, reason=request.data.get('reason', ''))
        return Response({
            'message': f'Blood unit marked {unit.status}',
            'unit': BloodUnitDetailSerializer(unit).data
        })

    except BloodUnit.DoesNotExist:
        return Response({'error': 'Blood unit not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Unit status error: {str(e)}")
        return Response({'error': 'Failed to update unit status'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def availability(request):
    try:
        summary = available_summary()
        response = {
            'inventory': summary,
            'total_available': sum(row['units'] for row in summary),
            'expiring_soon': sum(row['expiring_units'] for row in summary),
            'expiry_window_days': get_setting('EXPIRY_WARNING_DAYS'),
        }

        blood_type = request.query_params.get('blood_type')
        if blood_type:
            if blood_type not in BLOOD_TYPES:
                raise ValidationFailed('Invalid blood type')
            try:
                units = int(request.query_params.get('units', 1))
            except ValueError:
                raise ValidationFailed('units must be a number')
            # Deferred import: recipients depends on inventory.
            from recipients.compatibility import compatible_donor_types

            exact = next(row['units'] for row in summary if row['blood_type'] == blood_type)
            compatible_types = compatible_donor_types(blood_type)
            compatible = sum(row['units'] for row in summary if row['blood_type'] in compatible_types)
            response['request'] = {
                'blood_type': blood_type,
                'units': units,
                'exact_match_available': exact,
                'compatible_available': compatible,
                'compatible_types': sorted(compatible_types),
                'can_fulfill': compatible >= units,
            }

        return Response(response)

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Availability error: {str(e)}")
        return Response({'error': 'Failed to fetch availability'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def blood_units(request):
    try:
        if request.method == 'GET':
            unit_filter = BloodUnitFilter(request.GET, queryset=BloodUnit.objects.select_related('donor'))
            items, pagination = paginate(unit_filter.qs.order_by('-created_at'), request)
            return Response({
                'units': BloodUnitSerializer(items, many=True).data,
                'pagination': pagination,
                'summary': available_summary(),
            })

        if request.method == 'POST':
            data = validate_or_raise(BloodUnitCreateSerializer(data=request.data))
            data.pop('unit_id', None)
            unit = create_unit(changed_by=request.user, reason='Initial registration', **data)
            return Response({
                'message': 'Blood unit registered successfully',
                'unit': BloodUnitDetailSerializer(unit).data
            }, status=status.HTTP_201_CREATED)

        unit_id = request.data.get('unit_id')
        if not unit_id:
            raise ValidationFailed('Unit ID is required')
        unit = BloodUnit.objects.get(unit_id=unit_id)
        updates = {key: value for key, value in request.data.items() if key != 'unit_id'}
        unit = apply_unit_update(unit, updates, request.user)
        return Response({
            'message': 'Blood unit updated successfully',
            'unit': BloodUnitDetailSerializer(unit).data
        })

    except BloodUnit.DoesNotExist:
        return Response({'error': 'Blood unit not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Blood units error: {str(e)}")
        return Response({'error': 'Failed to process blood units'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def release_reservations(request):
    try:
        released = release_expired_reservations(changed_by=request.user)
        return Response({'message': f'Released {released} expired reservations', 'released': released})
    except Exception as e:
        logger.error(f"Release reservations error: {str(e)}")
        return Response({'error': 'Failed to release reservations'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
