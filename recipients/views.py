import logging

from django.db import IntegrityError
from django.db.models import Count, Q, Sum
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.conf import delete_policy
from common.exceptions import (
    BloodBankError, ConflictError, ValidationFailed, error_response, validate_or_raise,
)
from common.pagination import paginate
from donors.models import BLOOD_TYPES
from inventory.models import BloodUnit
from inventory.serializers import BloodUnitSerializer
from inventory.views import available_summary
from .filters import BloodRequestFilter, RecipientFilter, TransfusionFilter
from .models import BloodRequest, Recipient, Transfusion
from .serializers import (
    BloodRequestInputSerializer, BloodRequestSerializer, BloodRequestStatusSerializer, ClinicalNoteSerializer,
    RecipientSerializer, TransfusionInputSerializer, TransfusionSerializer, TransfusionUpdateSerializer,
    UnitReservationSerializer,
)
from .workflows import (
    create_blood_request, record_transfusion, reserve_for_recipient, update_request_status, update_transfusion,
)

logger = logging.getLogger(__name__)


def transfusion_stats(transfusions):
    totals = transfusions.aggregate(
        total=Count('id'),
        units=Sum('units'),
        successful=Count('id', filter=Q(outcome='successful')),
    )
    total = totals['total']
    with_reactions = sum(1 for reactions in transfusions.values_list('reactions', flat=True) if reactions)
    by_type = transfusions.values('blood_type').annotate(count=Count('id'), units=Sum('units')).order_by('blood_type')
    return {
        'total': total,
        'total_units': totals['units'] or 0,
        'by_blood_type': list(by_type),
        'reaction_rate': round(with_reactions / total * 100, 1) if total else 0,
        'success_rate': round(totals['successful'] / total * 100, 1) if total else 0,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def recipient_list(request):
    try:
        if request.method == 'GET':
            recipient_filter = RecipientFilter(request.GET, queryset=Recipient.objects.all())
            items, pagination = paginate(recipient_filter.qs, request)
            return Response({
                'recipients': RecipientSerializer(items, many=True).data,
                'pagination': pagination
            })

        serializer = RecipientSerializer(data=request.data)
        data = validate_or_raise(serializer)
        if Recipient.objects.filter(national_id=data['national_id']).exists():
            raise ConflictError('A recipient with this national ID already exists')
        recipient = serializer.save(registered_by=request.user)

        logger.info(f"Recipient {recipient.pk} registered by {request.user.email}")
        return Response({
            'message': 'Recipient registered successfully',
            'recipient': RecipientSerializer(recipient).data
        }, status=status.HTTP_201_CREATED)

    except IntegrityError:
        return error_response(ConflictError('A recipient with this national ID already exists'))
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Recipient list error: {str(e)}")
        return Response({'error': 'Failed to process recipients'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def recipient_detail(request, recipient_id):
    try:
        recipient = Recipient.objects.get(pk=recipient_id)

        if request.method == 'GET':
            data = RecipientSerializer(recipient).data
            data['blood_requests'] = BloodRequestSerializer(recipient.blood_requests.all(), many=True).data
            data['transfusions'] = TransfusionSerializer(
                recipient.transfusions.prefetch_related('blood_units'), many=True
            ).data
            data['clinical_notes'] = ClinicalNoteSerializer(recipient.clinical_notes.all(), many=True).data
            return Response(data)

        if request.method == 'PUT':
            serializer = RecipientSerializer(recipient, data=request.data, partial=True)
            data = validate_or_raise(serializer)
            national_id = data.get('national_id')
            if national_id and Recipient.objects.filter(national_id=national_id).exclude(pk=recipient.pk).exists():
                raise ConflictError('A recipient with this national ID already exists')
            recipient = serializer.save()
            return Response({
                'message': 'Recipient updated successfully',
                'recipient': RecipientSerializer(recipient).data
            })

        if delete_policy('recipient') == 'soft':
            recipient.status = 'inactive'
            recipient.save(update_fields=['status', 'updated_at'])
            message = 'Recipient deactivated successfully'
        else:
            recipient.delete()
            message = 'Recipient deleted successfully'
        logger.info(f"Recipient {recipient_id} removed by {request.user.email}")
        return Response({'message': message})

    except Recipient.DoesNotExist:
        return Response({'error': 'Recipient not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Recipient detail error: {str(e)}")
        return Response({'error': 'Failed to process recipient'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def clinical_notes(request, recipient_id):
    try:
        recipient = Recipient.objects.get(pk=recipient_id)
        serializer = ClinicalNoteSerializer(data=request.data)
        validate_or_raise(serializer)
        note = serializer.save(recipient=recipient, recorded_by=request.user)
        return Response({
            'message': 'Clinical note added',
            'note': ClinicalNoteSerializer(note).data
        }, status=status.HTTP_201_CREATED)

    except Recipient.DoesNotExist:
        return Response({'error': 'Recipient not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Clinical note error: {str(e)}")
        return Response({'error': 'Failed to add clinical note'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def blood_requests(request):
    try:
        if request.method == 'GET':
            request_filter = BloodRequestFilter(
                request.GET, queryset=BloodRequest.objects.select_related('recipient').prefetch_related('reserved_units')
            )
            items, pagination = paginate(request_filter.qs, request)
            return Response({
                'requests': BloodRequestSerializer(items, many=True).data,
                'pagination': pagination,
                'availability': available_summary(),
            })

        if request.method == 'POST':
            data = dict(validate_or_raise(BloodRequestInputSerializer(data=request.data)))
            recipient = data.pop('recipient')
            if recipient.status != 'active':
                raise ValidationFailed('Recipient is not active')

            blood_request, available, reserved = create_blood_request(recipient, created_by=request.user, **data)
            return Response({
                'message': 'Blood request created',
                'request': BloodRequestSerializer(blood_request).data,
                'available_units': available,
                'reserved_units': [unit.unit_id for unit in reserved],
            }, status=status.HTTP_201_CREATED)

        data = validate_or_raise(BloodRequestStatusSerializer(data=request.data))
        blood_request, released = update_request_status(
            data['request_id'], data['status'], changed_by=request.user, notes=data['notes']
        )
        return Response({
            'message': f'Blood request {blood_request.status}',
            'request': BloodRequestSerializer(blood_request).data,
            'released_units': released,
        })

    except BloodRequest.DoesNotExist:
        return Response({'error': 'Blood request not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Blood request error: {str(e)}")
        return Response({'error': 'Failed to process blood request'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def transfusions(request):
    try:
        if request.method == 'GET':
            transfusion_filter = TransfusionFilter(request.GET, queryset=Transfusion.objects.select_related('recipient'))
            queryset = transfusion_filter.qs
            items, pagination = paginate(queryset.prefetch_related('blood_units'), request)
            return Response({
                'transfusions': TransfusionSerializer(items, many=True).data,
                'pagination': pagination,
                'stats': transfusion_stats(queryset),
            })

        if request.method == 'POST':
            data = dict(validate_or_raise(TransfusionInputSerializer(data=request.data)))
            recipient = data.pop('recipient')
            unit_ids = data.pop('unit_ids')
            blood_request = data.pop('blood_request', None)
            transfusion = record_transfusion(
                recipient, unit_ids, recorded_by=request.user, blood_request=blood_request, **data
            )
            return Response({
                'message': 'Transfusion recorded successfully',
                'transfusion': TransfusionSerializer(transfusion).data
            }, status=status.HTTP_201_CREATED)

        transfusion_id = request.data.get('transfusion_id')
        if not transfusion_id:
            raise ValidationFailed('Transfusion ID is required')
        changes = validate_or_raise(TransfusionUpdateSerializer(data=request.data, partial=True))
        transfusion = update_transfusion(transfusion_id, **changes)
        return Response({
            'message': 'Transfusion updated successfully',
            'transfusion': TransfusionSerializer(transfusion).data
        })

    except Transfusion.DoesNotExist:
        return Response({'error': 'Transfusion not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Transfusion error: {str(e)}")
        return Response({'error': 'Failed to process transfusion'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def unit_requests(request):
    try:
        if request.method == 'GET':
            unit_status = request.query_params.get('status', 'reserved')
            if unit_status not in dict(BloodUnit.STATUS_CHOICES):
                raise ValidationFailed('Invalid status')
            units = BloodUnit.objects.filter(status=unit_status).select_related('donor', 'reserved_for')
            blood_type = request.query_params.get('blood_type')
            if blood_type:
                if blood_type not in BLOOD_TYPES:
                    raise ValidationFailed('Invalid blood type')
                units = units.filter(blood_type=blood_type)
            items, pagination = paginate(units, request)
            return Response({
                'units': BloodUnitSerializer(items, many=True).data,
                'pagination': pagination
            })

        data = dict(validate_or_raise(UnitReservationSerializer(data=request.data)))
        recipient = data.pop('recipient')
        if recipient.status != 'active':
            raise ValidationFailed('Recipient is not active')
        blood_request, reserved = reserve_for_recipient(
            recipient,
            data.pop('blood_type'),
            data.pop('units'),
            urgency=data.pop('urgency'),
            reserved_by=request.user,
            **data
        )
        return Response({
            'message': f'Reserved {len(reserved)} blood units',
            'request': BloodRequestSerializer(blood_request).data,
            'units': BloodUnitSerializer(reserved, many=True).data,
        }, status=status.HTTP_201_CREATED)

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Unit request error: {str(e)}")
        return Response({'error': 'Failed to process unit request'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
