import logging

from django.db import transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.dates import to_datetime
from common.exceptions import BloodBankError, ValidationFailed, error_response, validate_or_raise
from .deferrals import end_deferral, place_deferral, reactivate_deferral
from .eligibility import days_until_eligible, interval_for
from .models import Donor, DonorDeferral
from .serializers import DeferralInputSerializer, DonorDeferralSerializer, DonorHealthSerializer

logger = logging.getLogger(__name__)

TREND_FIELDS = ('hemoglobin', 'blood_pressure_systolic', 'blood_pressure_diastolic', 'pulse', 'weight')


def health_trends(records):
    """Oldest-to-newest series for each vital, plus the change across the window."""
    records = list(reversed(records))
    trends = {}
    for field in TREND_FIELDS:
        values = [float(getattr(record, field)) for record in records if getattr(record, field) is not None]
        trends[field] = {
            'values': values,
            'change': round(values[-1] - values[0], 1) if len(values) > 1 else 0,
        }
    return trends


def donor_status(donor):
    now = timezone.now()
    today = timezone.localdate(now)
    records = list(donor.health_records.order_by('-assessment_date')[:10])
    eligible, message = donor.can_donate(surface='status', now=now)
    deferral = donor.active_deferral(now)

    return {
        'donor': {'id': donor.id, 'name': donor.full_name, 'blood_type': donor.blood_type, 'status': donor.status},
        'current_health': DonorHealthSerializer(records[0]).data if records else None,
        'eligibility': {
            'eligible': eligible,
            'message': message,
            'last_donation_date': donor.last_donation_date,
            'next_eligible_date': donor.next_eligible_date('status'),
            'days_until_eligible': days_until_eligible(donor.last_donation_date, interval_for('status'), today),
        },
        'active_deferral': DonorDeferralSerializer(deferral).data if deferral else None,
        'deferral_history': DonorDeferralSerializer(donor.deferrals.all(), many=True).data,
        'health_trends': health_trends(records),
    }


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def donor_health_status(request):
    try:
        if request.method == 'GET':
            donor_id = request.query_params.get('donor_id')
            if not donor_id:
                raise ValidationFailed('Donor ID is required')
            donor = Donor.objects.get(pk=donor_id)
            return Response(donor_status(donor))

        if request.method == 'POST':
            donor_id = request.data.get('donor_id')
            health_metrics = request.data.get('health_metrics')
            deferral_data = request.data.get('deferral')
            if not donor_id:
                raise ValidationFailed('Donor ID is required')
            if not health_metrics and not deferral_data:
                raise ValidationFailed('Health metrics or deferral information is required')

            donor = Donor.objects.get(pk=donor_id)
            health_serializer = None
            deferral_fields = None
            if health_metrics:
                health_serializer = DonorHealthSerializer(data=health_metrics)
                validate_or_raise(health_serializer)
            if deferral_data:
                deferral_fields = dict(validate_or_raise(DeferralInputSerializer(data=deferral_data)))

            with transaction.atomic():
                if health_serializer is not None:
                    health_serializer.save(donor=donor)
                if deferral_fields is not None:
                    place_deferral(donor.pk, created_by=request.user, **deferral_fields)

            donor.refresh_from_db()
            return Response({
                'message': 'Donor status updated successfully',
                **donor_status(donor)
            }, status=status.HTTP_201_CREATED)

        deferral_id = request.data.get('deferral_id')
        if not deferral_id:
            raise ValidationFailed('Deferral ID is required')
        deferral = end_deferral(deferral_id, modified_by=request.user)
        return Response({
            'message': 'Deferral ended successfully',
            'deferral': DonorDeferralSerializer(deferral).data
        })

    except Donor.DoesNotExist:
        return Response({'error': 'Donor not found'}, status=status.HTTP_404_NOT_FOUND)
    except DonorDeferral.DoesNotExist:
        return Response({'error': 'Deferral not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donor status error: {str(e)}")
        return Response({'error': 'Failed to process donor status'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def reactivate(request, deferral_id):
    try:
        end_date = request.data.get('end_date')
        deferral = reactivate_deferral(
            deferral_id,
            modified_by=request.user,
            reason=request.data.get('reason', ''),
            end_date=to_datetime(end_date, 'end date') if end_date else None,
        )
        return Response({
            'message': 'Deferral reactivated successfully',
            'deferral': DonorDeferralSerializer(deferral).data
        })

    except DonorDeferral.DoesNotExist:
        return Response({'error': 'Deferral not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Deferral reactivation error: {str(e)}")
        return Response({'error': 'Failed to reactivate deferral'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
