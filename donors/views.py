import logging

from django.db import IntegrityError, transaction
from django.db.models import Count, Max, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.conf import delete_policy
from common.dates import optional_date
from common.exceptions import BloodBankError, ConflictError, ValidationFailed, error_response, validate_or_raise
from common.pagination import paginate
from dashboard.metrics import history_start
from inventory.lifecycle import create_unit
from inventory.serializers import BloodUnitSerializer
from .donations import record_donation, update_donation
from .eligibility import days_until_eligible, interval_for
from .filters import DonorFilter
from .models import BLOOD_TYPES, Donation, Donor
from .serializers import DonationInputSerializer, DonationSerializer, DonorListSerializer, DonorSerializer

logger = logging.getLogger(__name__)

DUPLICATE_DONOR = 'A donor with this email or national ID already exists'


def check_duplicate_donor(data, exclude_pk=None):
    lookup = Q()
    if data.get('email'):
        lookup |= Q(email__iexact=data['email'])
    if data.get('national_id'):
        lookup |= Q(national_id=data['national_id'])
    if not lookup:
        return
    duplicates = Donor.objects.filter(lookup)
    if exclude_pk is not None:
        duplicates = duplicates.exclude(pk=exclude_pk)
    if duplicates.exists():
        raise ConflictError(DUPLICATE_DONOR)


def donation_summary(donor):
    totals = donor.donations.aggregate(count=Count('id'), units=Sum('units'))
    return {
        'total_donations': totals['count'],
        'total_units': totals['units'] or 0,
        'last_donation_date': donor.last_donation_date,
        'next_eligible_date': donor.next_eligible_date(),
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def donor_list(request):
    try:
        if request.method == 'GET':
            donor_filter = DonorFilter(request.GET, queryset=Donor.objects.all())
            if not donor_filter.is_valid():
                raise ValidationFailed('Invalid filter', errors=[f"{k}: {v[0]}" for k, v in donor_filter.errors.items()])

            items, pagination = paginate(donor_filter.qs.order_by('-created_at'), request)
            return Response({
                'donors': DonorListSerializer(items, many=True).data,
                'pagination': pagination
            })

        serializer = DonorSerializer(data=request.data)
        data = validate_or_raise(serializer)
        check_duplicate_donor(data)
        donor = serializer.save()

        logger.info(f"Donor {donor.id} registered by {request.user.email}")
        return Response({
            'message': 'Donor registered successfully',
            'donor': DonorSerializer(donor).data
        }, status=status.HTTP_201_CREATED)

    except IntegrityError:
        return error_response(ConflictError(DUPLICATE_DONOR))
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donor list error: {str(e)}")
        return Response({'error': 'Failed to process donors'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def donor_detail(request, donor_id):
    try:
        donor = Donor.objects.get(pk=donor_id)

        if request.method == 'GET':
            data = DonorSerializer(donor).data
            can_donate, message = donor.can_donate()
            data['can_donate_now'] = can_donate
            data['eligibility_message'] = message
            data['next_eligible_date'] = donor.next_eligible_date()
            return Response(data)

        if request.method == 'PUT':
            serializer = DonorSerializer(donor, data=request.data, partial=True)
            data = validate_or_raise(serializer)
            data.pop('last_donation_date', None)
            check_duplicate_donor(data, exclude_pk=donor.pk)
            donor = serializer.save()
            return Response({
                'message': 'Donor updated successfully',
                'donor': DonorSerializer(donor).data
            })

        if delete_policy('donor') == 'soft':
            donor.status = 'inactive'
            donor.save(update_fields=['status', 'updated_at'])
        else:
            donor.delete()
        logger.info(f"Donor {donor_id} deleted by {request.user.email}")
        return Response({'message': 'Donor deleted successfully'})

    except Donor.DoesNotExist:
        return Response({'error': 'Donor not found'}, status=status.HTTP_404_NOT_FOUND)
    except IntegrityError:
        return error_response(ConflictError(DUPLICATE_DONOR))
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donor detail error: {str(e)}")
        return Response({'error': 'Failed to process donor'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def donor_donations(request, donor_id):
    try:
        donor = Donor.objects.get(pk=donor_id)

        if request.method == 'GET':
            donations = donor.donations.all()
            start_date = optional_date(request.query_params.get('start_date'), 'start date')
            end_date = optional_date(request.query_params.get('end_date'), 'end date')
            min_units = request.query_params.get('min_units')
            if start_date:
                donations = donations.filter(donation_date__gte=start_date)
            if end_date:
                donations = donations.filter(donation_date__lte=end_date)
            if min_units:
                try:
                    donations = donations.filter(units__gte=int(min_units))
                except ValueError:
                    raise ValidationFailed('min_units must be a number')

            return Response({
                'donor': {'id': donor.id, 'name': donor.full_name, 'blood_type': donor.blood_type},
                'summary': donation_summary(donor),
                'donations': DonationSerializer(donations, many=True).data,
            })

        if request.method == 'POST':
            data = validate_or_raise(DonationInputSerializer(data=request.data))
            donor, donation = record_donation(
                donor.pk,
                data['donation_date'],
                units=data['units'],
                location=data.get('location', ''),
                notes=data.get('notes', ''),
            )
            return Response({
                'message': 'Donation recorded successfully',
                'donation': DonationSerializer(donation).data,
                'summary': donation_summary(donor),
            }, status=status.HTTP_201_CREATED)

        donation_id = request.data.get('donation_id')
        if not donation_id:
            raise ValidationFailed('Donation ID is required')
        serializer = DonationInputSerializer(data=request.data, partial=True)
        changes = validate_or_raise(serializer)
        donor, donation = update_donation(donor.pk, donation_id, **changes)
        return Response({
            'message': 'Donation updated successfully',
            'donation': DonationSerializer(donation).data,
            'summary': donation_summary(donor),
        })

    except Donor.DoesNotExist:
        return Response({'error': 'Donor not found'}, status=status.HTTP_404_NOT_FOUND)
    except Donation.DoesNotExist:
        return Response({'error': 'Donation not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donation error: {str(e)}")
        return Response({'error': 'Failed to process donation'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def donor_unit_history(request, donor_id):
    try:
        donor = Donor.objects.get(pk=donor_id)

        if request.method == 'GET':
            units = donor.blood_units.order_by('-collection_date')
            totals = units.aggregate(count=Count('id'), volume=Sum('volume'), last=Max('collection_date'))
            status_counts = {
                row['status']: row['count']
                for row in units.order_by().values('status').annotate(count=Count('id'))
            }
            return Response({
                'donor': {'id': donor.id, 'name': donor.full_name, 'blood_type': donor.blood_type},
                'units': BloodUnitSerializer(units, many=True).data,
                'stats': {
                    'total_donations': totals['count'],
                    'total_volume': totals['volume'] or 0,
                    'last_donation': totals['last'],
                    'status_counts': status_counts,
                },
            })

        data = validate_or_raise(DonationInputSerializer(data=request.data))
        with transaction.atomic():
            donor, donation = record_donation(
                donor.pk,
                data['donation_date'],
                units=data['units'],
                location=data.get('location', ''),
                notes=data.get('notes', ''),
            )
            unit = create_unit(
                changed_by=request.user,
                reason=f"Collected from donor {donor.id}",
                donor=donor,
                blood_type=donor.blood_type,
                collection_date=donation.donation_date,
                volume=request.data.get('volume') or 450,
                collected_by=request.user.email,
                facility=request.data.get('facility', ''),
                refrigerator=request.data.get('refrigerator', ''),
            )

        return Response({
            'message': 'Donation recorded successfully',
            'donation': DonationSerializer(donation).data,
            'unit': BloodUnitSerializer(unit).data,
        }, status=status.HTTP_201_CREATED)

    except Donor.DoesNotExist:
        return Response({'error': 'Donor not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donor history error: {str(e)}")
        return Response({'error': 'Failed to process donor history'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def donor_management(request):
    try:
        if request.method == 'GET':
            today = timezone.localdate()
            interval = interval_for('management')
            donor_filter = DonorFilter(request.GET, queryset=Donor.objects.all())
            donors = donor_filter.qs.annotate(
                donation_count=Count('donations'),
                donated_units=Sum('donations__units'),
            ).order_by('-created_at')
            items, pagination = paginate(donors, request)

            results = []
            for donor in items:
                eligible, message = donor.can_donate(surface='management')
                data = DonorListSerializer(donor, context={'surface': 'management'}).data
                data['stats'] = {
                    'total_donations': donor.donation_count,
                    'total_units': donor.donated_units or 0,
                    'days_until_eligible': 0 if eligible else days_until_eligible(
                        donor.last_donation_date, interval, today
                    ),
                }
                results.append(data)

            by_type = dict(Donor.objects.values_list('blood_type').annotate(count=Count('id')).order_by())
            return Response({
                'donors': results,
                'pagination': pagination,
                'stats': {
                    'total_donors': Donor.objects.count(),
                    'active_donors': Donor.objects.filter(status='active').count(),
                    'eligible_donors': Donor.objects.eligible_on(today, interval).count(),
                    'by_blood_type': {blood_type: by_type.get(blood_type, 0) for blood_type in BLOOD_TYPES},
                },
            })

        donor_id = request.data.get('donor_id')
        updates = request.data.get('updates')
        if not donor_id or not isinstance(updates, dict):
            raise ValidationFailed('Donor ID and updates are required')

        donor = Donor.objects.get(pk=donor_id)
        serializer = DonorSerializer(donor, data=updates, partial=True)
        data = validate_or_raise(serializer)
        data.pop('last_donation_date', None)
        check_duplicate_donor(data, exclude_pk=donor.pk)
        donor = serializer.save()
        return Response({
            'message': 'Donor updated successfully',
            'donor': DonorSerializer(donor).data
        })

    except Donor.DoesNotExist:
        return Response({'error': 'Donor not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donor management error: {str(e)}")
        return Response({'error': 'Failed to process donor management'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def donation_analytics(request):
    try:
        period = request.query_params.get('period', '6months')
        start = history_start(period, timezone.now())

        donations = Donation.objects.select_related('donor')
        if start:
            donations = donations.filter(donation_date__gte=start.date())
        donor_id = request.query_params.get('donor_id')
        if donor_id:
            donations = donations.filter(donor_id=donor_id)

        totals = donations.aggregate(count=Count('id'), units=Sum('units'), donors=Count('donor', distinct=True))
        monthly = (
            donations.order_by()
            .annotate(month=TruncMonth('donation_date'))
            .values('month')
            .annotate(count=Count('id'), units=Sum('units'))
            .order_by('month')
        )
        by_type = (
            donations.order_by()
            .values('donor__blood_type')
            .annotate(count=Count('id'), units=Sum('units'))
            .order_by('donor__blood_type')
        )
        frequency = (
            donations.order_by()
            .values('donor_id', 'donor__first_name', 'donor__last_name')
            .annotate(count=Count('id'), last=Max('donation_date'))
            .order_by('-count')[:20]
        )

        return Response({
            'period': period,
            'overview': {
                'total_donations': totals['count'],
                'total_units': totals['units'] or 0,
                'unique_donors': totals['donors'],
                'average_per_donor': round(totals['count'] / totals['donors'], 2) if totals['donors'] else 0,
            },
            'donations': [
                {
                    'id': donation.id,
                    'donor_id': donation.donor_id,
                    'donor_name': donation.donor.full_name,
                    'blood_type': donation.donor.blood_type,
                    'donation_date': donation.donation_date,
                    'units': donation.units,
                }
                for donation in donations.order_by('-donation_date')[:100]
            ],
            'monthly_trend': [
                {'month': row['month'].strftime('%Y-%m'), 'count': row['count'], 'units': row['units']}
                for row in monthly
            ],
            'blood_type_distribution': [
                {'blood_type': row['donor__blood_type'], 'count': row['count'], 'units': row['units']}
                for row in by_type
            ],
            'donor_frequency': [
                {
                    'donor_id': row['donor_id'],
                    'name': f"{row['donor__first_name']} {row['donor__last_name']}",
                    'donations': row['count'],
                    'last_donation': row['last'],
                }
                for row in frequency
            ],
        })

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donation analytics error: {str(e)}")
        return Response({'error': 'Failed to fetch donation analytics'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)
