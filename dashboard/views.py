import logging

from dateutil.relativedelta import relativedelta
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.conf import get_setting
from common.exceptions import BloodBankError, ValidationFailed, error_response
from donors.eligibility import interval_for
from donors.models import BLOOD_TYPES, Donation, Donor
from donors.serializers import DonorListSerializer
from inventory.models import BloodUnit
from inventory.serializers import BloodUnitSerializer
from inventory.views import available_summary
from notifications.dispatch import notify
from notifications.email import EMAIL_SUBJECTS
from recipients.models import Recipient
from recipients.serializers import RecipientSerializer
from .metrics import calculate_trend, percentage, period_start, previous_period

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {'critical': 0, 'warning': 1, 'info': 2}

SEARCH_TYPES = ('donor', 'inventory', 'recipient')


def created_between(model, start, end):
    return model.objects.filter(created_at__gte=start, created_at__lt=end).count()


def donation_trends(time_range, now):
    start = period_start(time_range, now).date()
    donations = Donation.objects.filter(donation_date__gte=start).order_by()
    if time_range == 'week':
        rows = donations.annotate(bucket=F('donation_date'))
        label = '%Y-%m-%d'
    else:
        rows = donations.annotate(bucket=TruncMonth('donation_date'))
        label = '%Y-%m'
    rows = rows.values('bucket').annotate(count=Count('id'), units=Sum('units')).order_by('bucket')
    return [
        {'period': row['bucket'].strftime(label), 'donations': row['count'], 'units': row['units']}
        for row in rows
    ]


def inventory_alerts(summary, today):
    alerts = []
    threshold = get_setting('LOW_STOCK_THRESHOLD')
    for row in summary:
        if row['units'] < threshold:
            alerts.append({
                'type': 'low_stock',
                'severity': 'critical' if row['units'] == 0 else 'warning',
                'blood_type': row['blood_type'],
                'message': f"Low stock for {row['blood_type']}: {row['units']} units available",
            })

    expiring = BloodUnit.objects.expiring_within(get_setting('EXPIRY_WARNING_DAYS'), today).count()
    if expiring:
        alerts.append({
            'type': 'expiring_units',
            'severity': 'warning',
            'message': f"{expiring} units expire within {get_setting('EXPIRY_WARNING_DAYS')} days",
        })

    goal = get_setting('MONTHLY_DONATION_GOAL')
    month_start = today.replace(day=1)
    this_month = Donation.objects.filter(donation_date__gte=month_start).count()
    progress = percentage(this_month, goal)
    if progress < 80:
        alerts.append({
            'type': 'donation_goal',
            'severity': 'info',
            'message': f"Monthly donations at {progress}% of the goal of {goal}",
        })
    return alerts


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    try:
        time_range = request.query_params.get('time_range', 'month')
        now = timezone.now()
        today = timezone.localdate(now)
        start = period_start(time_range, now)
        previous_start, previous_end = previous_period(time_range, now)

        trends = {}
        for key, model in (('donors', Donor), ('units', BloodUnit), ('recipients', Recipient)):
            current = created_between(model, start, now)
            previous = created_between(model, previous_start, previous_end)
            trends[key] = {'current': current, 'previous': previous, 'trend': calculate_trend(current, previous)}

        summary = available_summary(today)
        return Response({
            'time_range': time_range,
            'stats': {
                'total_donors': Donor.objects.count(),
                'active_donors': Donor.objects.filter(status='active').count(),
                'available_units': sum(row['units'] for row in summary),
                'total_recipients': Recipient.objects.filter(status='active').count(),
                'donations_in_period': Donation.objects.filter(donation_date__gte=start.date()).count(),
                'trends': trends,
            },
            'blood_stock': [
                {'blood_type': row['blood_type'], 'available': row['units'], 'critical': row['expiring_units']}
                for row in summary
            ],
            'donation_trends': donation_trends(time_range, now),
            'alerts': inventory_alerts(summary, today),
        })

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Dashboard stats error: {str(e)}")
        return Response({'error': 'Failed to fetch dashboard statistics'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def analytics(request):
    try:
        today = timezone.localdate()
        first_month = today.replace(day=1) - relativedelta(months=11)
        monthly = {
            row['month'].strftime('%Y-%m'): row['count']
            for row in Donation.objects.filter(donation_date__gte=first_month).order_by()
            .annotate(month=TruncMonth('donation_date')).values('month').annotate(count=Count('id'))
        }
        months = [(first_month + relativedelta(months=offset)).strftime('%Y-%m') for offset in range(12)]

        return Response({
            'totals': {
                'donors': Donor.objects.count(),
                'donations': Donation.objects.count(),
                'units': BloodUnit.objects.count(),
                'available_units': BloodUnit.objects.available(today).count(),
                'recipients': Recipient.objects.count(),
            },
            'inventory': available_summary(today),
            'monthly_donations': [{'month': month, 'count': monthly.get(month, 0)} for month in months],
        })

    except Exception as e:
        logger.error(f"Analytics error: {str(e)}")
        return Response({'error': 'Failed to fetch analytics'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def computed_notifications(now):
    today = timezone.localdate(now)
    notifications = []

    threshold = get_setting('NOTIFICATION_LOW_STOCK_THRESHOLD')
    for row in available_summary(today):
        if row['units'] < threshold:
            notifications.append({
                'type': 'low_inventory',
                'severity': 'critical' if row['units'] < get_setting('LOW_STOCK_THRESHOLD') else 'warning',
                'blood_type': row['blood_type'],
                'message': f"{row['blood_type']} inventory is low: {row['units']} units available",
                'timestamp': now,
            })

    warning_days = get_setting('EXPIRY_WARNING_DAYS')
    for unit in BloodUnit.objects.expiring_within(warning_days, today):
        days_left = (unit.expiry_date - today).days
        notifications.append({
            'type': 'expiring_unit',
            'severity': 'critical' if days_left <= 2 else 'warning',
            'unit_id': unit.unit_id,
            'blood_type': unit.blood_type,
            'message': f"Unit {unit.unit_id} ({unit.blood_type}) expires in {days_left} days",
            'timestamp': now,
        })

    eligible = (
        Donor.objects.eligible_on(today, interval_for('reminders'), now)
        .filter(last_donation_date__isnull=False)
        .select_related('contact')
    )
    for donor in eligible:
        contact = getattr(donor, 'contact', None)
        if contact is not None and not contact.can_be_contacted(now):
            continue
        notifications.append({
            'type': 'donor_eligible',
            'severity': 'info',
            'donor_id': donor.id,
            'message': f"{donor.full_name} ({donor.blood_type}) is eligible to donate again",
            'timestamp': now,
        })

    # Stable sorts: newest first, then by severity.
    notifications.sort(key=lambda item: item['timestamp'], reverse=True)
    notifications.sort(key=lambda item: SEVERITY_ORDER[item['severity']])
    return notifications


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def notifications(request):
    try:
        if request.method == 'GET':
            items = computed_notifications(timezone.now())
            return Response({'notifications': items, 'count': len(items)})

        kind = request.data.get('notification_type')
        recipient_email = request.data.get('recipient_email')
        message = request.data.get('message')
        if not kind or not recipient_email or not message:
            raise ValidationFailed('Notification type, recipient email and message are required')
        if kind not in EMAIL_SUBJECTS:
            raise ValidationFailed('Invalid notification type')

        delivered = notify(kind, recipient_email, {
            'message': message,
            'subject': request.data.get('subject', ''),
            **(request.data.get('data') or {}),
        })
        return Response({
            'message': 'Notification queued',
            'delivered': delivered,
        }, status=status.HTTP_202_ACCEPTED)

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Notifications error: {str(e)}")
        return Response({'error': 'Failed to process notifications'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def search(request):
    try:
        search_type = request.query_params.get('type')
        query = request.query_params.get('query', '').strip()
        blood_type = request.query_params.get('blood_type')

        if search_type not in SEARCH_TYPES:
            raise ValidationFailed(f"Invalid search type. Use one of: {', '.join(SEARCH_TYPES)}")
        if blood_type and blood_type not in BLOOD_TYPES:
            raise ValidationFailed('Invalid blood type')

        if search_type == 'donor':
            results = Donor.objects.all()
            if query:
                results = results.filter(
                    Q(first_name__icontains=query) | Q(last_name__icontains=query) |
                    Q(email__icontains=query) | Q(phone__icontains=query) | Q(national_id__icontains=query)
                )
            serializer_class = DonorListSerializer
        elif search_type == 'inventory':
            results = BloodUnit.objects.select_related('donor')
            if query:
                results = results.filter(
                    Q(unit_id__icontains=query) | Q(facility__icontains=query) | Q(refrigerator__icontains=query)
                )
            serializer_class = BloodUnitSerializer
        else:
            results = Recipient.objects.all()
            if query:
                results = results.filter(
                    Q(first_name__icontains=query) | Q(last_name__icontains=query) |
                    Q(national_id__icontains=query) | Q(hospital_name__icontains=query)
                )
            serializer_class = RecipientSerializer

        if blood_type:
            results = results.filter(blood_type=blood_type)

        results = results[:50]
        return Response({
            'type': search_type,
            'query': query,
            'results': serializer_class(results, many=True).data,
            'count': len(results),
        })

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Search error: {str(e)}")
        return Response({'error': 'Search failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
