import logging
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.dates import optional_date
from common.exceptions import BloodBankError, ValidationFailed, error_response, validate_or_raise
from .models import DonationSchedule
from .scheduling import available_slots
from .serializers import DonationScheduleSerializer

logger = logging.getLogger(__name__)

SLOT_TAKEN = 'This time slot is already booked'


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def donation_schedule(request):
    try:
        if request.method == 'GET':
            start_date = optional_date(request.query_params.get('start_date'), 'start date') or timezone.localdate()
            end_date = optional_date(request.query_params.get('end_date'), 'end date') or start_date + timedelta(days=30)
            if end_date < start_date:
                raise ValidationFailed('End date must be on or after start date')

            schedules = DonationSchedule.objects.filter(
                scheduled_date__range=(start_date, end_date)
            ).select_related('donor')
            donor_id = request.query_params.get('donor_id')
            if donor_id:
                schedules = schedules.filter(donor_id=donor_id)

            booked = set(
                DonationSchedule.objects.filter(scheduled_date__range=(start_date, end_date), status='scheduled')
                .values_list('scheduled_date', 'time_slot')
            )
            return Response({
                'schedules': DonationScheduleSerializer(schedules, many=True).data,
                'available_slots': available_slots(start_date, end_date, booked),
            })

        if request.method == 'POST':
            serializer = DonationScheduleSerializer(data=request.data)
            data = validate_or_raise(serializer)
            donor = data['donor']

            eligible, message = donor.can_donate(on=data['scheduled_date'], surface='schedule')
            if not eligible:
                raise ValidationFailed(message)

            if DonationSchedule.objects.filter(
                scheduled_date=data['scheduled_date'], time_slot=data['time_slot'], status='scheduled'
            ).exists():
                raise ValidationFailed(SLOT_TAKEN)

            try:
                with transaction.atomic():
                    schedule = serializer.save(created_by=request.user)
            except IntegrityError:
                raise ValidationFailed(SLOT_TAKEN)

            logger.info(f"Donation scheduled for donor {donor.id} on {schedule.scheduled_date} {schedule.time_slot}")
            return Response({
                'message': 'Donation scheduled successfully',
                'schedule': DonationScheduleSerializer(schedule).data
            }, status=status.HTTP_201_CREATED)

        schedule_id = request.data.get('schedule_id')
        new_status = request.data.get('status')
        if not schedule_id or not new_status:
            raise ValidationFailed('Schedule ID and status are required')
        if new_status not in dict(DonationSchedule.STATUS_CHOICES):
            raise ValidationFailed('Invalid status')

        schedule = DonationSchedule.objects.get(pk=schedule_id)
        schedule.status = new_status
        if 'notes' in request.data:
            schedule.notes = request.data.get('notes') or ''
        try:
            with transaction.atomic():
                schedule.save()
        except IntegrityError:
            raise ValidationFailed(SLOT_TAKEN)

        return Response({
            'message': 'Schedule updated successfully',
            'schedule': DonationScheduleSerializer(schedule).data
        })

    except DonationSchedule.DoesNotExist:
        return Response({'error': 'Schedule not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donation schedule error: {str(e)}")
        return Response({'error': 'Failed to process donation schedule'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)
