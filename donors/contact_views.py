import logging

from django.db import transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.exceptions import BloodBankError, ValidationFailed, error_response, validate_or_raise
from .contact import get_or_create_contact, send_communication
from .models import Donor
from .serializers import (
    CommunicationInputSerializer, CommunicationSerializer, ContactPreferencesSerializer, ContactSerializer,
    DoNotContactPeriodSerializer, ReminderSerializer,
)

logger = logging.getLogger(__name__)


def get_donor(donor_id):
    if not donor_id:
        raise ValidationFailed('Donor ID is required')
    return Donor.objects.get(pk=donor_id)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated])
def donor_contact(request):
    try:
        if request.method == 'GET':
            donor = get_donor(request.query_params.get('donor_id'))
            contact = get_or_create_contact(donor)
            return Response(ContactSerializer(contact).data)

        donor = get_donor(request.data.get('donor_id'))
        preferences = request.data.get('preferences')

        if request.method == 'POST':
            communication_data = request.data.get('communication')
            if not preferences and not communication_data:
                raise ValidationFailed('Preferences or communication details are required')

            # Validate both parts before writing either.
            communication = None
            if communication_data:
                communication = validate_or_raise(CommunicationInputSerializer(data=communication_data))

            contact = get_or_create_contact(donor)
            sent = None
            with transaction.atomic():
                if preferences:
                    serializer = ContactPreferencesSerializer(contact, data=preferences, partial=True)
                    validate_or_raise(serializer)
                    contact = serializer.save()
                if communication:
                    sent = send_communication(
                        contact,
                        communication['type'],
                        communication['content'],
                        subject=communication['subject'],
                        sent_by=request.user,
                    )

            return Response({
                'message': 'Contact updated successfully',
                'contact': ContactSerializer(contact).data,
                'communication': CommunicationSerializer(sent).data if sent else None,
            }, status=status.HTTP_201_CREATED if sent else status.HTTP_200_OK)

        period = request.data.get('do_not_contact')
        if not preferences and not period:
            raise ValidationFailed('Preferences or do-not-contact period are required')

        contact = get_or_create_contact(donor)
        with transaction.atomic():
            if preferences:
                serializer = ContactPreferencesSerializer(contact, data=preferences, partial=True)
                validate_or_raise(serializer)
                contact = serializer.save()
            if period:
                period_serializer = DoNotContactPeriodSerializer(data=period)
                validate_or_raise(period_serializer)
                period_serializer.save(contact=contact)

        return Response({
            'message': 'Contact preferences updated successfully',
            'contact': ContactSerializer(contact).data
        })

    except Donor.DoesNotExist:
        return Response({'error': 'Donor not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Donor contact error: {str(e)}")
        return Response({'error': 'Failed to process donor contact'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def schedule_reminder(request):
    try:
        donor = get_donor(request.data.get('donor_id'))
        serializer = ReminderSerializer(data=request.data)
        validate_or_raise(serializer)
        contact = get_or_create_contact(donor)
        reminder = serializer.save(contact=contact)
        return Response({
            'message': 'Reminder scheduled successfully',
            'reminder': ReminderSerializer(reminder).data
        }, status=status.HTTP_201_CREATED)

    except Donor.DoesNotExist:
        return Response({'error': 'Donor not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Reminder error: {str(e)}")
        return Response({'error': 'Failed to schedule reminder'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
