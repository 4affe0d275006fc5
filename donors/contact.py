import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from common.exceptions import ValidationFailed
from notifications.email import send_notification
from .models import Communication, Contact

logger = logging.getLogger(__name__)


def get_or_create_contact(donor):
    contact, _ = Contact.objects.get_or_create(donor=donor)
    return contact


def send_communication(contact, channel, content, subject='', sent_by=None, now=None):
    """
    Record and deliver a communication to the donor. Donors who opted out or
    are inside a do-not-contact period are refused before anything is stored.
    """
    now = now or timezone.now()
    if not contact.can_be_contacted(now):
        raise ValidationFailed('Donor cannot be contacted at this time')

    donor = contact.donor
    if channel == 'email':
        delivered = send_notification('communication', donor.email, {
            'name': donor.full_name,
            'subject': subject,
            'content': content,
        })
    else:
        logger.warning(f"No delivery channel configured for {channel}; communication to donor {donor.id} marked failed")
        delivered = False

    with transaction.atomic():
        communication = Communication.objects.create(
            contact=contact,
            type=channel,
            subject=subject,
            content=content,
            status='sent' if delivered else 'failed',
            sent_at=now,
            sent_by=sent_by,
        )
        Contact.objects.filter(pk=contact.pk).update(
            contact_attempts=F('contact_attempts') + 1,
            successful_contacts=F('successful_contacts') + (1 if delivered else 0),
            last_contacted_at=now,
        )

    contact.refresh_from_db()
    return communication
