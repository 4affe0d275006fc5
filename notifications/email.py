from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags
from django.conf import settings
import logging

logger = logging.getLogger(__name__)

EMAIL_SUBJECTS = {
    'email_verification': 'Verify your email address',
    'password_reset': 'Password reset request',
    'admin_approved': 'Your admin account has been approved',
    'admin_rejected': 'Your admin account request was declined',
    'new_admin_registration': 'New admin registration awaiting approval',
    'low_inventory': 'Low blood inventory alert',
    'expiring_units': 'Blood units expiring soon',
    'donor_eligible': 'You are eligible to donate again',
    'communication': 'Message from the blood bank',
    'general': 'Blood bank notification',
}


def _recipient_list(recipient):
    if isinstance(recipient, str):
        return [recipient]
    return [address for address in recipient if address]


def send_notification(kind, recipient, template_data=None):
    """
    Render notifications/emails/<kind>.html|.txt and send it to one address or a list.
    Returns True on success; failures are logged and reported as False.
    """
    try:
        if kind not in EMAIL_SUBJECTS:
            raise ValueError(f"Unknown notification kind '{kind}'")

        to = _recipient_list(recipient)
        if not to:
            raise ValueError('No recipient address')

        context = {
            'frontend_url': getattr(settings, 'FRONTEND_URL', 'http://localhost:3000'),
            **(template_data or {}),
        }
        subject = context.get('subject') or EMAIL_SUBJECTS[kind]

        html_content = render_to_string(f'notifications/emails/{kind}.html', context)
        text_content = strip_tags(render_to_string(f'notifications/emails/{kind}.txt', context))

        reply_to = getattr(settings, 'REPLY_TO_EMAIL', '')
        email = EmailMultiAlternatives(
            subject=subject,
            body=text_content,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=to,
            reply_to=[reply_to] if reply_to else None
        )
        email.attach_alternative(html_content, "text/html")
        email.send(fail_silently=False)

        logger.info(f"{kind} email sent to {', '.join(to)}")
        return True

    except Exception as e:
        logger.error(f"Failed to send {kind} email: {str(e)}")
        return False
