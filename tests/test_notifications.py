from unittest import mock

import pytest
from django.core import mail

from logs.models import LogEntry
from notifications.dispatch import notify
from notifications.email import send_notification


@pytest.mark.django_db
def test_send_renders_template():
    assert send_notification('general', 'ops@example.com', {'message': 'Generator test'}) is True
    message = mail.outbox[0]
    assert message.subject == 'Blood bank notification'
    assert 'Generator test' in message.body


def test_unknown_kind_returns_false():
    assert send_notification('carrier_pigeon', 'ops@example.com') is False


def test_smtp_failure_returns_false():
    with mock.patch('notifications.email.EmailMultiAlternatives.send', side_effect=OSError('connection refused')):
        assert send_notification('general', 'ops@example.com', {'message': 'x'}) is False


@pytest.mark.django_db
def test_failed_delivery_is_logged():
    with mock.patch('notifications.dispatch.send_notification', return_value=False):
        assert notify('low_inventory', ['a@example.com', 'b@example.com'], {'blood_type': 'O-'}) is False

    entry = LogEntry.objects.get(module='notifications')
    assert entry.level == 'ERROR'
    assert entry.context['kind'] == 'low_inventory'
    assert entry.context['recipients'] == ['a@example.com', 'b@example.com']


@pytest.mark.django_db
def test_async_notify_waits_for_commit(settings):
    settings.BLOODBANK = {**settings.BLOODBANK, 'NOTIFICATIONS_ASYNC': True}
    with mock.patch('notifications.dispatch.transaction.on_commit') as on_commit:
        assert notify('general', 'ops@example.com', {'message': 'x'}) is None
    on_commit.assert_called_once()
