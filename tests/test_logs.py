import logging
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from logs.handlers import DatabaseLogHandler
from logs.models import LogEntry
from logs.utils import DatabaseLogger


@pytest.mark.django_db
def test_database_logger_records_principal(staff_user):
    DatabaseLogger('inventory').warning('Fridge door open', user=staff_user, context={'refrigerator': 'R1'})

    entry = LogEntry.objects.get()
    assert entry.level == 'WARNING'
    assert entry.module == 'inventory'
    assert entry.principal_email == staff_user.email
    assert entry.principal_role == 'user'
    assert entry.context == {'refrigerator': 'R1'}


@pytest.mark.django_db
def test_handler_copies_request_extras():
    logger = logging.getLogger('tests.handler')
    handler = DatabaseLogHandler()
    logger.addHandler(handler)
    try:
        logger.warning('Slow request', extra={'request_path': '/api/inventory/', 'context': {'ms': 1200}})
    finally:
        logger.removeHandler(handler)

    entry = LogEntry.objects.get()
    assert entry.request_path == '/api/inventory/'
    assert entry.context == {'ms': 1200}


@pytest.mark.django_db
def test_cleanup_logs_removes_old_entries():
    old = LogEntry.objects.create(level='INFO', message='old', module='tests')
    LogEntry.objects.filter(pk=old.pk).update(timestamp=timezone.now() - timedelta(days=120))
    LogEntry.objects.create(level='INFO', message='recent', module='tests')

    out = StringIO()
    call_command('cleanup_logs', '--days', '90', stdout=out)

    assert list(LogEntry.objects.values_list('message', flat=True)) == ['recent']
    assert 'Deleted 1 log entries' in out.getvalue()


@pytest.mark.django_db
def test_cleanup_logs_dry_run_keeps_entries():
    old = LogEntry.objects.create(level='ERROR', message='old', module='tests')
    LogEntry.objects.filter(pk=old.pk).update(timestamp=timezone.now() - timedelta(days=120))

    out = StringIO()
    call_command('cleanup_logs', '--dry-run', stdout=out)

    assert LogEntry.objects.count() == 1
    assert '1 log entries older than 90 days would be deleted' in out.getvalue()


@pytest.mark.django_db
def test_cleanup_logs_level_filter():
    cutoff = timezone.now() - timedelta(days=120)
    for level in ('INFO', 'ERROR'):
        entry = LogEntry.objects.create(level=level, message=level, module='tests')
        LogEntry.objects.filter(pk=entry.pk).update(timestamp=cutoff)

    call_command('cleanup_logs', '--level', 'INFO', stdout=StringIO())

    assert list(LogEntry.objects.values_list('level', flat=True)) == ['ERROR']


@pytest.mark.django_db
def test_request_logging_tags_principal(admin_client, admin_user):
    logger = logging.getLogger('logs.middleware')
    handler = DatabaseLogHandler()
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    try:
        response = admin_client.get('/api/inventory/', REMOTE_ADDR='10.0.0.7')
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)

    assert response.status_code == 200
    entry = LogEntry.objects.for_principal(admin_user.email).get()
    assert entry.request_path == '/api/inventory/'
    assert entry.principal_role == 'admin'
    assert entry.ip_address == '10.0.0.7'
    assert 'duration_ms' in entry.context
