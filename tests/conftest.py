from datetime import date, timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from donors.models import Donor
from inventory.lifecycle import create_unit
from recipients.models import Recipient


@pytest.fixture
def super_admin(db):
    return User.objects.create_superuser(email='root@bloodbank.test', password='rootpass123', name='Root Admin')


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email='admin@bloodbank.test',
        password='adminpass123',
        name='Ward Admin',
        role='admin',
        approval_status='approved',
    )


@pytest.fixture
def staff_user(db):
    return User.objects.create_user(email='staff@bloodbank.test', password='staffpass123', name='Staff Member')


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def super_admin_client(super_admin):
    client = APIClient()
    client.force_authenticate(user=super_admin)
    return client


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def make_donor(db):
    counter = {'n': 0}

    def factory(**overrides):
        counter['n'] += 1
        n = counter['n']
        fields = {
            'first_name': 'Dana',
            'last_name': f'Donor{n}',
            'date_of_birth': date(1990, 5, 17),
            'gender': 'female',
            'blood_type': 'O+',
            'national_id': f'NID-{n:05d}',
            'email': f'donor{n}@example.com',
            'phone': '555-0100',
            'city': 'Springfield',
        }
        fields.update(overrides)
        return Donor.objects.create(**fields)

    return factory


@pytest.fixture
def donor(make_donor):
    return make_donor()


@pytest.fixture
def make_unit(db):
    def factory(blood_type='O+', status='available', collection_date=None, **fields):
        return create_unit(
            blood_type=blood_type,
            status=status,
            collection_date=collection_date or timezone.localdate() - timedelta(days=1),
            **fields
        )

    return factory


@pytest.fixture
def make_recipient(db):
    counter = {'n': 0}

    def factory(**overrides):
        counter['n'] += 1
        n = counter['n']
        fields = {
            'first_name': 'Riley',
            'last_name': f'Recipient{n}',
            'date_of_birth': date(1975, 2, 3),
            'gender': 'male',
            'blood_type': 'A+',
            'national_id': f'RID-{n:05d}',
            'phone': '555-0200',
            'hospital_name': 'General Hospital',
        }
        fields.update(overrides)
        return Recipient.objects.create(**fields)

    return factory


@pytest.fixture
def recipient(make_recipient):
    return make_recipient()
