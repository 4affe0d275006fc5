from unittest import mock

import pytest
from django.core import mail

from accounts.models import User

ADMIN_PAYLOAD = {
    'name': 'New Admin',
    'email': 'new.admin@bloodbank.test',
    'password': 'secret123',
    'admin_code': 'test-admin-code',
    'phone_number': '555-0300',
    'position': 'Lab Lead',
    'department': 'Laboratory',
}


@pytest.mark.django_db
def test_register_sends_verification_email(api_client):
    response = api_client.post('/api/auth/register/', {
        'name': 'Pat', 'email': 'pat@example.com', 'password': 'secret123',
    }, format='json')

    assert response.status_code == 201
    user = User.objects.get(email='pat@example.com')
    assert user.role == 'user'
    assert user.email_verification_token
    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == ['pat@example.com']


@pytest.mark.django_db
def test_register_rolls_back_when_email_fails(api_client):
    with mock.patch('accounts.views.send_notification', return_value=False):
        response = api_client.post('/api/auth/register/', {
            'name': 'Pat', 'email': 'pat@example.com', 'password': 'secret123',
        }, format='json')

    assert response.status_code == 500
    assert not User.objects.filter(email='pat@example.com').exists()


@pytest.mark.django_db
def test_register_duplicate_email(api_client, staff_user):
    response = api_client.post('/api/auth/register/', {
        'name': 'Again', 'email': staff_user.email, 'password': 'secret123',
    }, format='json')
    assert response.status_code == 400
    assert response.data['error'] == 'Email already registered'


@pytest.mark.django_db
def test_register_short_password(api_client):
    response = api_client.post('/api/auth/register/', {
        'name': 'Pat', 'email': 'pat@example.com', 'password': '123',
    }, format='json')
    assert response.status_code == 400
    assert 'errors' in response.data


@pytest.mark.django_db
def test_verify_email_with_token(api_client):
    user = User.objects.create_user(email='v@example.com', password='secret123', name='V')
    token = user.issue_email_verification_token(24)

    response = api_client.post('/api/auth/verify-email/', {'token': token}, format='json')

    assert response.status_code == 200
    user.refresh_from_db()
    assert user.is_email_verified is True

    response = api_client.post('/api/auth/verify-email/', {'token': token}, format='json')
    assert response.status_code == 400


@pytest.mark.django_db
def test_password_reset_flow(api_client, staff_user):
    response = api_client.post('/api/auth/forgot-password/', {'email': staff_user.email}, format='json')
    assert response.status_code == 200

    unknown = api_client.post('/api/auth/forgot-password/', {'email': 'nobody@example.com'}, format='json')
    assert unknown.data['message'] == response.data['message']

    assert len(mail.outbox) == 1
    staff_user.refresh_from_db()
    assert staff_user.reset_password_token

    raw = staff_user.issue_password_reset_token(60)
    check = api_client.get('/api/auth/reset-password/', {'token': raw})
    assert check.data == {'is_valid': True}

    response = api_client.post('/api/auth/reset-password/', {'token': raw, 'password': 'brandnew123'},
                               format='json')
    assert response.status_code == 200
    staff_user.refresh_from_db()
    assert staff_user.check_password('brandnew123')


@pytest.mark.django_db
def test_login_returns_tokens(api_client, staff_user):
    response = api_client.post('/api/auth/login/', {'email': staff_user.email, 'password': 'staffpass123'},
                               format='json')
    assert response.status_code == 200
    assert 'access' in response.data
    assert 'refresh' in response.data


@pytest.mark.django_db
def test_login_bad_password(api_client, staff_user):
    response = api_client.post('/api/auth/login/', {'email': staff_user.email, 'password': 'wrong'},
                               format='json')
    assert response.status_code == 401


@pytest.mark.django_db
def test_admin_register_wrong_code(api_client):
    response = api_client.post('/api/auth/admin/register/', {**ADMIN_PAYLOAD, 'admin_code': 'nope'},
                               format='json')
    assert response.status_code == 403
    assert response.data['error'] == 'Invalid admin registration code'
    assert not User.objects.filter(email=ADMIN_PAYLOAD['email']).exists()


@pytest.mark.django_db
def test_admin_register_missing_department(api_client):
    payload = {key: value for key, value in ADMIN_PAYLOAD.items() if key != 'department'}
    response = api_client.post('/api/auth/admin/register/', payload, format='json')

    assert response.status_code == 400
    assert response.data['error'] == 'All fields are required'
    assert response.data['missing_fields'] == ['department']


@pytest.mark.django_db
def test_admin_register_creates_inactive_admin(api_client, super_admin):
    response = api_client.post('/api/auth/admin/register/', ADMIN_PAYLOAD, format='json')

    assert response.status_code == 201
    admin = User.objects.get(email=ADMIN_PAYLOAD['email'])
    assert admin.role == 'admin'
    assert admin.is_active is False
    assert admin.approval_status == 'pending'
    recipients = [address for message in mail.outbox for address in message.to]
    assert super_admin.email in recipients


@pytest.mark.django_db
def test_admin_register_rolls_back_when_email_fails(api_client, super_admin):
    with mock.patch('accounts.views.send_notification', return_value=False):
        response = api_client.post('/api/auth/admin/register/', ADMIN_PAYLOAD, format='json')

    assert response.status_code == 500
    assert response.data['error'] == 'Failed to send verification email. Please try again later.'
    assert not User.objects.filter(email=ADMIN_PAYLOAD['email']).exists()
    assert mail.outbox == []


@pytest.mark.django_db
def test_pending_admin_cannot_log_in(api_client):
    api_client.post('/api/auth/admin/register/', ADMIN_PAYLOAD, format='json')
    response = api_client.post('/api/auth/login/', {
        'email': ADMIN_PAYLOAD['email'], 'password': ADMIN_PAYLOAD['password'],
    }, format='json')
    assert response.status_code == 403
    assert response.data['error'] == 'Account pending approval'


@pytest.fixture
def pending_admin(db):
    return User.objects.create_user(
        email='pending@bloodbank.test', password='secret123', name='Pending', role='admin',
        is_active=False, approval_status='pending',
    )


@pytest.mark.django_db
def test_super_admin_approves(super_admin_client, super_admin, pending_admin):
    response = super_admin_client.post('/api/auth/admin/approve/', {
        'admin_id': pending_admin.id, 'approved': True,
    }, format='json')

    assert response.status_code == 200
    pending_admin.refresh_from_db()
    assert pending_admin.is_active is True
    assert pending_admin.approval_status == 'approved'
    assert pending_admin.approved_by == super_admin
    assert mail.outbox[-1].to == [pending_admin.email]


@pytest.mark.django_db
def test_rejection_requires_reason(super_admin_client, pending_admin):
    response = super_admin_client.post('/api/auth/admin/approve/', {
        'admin_id': pending_admin.id, 'approved': False,
    }, format='json')
    assert response.status_code == 400

    response = super_admin_client.post('/api/auth/admin/approve/', {
        'admin_id': pending_admin.id, 'approved': False, 'reason': 'Unknown department',
    }, format='json')
    assert response.status_code == 200
    pending_admin.refresh_from_db()
    assert pending_admin.is_active is False
    assert pending_admin.rejection_reason == 'Unknown department'


@pytest.mark.django_db
def test_decision_is_final(super_admin_client, pending_admin):
    super_admin_client.post('/api/auth/admin/approve/', {'admin_id': pending_admin.id, 'approved': True},
                            format='json')
    response = super_admin_client.post('/api/auth/admin/approve/', {
        'admin_id': pending_admin.id, 'approved': False, 'reason': 'Changed mind',
    }, format='json')

    assert response.status_code == 400
    pending_admin.refresh_from_db()
    assert pending_admin.is_active is True


@pytest.mark.django_db
def test_regular_admin_cannot_approve(admin_client, pending_admin):
    response = admin_client.post('/api/auth/admin/approve/', {
        'admin_id': pending_admin.id, 'approved': True,
    }, format='json')

    assert response.status_code == 403
    pending_admin.refresh_from_db()
    assert pending_admin.is_active is False


@pytest.mark.django_db
def test_pending_admin_listing(super_admin_client, pending_admin):
    response = super_admin_client.get('/api/auth/admin/approve/', {'status': 'pending'})
    assert response.status_code == 200
    assert [admin['email'] for admin in response.data['admins']] == [pending_admin.email]
    assert response.data['pagination']['total'] == 1


@pytest.mark.django_db
def test_archive_admin(super_admin_client, admin_user):
    response = super_admin_client.delete(f'/api/admin/manage/{admin_user.id}/')
    assert response.status_code == 200
    admin_user.refresh_from_db()
    assert admin_user.is_active is False
    assert admin_user.archived_at is not None


@pytest.mark.django_db
def test_admin_management_requires_super_admin(admin_client):
    response = admin_client.get('/api/admin/manage/')
    assert response.status_code == 403


@pytest.mark.django_db
def test_duplicate_department_rejected(super_admin_client):
    first = super_admin_client.post('/api/admin/departments/', {'name': 'Laboratory'}, format='json')
    assert first.status_code == 201
    second = super_admin_client.post('/api/admin/departments/', {'name': 'laboratory'}, format='json')
    assert second.status_code == 400
