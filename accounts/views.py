import hmac
import logging

from django.contrib.auth import authenticate
from django.db import transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.tokens import RefreshToken

from common.conf import get_setting
from common.exceptions import (
    AuthorizationError, BloodBankError, ConflictError, DependencyError,
    ValidationFailed, error_response, validate_or_raise,
)
from common.pagination import paginate
from common.permissions import is_super_admin
from notifications.dispatch import notify
from notifications.email import send_notification
from .models import User
from .serializers import (
    AdminRegistrationSerializer, AdminSerializer, PasswordResetSerializer,
    UserLoginSerializer, UserProfileSerializer, UserRegistrationSerializer,
)

logger = logging.getLogger(__name__)

NEUTRAL_RESET_MESSAGE = 'If an account exists with that email, a password reset link has been sent.'


def ensure_email_available(email):
    if User.objects.filter(email__iexact=email).exists():
        raise ConflictError('Email already registered')


def send_verification_email(user):
    ttl_hours = get_setting('EMAIL_VERIFICATION_TTL_HOURS')
    token = user.issue_email_verification_token(ttl_hours)
    return send_notification('email_verification', user.email, {
        'name': user.name,
        'token': token,
        'ttl_hours': ttl_hours,
    })


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    try:
        serializer = UserRegistrationSerializer(data=request.data)
        data = validate_or_raise(serializer)
        ensure_email_available(data['email'])

        user = serializer.save()

        # The verification email is a precondition for the account existing.
        if not send_verification_email(user):
            user.delete()
            logger.error(f"Registration rolled back for {data['email']}: verification email failed")
            raise DependencyError('Failed to send verification email. Please try again later.')

        logger.info(f"New user registered: {user.email}")
        return Response({
            'message': 'Registration successful. Please check your email to verify your account.',
            'user': UserProfileSerializer(user).data
        }, status=status.HTTP_201_CREATED)

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Registration error: {str(e)}")
        return Response({'error': 'Registration failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST', 'PUT'])
@permission_classes([AllowAny])
def verify_email(request):
    try:
        if request.method == 'POST':
            token = request.data.get('token')
            if not token:
                raise ValidationFailed('Verification token is required')
            try:
                user = User.find_by_verification_token(token)
            except User.DoesNotExist:
                raise ValidationFailed('Invalid or expired verification token')

            user.mark_email_verified()
            logger.info(f"Email verified: {user.email}")
            return Response({'message': 'Email verified successfully'})

        email = request.data.get('email') if request.method == 'PUT' else request.query_params.get('email')
        if not email:
            raise ValidationFailed('Email is required')
        user = User.objects.get(email__iexact=email)

        if request.method == 'GET':
            return Response({'email': user.email, 'is_verified': user.is_email_verified})

        if user.is_email_verified:
            raise ValidationFailed('Email is already verified')
        if not send_verification_email(user):
            raise DependencyError('Failed to send verification email')
        return Response({'message': 'Verification email sent'})

    except User.DoesNotExist:
        return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Email verification error: {str(e)}")
        return Response({'error': 'Email verification failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([AllowAny])
def forgot_password(request):
    try:
        email = request.data.get('email')
        if not email:
            raise ValidationFailed('Email is required')

        user = User.objects.filter(email__iexact=email, archived_at__isnull=True).first()
        if user is None:
            return Response({'message': NEUTRAL_RESET_MESSAGE})

        ttl_minutes = get_setting('PASSWORD_RESET_TTL_MINUTES')
        token = user.issue_password_reset_token(ttl_minutes)
        sent = send_notification('password_reset', user.email, {
            'name': user.name,
            'token': token,
            'ttl_minutes': ttl_minutes,
        })
        if not sent:
            user.clear_password_reset_token()
            raise DependencyError('Failed to send password reset email')

        return Response({'message': NEUTRAL_RESET_MESSAGE})

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Forgot password error: {str(e)}")
        return Response({'error': 'Failed to process request'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def reset_password(request):
    try:
        if request.method == 'GET':
            token = request.query_params.get('token')
            if not token:
                raise ValidationFailed('Reset token is required')
            is_valid = True
            try:
                User.find_by_reset_token(token)
            except User.DoesNotExist:
                is_valid = False
            return Response({'is_valid': is_valid})

        data = validate_or_raise(PasswordResetSerializer(data=request.data))
        try:
            user = User.find_by_reset_token(data['token'])
        except User.DoesNotExist:
            raise ValidationFailed('Invalid or expired reset token')

        user.set_password(data['password'])
        user.reset_password_token = ''
        user.reset_password_expires = None
        user.save(update_fields=['password', 'reset_password_token', 'reset_password_expires'])

        logger.info(f"Password reset for {user.email}")
        return Response({'message': 'Password has been reset successfully'})

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Reset password error: {str(e)}")
        return Response({'error': 'Failed to reset password'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([AllowAny])
def user_login(request):
    try:
        serializer = UserLoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        email = serializer.validated_data['email']
        password = serializer.validated_data['password']
        user = authenticate(request, email=email, password=password)

        if user is None:
            # ModelBackend refuses inactive accounts; tell pending admins why.
            inactive = User.objects.filter(email__iexact=email, is_active=False).first()
            if inactive and inactive.check_password(password):
                message = 'Account pending approval' if inactive.approval_status == 'pending' else 'Account is inactive'
                return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)
            return Response({'error': 'Invalid credentials'}, status=status.HTTP_401_UNAUTHORIZED)

        refresh = RefreshToken.for_user(user)
        logger.info(f"User logged in: {user.email}")

        return Response({
            'access': str(refresh.access_token),
            'refresh': str(refresh),
            'role': user.role,
            'is_email_verified': user.is_email_verified
        }, status=status.HTTP_200_OK)

    except Exception as e:
        logger.error(f"Login error: {str(e)}")
        return Response({'error': 'Login failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def user_profile(request):
    try:
        if request.method == 'GET':
            return Response(UserProfileSerializer(request.user).data)

        serializer = UserProfileSerializer(request.user, data=request.data, partial=True)
        validate_or_raise(serializer)
        serializer.save()
        return Response(serializer.data)

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Profile error: {str(e)}")
        return Response({'error': 'Profile fetch failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([AllowAny])
def admin_registration(request):
    try:
        missing = [field for field in AdminRegistrationSerializer.REQUIRED if not request.data.get(field)]
        if missing:
            raise ValidationFailed('All fields are required', missing_fields=missing)

        expected_code = get_setting('ADMIN_REGISTRATION_CODE')
        if not expected_code or not hmac.compare_digest(str(request.data['admin_code']), expected_code):
            raise AuthorizationError('Invalid admin registration code')

        serializer = AdminRegistrationSerializer(data=request.data)
        data = validate_or_raise(serializer)
        ensure_email_available(data['email'])

        admin = serializer.save()
        logger.info(f"Admin registration pending approval: {admin.email}")

        if not send_verification_email(admin):
            admin.delete()
            logger.error(f"Admin registration rolled back for {data['email']}: verification email failed")
            raise DependencyError('Failed to send verification email. Please try again later.')

        super_admin_emails = list(User.objects.super_admins().values_list('email', flat=True))
        if super_admin_emails:
            notify('new_admin_registration', super_admin_emails, {
                'name': admin.name,
                'email': admin.email,
                'department': admin.department,
                'position': admin.position,
            })

        return Response({
            'message': 'Admin registration submitted. Your account will be activated once a super admin approves it.',
            'user': AdminSerializer(admin).data
        }, status=status.HTTP_201_CREATED)

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Admin registration error: {str(e)}")
        return Response({'error': 'Admin registration failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def admin_approval(request):
    try:
        if not is_super_admin(request.user):
            raise AuthorizationError('Not authorized. Only super admins can approve admin accounts.')

        if request.method == 'GET':
            approval_status = request.query_params.get('status', 'pending')
            if approval_status not in dict(User.APPROVAL_STATUS_CHOICES):
                raise ValidationFailed('Invalid status. Use pending, approved or rejected')

            admins = User.objects.admins().filter(approval_status=approval_status).order_by('-created_at')
            items, pagination = paginate(admins, request)
            return Response({
                'admins': AdminSerializer(items, many=True).data,
                'pagination': pagination
            })

        admin_id = request.data.get('admin_id')
        if not admin_id:
            raise ValidationFailed('Admin ID is required')
        approved = request.data.get('approved')
        if not isinstance(approved, bool):
            raise ValidationFailed('approved must be true or false')
        reason = (request.data.get('reason') or '').strip()
        if not approved and not reason:
            raise ValidationFailed('A reason is required when rejecting an admin')

        with transaction.atomic():
            admin = User.objects.select_for_update().get(pk=admin_id)
            if admin.role != 'admin':
                raise ValidationFailed('User is not an admin')
            if admin.approval_status != 'pending':
                raise ValidationFailed(f"Admin account has already been {admin.approval_status or 'decided'}")

            admin.is_active = approved
            admin.approval_status = 'approved' if approved else 'rejected'
            admin.rejection_reason = '' if approved else reason
            admin.approved_by = request.user
            admin.approval_date = timezone.now()
            admin.save(update_fields=['is_active', 'approval_status', 'rejection_reason',
                                      'approved_by', 'approval_date'])

        decision = 'approved' if approved else 'rejected'
        logger.info(f"Admin {admin.email} {decision} by {request.user.email}")

        notify(f'admin_{decision}', admin.email, {
            'name': admin.name,
            'approved_by': request.user.name or request.user.email,
            'reason': reason,
        })

        return Response({
            'message': f'Admin account {decision} successfully',
            'admin': AdminSerializer(admin).data
        })

    except User.DoesNotExist:
        return Response({'error': 'Admin not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Admin approval error: {str(e)}")
        return Response({'error': 'Failed to process admin approval'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def admin_approval_detail(request, admin_id):
    try:
        if not is_super_admin(request.user) and request.user.id != admin_id:
            raise AuthorizationError('Not authorized to view this approval record')

        admin = User.objects.admins().get(pk=admin_id)
        return Response(AdminSerializer(admin).data)

    except User.DoesNotExist:
        return Response({'error': 'Admin not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Admin approval detail error: {str(e)}")
        return Response({'error': 'Failed to fetch approval record'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
