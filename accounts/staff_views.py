import logging

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.conf import delete_policy
from common.exceptions import (
    AuthorizationError, BloodBankError, ConflictError, ValidationFailed, error_response,
    validate_or_raise,
)
from common.pagination import paginate
from common.permissions import is_super_admin
from .models import Department, User
from .serializers import AdminCreateSerializer, AdminSerializer, AdminUpdateSerializer, DepartmentSerializer

logger = logging.getLogger(__name__)

SUPER_ADMIN_ONLY = 'Not authorized. Only super admins can manage admin accounts.'


def require_super_admin(user, message=SUPER_ADMIN_ONLY):
    if not is_super_admin(user):
        raise AuthorizationError(message)


@api_view(['GET', 'POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def manage_admins(request):
    try:
        require_super_admin(request.user)

        if request.method == 'GET':
            admins = User.objects.admins().select_related('approved_by', 'archived_by')

            search = request.query_params.get('search')
            if search:
                admins = admins.filter(Q(name__icontains=search) | Q(email__icontains=search))

            department = request.query_params.get('department')
            if department:
                admins = admins.filter(department__iexact=department)

            admin_status = request.query_params.get('status')
            if admin_status == 'active':
                admins = admins.filter(is_active=True, archived_at__isnull=True)
            elif admin_status == 'inactive':
                admins = admins.filter(is_active=False, archived_at__isnull=True)
            elif admin_status == 'pending':
                admins = admins.filter(approval_status='pending')
            elif admin_status == 'archived':
                admins = admins.filter(archived_at__isnull=False)
            elif admin_status:
                raise ValidationFailed('Invalid status filter')

            items, pagination = paginate(admins.order_by('-created_at'), request)
            return Response({
                'admins': AdminSerializer(items, many=True).data,
                'pagination': pagination
            })

        if request.method == 'POST':
            data = validate_or_raise(AdminCreateSerializer(data=request.data))
            if User.objects.filter(email__iexact=data['email']).exists():
                raise ConflictError('Email already registered')

            now = timezone.now()
            admin = User.objects.create_user(
                role='admin',
                is_active=True,
                approval_status='approved',
                approved_by=request.user,
                approval_date=now,
                created_by=request.user,
                **data
            )
            logger.info(f"Admin {admin.email} created by {request.user.email}")
            return Response({
                'message': 'Admin created successfully',
                'admin': AdminSerializer(admin).data
            }, status=status.HTTP_201_CREATED)

        # PATCH: bulk activate/deactivate
        admin_ids = request.data.get('admin_ids')
        action = request.data.get('action')
        if not isinstance(admin_ids, list) or not admin_ids:
            raise ValidationFailed('admin_ids must be a non-empty list')
        if action not in ('activate', 'deactivate'):
            raise ValidationFailed('action must be activate or deactivate')

        modified = User.objects.admins().filter(
            pk__in=admin_ids,
            archived_at__isnull=True,
        ).exclude(approval_status__in=['pending', 'rejected']).update(
            is_active=(action == 'activate'),
            last_modified_by=request.user,
            last_modified_at=timezone.now(),
        )
        logger.info(f"Bulk {action} of {modified} admins by {request.user.email}")
        return Response({'message': f'{modified} admins {action}d', 'modified_count': modified})

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Admin management error: {str(e)}")
        return Response({'error': 'Failed to manage admins'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def admin_detail(request, admin_id):
    try:
        require_super_admin(request.user)
        admin = User.objects.admins().get(pk=admin_id)

        if request.method == 'GET':
            return Response(AdminSerializer(admin).data)

        if request.method == 'PUT':
            serializer = AdminUpdateSerializer(admin, data=request.data, partial=True)
            validate_or_raise(serializer)
            serializer.save(last_modified_by=request.user, last_modified_at=timezone.now())
            logger.info(f"Admin {admin.email} updated by {request.user.email}")
            return Response({
                'message': 'Admin updated successfully',
                'admin': AdminSerializer(admin).data
            })

        if delete_policy('user') == 'hard':
            admin.delete()
            logger.info(f"Admin {admin_id} deleted by {request.user.email}")
            return Response({'message': 'Admin deleted successfully'})

        admin.is_active = False
        admin.archived_at = timezone.now()
        admin.archived_by = request.user
        admin.save(update_fields=['is_active', 'archived_at', 'archived_by'])
        logger.info(f"Admin {admin.email} archived by {request.user.email}")
        return Response({'message': 'Admin archived successfully', 'admin': AdminSerializer(admin).data})

    except User.DoesNotExist:
        return Response({'error': 'Admin not found'}, status=status.HTTP_404_NOT_FOUND)
    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Admin detail error: {str(e)}")
        return Response({'error': 'Failed to process admin request'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def departments(request):
    try:
        if request.method == 'GET':
            active = Department.objects.filter(is_active=True)
            return Response({
                'count': active.count(),
                'departments': DepartmentSerializer(active, many=True).data
            })

        require_super_admin(request.user, 'Not authorized. Only super admins can manage departments.')

        if request.method == 'POST':
            serializer = DepartmentSerializer(data=request.data)
            data = validate_or_raise(serializer)
            if Department.objects.filter(name__iexact=data['name']).exists():
                raise ConflictError('Department already exists')
            try:
                with transaction.atomic():
                    department = serializer.save(created_by=request.user)
            except IntegrityError:
                raise ConflictError('Department already exists')

            logger.info(f"Department created: {department.name}")
            return Response({
                'message': 'Department created successfully',
                'department': DepartmentSerializer(department).data
            }, status=status.HTTP_201_CREATED)

        department_ids = request.data.get('department_ids')
        is_active = request.data.get('is_active')
        if not isinstance(department_ids, list) or not department_ids:
            raise ValidationFailed('department_ids must be a non-empty list')
        if not isinstance(is_active, bool):
            raise ValidationFailed('is_active must be true or false')

        modified = Department.objects.filter(pk__in=department_ids).update(
            is_active=is_active,
            last_modified_by=request.user,
            last_modified_at=timezone.now(),
        )
        return Response({'message': f'{modified} departments updated', 'modified_count': modified})

    except BloodBankError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Department error: {str(e)}")
        return Response({'error': 'Failed to process department request'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
