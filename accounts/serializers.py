from rest_framework import serializers

from common.conf import get_setting
from .models import User, Department


def validate_password_length(value):
    min_length = get_setting('MIN_PASSWORD_LENGTH')
    if len(value) < min_length:
        raise serializers.ValidationError(f"Password must be at least {min_length} characters long")
    return value


class UserRegistrationSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password_length])
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def create(self, validated_data):
        return User.objects.create_user(role='user', **validated_data)


class AdminRegistrationSerializer(serializers.Serializer):
    REQUIRED = ('name', 'email', 'password', 'admin_code', 'phone_number', 'position', 'department')

    name = serializers.CharField(max_length=200)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password_length])
    admin_code = serializers.CharField(write_only=True)
    phone_number = serializers.CharField(max_length=20)
    position = serializers.CharField(max_length=100)
    department = serializers.CharField(max_length=100)

    def create(self, validated_data):
        validated_data.pop('admin_code')
        return User.objects.create_user(
            role='admin',
            is_active=False,
            approval_status='pending',
            **validated_data
        )


class UserLoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField()


class PasswordResetSerializer(serializers.Serializer):
    token = serializers.CharField()
    password = serializers.CharField(validators=[validate_password_length])


class UserProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ('id', 'email', 'name', 'role', 'phone_number', 'position', 'department',
                  'is_active', 'is_email_verified', 'approval_status', 'created_at')
        read_only_fields = ('id', 'email', 'role', 'is_active', 'is_email_verified',
                            'approval_status', 'created_at')


class AdminSerializer(serializers.ModelSerializer):
    approved_by = serializers.SerializerMethodField()
    archived_by = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ('id', 'email', 'name', 'role', 'phone_number', 'position', 'department',
                  'permissions', 'is_active', 'is_email_verified', 'approval_status',
                  'approved_by', 'approval_date', 'rejection_reason', 'archived_at',
                  'archived_by', 'last_modified_at', 'created_at')

    def get_approved_by(self, obj):
        return obj.approved_by.email if obj.approved_by else None

    def get_archived_by(self, obj):
        return obj.archived_by.email if obj.archived_by else None


class AdminUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ('name', 'phone_number', 'position', 'department', 'permissions')


class AdminCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password_length])
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    position = serializers.CharField(max_length=100)
    department = serializers.CharField(max_length=100)
    permissions = serializers.ListField(child=serializers.CharField(), required=False)


class DepartmentSerializer(serializers.ModelSerializer):
    created_by = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = ('id', 'name', 'description', 'is_active', 'created_by', 'created_at', 'last_modified_at')
        read_only_fields = ('is_active', 'created_at', 'last_modified_at')

    def get_created_by(self, obj):
        return obj.created_by.email if obj.created_by else None
