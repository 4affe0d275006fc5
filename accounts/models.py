import hashlib
import secrets
from datetime import timedelta

from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.db import models
from django.db.models.functions import Lower
from django.utils import timezone


def hash_token(raw_token):
    return hashlib.sha256(raw_token.encode()).hexdigest()


class UserManager(DjangoUserManager):
    """Accounts log in by email; the inherited username column mirrors it."""

    def create_user(self, email, password=None, **extra_fields):
        username = extra_fields.pop('username', None) or email
        return super().create_user(username, email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        username = extra_fields.pop('username', None) or email
        extra_fields.setdefault('role', 'super_admin')
        extra_fields.setdefault('approval_status', 'approved')
        return super().create_superuser(username, email, password, **extra_fields)

    def admins(self):
        return self.filter(role='admin')

    def super_admins(self):
        return self.filter(role='super_admin', is_active=True)


class User(AbstractUser):
    ROLE_CHOICES = (
        ('user', 'User'),
        ('admin', 'Admin'),
        ('super_admin', 'Super Admin'),
    )

    APPROVAL_STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    )

    email = models.EmailField(unique=True)
    name = models.CharField(max_length=200, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='user')
    phone_number = models.CharField(max_length=20, blank=True)
    position = models.CharField(max_length=100, blank=True)
    department = models.CharField(max_length=100, blank=True)
    permissions = models.JSONField(default=list, blank=True)

    # Email verification and password reset store only the sha256 of the token.
    is_email_verified = models.BooleanField(default=False)
    email_verification_token = models.CharField(max_length=64, blank=True)
    email_verification_expires = models.DateTimeField(null=True, blank=True)
    reset_password_token = models.CharField(max_length=64, blank=True)
    reset_password_expires = models.DateTimeField(null=True, blank=True)

    # Admin approval
    approval_status = models.CharField(max_length=20, choices=APPROVAL_STATUS_CHOICES, blank=True)
    approved_by = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='approved_admins')
    approval_date = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    archived_at = models.DateTimeField(null=True, blank=True)
    archived_by = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='archived_users')
    created_by = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='created_users')
    last_modified_by = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True,
                                         related_name='+')
    last_modified_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    objects = UserManager()

    def __str__(self):
        return f"{self.name or self.email} ({self.role})"

    @property
    def is_super_admin(self):
        return self.role == 'super_admin'

    @property
    def is_archived(self):
        return self.archived_at is not None

    def issue_email_verification_token(self, ttl_hours):
        raw_token = secrets.token_hex(32)
        self.email_verification_token = hash_token(raw_token)
        self.email_verification_expires = timezone.now() + timedelta(hours=ttl_hours)
        self.save(update_fields=['email_verification_token', 'email_verification_expires'])
        return raw_token

    def mark_email_verified(self):
        self.is_email_verified = True
        self.email_verification_token = ''
        self.email_verification_expires = None
        self.save(update_fields=['is_email_verified', 'email_verification_token', 'email_verification_expires'])

    def issue_password_reset_token(self, ttl_minutes):
        raw_token = secrets.token_hex(32)
        self.reset_password_token = hash_token(raw_token)
        self.reset_password_expires = timezone.now() + timedelta(minutes=ttl_minutes)
        self.save(update_fields=['reset_password_token', 'reset_password_expires'])
        return raw_token

    def clear_password_reset_token(self):
        self.reset_password_token = ''
        self.reset_password_expires = None
        self.save(update_fields=['reset_password_token', 'reset_password_expires'])

    @classmethod
    def find_by_verification_token(cls, raw_token):
        return cls.objects.get(
            email_verification_token=hash_token(raw_token),
            email_verification_expires__gt=timezone.now(),
        )

    @classmethod
    def find_by_reset_token(cls, raw_token):
        return cls.objects.get(
            reset_password_token=hash_token(raw_token),
            reset_password_expires__gt=timezone.now(),
        )


class Department(models.Model):
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='created_departments')
    last_modified_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                         related_name='+')
    last_modified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(Lower('name'), name='unique_department_name_ci'),
        ]

    def __str__(self):
        return self.name
