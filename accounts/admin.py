from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import User, Department


@admin.register(User)
class CustomUserAdmin(UserAdmin):
    list_display = ('email', 'name', 'role', 'approval_status', 'is_active', 'is_email_verified')
    list_filter = ('role', 'approval_status', 'is_active', 'is_email_verified')
    search_fields = ('email', 'name')
    ordering = ('email',)
    fieldsets = UserAdmin.fieldsets + (
        ('Blood bank', {'fields': ('name', 'role', 'phone_number', 'position', 'department', 'permissions')}),
        ('Approval', {'fields': ('approval_status', 'approved_by', 'approval_date', 'rejection_reason')}),
        ('Archive', {'fields': ('archived_at', 'archived_by')}),
    )


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name',)
