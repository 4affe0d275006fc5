from django.contrib import admin

from .models import LogEntry


@admin.register(LogEntry)
class LogEntryAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'level', 'module', 'principal_email', 'request_path')
    list_filter = ('level', 'module', 'principal_role')
    search_fields = ('message', 'request_path', 'principal_email')
    date_hierarchy = 'timestamp'
    readonly_fields = [f.name for f in LogEntry._meta.fields]

    # Audit rows are written by the application only.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
