from django.contrib import admin
from .models import BloodUnit, StorageLog, UnitStatusChange


class UnitStatusChangeInline(admin.TabularInline):
    model = UnitStatusChange
    extra = 0
    readonly_fields = ('previous_status', 'new_status', 'changed_by', 'reason', 'changed_at')


@admin.register(BloodUnit)
class BloodUnitAdmin(admin.ModelAdmin):
    list_display = ('unit_id', 'blood_type', 'status', 'collection_date', 'expiry_date', 'facility', 'refrigerator')
    list_filter = ('status', 'blood_type', 'facility', 'storage_status')
    search_fields = ('unit_id', 'donor__first_name', 'donor__last_name')
    readonly_fields = ('status', 'created_at', 'updated_at')
    inlines = [UnitStatusChangeInline]


@admin.register(StorageLog)
class StorageLogAdmin(admin.ModelAdmin):
    list_display = ('facility_id', 'refrigerator_id', 'type', 'value', 'severity', 'resolved', 'recorded_at')
    list_filter = ('type', 'severity', 'resolved', 'facility_id')
    search_fields = ('facility_id', 'refrigerator_id', 'notes')
