from django.contrib import admin
from .models import BloodRequest, ClinicalNote, Recipient, Transfusion


class ClinicalNoteInline(admin.TabularInline):
    model = ClinicalNote
    extra = 0


@admin.register(Recipient)
class RecipientAdmin(admin.ModelAdmin):
    list_display = ('first_name', 'last_name', 'blood_type', 'hospital_name', 'status', 'created_at')
    list_filter = ('blood_type', 'status')
    search_fields = ('first_name', 'last_name', 'national_id')
    inlines = [ClinicalNoteInline]


@admin.register(BloodRequest)
class BloodRequestAdmin(admin.ModelAdmin):
    list_display = ('recipient', 'blood_type', 'units_needed', 'urgency', 'status', 'request_date')
    list_filter = ('status', 'urgency', 'blood_type')


@admin.register(Transfusion)
class TransfusionAdmin(admin.ModelAdmin):
    list_display = ('recipient', 'blood_type', 'units', 'outcome', 'date')
    list_filter = ('outcome', 'blood_type')
    filter_horizontal = ('blood_units',)
