from django.contrib import admin
from .models import Contact, Donation, DonationSchedule, Donor, DonorDeferral, DonorHealth


class DonationInline(admin.TabularInline):
    model = Donation
    extra = 0


@admin.register(Donor)
class DonorAdmin(admin.ModelAdmin):
    list_display = ('first_name', 'last_name', 'blood_type', 'status', 'last_donation_date', 'city')
    list_filter = ('blood_type', 'status', 'gender', 'city')
    search_fields = ('first_name', 'last_name', 'email', 'national_id')
    readonly_fields = ('last_donation_date', 'total_donations')
    inlines = [DonationInline]


@admin.register(DonorDeferral)
class DonorDeferralAdmin(admin.ModelAdmin):
    list_display = ('donor', 'type', 'reason_category', 'start_date', 'end_date', 'active')
    list_filter = ('type', 'reason_category', 'active')


@admin.register(DonorHealth)
class DonorHealthAdmin(admin.ModelAdmin):
    list_display = ('donor', 'hemoglobin', 'status', 'assessment_date')
    list_filter = ('status',)

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(DonationSchedule)
class DonationScheduleAdmin(admin.ModelAdmin):
    list_display = ('donor', 'scheduled_date', 'time_slot', 'status')
    list_filter = ('status', 'scheduled_date')


admin.site.register(Contact)
