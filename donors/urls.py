from django.urls import path
from . import contact_views, schedule_views, status_views, views

urlpatterns = [
    path('', views.donor_list, name='donor-list'),
    path('management/', views.donor_management, name='donor-management'),
    path('history/', views.donation_analytics, name='donation-analytics'),
    path('status/', status_views.donor_health_status, name='donor-status'),
    path('deferrals/<int:deferral_id>/reactivate/', status_views.reactivate, name='deferral-reactivate'),
    path('schedule/', schedule_views.donation_schedule, name='donation-schedule'),
    path('contact/', contact_views.donor_contact, name='donor-contact'),
    path('contact/reminders/', contact_views.schedule_reminder, name='donor-reminders'),
    path('<int:donor_id>/', views.donor_detail, name='donor-detail'),
    path('<int:donor_id>/donations/', views.donor_donations, name='donor-donations'),
    path('<int:donor_id>/history/', views.donor_unit_history, name='donor-unit-history'),
]
