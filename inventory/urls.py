from django.urls import path
from . import storage_views, views

urlpatterns = [
    path('', views.inventory_list, name='inventory-list'),
    path('availability/', views.availability, name='inventory-availability'),
    path('blood-units/', views.blood_units, name='blood-units'),
    path('reservations/release/', views.release_reservations, name='release-reservations'),
    path('storage/', storage_views.storage, name='storage'),
    path('storage/temperature/', storage_views.temperature, name='storage-temperature'),
    path('storage/maintenance/', storage_views.maintenance, name='storage-maintenance'),
    path('<int:unit_pk>/', views.inventory_detail, name='inventory-detail'),
    path('<int:unit_pk>/status/', views.unit_status, name='unit-status'),
]
