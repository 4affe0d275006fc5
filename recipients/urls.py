from django.urls import path
from . import views

urlpatterns = [
    path('', views.recipient_list, name='recipient-list'),
    path('blood-requests/', views.blood_requests, name='blood-requests'),
    path('transfusions/', views.transfusions, name='transfusions'),
    path('<int:recipient_id>/', views.recipient_detail, name='recipient-detail'),
    path('<int:recipient_id>/notes/', views.clinical_notes, name='clinical-notes'),
]
