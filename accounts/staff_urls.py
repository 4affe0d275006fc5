from django.urls import path
from . import staff_views

urlpatterns = [
    path('manage/', staff_views.manage_admins, name='admin-manage'),
    path('manage/<int:admin_id>/', staff_views.admin_detail, name='admin-detail'),
    path('departments/', staff_views.departments, name='departments'),
]
