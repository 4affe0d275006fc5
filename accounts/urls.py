from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView
from . import views

urlpatterns = [
    path('register/', views.register, name='register'),
    path('verify-email/', views.verify_email, name='verify-email'),
    path('forgot-password/', views.forgot_password, name='forgot-password'),
    path('reset-password/', views.reset_password, name='reset-password'),
    path('login/', views.user_login, name='user-login'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('profile/', views.user_profile, name='user-profile'),
    path('admin/register/', views.admin_registration, name='admin-register'),
    path('admin/approve/', views.admin_approval, name='admin-approve'),
    path('admin/approve/<int:admin_id>/', views.admin_approval_detail, name='admin-approve-detail'),
]
