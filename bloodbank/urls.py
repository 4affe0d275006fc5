from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/auth/', include('accounts.urls')),
    path('api/admin/', include('accounts.staff_urls')),
    path('api/donors/', include('donors.urls')),
    path('api/inventory/', include('inventory.urls')),
    path('api/recipients/', include('recipients.urls')),
    path('api/requests/', include('recipients.request_urls')),
    path('api/', include('dashboard.urls')),
]
