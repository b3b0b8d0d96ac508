from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/employees/', include('apps.employees.urls')),
    path('api/attendance/', include('apps.attendance.urls')),
    path('api/payroll/', include('apps.payroll.urls')),
    path('api/social-charges/', include('apps.social_charges.urls')),
]
