from django.urls import path, include
from .views import PayrollSnapshotViewSet, GeneratePayrollAPIView, PayrollReportAPIView

from rest_framework.routers import DefaultRouter

router = DefaultRouter()
router.register(r'snapshots', PayrollSnapshotViewSet)


urlpatterns = [
    path('', include(router.urls)),
    path('generate/', GeneratePayrollAPIView.as_view(), name='generate-payroll'),
    path('reports/payroll/', PayrollReportAPIView.as_view(), name='payroll_report'),
]
