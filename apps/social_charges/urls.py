from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import LedgerEntryViewSet, PaymentViewSet, LedgerSummaryReportAPIView

router = DefaultRouter()
router.register(r'ledger', LedgerEntryViewSet)
router.register(r'payments', PaymentViewSet)

urlpatterns = [
    path('', include(router.urls)),
    path('reports/summary/', LedgerSummaryReportAPIView.as_view(), name='ledger_summary_report'),
]
