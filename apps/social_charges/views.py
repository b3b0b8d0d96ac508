import logging
from decimal import Decimal

from django.db import DatabaseError
from rest_framework import mixins, status, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.payroll.exceptions import PersistenceError
from apps.payroll.money import round_sc
from apps.payroll.views import filter_by_period
from .models import LedgerEntry, Payment
from .serializers import (
    LedgerEntrySerializer,
    LedgerPaidStatusSerializer,
    PaymentSerializer,
    RecordPaymentSerializer,
)
from .utils import record_payment, reverse_payment, set_paid_status

logger = logging.getLogger(__name__)


class LedgerEntryViewSet(mixins.UpdateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = LedgerEntry.objects.select_related("employee", "project").all()
    serializer_class = LedgerEntrySerializer
    http_method_names = ["get", "patch", "head", "options"]

    def get_queryset(self):
        return filter_by_period(super().get_queryset(), self.request.query_params)

    def partial_update(self, request, *args, **kwargs):
        entry = self.get_object()
        serializer = LedgerPaidStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            entry = set_paid_status(entry, serializer.validated_data["is_paid"])
        except DatabaseError as exc:
            logger.exception("Failed to update ledger entry %s", entry.pk)
            raise PersistenceError("Failed to update ledger") from exc
        return Response(LedgerEntrySerializer(entry).data)


class PaymentViewSet(mixins.CreateModelMixin,
                     mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.DestroyModelMixin,
                     viewsets.GenericViewSet):
    queryset = Payment.objects.select_related("employee", "project").all()
    serializer_class = PaymentSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        employee = self.request.query_params.get("employee")
        project = self.request.query_params.get("project")
        if employee:
            qs = qs.filter(employee_id=employee)
        if project:
            qs = qs.filter(project_id=project)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = RecordPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            payment, entries = record_payment(
                employee=data["employee"],
                amount=data["amount"],
                payment_date=data["payment_date"],
                project=data.get("project"),
                notes=data.get("notes", ""),
            )
        except DatabaseError as exc:
            logger.exception("Failed to record payment for employee %s", data["employee"].pk)
            raise PersistenceError("Failed to create payment") from exc

        return Response({
            "payment": PaymentSerializer(payment).data,
            "ledger": LedgerEntrySerializer(entries, many=True).data,
        }, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        payment = self.get_object()
        try:
            entry = reverse_payment(payment)
        except DatabaseError as exc:
            logger.exception("Failed to delete payment %s", payment.pk)
            raise PersistenceError("Failed to delete payment") from exc
        return Response({
            "success": True,
            "ledger": LedgerEntrySerializer(entry).data if entry else None,
        }, status=status.HTTP_200_OK)


class LedgerSummaryReportAPIView(APIView):
    def get(self, request):
        qs = filter_by_period(LedgerEntry.objects.all(), request.query_params)
        total_earned = Decimal("0")
        total_withheld = Decimal("0")
        total_paid = Decimal("0")
        total_balance = Decimal("0")
        entries = 0
        paid_entries = 0
        for entry in qs:
            entries += 1
            total_earned += entry.total_earned
            total_withheld += entry.total_withheld
            total_paid += entry.paid_amount
            total_balance += entry.balance
            if entry.is_paid:
                paid_entries += 1
        return Response({
            "entries": entries,
            "paid_entries": paid_entries,
            "total_earned": round_sc(total_earned),
            "total_withheld": round_sc(total_withheld),
            "total_paid_amount": round_sc(total_paid),
            "total_balance": round_sc(total_balance),
        })
