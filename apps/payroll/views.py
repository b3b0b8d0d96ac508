import logging
from decimal import Decimal

from django.db import DatabaseError
from rest_framework import mixins, status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import PersistenceError
from .models import PayrollSnapshot
from .serializers import GeneratePayrollSerializer, PayrollSnapshotSerializer
from .utils import generate_payroll

logger = logging.getLogger(__name__)

PERIOD_FILTERS = ("employee", "project", "month", "year")


def filter_by_period(qs, params):
    """Apply the optional employee / project / month / year query filters."""
    lookups = {}
    for name in PERIOD_FILTERS:
        raw = params.get(name)
        if raw in (None, ""):
            continue
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationError({name: "Must be an integer."})
        lookups[f"{name}_id" if name in ("employee", "project") else name] = value
    return qs.filter(**lookups)


class PayrollSnapshotViewSet(mixins.ListModelMixin,
                             mixins.RetrieveModelMixin,
                             mixins.DestroyModelMixin,
                             viewsets.GenericViewSet):
    queryset = PayrollSnapshot.objects.select_related("employee", "project").all()
    serializer_class = PayrollSnapshotSerializer

    def get_queryset(self):
        return filter_by_period(super().get_queryset(), self.request.query_params)


class GeneratePayrollAPIView(APIView):
    def post(self, request):
        serializer = GeneratePayrollSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        year = data["year"]
        month = data["month"]

        try:
            snapshots, errors, warnings = generate_payroll(
                year, month,
                employee_id=data.get("employee"),
                project_id=data.get("project"),
            )
        except DatabaseError as exc:
            logger.exception("Payroll generation for %02d/%d failed", month, year)
            raise PersistenceError("Failed to generate payroll") from exc

        response_data = {
            "month": month,
            "year": year,
            "processed": len(snapshots),
            "failed": len(errors),
            "results": PayrollSnapshotSerializer(snapshots, many=True).data,
            "errors": errors,
            "warnings": warnings,
        }
        status_code = status.HTTP_207_MULTI_STATUS if errors else status.HTTP_201_CREATED
        return Response(response_data, status=status_code)


class PayrollReportAPIView(APIView):
    def get(self, request):
        qs = filter_by_period(
            PayrollSnapshot.objects.select_related("employee", "project").all(),
            request.query_params,
        )
        total_salary = Decimal("0")
        total_sc = Decimal("0")
        total_deferred = Decimal("0")
        projects = {}
        for p in qs:
            earned_salary = Decimal(str(p.earned_salary))
            total_salary += earned_salary
            total_sc += p.social_charges_amount
            total_deferred += p.deferred_social_charges
            bucket = projects.setdefault(p.project_id, {
                "project_id": p.project_id,
                "project_name": p.project.name,
                "employees": set(),
                "earned_salary": Decimal("0"),
                "social_charges_amount": Decimal("0"),
                "deferred_social_charges": Decimal("0"),
            })
            bucket["employees"].add(p.employee_id)
            bucket["earned_salary"] += earned_salary
            bucket["social_charges_amount"] += p.social_charges_amount
            bucket["deferred_social_charges"] += p.deferred_social_charges

        project_totals = []
        for bucket in projects.values():
            bucket["employees"] = len(bucket["employees"])
            project_totals.append(bucket)

        return Response({
            "records": PayrollSnapshotSerializer(qs, many=True).data,
            "totals": {
                "earned_salary": total_salary,
                "social_charges_amount": total_sc,
                "deferred_social_charges": total_deferred,
                "total_cost": total_salary + total_sc,
            },
            "projects": project_totals,
        })
