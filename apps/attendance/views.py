from collections import defaultdict
from datetime import datetime

from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.employees.models import Employee, Project
from .models import Attendance
from .serializers import AttendanceSerializer, MarkAttendanceSerializer
from . import status as attendance_status


def _parse_date(value, field):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError({field: "Invalid date format. Use YYYY-MM-DD."})


class AttendanceViewSet(viewsets.ModelViewSet):
    queryset = Attendance.objects.select_related("employee", "project").all()
    serializer_class = AttendanceSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("employee"):
            qs = qs.filter(employee_id=params["employee"])
        if params.get("project"):
            qs = qs.filter(project_id=params["project"])
        if params.get("date"):
            qs = qs.filter(date=_parse_date(params["date"], "date"))
        if params.get("start_date") and params.get("end_date"):
            qs = qs.filter(
                date__gte=_parse_date(params["start_date"], "start_date"),
                date__lte=_parse_date(params["end_date"], "end_date"),
            )
        return qs


class MarkAttendance(APIView):
    """Create or update the attendance of an employee for one day."""

    def post(self, request):
        serializer = MarkAttendanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            employee = Employee.objects.get(id=data["employee"])
        except Employee.DoesNotExist:
            return Response({"error": "Employee not found."}, status=status.HTTP_404_NOT_FOUND)
        try:
            project = Project.objects.get(id=data["project"])
        except Project.DoesNotExist:
            return Response({"error": "Project not found."}, status=status.HTTP_404_NOT_FOUND)

        if data["date"] < employee.date_of_joining:
            return Response({"error": "Cannot mark attendance before employee's date of joining."}, status=400)

        attendance, created = Attendance.objects.update_or_create(
            employee=employee,
            date=data["date"],
            defaults={
                "project": project,
                "status": data["status"],
            },
        )

        return Response(
            AttendanceSerializer(attendance).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class AttendanceMonthlyReportAPIView(APIView):
    def get(self, request):
        try:
            year = int(request.query_params.get("year"))
            month = int(request.query_params.get("month"))
        except (TypeError, ValueError):
            return Response({"error": "Valid year and month are required."}, status=400)
        if not 1 <= month <= 12:
            return Response({"error": "Month must be between 1 and 12."}, status=400)

        qs = Attendance.objects.select_related("employee", "project").filter(date__year=year, date__month=month)
        rows = defaultdict(lambda: defaultdict(int))
        labels = {}
        for att in qs:
            key = (att.employee_id, att.project_id)
            labels[key] = att
            counts = rows[key]
            counts["recorded_days"] += 1
            if attendance_status.is_paid(att.status):
                counts["paid_days"] += 1
            if attendance_status.is_sc_eligible(att.status):
                counts["eligible_days"] += 1
            bucket = attendance_status.leave_bucket(att.status)
            if bucket:
                counts[f"{bucket}_leave_days"] += 1
            if att.status == attendance_status.ABSENT:
                counts["absent_days"] += 1

        data = []
        for key in sorted(rows):
            att = labels[key]
            counts = rows[key]
            entry = {
                "employee_id": att.employee_id,
                "employee_name": att.employee.name,
                "employee_code": att.employee.employee_code,
                "project_id": att.project_id,
                "project_name": att.project.name,
                "month": month,
                "year": year,
                "recorded_days": counts["recorded_days"],
                "paid_days": counts["paid_days"],
                "eligible_days": counts["eligible_days"],
                "absent_days": counts["absent_days"],
            }
            for bucket in attendance_status.LEAVE_BUCKETS:
                entry[f"{bucket}_leave_days"] = counts[f"{bucket}_leave_days"]
            data.append(entry)
        return Response(data)
