from datetime import date

from django.test import SimpleTestCase
from rest_framework.test import APITestCase

from apps.employees.models import Employee, Project
from . import status as attendance_status
from .models import Attendance


class StatusClassifierTests(SimpleTestCase):
    def test_paid_and_eligible_codes(self):
        for code in ("P", "W", "H", "T", "WH"):
            self.assertTrue(attendance_status.is_sc_eligible(code), code)
            self.assertTrue(attendance_status.is_paid(code), code)
        for code in ("CL", "SL", "EL", "CO", "CD"):
            self.assertFalse(attendance_status.is_sc_eligible(code), code)
            self.assertTrue(attendance_status.is_paid(code), code)

    def test_absent(self):
        self.assertEqual(
            attendance_status.classify("A"),
            {"paid": False, "sc_eligible": False, "leave_bucket": None},
        )

    def test_leave_buckets(self):
        self.assertEqual(attendance_status.leave_bucket("SL"), attendance_status.SICK)
        self.assertEqual(attendance_status.leave_bucket("CL"), attendance_status.CASUAL)
        self.assertEqual(attendance_status.leave_bucket("EL"), attendance_status.EARNED)
        for code in ("CO", "CD", "T", "WH"):
            self.assertEqual(attendance_status.leave_bucket(code), attendance_status.OTHER)
        for code in ("P", "W", "H", "A"):
            self.assertIsNone(attendance_status.leave_bucket(code))

    def test_unknown_code_belongs_nowhere(self):
        self.assertEqual(
            attendance_status.classify("ZZ"),
            {"paid": False, "sc_eligible": False, "leave_bucket": None},
        )
        self.assertEqual(attendance_status.classify("p")["paid"], False)

    def test_every_choice_is_classified(self):
        codes = {code for code, _ in attendance_status.STATUS_CHOICES}
        self.assertEqual(len(codes), 11)
        self.assertEqual(codes - attendance_status.PAID_STATUSES, {"A"})


class AttendanceAPITests(APITestCase):
    mark_url = "/api/attendance/mark-attendance/"

    def setUp(self):
        self.employee = Employee.objects.create(
            name="Ayesha Khan", employee_code="EMP-001", date_of_joining=date(2024, 1, 1),
        )
        self.project = Project.objects.create(name="Bridge", start_date=date(2024, 1, 1))
        self.other_project = Project.objects.create(name="Tunnel", start_date=date(2024, 1, 1))

    def _mark(self, day, code, project=None):
        return self.client.post(self.mark_url, {
            "employee": self.employee.pk,
            "project": (project or self.project).pk,
            "date": day,
            "status": code,
        }, format="json")

    def test_mark_then_update(self):
        response = self._mark("2025-01-02", "P")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["employee_code"], "EMP-001")

        response = self._mark("2025-01-02", "SL")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Attendance.objects.count(), 1)
        self.assertEqual(Attendance.objects.get().status, "SL")

    def test_mark_unknown_employee_or_project(self):
        response = self.client.post(self.mark_url, {
            "employee": 9999, "project": self.project.pk, "date": "2025-01-02", "status": "P",
        }, format="json")
        self.assertEqual(response.status_code, 404)
        response = self.client.post(self.mark_url, {
            "employee": self.employee.pk, "project": 9999, "date": "2025-01-02", "status": "P",
        }, format="json")
        self.assertEqual(response.status_code, 404)

    def test_mark_rejects_invalid_input(self):
        self.assertEqual(self._mark("2023-12-31", "P").status_code, 400)
        self.assertEqual(self._mark("2025-01-02", "XX").status_code, 400)
        self.assertEqual(self._mark("02/01/2025", "P").status_code, 400)

    def test_list_filters(self):
        self._mark("2025-01-02", "P")
        self._mark("2025-01-03", "A", project=self.other_project)
        self._mark("2025-02-01", "P")

        response = self.client.get("/api/attendance/attendance/", {"project": self.project.pk})
        self.assertEqual(len(response.data), 2)

        response = self.client.get("/api/attendance/attendance/", {
            "start_date": "2025-01-01", "end_date": "2025-01-31",
        })
        self.assertEqual(len(response.data), 2)

        response = self.client.get("/api/attendance/attendance/", {"date": "2025-01-03"})
        self.assertEqual(response.data[0]["status"], "A")

        response = self.client.get("/api/attendance/attendance/", {"date": "yesterday"})
        self.assertEqual(response.status_code, 400)

    def test_monthly_report(self):
        for day, code in (("2025-01-01", "P"), ("2025-01-02", "WH"), ("2025-01-03", "SL"),
                          ("2025-01-04", "CD"), ("2025-01-05", "A")):
            self._mark(day, code)
        self._mark("2025-01-06", "P", project=self.other_project)

        response = self.client.get("/api/attendance/reports/attendance/", {"year": 2025, "month": 1})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 2)

        row = next(r for r in response.data if r["project_id"] == self.project.pk)
        self.assertEqual(row["recorded_days"], 5)
        self.assertEqual(row["paid_days"], 4)
        self.assertEqual(row["eligible_days"], 2)
        self.assertEqual(row["absent_days"], 1)
        self.assertEqual(row["sick_leave_days"], 1)
        self.assertEqual(row["other_leave_days"], 2)
        self.assertEqual(row["casual_leave_days"], 0)

    def test_monthly_report_requires_period(self):
        url = "/api/attendance/reports/attendance/"
        self.assertEqual(self.client.get(url, {"year": 2025}).status_code, 400)
        self.assertEqual(self.client.get(url, {"year": 2025, "month": 0}).status_code, 400)
