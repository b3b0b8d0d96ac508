from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.test import APITestCase

from apps.attendance import status as attendance_status
from apps.attendance.models import Attendance
from apps.employees.models import Assignment, Employee, Project
from apps.social_charges import utils as ledger_utils
from apps.social_charges.models import LedgerEntry
from .exceptions import RecalculationError
from .models import PayrollSnapshot
from .money import round_sc
from .utils import (
    active_assignments,
    calculate_payroll_figures,
    count_attendance,
    generate_payroll,
    upsert_payroll_snapshot,
)


def mark_month(employee, project, year, month, statuses):
    day = date(year, month, 1)
    for code in statuses:
        Attendance.objects.create(employee=employee, project=project, date=day, status=code)
        day += timedelta(days=1)


class PayrollFiguresTests(SimpleTestCase):
    def test_attendance_ratio_and_earned_sc(self):
        statuses = ["P"] * 29 + ["A"] * 2
        figures = calculate_payroll_figures(Decimal("300000"), 2025, 1, statuses)

        self.assertEqual(figures["total_workdays"], 31)
        self.assertEqual(figures["eligible_days"], 29)
        self.assertEqual(figures["paid_days"], 29)
        self.assertAlmostEqual(figures["attendance_ratio"], 0.935483870967742, places=12)
        self.assertAlmostEqual(figures["applied_sc_percent"] * 100, 18.70967741935, places=9)
        self.assertAlmostEqual(figures["applied_sc_percent"], 0.2 * figures["attendance_ratio"], places=14)
        self.assertEqual(figures["social_charges_amount"], Decimal("56129"))
        self.assertEqual(figures["deferred_social_charges"], Decimal("0"))

    def test_deferred_sc_from_leave_days(self):
        statuses = ["P"] * 29 + ["SL", "CL"]
        figures = calculate_payroll_figures(Decimal("300000"), 2025, 1, statuses)

        self.assertAlmostEqual(figures["daily_salary"], 9677.419354838710, places=8)
        self.assertEqual(figures["deferred_social_charges"], Decimal("19355"))
        self.assertEqual(figures["sick_leave_days"], 1)
        self.assertEqual(figures["casual_leave_days"], 1)
        self.assertEqual(figures["paid_days"], 31)

    def test_earned_salary_is_not_rounded(self):
        figures = calculate_payroll_figures(Decimal("100000"), 2025, 2, ["P"] * 3)
        self.assertAlmostEqual(figures["earned_salary"], 100000 / 28 * 3, places=8)
        self.assertNotEqual(figures["earned_salary"], round(figures["earned_salary"]))

    def test_ratio_bounds(self):
        empty = calculate_payroll_figures(Decimal("50000"), 2024, 2, [])
        full = calculate_payroll_figures(Decimal("50000"), 2024, 2, ["P"] * 29)
        self.assertEqual(empty["total_workdays"], 29)
        self.assertEqual(empty["attendance_ratio"], 0)
        self.assertEqual(empty["social_charges_amount"], Decimal("0"))
        self.assertEqual(full["attendance_ratio"], 1.0)
        self.assertEqual(full["social_charges_amount"], Decimal("10000"))

    def test_tour_and_work_from_home_count_as_other_leave(self):
        counts = count_attendance(["T", "WH", "CO", "CD", "A", "XX"])
        self.assertEqual(counts[attendance_status.OTHER], 4)
        self.assertEqual(counts["eligible_days"], 2)
        self.assertEqual(counts["paid_days"], 4)

    def test_invalid_month(self):
        with self.assertRaises(ValidationError):
            calculate_payroll_figures(Decimal("1000"), 2025, 13, [])

    def test_round_half_away_from_zero(self):
        self.assertEqual(round_sc(Decimal("2.5")), Decimal("3"))
        self.assertEqual(round_sc(Decimal("-2.5")), Decimal("-3"))
        self.assertEqual(round_sc(0.49), Decimal("0"))


class PayrollGenerationTests(TestCase):
    def setUp(self):
        self.employee = Employee.objects.create(
            name="Ayesha Khan", employee_code="EMP-001", date_of_joining=date(2024, 1, 1),
        )
        self.project = Project.objects.create(name="Bridge", start_date=date(2024, 1, 1))
        self.assignment = Assignment.objects.create(
            employee=self.employee,
            project=self.project,
            role="Engineer",
            monthly_salary=Decimal("300000"),
            start_date=date(2024, 6, 1),
        )

    def test_snapshot_upsert_is_idempotent(self):
        mark_month(self.employee, self.project, 2025, 1, ["P"] * 29 + ["SL", "SL"])

        first = upsert_payroll_snapshot(self.assignment, 2025, 1)
        second = upsert_payroll_snapshot(self.assignment, 2025, 1)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(PayrollSnapshot.objects.count(), 1)
        second.refresh_from_db()
        self.assertEqual(second.social_charges_amount, Decimal("56129"))
        self.assertEqual(second.deferred_social_charges, Decimal("19355"))
        self.assertEqual(second.sick_leave_days, 2)

    def test_regeneration_picks_up_changed_attendance(self):
        mark_month(self.employee, self.project, 2025, 1, ["P"] * 10)
        generate_payroll(2025, 1)
        Attendance.objects.filter(date=date(2025, 1, 1)).update(status="A")
        generate_payroll(2025, 1)

        snapshot = PayrollSnapshot.objects.get()
        self.assertEqual(snapshot.eligible_days, 9)

    def test_only_attendance_of_the_project_counts(self):
        other = Project.objects.create(name="Tunnel", start_date=date(2024, 1, 1))
        mark_month(self.employee, self.project, 2025, 3, ["P"] * 5)
        Attendance.objects.create(employee=self.employee, project=other, date=date(2025, 3, 20), status="P")

        snapshot = upsert_payroll_snapshot(self.assignment, 2025, 3)
        self.assertEqual(snapshot.eligible_days, 5)

    def test_active_assignments_respect_dates(self):
        Assignment.objects.create(
            employee=self.employee, project=self.project, role="Old",
            monthly_salary=Decimal("1000"), start_date=date(2023, 1, 1), end_date=date(2024, 12, 31),
        )
        Assignment.objects.create(
            employee=self.employee, project=self.project, role="Future",
            monthly_salary=Decimal("1000"), start_date=date(2025, 2, 1),
        )
        ids = list(active_assignments(2025, 1).values_list("id", flat=True))
        self.assertEqual(ids, [self.assignment.pk])

    def test_no_assignments_is_not_found(self):
        with self.assertRaises(NotFound):
            generate_payroll(2020, 1)

    def test_generation_creates_ledger_and_running_balance(self):
        mark_month(self.employee, self.project, 2025, 1, ["P"] * 31)
        mark_month(self.employee, self.project, 2025, 2, ["P"] * 26 + ["EL", "EL"])

        generate_payroll(2025, 1)
        generate_payroll(2025, 2)

        jan = LedgerEntry.objects.get(month=1, year=2025)
        feb = LedgerEntry.objects.get(month=2, year=2025)
        self.assertEqual(jan.total_earned, Decimal("60000"))
        self.assertEqual(jan.balance, Decimal("60000"))
        self.assertEqual(feb.balance, jan.balance + feb.total_earned - feb.total_withheld)

    def test_regenerating_earlier_month_updates_later_balances(self):
        mark_month(self.employee, self.project, 2025, 1, ["P"] * 31)
        mark_month(self.employee, self.project, 2025, 2, ["P"] * 28)
        generate_payroll(2025, 1)
        generate_payroll(2025, 2)

        Attendance.objects.filter(date__month=1).update(status="A")
        generate_payroll(2025, 1)

        jan = LedgerEntry.objects.get(month=1, year=2025)
        feb = LedgerEntry.objects.get(month=2, year=2025)
        self.assertEqual(jan.balance, Decimal("0"))
        self.assertEqual(feb.balance, feb.total_earned)

    def test_failed_assignment_does_not_abort_batch(self):
        other_employee = Employee.objects.create(
            name="Bilal", employee_code="EMP-002", date_of_joining=date(2024, 1, 1),
        )
        Assignment.objects.create(
            employee=other_employee, project=self.project, role="Driver",
            monthly_salary=Decimal("50000"), start_date=date(2024, 1, 1),
        )

        real_update = ledger_utils.update_ledger

        def flaky_update(snapshot):
            if snapshot.employee_id == self.employee.pk:
                raise DatabaseError("disk full")
            return real_update(snapshot)

        with mock.patch("apps.payroll.utils.update_ledger", side_effect=flaky_update):
            snapshots, errors, warnings = generate_payroll(2025, 1)

        self.assertEqual(len(snapshots), 1)
        self.assertEqual(snapshots[0].employee_id, other_employee.pk)
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0]["employee_id"], self.employee.pk)
        self.assertEqual(warnings, [])
        self.assertFalse(PayrollSnapshot.objects.filter(employee=self.employee).exists())

    def test_recalculation_failure_keeps_committed_payroll(self):
        mark_month(self.employee, self.project, 2025, 1, ["P"] * 31)

        with mock.patch(
            "apps.payroll.utils.recalculate_balances",
            side_effect=RecalculationError("ledger unavailable"),
        ):
            snapshots, errors, warnings = generate_payroll(2025, 1)

        self.assertEqual(errors, [])
        self.assertEqual([s.pk for s in snapshots], [PayrollSnapshot.objects.get().pk])
        self.assertEqual(len(warnings), 1)
        self.assertEqual(warnings[0]["assignment_id"], self.assignment.pk)
        entry = LedgerEntry.objects.get(employee=self.employee, project=self.project, year=2025, month=1)
        self.assertEqual(entry.total_earned, Decimal("60000"))


class GeneratePayrollAPITests(APITestCase):
    url = "/api/payroll/generate/"

    def setUp(self):
        self.employee = Employee.objects.create(
            name="Ayesha Khan", employee_code="EMP-001", date_of_joining=date(2024, 1, 1),
        )
        self.project = Project.objects.create(name="Bridge", start_date=date(2024, 1, 1))
        Assignment.objects.create(
            employee=self.employee, project=self.project, role="Engineer",
            monthly_salary=Decimal("300000"), start_date=date(2024, 1, 1),
        )
        mark_month(self.employee, self.project, 2025, 1, ["P"] * 29 + ["A", "A"])

    def test_generate(self):
        response = self.client.post(self.url, {"month": 1, "year": 2025}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["processed"], 1)
        self.assertEqual(response.data["failed"], 0)
        self.assertEqual(Decimal(str(response.data["results"][0]["social_charges_amount"])), Decimal("56129"))

    def test_generate_requires_month_and_year(self):
        response = self.client.post(self.url, {"year": 2025}, format="json")
        self.assertEqual(response.status_code, 400)
        response = self.client.post(self.url, {"month": 13, "year": 2025}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_generate_without_assignments(self):
        response = self.client.post(self.url, {"month": 1, "year": 2025, "employee": 9999}, format="json")
        self.assertEqual(response.status_code, 404)

    def test_partial_failure_is_multi_status(self):
        with mock.patch("apps.payroll.utils.update_ledger", side_effect=DatabaseError("boom")):
            response = self.client.post(self.url, {"month": 1, "year": 2025}, format="json")
        self.assertEqual(response.status_code, 207)
        self.assertEqual(response.data["failed"], 1)

    def test_recalculation_warning_keeps_created_status(self):
        with mock.patch(
            "apps.payroll.utils.recalculate_balances",
            side_effect=RecalculationError("ledger unavailable"),
        ):
            response = self.client.post(self.url, {"month": 1, "year": 2025}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["processed"], 1)
        self.assertEqual(response.data["failed"], 0)
        self.assertEqual(len(response.data["warnings"]), 1)

    def test_snapshot_query_filters(self):
        self.client.post(self.url, {"month": 1, "year": 2025}, format="json")
        response = self.client.get("/api/payroll/snapshots/", {"employee": self.employee.pk, "month": 1, "year": 2025})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        response = self.client.get("/api/payroll/snapshots/", {"month": 2})
        self.assertEqual(len(response.data), 0)
        response = self.client.get("/api/payroll/snapshots/", {"month": "jan"})
        self.assertEqual(response.status_code, 400)

    def test_payroll_report_totals(self):
        self.client.post(self.url, {"month": 1, "year": 2025}, format="json")
        response = self.client.get("/api/payroll/reports/payroll/", {"year": 2025})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(str(response.data["totals"]["social_charges_amount"])), Decimal("56129"))
        self.assertEqual(response.data["projects"][0]["employees"], 1)
