from datetime import date
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APITestCase

from apps.attendance.status import CASUAL, EARNED, OTHER, SICK
from apps.employees.models import Employee, Project
from apps.payroll.exceptions import RecalculationError
from apps.payroll.models import PayrollSnapshot
from . import utils
from .models import LedgerEntry, Payment
from .utils import (
    plan_distribution,
    recalculate_balances,
    record_payment,
    reverse_payment,
    set_paid_status,
    split_earned,
    split_withheld,
    update_ledger,
)


def ledger_entry(employee, project, year, month, earned, withheld=0, balance=0, **extra):
    return LedgerEntry.objects.create(
        employee=employee,
        project=project,
        year=year,
        month=month,
        total_earned=Decimal(earned),
        total_withheld=Decimal(withheld),
        balance=Decimal(balance),
        **extra
    )


class ComponentSplitTests(SimpleTestCase):
    def test_earned_components_sum_to_total(self):
        days = {SICK: 1, CASUAL: 1, EARNED: 1, OTHER: 1}
        components = split_earned(Decimal("6000"), days)
        self.assertEqual(components[SICK], Decimal("501"))
        self.assertEqual(components[CASUAL], Decimal("501"))
        self.assertEqual(components[EARNED], Decimal("2499"))
        self.assertEqual(components[OTHER], Decimal("2499"))
        self.assertEqual(sum(components.values()), Decimal("6000"))

    def test_earned_components_within_rounding_tolerance(self):
        days = {SICK: 2, CASUAL: 1, EARNED: 3, OTHER: 1}
        components = split_earned(Decimal("56129"), days)
        self.assertLessEqual(abs(sum(components.values()) - Decimal("56129")), Decimal("2"))

    def test_other_component_filled_without_leave_days(self):
        components = split_earned(Decimal("56129"), {SICK: 0, CASUAL: 0, EARNED: 0, OTHER: 0})
        self.assertEqual(components[SICK], Decimal("0"))
        self.assertEqual(components[CASUAL], Decimal("0"))
        self.assertEqual(components[EARNED], Decimal("0"))
        self.assertEqual(components[OTHER], Decimal("23378"))

    def test_withheld_single_bucket_is_exact(self):
        components = split_withheld(Decimal("19355"), {SICK: 2, CASUAL: 0, EARNED: 0, OTHER: 0})
        self.assertEqual(components[SICK], Decimal("19355"))
        self.assertEqual(sum(components.values()), Decimal("19355"))

    def test_withheld_split_by_leave_share(self):
        components = split_withheld(Decimal("1000"), {SICK: 1, CASUAL: 1, EARNED: 1, OTHER: 0})
        self.assertEqual(components[SICK], Decimal("333"))
        self.assertEqual(components[OTHER], Decimal("0"))
        self.assertLessEqual(abs(sum(components.values()) - Decimal("1000")), Decimal("1.5"))

    def test_withheld_without_leave_is_zero(self):
        components = split_withheld(Decimal("500"), {SICK: 0, CASUAL: 0, EARNED: 0, OTHER: 0})
        self.assertEqual(set(components.values()), {Decimal("0")})


class PlanDistributionTests(SimpleTestCase):
    def _row(self, project_id, balance):
        return LedgerEntry(project_id=project_id, balance=Decimal(balance))

    def test_highest_balance_first(self):
        a, b = self._row(1, 6000), self._row(2, 3000)
        plan = plan_distribution([b, a], Decimal("8000"))
        self.assertEqual([(row.project_id, amount) for row, amount in plan], [(1, Decimal("6000")), (2, Decimal("2000"))])

    def test_never_distributes_more_than_payment(self):
        rows = [self._row(1, 700), self._row(2, -300), self._row(3, 250), self._row(4, 0)]
        for amount in ("1", "250", "949", "950", "5000"):
            plan = plan_distribution(rows, Decimal(amount))
            total = sum(applied for _, applied in plan)
            self.assertLessEqual(total, Decimal(amount))
            for row, applied in plan:
                self.assertLessEqual(applied, max(row.balance, Decimal("0")))

    def test_negative_balances_take_nothing(self):
        plan = plan_distribution([self._row(1, -500)], Decimal("100"))
        self.assertEqual(plan, [])


class LedgerTestCase(TestCase):
    def setUp(self):
        self.employee = Employee.objects.create(
            name="Ayesha Khan", employee_code="EMP-001", date_of_joining=date(2024, 1, 1),
        )
        self.project = Project.objects.create(name="Bridge", start_date=date(2024, 1, 1))
        self.other_project = Project.objects.create(name="Tunnel", start_date=date(2024, 1, 1))


class UpdateLedgerTests(LedgerTestCase):
    def _snapshot(self, month, sc, deferred, **days):
        return PayrollSnapshot.objects.create(
            employee=self.employee,
            project=self.project,
            year=2025,
            month=month,
            total_workdays=31,
            social_charges_amount=Decimal(sc),
            deferred_social_charges=Decimal(deferred),
            **days
        )

    def test_creates_entry_with_components(self):
        entry = update_ledger(self._snapshot(1, "56129", "19355", sick_leave_days=2))
        self.assertEqual(entry.total_earned, Decimal("56129"))
        self.assertEqual(entry.earned_sick_leave, Decimal("4687"))
        self.assertEqual(entry.earned_casual_leave, Decimal("0"))
        self.assertEqual(entry.earned_earned_leave, Decimal("0"))
        self.assertEqual(entry.earned_other_payable, Decimal("23378"))
        self.assertEqual(entry.withheld_sick_leave, Decimal("19355"))
        self.assertEqual(entry.total_withheld, Decimal("19355"))
        self.assertEqual(entry.balance, Decimal("36774"))
        self.assertFalse(entry.is_paid)

    def test_balance_builds_on_previous_unpaid_entry(self):
        ledger_entry(self.employee, self.project, 2024, 12, 5000, balance=5000)
        ledger_entry(self.employee, self.project, 2025, 1, 9000, balance=0, is_paid=True)
        entry = update_ledger(self._snapshot(2, "6000", "1000", sick_leave_days=1))
        self.assertEqual(entry.balance, Decimal("10000"))

    def test_update_preserves_payment_fields(self):
        ledger_entry(
            self.employee, self.project, 2025, 1, 100,
            paid_amount=Decimal("700"), is_paid=True,
        )
        entry = update_ledger(self._snapshot(1, "6000", "0"))
        entry.refresh_from_db()
        self.assertEqual(entry.paid_amount, Decimal("700"))
        self.assertTrue(entry.is_paid)
        self.assertEqual(entry.total_earned, Decimal("6000"))
        self.assertEqual(entry.balance, Decimal("0"))
        self.assertEqual(LedgerEntry.objects.count(), 1)


class RecalculateBalancesTests(LedgerTestCase):
    def test_running_balance(self):
        jan = ledger_entry(self.employee, self.project, 2025, 1, 5000)
        feb = ledger_entry(self.employee, self.project, 2025, 2, 6000, withheld=1000)

        self.assertEqual(recalculate_balances(self.employee.pk, self.project.pk), 2)

        jan.refresh_from_db()
        feb.refresh_from_db()
        self.assertEqual(jan.balance, Decimal("5000"))
        self.assertEqual(feb.balance, Decimal("10000"))

    def test_second_run_writes_nothing(self):
        ledger_entry(self.employee, self.project, 2025, 1, 5000)
        ledger_entry(self.employee, self.project, 2025, 2, 6000, withheld=1000)
        recalculate_balances(self.employee.pk, self.project.pk)
        self.assertEqual(recalculate_balances(self.employee.pk, self.project.pk), 0)

    def test_marking_paid_resets_chain(self):
        jan = ledger_entry(self.employee, self.project, 2025, 1, 5000, balance=5000)
        feb = ledger_entry(self.employee, self.project, 2025, 2, 6000, withheld=1000, balance=10000)

        set_paid_status(jan, True)

        jan.refresh_from_db()
        feb.refresh_from_db()
        self.assertTrue(jan.is_paid)
        self.assertEqual(jan.balance, Decimal("0"))
        self.assertEqual(feb.balance, Decimal("5000"))

        set_paid_status(jan, False)
        feb.refresh_from_db()
        self.assertEqual(feb.balance, Decimal("10000"))

    def test_paid_entry_in_the_middle_is_skipped(self):
        ledger_entry(self.employee, self.project, 2024, 12, 5000)
        ledger_entry(self.employee, self.project, 2025, 1, 9000, balance=123, is_paid=True)
        mar = ledger_entry(self.employee, self.project, 2025, 3, 1000)

        recalculate_balances(self.employee.pk, self.project.pk)

        for entry in LedgerEntry.objects.filter(is_paid=True):
            self.assertEqual(entry.balance, Decimal("0"))
        mar.refresh_from_db()
        self.assertEqual(mar.balance, Decimal("6000"))

    def test_chronological_order_across_years(self):
        ledger_entry(self.employee, self.project, 2025, 1, 100)
        ledger_entry(self.employee, self.project, 2024, 11, 1000)
        ledger_entry(self.employee, self.project, 2024, 12, 10)
        recalculate_balances(self.employee.pk, self.project.pk)
        balances = list(
            LedgerEntry.objects.order_by("year", "month").values_list("balance", flat=True)
        )
        self.assertEqual(balances, [Decimal("1000"), Decimal("1010"), Decimal("1110")])

    def test_pairs_are_independent(self):
        ledger_entry(self.employee, self.project, 2025, 1, 5000)
        other = ledger_entry(self.employee, self.other_project, 2025, 2, 700)
        recalculate_balances(self.employee.pk, self.other_project.pk)
        other.refresh_from_db()
        self.assertEqual(other.balance, Decimal("700"))

    def test_row_write_failure_is_skipped(self):
        jan = ledger_entry(self.employee, self.project, 2025, 1, 5000)
        feb = ledger_entry(self.employee, self.project, 2025, 2, 6000, withheld=1000)
        real_write = utils._write_balance

        def failing_write(entry, balance):
            if entry.pk == jan.pk:
                raise DatabaseError("locked")
            return real_write(entry, balance)

        with mock.patch.object(utils, "_write_balance", side_effect=failing_write):
            updated = recalculate_balances(self.employee.pk, self.project.pk)

        self.assertEqual(updated, 1)
        jan.refresh_from_db()
        feb.refresh_from_db()
        self.assertEqual(jan.balance, Decimal("0"))
        self.assertEqual(feb.balance, Decimal("10000"))

    def test_load_failure_raises(self):
        with mock.patch.object(utils, "_load_entries", side_effect=DatabaseError("gone")):
            with self.assertRaises(RecalculationError):
                recalculate_balances(self.employee.pk, self.project.pk)

    def test_toggle_survives_recalculation_failure(self):
        jan = ledger_entry(self.employee, self.project, 2025, 1, 5000, balance=5000)
        with mock.patch.object(utils, "_load_entries", side_effect=DatabaseError("gone")):
            entry = set_paid_status(jan, True)
        self.assertTrue(entry.is_paid)
        self.assertTrue(LedgerEntry.objects.get(pk=jan.pk).is_paid)


class PaymentAllocationTests(LedgerTestCase):
    def test_untargeted_payment_spreads_over_projects(self):
        old = ledger_entry(self.employee, self.project, 2024, 12, 4000, balance=4000)
        row_a = ledger_entry(self.employee, self.project, 2025, 1, 2000, balance=6000)
        row_b = ledger_entry(self.employee, self.other_project, 2025, 1, 3000, balance=3000)

        payment, touched = record_payment(self.employee, Decimal("8000"), date(2025, 2, 5))

        row_a.refresh_from_db()
        row_b.refresh_from_db()
        old.refresh_from_db()
        self.assertEqual(row_a.balance, Decimal("0"))
        self.assertEqual(row_a.paid_amount, Decimal("6000"))
        self.assertEqual(row_b.balance, Decimal("1000"))
        self.assertEqual(row_b.paid_amount, Decimal("2000"))
        self.assertEqual(old.paid_amount, Decimal("0"))
        self.assertEqual(payment.amount, Decimal("8000"))
        self.assertIsNone(payment.project)
        self.assertEqual(len(touched), 2)

    def test_untargeted_remainder_is_dropped(self):
        row_a = ledger_entry(self.employee, self.project, 2025, 1, 0, balance=6000)
        row_b = ledger_entry(self.employee, self.other_project, 2025, 1, 0, balance=3000)

        record_payment(self.employee, Decimal("10000"), date(2025, 2, 5))

        row_a.refresh_from_db()
        row_b.refresh_from_db()
        self.assertEqual(row_a.balance, Decimal("0"))
        self.assertEqual(row_b.balance, Decimal("0"))
        self.assertEqual(row_a.paid_amount + row_b.paid_amount, Decimal("9000"))

    def test_targeted_payment_hits_latest_row_and_may_go_negative(self):
        older = ledger_entry(self.employee, self.project, 2024, 12, 0, balance=900)
        latest = ledger_entry(self.employee, self.project, 2025, 1, 0, balance=1000)

        record_payment(self.employee, Decimal("1500.4"), date(2025, 2, 5), project=self.project, notes="advance")

        latest.refresh_from_db()
        older.refresh_from_db()
        self.assertEqual(latest.paid_amount, Decimal("1500"))
        self.assertEqual(latest.balance, Decimal("-500"))
        self.assertEqual(older.paid_amount, Decimal("0"))

    def test_targeted_payment_on_paid_row_until_recalculated(self):
        latest = ledger_entry(self.employee, self.project, 2025, 1, 5000, balance=0, is_paid=True)

        record_payment(self.employee, Decimal("300"), date(2025, 2, 5), project=self.project)

        latest.refresh_from_db()
        self.assertTrue(latest.is_paid)
        self.assertEqual(latest.paid_amount, Decimal("300"))
        self.assertEqual(latest.balance, Decimal("-300"))

        self.assertEqual(recalculate_balances(self.employee.pk, self.project.pk), 1)
        latest.refresh_from_db()
        self.assertEqual(latest.balance, Decimal("0"))
        self.assertEqual(latest.paid_amount, Decimal("300"))

    def test_targeted_payment_without_ledger_is_still_recorded(self):
        payment, touched = record_payment(self.employee, Decimal("100"), date(2025, 2, 5), project=self.project)
        self.assertEqual(touched, [])
        self.assertTrue(Payment.objects.filter(pk=payment.pk).exists())

    def test_reverse_targeted_payment(self):
        latest = ledger_entry(self.employee, self.project, 2025, 1, 0, balance=1000)
        payment, _ = record_payment(self.employee, Decimal("400"), date(2025, 2, 5), project=self.project)

        entry = reverse_payment(payment)

        latest.refresh_from_db()
        self.assertEqual(entry.pk, latest.pk)
        self.assertEqual(latest.balance, Decimal("1000"))
        self.assertEqual(latest.paid_amount, Decimal("0"))
        self.assertFalse(Payment.objects.exists())

    def test_reverse_applies_to_current_latest_row(self):
        jan = ledger_entry(self.employee, self.project, 2025, 1, 0, balance=1000)
        payment, _ = record_payment(self.employee, Decimal("400"), date(2025, 2, 5), project=self.project)
        feb = ledger_entry(self.employee, self.project, 2025, 2, 0, balance=2000)

        reverse_payment(payment)

        jan.refresh_from_db()
        feb.refresh_from_db()
        self.assertEqual(jan.balance, Decimal("600"))
        self.assertEqual(feb.balance, Decimal("2400"))
        self.assertEqual(feb.paid_amount, Decimal("-400"))

    def test_reverse_untargeted_payment_leaves_ledger(self):
        row = ledger_entry(self.employee, self.project, 2025, 1, 0, balance=1000)
        payment, _ = record_payment(self.employee, Decimal("400"), date(2025, 2, 5))

        self.assertIsNone(reverse_payment(payment))

        row.refresh_from_db()
        self.assertEqual(row.balance, Decimal("600"))
        self.assertFalse(Payment.objects.exists())


class LedgerAPITests(APITestCase):
    def setUp(self):
        self.employee = Employee.objects.create(
            name="Ayesha Khan", employee_code="EMP-001", date_of_joining=date(2024, 1, 1),
        )
        self.project = Project.objects.create(name="Bridge", start_date=date(2024, 1, 1))
        self.jan = ledger_entry(self.employee, self.project, 2025, 1, 5000, balance=5000)
        self.feb = ledger_entry(self.employee, self.project, 2025, 2, 6000, withheld=1000, balance=10000)

    def test_list_filters(self):
        response = self.client.get("/api/social-charges/ledger/", {"employee": self.employee.pk, "month": 2})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.data], [self.feb.pk])

    def test_mark_paid(self):
        url = f"/api/social-charges/ledger/{self.jan.pk}/"
        response = self.client.patch(url, {"is_paid": True}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["is_paid"])
        self.assertEqual(Decimal(str(response.data["balance"])), Decimal("0"))
        self.feb.refresh_from_db()
        self.assertEqual(self.feb.balance, Decimal("5000"))

    def test_mark_paid_validation(self):
        url = f"/api/social-charges/ledger/{self.jan.pk}/"
        self.assertEqual(self.client.patch(url, {}, format="json").status_code, 400)
        self.assertEqual(self.client.patch(url, {"is_paid": "maybe"}, format="json").status_code, 400)

    def test_mark_paid_unknown_entry(self):
        response = self.client.patch("/api/social-charges/ledger/99999/", {"is_paid": True}, format="json")
        self.assertEqual(response.status_code, 404)

    def test_put_not_allowed(self):
        response = self.client.put(f"/api/social-charges/ledger/{self.jan.pk}/", {"is_paid": True}, format="json")
        self.assertEqual(response.status_code, 405)

    def test_record_and_delete_payment(self):
        response = self.client.post("/api/social-charges/payments/", {
            "employee": self.employee.pk,
            "project": self.project.pk,
            "amount": "2500.50",
            "payment_date": "2025-03-01",
            "notes": "March transfer",
        }, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Decimal(str(response.data["payment"]["amount"])), Decimal("2501"))
        self.assertEqual(response.data["ledger"][0]["id"], self.feb.pk)
        self.assertEqual(Decimal(str(response.data["ledger"][0]["balance"])), Decimal("7499"))

        payment_id = response.data["payment"]["id"]
        response = self.client.delete(f"/api/social-charges/payments/{payment_id}/")
        self.assertEqual(response.status_code, 200)
        self.feb.refresh_from_db()
        self.assertEqual(self.feb.balance, Decimal("10000"))

    def test_record_payment_validation(self):
        response = self.client.post("/api/social-charges/payments/", {
            "employee": self.employee.pk, "amount": "0", "payment_date": "2025-03-01",
        }, format="json")
        self.assertEqual(response.status_code, 400)
        response = self.client.post("/api/social-charges/payments/", {
            "employee": self.employee.pk, "amount": "10", "payment_date": "not-a-date",
        }, format="json")
        self.assertEqual(response.status_code, 400)

    def test_payment_amount_is_rounded_on_intake(self):
        response = self.client.post("/api/social-charges/payments/", {
            "employee": self.employee.pk,
            "project": self.project.pk,
            "amount": "100.555",
            "payment_date": "2025-03-01",
        }, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Decimal(str(response.data["payment"]["amount"])), Decimal("101"))
        self.feb.refresh_from_db()
        self.assertEqual(self.feb.paid_amount, Decimal("101"))
        self.assertEqual(self.feb.balance, Decimal("9899"))

    def test_payment_amount_rounding_to_zero_is_rejected(self):
        response = self.client.post("/api/social-charges/payments/", {
            "employee": self.employee.pk, "amount": "0.4", "payment_date": "2025-03-01",
        }, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount", response.data)
        self.assertFalse(Payment.objects.exists())

    def test_delete_unknown_payment(self):
        self.assertEqual(self.client.delete("/api/social-charges/payments/99999/").status_code, 404)

    def test_summary_report(self):
        response = self.client.get("/api/social-charges/reports/summary/", {"employee": self.employee.pk})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["entries"], 2)
        self.assertEqual(Decimal(str(response.data["total_earned"])), Decimal("11000"))
        self.assertEqual(Decimal(str(response.data["total_balance"])), Decimal("15000"))
