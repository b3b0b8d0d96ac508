import logging
from calendar import monthrange
from datetime import date
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.db.models import Q
from rest_framework.exceptions import NotFound, ValidationError

from apps.attendance import status as attendance_status
from apps.attendance.models import Attendance
from apps.employees.models import Assignment
from apps.social_charges.utils import recalculate_balances, update_ledger
from .exceptions import RecalculationError
from .models import PayrollSnapshot
from .money import round_sc, to_decimal

logger = logging.getLogger(__name__)

# Statutory social charges rate applied to the monthly salary
SC_BASE_RATE = Decimal("0.20")


def month_bounds(year, month):
    if not 1 <= month <= 12:
        raise ValidationError({"month": "Month must be between 1 and 12."})
    last_day = monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day), last_day


def count_attendance(statuses):
    """
    Tally paid days, SC eligible days and leave bucket days for a month.
    Returns a dict keyed by "paid_days", "eligible_days" and the leave buckets.
    """
    counts = {"paid_days": 0, "eligible_days": 0}
    for bucket in attendance_status.LEAVE_BUCKETS:
        counts[bucket] = 0

    for code in statuses:
        if attendance_status.is_paid(code):
            counts["paid_days"] += 1
        if attendance_status.is_sc_eligible(code):
            counts["eligible_days"] += 1
        bucket = attendance_status.leave_bucket(code)
        if bucket:
            counts[bucket] += 1
    return counts


def calculate_payroll_figures(monthly_salary, year, month, statuses):
    """
    Compute one month of salary and social charges for an assignment.

    ``statuses`` are the attendance codes recorded for the employee on the
    project during the month. The returned dict is keyed by PayrollSnapshot
    field names. Ratios, daily and earned salary keep full precision; the two
    social charges amounts are rounded to whole units.
    """
    monthly_salary = to_decimal(monthly_salary)
    _, _, total_workdays = month_bounds(year, month)
    counts = count_attendance(statuses)

    if total_workdays > 0:
        attendance_ratio = Decimal(counts["eligible_days"]) / Decimal(total_workdays)
        daily_salary = monthly_salary / Decimal(total_workdays)
    else:
        attendance_ratio = Decimal("0")
        daily_salary = Decimal("0")

    applied_sc_percent = SC_BASE_RATE * attendance_ratio
    earned_salary = daily_salary * counts["paid_days"]
    social_charges_amount = round_sc(monthly_salary * applied_sc_percent)

    total_leave_days = sum(counts[bucket] for bucket in attendance_status.LEAVE_BUCKETS)
    if total_leave_days > 0:
        deferred_social_charges = round_sc(daily_salary * total_leave_days)
    else:
        deferred_social_charges = Decimal("0")

    return {
        "total_workdays": total_workdays,
        "paid_days": counts["paid_days"],
        "eligible_days": counts["eligible_days"],
        "attendance_ratio": float(attendance_ratio),
        "applied_sc_percent": float(applied_sc_percent),
        "daily_salary": float(daily_salary),
        "earned_salary": float(earned_salary),
        "social_charges_amount": social_charges_amount,
        "deferred_social_charges": deferred_social_charges,
        "sick_leave_days": counts[attendance_status.SICK],
        "casual_leave_days": counts[attendance_status.CASUAL],
        "earned_leave_days": counts[attendance_status.EARNED],
        "other_leave_days": counts[attendance_status.OTHER],
    }


def active_assignments(year, month, employee_id=None, project_id=None):
    first_day, last_day, _ = month_bounds(year, month)
    qs = Assignment.objects.select_related("employee", "project").filter(
        Q(end_date__isnull=True) | Q(end_date__gte=first_day),
        start_date__lte=last_day,
    )
    if employee_id:
        qs = qs.filter(employee_id=employee_id)
    if project_id:
        qs = qs.filter(project_id=project_id)
    return qs.order_by("id")


def upsert_payroll_snapshot(assignment, year, month):
    first_day, last_day, _ = month_bounds(year, month)
    statuses = Attendance.objects.filter(
        employee_id=assignment.employee_id,
        project_id=assignment.project_id,
        date__gte=first_day,
        date__lte=last_day,
    ).values_list("status", flat=True)

    figures = calculate_payroll_figures(assignment.monthly_salary, year, month, list(statuses))

    snapshot, created = PayrollSnapshot.objects.get_or_create(
        employee_id=assignment.employee_id,
        project_id=assignment.project_id,
        year=year,
        month=month,
        defaults=figures,
    )
    if not created:
        for field, value in figures.items():
            setattr(snapshot, field, value)
        snapshot.save()
    return snapshot


def process_assignment(assignment, year, month):
    """
    Snapshot, ledger entry and balance chain for one assignment.

    The snapshot and ledger entry are committed before the balances are
    recalculated, and they stay committed if the recalculation fails.
    Returns a tuple: (snapshot, recalculated)
    """
    with transaction.atomic():
        snapshot = upsert_payroll_snapshot(assignment, year, month)
        update_ledger(snapshot)
    try:
        recalculate_balances(snapshot.employee_id, snapshot.project_id)
    except RecalculationError:
        logger.exception(
            "Payroll saved for assignment %s but balances of employee %s, project %s were not recalculated",
            assignment.pk, snapshot.employee_id, snapshot.project_id,
        )
        return snapshot, False
    return snapshot, True


def generate_payroll(year, month, employee_id=None, project_id=None):
    """
    Generate payroll for every assignment active in the month.

    Assignments are processed one at a time. A failing assignment is logged
    and reported in ``errors``; the remaining assignments still run. An
    assignment whose balances could not be recalculated is still a result and
    is also listed in ``warnings``.
    Returns a tuple: (snapshots, errors, warnings)
    """
    assignments = list(active_assignments(year, month, employee_id, project_id))
    if not assignments:
        raise NotFound("No assignments found for given criteria")

    snapshots = []
    errors = []
    warnings = []
    for assignment in assignments:
        try:
            snapshot, recalculated = process_assignment(assignment, year, month)
        except DatabaseError as exc:
            logger.exception(
                "Payroll generation failed for assignment %s (employee %s, project %s) %02d/%d",
                assignment.pk, assignment.employee_id, assignment.project_id, month, year,
            )
            errors.append({
                "assignment_id": assignment.pk,
                "employee_id": assignment.employee_id,
                "project_id": assignment.project_id,
                "error": str(exc),
            })
            continue

        snapshots.append(snapshot)
        if not recalculated:
            warnings.append({
                "assignment_id": assignment.pk,
                "employee_id": assignment.employee_id,
                "project_id": assignment.project_id,
                "warning": "Ledger balances were not recalculated.",
            })

    logger.info(
        "Payroll %02d/%d generated: %d processed, %d failed, %d without recalculated balances",
        month, year, len(snapshots), len(errors), len(warnings),
    )
    return snapshots, errors, warnings
