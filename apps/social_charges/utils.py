import logging
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from apps.attendance.status import CASUAL, EARNED, LEAVE_BUCKETS, OTHER, SICK
from apps.payroll.exceptions import RecalculationError
from apps.payroll.money import round_sc, to_decimal
from .models import LedgerEntry, Payment

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Share of the 20% social charges rate carried by each leave bucket
SC_BASE_RATE_PERCENT = Decimal("20")
SC_COMPONENT_WEIGHTS = {
    SICK: Decimal("1.67"),
    CASUAL: Decimal("1.67"),
    EARNED: Decimal("8.33"),
    OTHER: Decimal("8.33"),
}

BALANCE_TOLERANCE = Decimal("0.01")

EARNED_FIELDS = {
    SICK: "earned_sick_leave",
    CASUAL: "earned_casual_leave",
    EARNED: "earned_earned_leave",
    OTHER: "earned_other_payable",
}
WITHHELD_FIELDS = {
    SICK: "withheld_sick_leave",
    CASUAL: "withheld_casual_leave",
    EARNED: "withheld_earned_leave",
    OTHER: "withheld_other_payable",
}


def snapshot_leave_days(snapshot):
    return {
        SICK: snapshot.sick_leave_days,
        CASUAL: snapshot.casual_leave_days,
        EARNED: snapshot.earned_leave_days,
        OTHER: snapshot.other_leave_days,
    }


def split_earned(total_earned, leave_days):
    """
    Split earned SC into the four leave components.

    Sick, casual and earned components are zero for a month without days of
    that type. The "other" component is always filled.
    """
    total_earned = to_decimal(total_earned)
    components = {}
    for bucket in LEAVE_BUCKETS:
        if bucket != OTHER and not leave_days.get(bucket):
            components[bucket] = ZERO
            continue
        components[bucket] = round_sc(total_earned * SC_COMPONENT_WEIGHTS[bucket] / SC_BASE_RATE_PERCENT)
    return components


def split_withheld(total_withheld, leave_days):
    """Split withheld SC in proportion to each bucket's share of leave days."""
    total_withheld = to_decimal(total_withheld)
    total_days = sum(leave_days.get(bucket, 0) for bucket in LEAVE_BUCKETS)
    components = {}
    for bucket in LEAVE_BUCKETS:
        days = leave_days.get(bucket, 0)
        if total_days <= 0 or days <= 0:
            components[bucket] = ZERO
        else:
            components[bucket] = round_sc(total_withheld * days / total_days)
    return components


def previous_unpaid_balance(employee_id, project_id, year, month):
    entry = (
        LedgerEntry.objects.filter(employee_id=employee_id, project_id=project_id, is_paid=False)
        .filter(Q(year__lt=year) | Q(year=year, month__lt=month))
        .order_by("-year", "-month")
        .first()
    )
    return to_decimal(entry.balance) if entry else ZERO


def update_ledger(snapshot):
    """
    Create or refresh the ledger entry matching a payroll snapshot.

    The balance written here only looks at earlier rows; run
    ``recalculate_balances`` for the pair afterwards.
    """
    leave_days = snapshot_leave_days(snapshot)
    total_earned = round_sc(snapshot.social_charges_amount)
    total_withheld = round_sc(snapshot.deferred_social_charges)
    earned = split_earned(total_earned, leave_days)
    withheld = split_withheld(total_withheld, leave_days)

    values = {"total_earned": total_earned, "total_withheld": total_withheld}
    for bucket in LEAVE_BUCKETS:
        values[EARNED_FIELDS[bucket]] = earned[bucket]
        values[WITHHELD_FIELDS[bucket]] = withheld[bucket]

    previous_balance = previous_unpaid_balance(
        snapshot.employee_id, snapshot.project_id, snapshot.year, snapshot.month
    )
    balance = round_sc(previous_balance + total_earned - total_withheld)

    entry, created = LedgerEntry.objects.get_or_create(
        employee_id=snapshot.employee_id,
        project_id=snapshot.project_id,
        year=snapshot.year,
        month=snapshot.month,
        defaults={**values, "balance": balance},
    )
    if not created:
        for field, value in values.items():
            setattr(entry, field, value)
        entry.balance = ZERO if entry.is_paid else balance
        # paid_amount and is_paid are left as they are
        entry.save(update_fields=[*values, "balance", "updated_at"])
    return entry


def running_balances(entries):
    """
    Yield ``(entry, balance)`` in chronological order.

    Paid rows get a zero balance and do not carry anything forward; unpaid rows
    build on the balance of the latest earlier unpaid row.
    """
    previous_balance = ZERO
    for entry in sorted(entries, key=lambda e: (e.year, e.month)):
        if entry.is_paid:
            yield entry, ZERO
            continue
        balance = round_sc(previous_balance + to_decimal(entry.total_earned) - to_decimal(entry.total_withheld))
        previous_balance = balance
        yield entry, balance


def _load_entries(employee_id, project_id):
    return list(LedgerEntry.objects.filter(employee_id=employee_id, project_id=project_id))


def _write_balance(entry, balance):
    with transaction.atomic():
        LedgerEntry.objects.filter(pk=entry.pk).update(balance=balance, updated_at=timezone.now())


def recalculate_balances(employee_id, project_id):
    """
    Walk every ledger row of an employee-project pair and fix the balances.

    Only rows whose stored balance is off by more than 0.01 are written, so a
    second run without changes in between writes nothing. A failed row write
    is logged and skipped. Returns the number of rows updated.
    """
    try:
        entries = _load_entries(employee_id, project_id)
    except DatabaseError as exc:
        logger.exception("Could not load ledger entries for employee %s, project %s", employee_id, project_id)
        raise RecalculationError(
            f"Could not load ledger entries for employee {employee_id}, project {project_id}."
        ) from exc

    updated = 0
    for entry, balance in running_balances(entries):
        if abs(to_decimal(entry.balance) - balance) <= BALANCE_TOLERANCE:
            continue
        try:
            _write_balance(entry, balance)
        except DatabaseError:
            logger.exception("Failed to update balance of ledger entry %s", entry.pk)
            continue
        entry.balance = balance
        updated += 1

    if updated:
        logger.info(
            "Recalculated %d ledger balance(s) for employee %s, project %s",
            updated, employee_id, project_id,
        )
    return updated


def set_paid_status(entry, is_paid):
    """
    Mark a ledger entry as paid or unpaid and re-run the balances of its pair.

    A recalculation failure does not undo the toggle; the balances are fixed
    by the next payroll run.
    """
    entry.is_paid = is_paid
    entry.save(update_fields=["is_paid", "updated_at"])
    try:
        recalculate_balances(entry.employee_id, entry.project_id)
    except RecalculationError:
        logger.exception(
            "Ledger entry %s toggled but balances were not recalculated", entry.pk
        )
    entry.refresh_from_db()
    return entry


def current_ledger_entry(employee_id, project_id):
    """Most recent ledger row of the pair by (year, month)."""
    return (
        LedgerEntry.objects.filter(employee_id=employee_id, project_id=project_id)
        .order_by("-year", "-month")
        .first()
    )


def latest_entries_by_project(employee_id):
    latest = {}
    for entry in LedgerEntry.objects.filter(employee_id=employee_id).order_by("-year", "-month", "project_id"):
        latest.setdefault(entry.project_id, entry)
    return list(latest.values())


def plan_distribution(entries, amount):
    """
    Greedy split of a payment over ledger rows, highest balance first.

    Each row takes at most its positive balance. Whatever is left once the
    rows run out is not allocated.
    Returns a list of (entry, applied_amount).
    """
    remaining = round_sc(amount)
    allocations = []
    for entry in sorted(entries, key=lambda e: (-to_decimal(e.balance), e.project_id)):
        if remaining <= 0:
            break
        applied = round_sc(min(max(to_decimal(entry.balance), ZERO), remaining))
        if applied > 0:
            allocations.append((entry, applied))
            remaining -= applied
    return allocations


def _apply_to_entry(entry, amount):
    entry.paid_amount = round_sc(to_decimal(entry.paid_amount) + amount)
    entry.balance = round_sc(to_decimal(entry.balance) - amount)
    entry.save(update_fields=["paid_amount", "balance", "updated_at"])


def record_payment(employee, amount, payment_date, project=None, notes=""):
    """
    Record a social charges payment and apply it to the ledger.

    With a project the whole amount goes to that project's current row, and
    the balance may turn negative. A paid row takes the payment too and keeps
    the non-zero balance until the pair is recalculated. Without a project
    the amount is spread over the current row of every project the employee
    has ledger history with.
    Returns a tuple: (payment, touched_entries)
    """
    amount = round_sc(amount)
    touched = []
    with transaction.atomic():
        payment = Payment.objects.create(
            employee=employee,
            project=project,
            amount=amount,
            payment_date=payment_date,
            notes=notes or "",
        )

        if project is not None:
            entry = current_ledger_entry(employee.pk, project.pk)
            if entry is None:
                logger.warning(
                    "Payment %s recorded for employee %s, project %s without any ledger entry",
                    payment.pk, employee.pk, project.pk,
                )
            else:
                _apply_to_entry(entry, amount)
                touched.append(entry)
        else:
            allocations = plan_distribution(latest_entries_by_project(employee.pk), amount)
            for entry, applied in allocations:
                _apply_to_entry(entry, applied)
                touched.append(entry)
            unallocated = amount - sum((applied for _, applied in allocations), ZERO)
            if unallocated > 0:
                logger.info(
                    "Payment %s: %s exceeds outstanding balances of employee %s and was not allocated",
                    payment.pk, unallocated, employee.pk,
                )
    return payment, touched


def reverse_payment(payment):
    """
    Undo a payment's ledger effect and delete it.

    The reversal hits the pair's current most recent row, which is not
    necessarily the row the payment was applied to. Payments recorded without
    a project are deleted without touching the ledger.
    Returns the ledger entry that was adjusted, or None.
    """
    entry = None
    with transaction.atomic():
        if payment.project_id:
            entry = current_ledger_entry(payment.employee_id, payment.project_id)
            if entry is not None:
                _apply_to_entry(entry, -to_decimal(payment.amount))
        else:
            logger.warning(
                "Payment %s was spread across projects; ledger left unchanged on delete", payment.pk
            )
        payment.delete()
    return entry
