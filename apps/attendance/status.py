"""
Attendance status codes and the categories each code belongs to.

A day can be *paid* (counts toward salary), *SC eligible* (counts toward
social charges accrual) and can fall into one of the four SC-bearing leave
buckets. Unknown codes are treated as unpaid, ineligible and bucket-less.
"""

PRESENT = "P"
WEEKEND = "W"
HOLIDAY = "H"
CASUAL_LEAVE = "CL"
SICK_LEAVE = "SL"
EARNED_LEAVE = "EL"
COMPENSATORY_LEAVE = "CO"
TOUR = "T"
WORK_FROM_HOME = "WH"
COVID_LEAVE = "CD"
ABSENT = "A"

STATUS_CHOICES = (
    (PRESENT, "Present"),
    (WEEKEND, "Weekend"),
    (HOLIDAY, "Holiday"),
    (CASUAL_LEAVE, "Casual Leave"),
    (SICK_LEAVE, "Sick Leave"),
    (EARNED_LEAVE, "Earned Leave"),
    (COMPENSATORY_LEAVE, "Compensatory Leave"),
    (TOUR, "Tour"),
    (WORK_FROM_HOME, "Work From Home"),
    (COVID_LEAVE, "Covid Leave"),
    (ABSENT, "Absent"),
)

SC_ELIGIBLE_STATUSES = frozenset({PRESENT, WEEKEND, HOLIDAY, TOUR, WORK_FROM_HOME})

PAID_STATUSES = SC_ELIGIBLE_STATUSES | frozenset(
    {CASUAL_LEAVE, SICK_LEAVE, EARNED_LEAVE, COMPENSATORY_LEAVE, COVID_LEAVE}
)

SICK = "sick"
CASUAL = "casual"
EARNED = "earned"
OTHER = "other"

LEAVE_BUCKETS = (SICK, CASUAL, EARNED, OTHER)

# Tour and work-from-home are SC eligible and still land in the "other" bucket.
_BUCKET_BY_STATUS = {
    SICK_LEAVE: SICK,
    CASUAL_LEAVE: CASUAL,
    EARNED_LEAVE: EARNED,
    COMPENSATORY_LEAVE: OTHER,
    TOUR: OTHER,
    WORK_FROM_HOME: OTHER,
    COVID_LEAVE: OTHER,
}


def is_paid(code):
    return code in PAID_STATUSES


def is_sc_eligible(code):
    return code in SC_ELIGIBLE_STATUSES


def leave_bucket(code):
    """Return the leave bucket name for ``code`` or ``None``."""
    return _BUCKET_BY_STATUS.get(code)


def classify(code):
    """
    Category memberships for a single status code.
    Returns a dict: {"paid": bool, "sc_eligible": bool, "leave_bucket": str | None}
    """
    return {
        "paid": is_paid(code),
        "sc_eligible": is_sc_eligible(code),
        "leave_bucket": leave_bucket(code),
    }
