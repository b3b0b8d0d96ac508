from django.contrib import admin
from .models import PayrollSnapshot


@admin.register(PayrollSnapshot)
class PayrollSnapshotAdmin(admin.ModelAdmin):
    list_display = (
        "employee",
        "project",
        "month",
        "year",
        "paid_days",
        "eligible_days",
        "earned_salary",
        "social_charges_amount",
        "deferred_social_charges",
    )
    list_filter = ("year", "month", "project")
    search_fields = ("employee__name", "employee__employee_code")
    readonly_fields = ("generated_on", "updated_at")
