from django.contrib import admin
from .models import LedgerEntry, Payment


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    list_display = (
        "employee",
        "project",
        "month",
        "year",
        "total_earned",
        "total_withheld",
        "paid_amount",
        "is_paid",
        "balance",
    )
    list_filter = ("is_paid", "year", "project")
    search_fields = ("employee__name", "employee__employee_code")
    readonly_fields = ("balance", "created_at", "updated_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("employee", "project", "amount", "payment_date")
    search_fields = ("employee__name", "notes")
