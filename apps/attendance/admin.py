from django.contrib import admin
from .models import Attendance


@admin.register(Attendance)
class AttendanceAdmin(admin.ModelAdmin):
    list_display = ("employee", "project", "date", "status")
    list_filter = ("status", "project")
    search_fields = ("employee__name", "employee__employee_code")
    date_hierarchy = "date"
