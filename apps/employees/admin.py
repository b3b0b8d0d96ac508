from django.contrib import admin
from .models import Employee, Project, Assignment


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = (
        "employee_code",
        "name",
        "designation",
        "department",
        "status",
        "base_salary",
        "date_of_joining",
    )
    search_fields = ("employee_code", "name")
    list_filter = ("department", "designation", "status")
    readonly_fields = ("created_at", "updated_at")


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ("name", "start_date", "end_date")
    search_fields = ("name",)


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ("employee", "project", "role", "monthly_salary", "start_date", "end_date")
    list_filter = ("project",)
    search_fields = ("employee__name", "employee__employee_code", "project__name")
