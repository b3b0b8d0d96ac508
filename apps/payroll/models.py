from django.db import models


class PayrollSnapshot(models.Model):
    employee = models.ForeignKey('employees.Employee', on_delete=models.CASCADE)
    project = models.ForeignKey('employees.Project', on_delete=models.CASCADE)
    year = models.IntegerField()
    month = models.IntegerField()

    total_workdays = models.IntegerField(default=0)
    paid_days = models.IntegerField(default=0)
    eligible_days = models.IntegerField(default=0)

    # Full precision, never rounded
    attendance_ratio = models.FloatField(default=0)
    applied_sc_percent = models.FloatField(default=0)
    daily_salary = models.FloatField(default=0)
    earned_salary = models.FloatField(default=0)

    # Whole currency units
    social_charges_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    deferred_social_charges = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    sick_leave_days = models.IntegerField(default=0)
    casual_leave_days = models.IntegerField(default=0)
    earned_leave_days = models.IntegerField(default=0)
    other_leave_days = models.IntegerField(default=0)

    generated_on = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('employee', 'project', 'month', 'year')
        ordering = ['-year', '-month']

    @property
    def total_leave_days(self):
        return self.sick_leave_days + self.casual_leave_days + self.earned_leave_days + self.other_leave_days

    def __str__(self):
        return f"{self.employee.name} / {self.project.name} - {self.month}/{self.year}"
