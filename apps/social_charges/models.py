from django.db import models


class LedgerEntry(models.Model):
    """
    Social charges ledger row for one employee, project and month.

    Field ownership: the earned, withheld and total columns are written by
    payroll generation only. ``paid_amount`` and ``is_paid`` are written only
    by payments and the paid toggle. ``balance`` is set on generation, kept
    consistent by the balance recalculation and adjusted by payments.
    """

    employee = models.ForeignKey('employees.Employee', on_delete=models.CASCADE)
    project = models.ForeignKey('employees.Project', on_delete=models.CASCADE)
    year = models.IntegerField()
    month = models.IntegerField()

    earned_sick_leave = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    earned_casual_leave = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    earned_earned_leave = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    earned_other_payable = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_earned = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    withheld_sick_leave = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    withheld_casual_leave = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    withheld_earned_leave = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    withheld_other_payable = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_withheld = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    is_paid = models.BooleanField(default=False)
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('employee', 'project', 'month', 'year')
        ordering = ['-year', '-month']
        verbose_name_plural = "ledger entries"

    def __str__(self):
        return f"{self.employee.name} / {self.project.name} - {self.month}/{self.year}"


class Payment(models.Model):
    employee = models.ForeignKey('employees.Employee', on_delete=models.CASCADE)
    project = models.ForeignKey('employees.Project', on_delete=models.SET_NULL, null=True, blank=True)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    payment_date = models.DateField()
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-payment_date', '-id']

    def __str__(self):
        return f"{self.employee.name} - {self.amount} on {self.payment_date}"
