
from django.db import models
from apps.employees.models import Employee, Project
from .status import STATUS_CHOICES


class Attendance(models.Model):
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE)
    project = models.ForeignKey(Project, on_delete=models.CASCADE)
    date = models.DateField()
    status = models.CharField(max_length=4, choices=STATUS_CHOICES)
    marked_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('employee', 'date')
        ordering = ['-date']

    def __str__(self):
        return f"{self.employee.name} {self.date} {self.status}"
