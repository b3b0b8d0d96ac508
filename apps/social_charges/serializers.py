from rest_framework import serializers
from apps.payroll.money import round_sc
from apps.employees.models import Employee, Project
from .models import LedgerEntry, Payment


class LedgerEntrySerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source="employee.name", read_only=True)
    employee_code = serializers.CharField(source="employee.employee_code", read_only=True)
    project_name = serializers.CharField(source="project.name", read_only=True)

    class Meta:
        model = LedgerEntry
        fields = '__all__'


class LedgerPaidStatusSerializer(serializers.Serializer):
    is_paid = serializers.BooleanField()

    def to_internal_value(self, data):
        if "is_paid" not in data:
            raise serializers.ValidationError({"is_paid": "This field is required."})
        return super().to_internal_value(data)


class PaymentSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source="employee.name", read_only=True)
    project_name = serializers.CharField(source="project.name", read_only=True, default=None)

    class Meta:
        model = Payment
        fields = ["id", "employee", "employee_name", "project", "project_name", "amount", "payment_date", "notes", "created_at"]


class RecordPaymentSerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())
    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all(), required=False, allow_null=True)
    # Any precision is accepted; the amount is rounded to whole units
    amount = serializers.DecimalField(max_digits=20, decimal_places=None)
    payment_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_amount(self, value):
        value = round_sc(value)
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than 0.")
        return value
