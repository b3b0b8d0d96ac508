from rest_framework import serializers
from .models import PayrollSnapshot


class PayrollSnapshotSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source="employee.name", read_only=True)
    employee_code = serializers.CharField(source="employee.employee_code", read_only=True)
    project_name = serializers.CharField(source="project.name", read_only=True)
    total_leave_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = PayrollSnapshot
        fields = '__all__'


class GeneratePayrollSerializer(serializers.Serializer):
    month = serializers.IntegerField(min_value=1, max_value=12)
    year = serializers.IntegerField(min_value=1900, max_value=9999)
    employee = serializers.IntegerField(required=False, allow_null=True)
    project = serializers.IntegerField(required=False, allow_null=True)
