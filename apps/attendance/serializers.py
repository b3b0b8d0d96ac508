from rest_framework import serializers
from .models import Attendance


class AttendanceSerializer(serializers.ModelSerializer):
    employee_name = serializers.SerializerMethodField()
    employee_code = serializers.SerializerMethodField()
    project_name = serializers.CharField(source="project.name", read_only=True)

    class Meta:
        model = Attendance
        fields = '__all__'

    def get_employee_name(self, obj):
        return f"{obj.employee.name}"
    def get_employee_code(self, obj):
        return f"{obj.employee.employee_code}"


class MarkAttendanceSerializer(serializers.Serializer):
    employee = serializers.IntegerField()
    project = serializers.IntegerField()
    date = serializers.DateField()
    status = serializers.ChoiceField(choices=[c for c, _ in Attendance._meta.get_field("status").choices])
