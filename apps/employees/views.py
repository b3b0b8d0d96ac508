from rest_framework import viewsets
from .models import Employee, Project, Assignment
from .serializers import EmployeeSerializer, ProjectSerializer, AssignmentSerializer


class EmployeeViewSet(viewsets.ModelViewSet):
    queryset = Employee.objects.all().order_by("-created_at")
    serializer_class = EmployeeSerializer


class ProjectViewSet(viewsets.ModelViewSet):
    queryset = Project.objects.all().order_by("-created_at")
    serializer_class = ProjectSerializer


class AssignmentViewSet(viewsets.ModelViewSet):
    queryset = Assignment.objects.select_related("employee", "project").all()
    serializer_class = AssignmentSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        employee = self.request.query_params.get("employee")
        project = self.request.query_params.get("project")
        if employee:
            qs = qs.filter(employee_id=employee)
        if project:
            qs = qs.filter(project_id=project)
        return qs
