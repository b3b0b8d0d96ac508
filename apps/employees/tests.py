from datetime import date
from decimal import Decimal

from django.urls import reverse
from rest_framework.test import APITestCase

from .models import Assignment, Employee, Project


class EmployeeAPITests(APITestCase):
    def setUp(self):
        self.employee = Employee.objects.create(
            name="Ayesha Khan", employee_code="EMP-001", date_of_joining=date(2024, 1, 1),
        )
        self.project = Project.objects.create(name="Bridge", start_date=date(2024, 1, 1))

    def test_employee_routes(self):
        self.assertEqual(reverse("employee-list"), "/api/employees/employees/")
        response = self.client.get("/api/employees/employees/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]["employee_code"], "EMP-001")
        self.assertEqual(self.client.get("/api/employees/profiles/").status_code, 404)

    def test_create_employee(self):
        response = self.client.post("/api/employees/employees/", {
            "name": "Bilal Ahmed",
            "employee_code": "EMP-002",
            "date_of_joining": "2024-05-01",
        }, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], "active")

    def test_employee_code_is_unique(self):
        response = self.client.post("/api/employees/employees/", {
            "name": "Someone Else",
            "employee_code": "EMP-001",
            "date_of_joining": "2024-05-01",
        }, format="json")
        self.assertEqual(response.status_code, 400)

    def test_update_sets_updated_at(self):
        response = self.client.patch(
            f"/api/employees/employees/{self.employee.pk}/", {"designation": "Site Engineer"}, format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.employee.refresh_from_db()
        self.assertIsNotNone(self.employee.updated_at)

    def test_project_end_before_start(self):
        response = self.client.post("/api/employees/projects/", {
            "name": "Harbour", "start_date": "2025-03-01", "end_date": "2025-02-01",
        }, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("end_date", response.data)

    def test_create_assignment(self):
        response = self.client.post("/api/employees/assignments/", {
            "employee": self.employee.pk,
            "project": self.project.pk,
            "role": "Engineer",
            "monthly_salary": "300000.00",
            "start_date": "2025-01-01",
        }, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["project_name"], "Bridge")
        self.assertIsNone(response.data["end_date"])

    def test_assignment_validation(self):
        payload = {
            "employee": self.employee.pk,
            "project": self.project.pk,
            "role": "Engineer",
            "monthly_salary": "0",
            "start_date": "2025-01-01",
        }
        response = self.client.post("/api/employees/assignments/", payload, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("monthly_salary", response.data)

        payload.update(monthly_salary="1000", end_date="2024-12-31")
        response = self.client.post("/api/employees/assignments/", payload, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("end_date", response.data)

    def test_assignment_filters(self):
        other_employee = Employee.objects.create(
            name="Bilal Ahmed", employee_code="EMP-002", date_of_joining=date(2024, 1, 1),
        )
        mine = Assignment.objects.create(
            employee=self.employee, project=self.project, role="Engineer",
            monthly_salary=Decimal("1000"), start_date=date(2025, 1, 1),
        )
        Assignment.objects.create(
            employee=other_employee, project=self.project, role="Driver",
            monthly_salary=Decimal("500"), start_date=date(2025, 1, 1),
        )

        response = self.client.get("/api/employees/assignments/", {"employee": self.employee.pk})
        self.assertEqual([row["id"] for row in response.data], [mine.pk])

        response = self.client.get("/api/employees/assignments/", {"project": self.project.pk})
        self.assertEqual(len(response.data), 2)
