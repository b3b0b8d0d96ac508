from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    AttendanceViewSet,
    MarkAttendance,
    AttendanceMonthlyReportAPIView,
)


router = DefaultRouter()
router.register(r'attendance', AttendanceViewSet)

urlpatterns = [
    path('mark-attendance/', MarkAttendance.as_view(), name='mark_attendance'),
    path('reports/attendance/', AttendanceMonthlyReportAPIView.as_view(), name='attendance_report'),

    path('', include(router.urls)),
]
