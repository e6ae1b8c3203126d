"""
Instructor URL configuration
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from instructor.views import SkillViewSet, ProgramViewSet, ShareViewSet, AssignmentViewSet

router = DefaultRouter()
router.register(r'skills', SkillViewSet, basename='skill')
router.register(r'programs', ProgramViewSet, basename='program')
router.register(r'shares', ShareViewSet, basename='share')
router.register(r'assignments', AssignmentViewSet, basename='assignment')

urlpatterns = [
    path('', include(router.urls)),
]
