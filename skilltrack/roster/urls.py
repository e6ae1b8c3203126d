"""
Roster URL configuration
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from roster.auth import login
from roster.views import GroupViewSet

router = DefaultRouter()
router.register(r'groups', GroupViewSet, basename='group')

urlpatterns = [
    path('login/', login, name='login'),
    path('', include(router.urls)),
]
