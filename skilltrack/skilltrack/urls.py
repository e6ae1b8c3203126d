"""
URL configuration for the skilltrack project.

    /api/roster/      login, groups and group membership
    /api/instructor/  skill catalog, programs, assignments and shares
    /api/learner/     progression, attempts and the learner's programs
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/roster/', include('roster.urls')),
    path('api/instructor/', include('instructor.urls')),
    path('api/learner/', include('learner.urls')),
]
