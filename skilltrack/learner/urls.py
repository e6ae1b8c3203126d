"""
Learner URL configuration
"""
from django.urls import path

from learner import views

urlpatterns = [
    path('progressions/', views.student_progressions, name='student-progressions'),
    path('programs/', views.student_programs, name='student-programs'),
    path('skills/<uuid:skill_id>/', views.skill_detail, name='skill-progression'),
    path('skills/<uuid:skill_id>/start/', views.start_skill, name='skill-start'),
    path('skills/<uuid:skill_id>/abandon/', views.abandon_skill, name='skill-abandon'),
    path('steps/<uuid:step_id>/attempts/', views.step_attempts, name='step-attempts'),
    path('steps/<uuid:step_id>/validate/', views.validate_step, name='step-validate'),
]
