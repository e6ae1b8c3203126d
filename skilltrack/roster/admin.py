"""
Django admin registration for roster models.
"""
from django.contrib import admin
from roster.models import UserProfile, InstructorStudentLink, Group, GroupMember

admin.site.register(UserProfile)
admin.site.register(InstructorStudentLink)
admin.site.register(Group)
admin.site.register(GroupMember)
