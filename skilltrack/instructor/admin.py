"""
Django admin registration for the skill catalog and program distribution.
"""
from django.contrib import admin
from instructor.models import (
    Skill, Step, SkillPrerequisite, Program, ProgramSkill,
    Share, GroupAssignment, Assignment,
)


class StepInline(admin.TabularInline):
    model = Step
    extra = 0


@admin.register(Skill)
class SkillAdmin(admin.ModelAdmin):
    list_display = ('name', 'created_by', 'created_at')
    search_fields = ('name',)
    inlines = [StepInline]


@admin.register(Share)
class ShareAdmin(admin.ModelAdmin):
    list_display = ('program', 'sharer', 'recipient', 'audience', 'active', 'revoked_at')
    list_filter = ('audience', 'active')


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ('program', 'student', 'provenance', 'status', 'detached')
    list_filter = ('provenance', 'status', 'detached')


admin.site.register(SkillPrerequisite)
admin.site.register(Program)
admin.site.register(ProgramSkill)
admin.site.register(GroupAssignment)
