from django.contrib import admin
from learner.models import Progression, Attempt


@admin.register(Progression)
class ProgressionAdmin(admin.ModelAdmin):
    list_display = ('student', 'step', 'status', 'validated_at')
    list_filter = ('status',)


@admin.register(Attempt)
class AttemptAdmin(admin.ModelAdmin):
    list_display = ('progression', 'mode', 'succeeded', 'score', 'duration_seconds', 'created_at')
    list_filter = ('mode', 'succeeded')
