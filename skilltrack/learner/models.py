"""
Learner app models - per-step progression and practice attempts
"""
from django.db import models
from django.db.models import Q
from django.utils import timezone
import uuid

from roster.models import UserProfile
from instructor.models import Step


class Progression(models.Model):
    """A student's status record for one step"""
    STATUS_CHOICES = [
        ('not_started', 'Not Started'),
        ('in_progress', 'In Progress'),
        ('validated', 'Validated'),
    ]
    LATERALITY_CHOICES = [
        ('left', 'Left'),
        ('right', 'Right'),
        ('both', 'Both'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='progress_id')
    student = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='progressions', db_column='user_id')
    step = models.ForeignKey(Step, on_delete=models.PROTECT, related_name='progressions', db_column='step_id')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='not_started', db_column='status')
    validated_at = models.DateTimeField(blank=True, null=True, db_column='validated_at')
    validated_by = models.ForeignKey(UserProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='+', db_column='validated_by')
    laterality = models.CharField(max_length=10, choices=LATERALITY_CHOICES, blank=True, null=True, db_column='laterality')
    created_at = models.DateTimeField(default=timezone.now, db_column='created_at')
    updated_at = models.DateTimeField(auto_now=True, db_column='updated_at')

    class Meta:
        db_table = 'step_progress'
        managed = True
        unique_together = ('student', 'step')
        indexes = [
            models.Index(fields=['student', 'status'], name='idx_progress_student_status'),
        ]

    @property
    def is_validated(self):
        return self.status == 'validated'

    def __str__(self):
        return f"{self.student} - {self.step} ({self.status})"


class Attempt(models.Model):
    """One practice submission against a step"""
    MODE_CHOICES = [
        ('binary', 'Binary'),
        ('rated', 'Rated'),
        ('timed', 'Timed'),
        ('rated_timed', 'Rated + Timed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='attempt_id')
    progression = models.ForeignKey(Progression, on_delete=models.CASCADE, related_name='attempts', db_column='progress_id')
    mode = models.CharField(max_length=20, choices=MODE_CHOICES, db_column='mode')
    succeeded = models.BooleanField(default=False, db_column='is_success')
    score = models.PositiveSmallIntegerField(blank=True, null=True, db_column='score')
    duration_seconds = models.PositiveIntegerField(blank=True, null=True, db_column='duration_seconds')
    created_at = models.DateTimeField(default=timezone.now, db_column='created_at')

    class Meta:
        db_table = 'step_attempts'
        managed = True
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['progression', '-created_at'], name='idx_attempts_recent'),
        ]
        constraints = [
            # Field combination must match the mode exactly
            models.CheckConstraint(
                condition=(
                    Q(mode='binary', score__isnull=True, duration_seconds__isnull=True) |
                    Q(mode='rated', score__isnull=False, duration_seconds__isnull=True) |
                    Q(mode='timed', score__isnull=True, duration_seconds__isnull=False) |
                    Q(mode='rated_timed', score__isnull=False, duration_seconds__isnull=False)
                ),
                name='attempt_fields_match_mode'
            ),
        ]

    def __str__(self):
        return f"{self.mode} attempt on {self.progression_id} ({'ok' if self.succeeded else 'fail'})"
