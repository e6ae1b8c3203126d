"""
Keeps assignment status in line with learner progression
"""
from django.dispatch import receiver

from instructor.services.assignments import AssignmentPropagator
from learner.models import Progression
from learner.signals import step_status_changed


@receiver(step_status_changed, sender=Progression)
def complete_assignments(sender, progression, new_status, **kwargs):
    if new_status != 'validated':
        return
    AssignmentPropagator.refresh_completion(progression.student_id, progression.step.skill_id)
