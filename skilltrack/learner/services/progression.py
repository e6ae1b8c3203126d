"""
Progression Store
Owns the per-step status state machine: not_started -> in_progress -> validated.
A validated step never regresses; rows disappear only through abandon_skill_progression.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from instructor.models import Skill, Step
from learner.models import Progression
from learner.signals import step_status_changed
from roster.models import UserProfile
from skilltrack.exceptions import Conflict, NotFound, ValidationError
from skilltrack.lookups import get_or_not_found

logger = logging.getLogger(__name__)

LATERALITIES = ('left', 'right', 'both')


def derive_skill_status(statuses, step_count):
    """Aggregate status of a skill from its step statuses; never stored"""
    validated = sum(1 for status in statuses if status == 'validated')
    if step_count and validated >= step_count:
        return 'validated'
    if any(status in ('validated', 'in_progress') for status in statuses):
        return 'in_progress'
    return 'not_started'


def _emit_status_change(progression, previous_status, new_status, source):
    # Receivers only hear about committed transitions
    transaction.on_commit(lambda: step_status_changed.send(
        sender=Progression,
        progression=progression,
        previous_status=previous_status,
        new_status=new_status,
        source=source,
    ))


class ProgressionStore:
    """Service for per-student step progression"""

    @staticmethod
    def start_skill_progression(student_id, skill_id):
        """
        Create one not_started row per step of the skill, all or nothing.
        Raises Conflict when the student already has any row for this skill.
        """
        student = get_or_not_found(UserProfile, 'Student', id=student_id)
        skill = get_or_not_found(Skill, 'Skill', id=skill_id)
        steps = list(skill.steps.order_by('order'))
        if not steps:
            raise NotFound('Skill has no steps', skill_id=str(skill.id))

        with transaction.atomic():
            if Progression.objects.filter(student=student, step__skill=skill).exists():
                logger.warning(f"Duplicate start of skill {skill.id} for student {student.id}")
                raise Conflict('Skill progression already started', skill_id=str(skill.id))
            try:
                with transaction.atomic():
                    rows = Progression.objects.bulk_create([
                        Progression(student=student, step=step, status='not_started')
                        for step in steps
                    ])
            except IntegrityError:
                # A concurrent start or attempt created one of the rows first
                logger.warning(f"Concurrent start of skill {skill.id} for student {student.id}")
                raise Conflict('Skill progression already started', skill_id=str(skill.id))

        logger.info(f"Started skill {skill.name} for student {student.id}: {len(rows)} steps")
        return rows

    @staticmethod
    def record_attempt_outcome(progression, succeeded):
        """
        Apply one attempt outcome to a progression row. Called by AttemptRecorder
        inside its transaction.
        """
        previous_status = progression.status
        if previous_status == 'validated':
            return progression

        new_status = 'validated' if succeeded else 'in_progress'
        if new_status == previous_status:
            return progression

        progression.status = new_status
        update_fields = ['status', 'updated_at']
        if new_status == 'validated':
            progression.validated_at = timezone.now()
            update_fields.append('validated_at')
        progression.save(update_fields=update_fields)

        logger.info(f"Step {progression.step_id} for student {progression.student_id}: {previous_status} -> {new_status}")
        _emit_status_change(progression, previous_status, new_status, 'attempt')
        return progression

    @staticmethod
    def validate_step_manually(step_id, student_id, validator_id, side_attribute=None):
        """Instructor validation with audit fields; requires an existing row"""
        if side_attribute is not None and side_attribute not in LATERALITIES:
            raise ValidationError(
                f"Unknown side attribute '{side_attribute}'",
                allowed=list(LATERALITIES)
            )
        validator = get_or_not_found(UserProfile, 'Validator', id=validator_id)

        with transaction.atomic():
            progression = get_or_not_found(
                Progression.objects.select_for_update(),
                'Progression',
                student_id=student_id,
                step_id=step_id,
            )
            previous_status = progression.status
            progression.status = 'validated'
            progression.validated_at = timezone.now()
            progression.validated_by = validator
            progression.laterality = side_attribute
            progression.save(update_fields=['status', 'validated_at', 'validated_by', 'laterality', 'updated_at'])

            if previous_status != 'validated':
                _emit_status_change(progression, previous_status, 'validated', 'manual')

        logger.info(f"Step {step_id} validated for student {student_id} by {validator.id}")
        return progression

    @staticmethod
    def abandon_skill_progression(student_id, skill_id):
        """
        Delete every progression row (and its attempts) of one skill for one
        student. Idempotent: nothing to delete is a zero-count success.
        """
        with transaction.atomic():
            _, per_model = Progression.objects.filter(student_id=student_id, step__skill_id=skill_id).delete()

        result = {
            'deleted_progressions': per_model.get(Progression._meta.label, 0),
            'deleted_attempts': per_model.get('learner.Attempt', 0),
        }
        if result['deleted_progressions']:
            logger.info(f"Abandoned skill {skill_id} for student {student_id}: {result}")
        else:
            logger.debug(f"Nothing to abandon for skill {skill_id} and student {student_id}")
        return result

    @staticmethod
    def get_student_progressions(student_id):
        """
        Skills the student has progression on, each with its order-sorted steps
        and derived aggregate status
        """
        rows = (
            Progression.objects.filter(student_id=student_id)
            .select_related('step__skill')
            .order_by('step__skill__name', 'step__order')
        )

        skills = {}
        for row in rows:
            skill = row.step.skill
            entry = skills.setdefault(skill.id, {
                'skill_id': str(skill.id),
                'skill_name': skill.name,
                'steps': [],
            })
            entry['steps'].append({
                'progression_id': str(row.id),
                'step_id': str(row.step_id),
                'title': row.step.title,
                'order': row.step.order,
                'status': row.status,
                'validated_at': row.validated_at,
                'laterality': row.laterality,
            })

        step_counts = dict(
            Step.objects.filter(skill_id__in=skills.keys())
            .order_by()
            .values('skill_id')
            .annotate(total=Count('id'))
            .values_list('skill_id', 'total')
        )
        for skill_id, entry in skills.items():
            entry['status'] = derive_skill_status(
                [step['status'] for step in entry['steps']],
                step_counts.get(skill_id, 0)
            )
        return list(skills.values())

    @staticmethod
    def get_skill_steps(student_id, skill_id):
        skill = get_or_not_found(Skill, 'Skill', id=skill_id)
        return list(
            Progression.objects.filter(student_id=student_id, step__skill=skill)
            .select_related('step')
            .order_by('step__order')
        )

    @staticmethod
    def skill_status(student_id, skill_id):
        statuses = list(
            Progression.objects.filter(student_id=student_id, step__skill_id=skill_id)
            .values_list('status', flat=True)
        )
        step_count = Step.objects.filter(skill_id=skill_id).count()
        return derive_skill_status(statuses, step_count)
