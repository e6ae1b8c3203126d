"""
Skill Catalog Service
Transactional authoring of skills, their ordered steps and prerequisite edges
"""
import logging

from django.conf import settings
from django.db import transaction

from instructor.models import Skill, Step
from instructor.services.prerequisites import PrerequisiteService, normalize_edge
from roster.models import UserProfile
from skilltrack.exceptions import Conflict, NotFound, ValidationError
from skilltrack.lookups import get_or_not_found

logger = logging.getLogger(__name__)


def _default_step_weight():
    return getattr(settings, 'SKILLTRACK', {}).get('DEFAULT_STEP_WEIGHT', 10)


def _clean_step(data, position):
    """Normalize a step payload: a bare title or a dict with title/order/weight"""
    if isinstance(data, str):
        data = {'title': data}
    title = (data.get('title') or '').strip()
    if not title:
        raise ValidationError('Every step needs a title', position=position + 1)

    order = data.get('order')
    if order is None:
        order = position + 1
    weight = data.get('weight')
    if weight is None:
        weight = _default_step_weight()
    for name, value in (('order', order), ('weight', weight)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError(f"Step {name} must be a positive integer", position=position + 1, **{name: value})

    return {
        'id': data.get('id'),
        'title': title,
        'description': data.get('description') or '',
        'order': order,
        'weight': weight,
    }


class SkillCatalog:
    """Service for skill and step authoring"""

    @staticmethod
    def create_skill(name, steps, created_by=None, description='', prerequisites=()):
        """
        Create a skill with its steps and prerequisite edges in one transaction.
        Any invalid step or edge leaves nothing behind.
        """
        name = (name or '').strip()
        if not name:
            raise ValidationError('Skill name is required')
        cleaned_steps = [_clean_step(step, position) for position, step in enumerate(steps or [])]

        with transaction.atomic():
            author = None
            if created_by is not None:
                author = get_or_not_found(UserProfile, 'Author', id=created_by)

            skill = Skill.objects.create(name=name, description=description or '', created_by=author)
            Step.objects.bulk_create([
                Step(
                    skill=skill,
                    title=step['title'],
                    description=step['description'],
                    order=step['order'],
                    weight=step['weight'],
                )
                for step in cleaned_steps
            ])

            for edge in prerequisites or ():
                edge = normalize_edge(edge)
                PrerequisiteService.add_prerequisite(
                    skill.id,
                    edge['prerequisite_id'],
                    order=edge['order'],
                    is_required=edge['is_required'],
                    weight=edge['weight'],
                )

        logger.info(f"Created skill {skill.name} with {len(cleaned_steps)} steps")
        return skill

    @staticmethod
    def update_steps(skill_id, steps):
        """
        Granular upsert of a skill's steps: entries with an id are updated,
        entries without one are created, and steps not listed are deleted.
        A step that any student has progression on is never deleted: Conflict.
        """
        cleaned_steps = [_clean_step(step, position) for position, step in enumerate(steps or [])]

        with transaction.atomic():
            skill = get_or_not_found(Skill, 'Skill', id=skill_id)
            existing = {str(step.id): step for step in skill.steps.all()}
            kept = set()
            created = updated = 0

            for step in cleaned_steps:
                if step['id']:
                    current = existing.get(str(step['id']))
                    if current is None:
                        raise NotFound('Step not found on this skill', step_id=str(step['id']))
                    current.title = step['title']
                    current.description = step['description']
                    current.order = step['order']
                    current.weight = step['weight']
                    current.save(update_fields=['title', 'description', 'order', 'weight', 'updated_at'])
                    kept.add(str(current.id))
                    updated += 1
                else:
                    Step.objects.create(
                        skill=skill,
                        title=step['title'],
                        description=step['description'],
                        order=step['order'],
                        weight=step['weight'],
                    )
                    created += 1

            stale = [step_id for step_id in existing if step_id not in kept]
            practised = list(
                Step.objects.filter(id__in=stale, progressions__isnull=False)
                .distinct()
                .values_list('id', flat=True)
            )
            if practised:
                logger.warning(f"Refused to delete {len(practised)} practised steps of skill {skill.id}")
                raise Conflict(
                    'Steps with student progression cannot be removed',
                    step_ids=[str(step_id) for step_id in practised],
                )
            if stale:
                Step.objects.filter(id__in=stale).delete()

        logger.info(f"Updated steps of skill {skill.name}: {created} created, {updated} updated, {len(stale)} deleted")
        return {'created': created, 'updated': updated, 'deleted': len(stale)}

    @staticmethod
    def get_skill(skill_id):
        return get_or_not_found(Skill.objects.prefetch_related('steps'), 'Skill', id=skill_id)
