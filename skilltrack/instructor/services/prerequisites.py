"""
Prerequisite Graph Service
Keeps the skill -> prerequisite graph acyclic and computes prerequisite readiness
"""
from collections import deque
import logging
import uuid

from django.db import transaction
from django.db.models import Max

from instructor.models import Skill, SkillPrerequisite
from learner.services.progression import ProgressionStore
from skilltrack.exceptions import CycleDetected, Conflict, ValidationError
from skilltrack.lookups import get_or_not_found

logger = logging.getLogger(__name__)

MIN_EDGE_WEIGHT = 1
MAX_EDGE_WEIGHT = 3


def _node_key(skill_id):
    try:
        return str(uuid.UUID(str(skill_id)))
    except ValueError:
        return str(skill_id)


class PrerequisiteGraphValidator:
    """Rejects prerequisite edges that would close a cycle"""

    @staticmethod
    def find_cycle(skill_id, prerequisite_id):
        """
        Breadth-first walk of the "requires" graph starting at prerequisite_id.

        Returns the chain [skill_id, prerequisite_id, ..., skill_id] when adding
        "skill_id requires prerequisite_id" would close a cycle, otherwise None.
        """
        target = _node_key(skill_id)
        start = _node_key(prerequisite_id)
        if target == start:
            return [target, target]

        parents = {start: None}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            if current == target:
                path = []
                node = current
                while node is not None:
                    path.append(node)
                    node = parents[node]
                path.reverse()
                return [target] + path

            requires = SkillPrerequisite.objects.filter(skill_id=current).values_list('prerequisite_id', flat=True)
            for next_id in requires:
                key = _node_key(next_id)
                if key not in parents:
                    parents[key] = current
                    queue.append(key)
        return None

    @staticmethod
    def validate_edge(skill_id, prerequisite_id):
        chain = PrerequisiteGraphValidator.find_cycle(skill_id, prerequisite_id)
        if chain is not None:
            logger.warning(f"Rejected prerequisite {prerequisite_id} for skill {skill_id}: cycle {' -> '.join(chain)}")
            if len(chain) == 2:
                message = 'A skill cannot be its own prerequisite'
            else:
                message = 'Prerequisite would create a cycle'
            raise CycleDetected(message, chain=chain)


def _clean_edge_options(order, weight):
    if order is not None:
        if isinstance(order, bool) or not isinstance(order, int) or order < 1:
            raise ValidationError('Prerequisite order must be a positive integer', order=order)
    if isinstance(weight, bool) or not isinstance(weight, int) or not MIN_EDGE_WEIGHT <= weight <= MAX_EDGE_WEIGHT:
        raise ValidationError(
            f"Prerequisite weight must be between {MIN_EDGE_WEIGHT} and {MAX_EDGE_WEIGHT}",
            weight=weight
        )


def normalize_edge(edge):
    """Accept a bare prerequisite id or a dict with prerequisite_id and options"""
    if isinstance(edge, dict):
        if not edge.get('prerequisite_id'):
            raise ValidationError('prerequisite_id is required for every edge')
        return {
            'prerequisite_id': edge['prerequisite_id'],
            'order': edge.get('order'),
            'is_required': edge.get('is_required', True),
            'weight': edge.get('weight', 1),
        }
    return {'prerequisite_id': edge, 'order': None, 'is_required': True, 'weight': 1}


class PrerequisiteService:
    """CRUD over prerequisite edges; every insert goes through the validator"""

    @staticmethod
    def add_prerequisite(skill_id, prerequisite_id, order=None, is_required=True, weight=1):
        _clean_edge_options(order, weight)

        with transaction.atomic():
            skill = get_or_not_found(Skill, 'Skill', id=skill_id)
            prerequisite = get_or_not_found(Skill, 'Prerequisite skill', id=prerequisite_id)
            PrerequisiteGraphValidator.validate_edge(skill.id, prerequisite.id)

            if SkillPrerequisite.objects.filter(skill=skill, prerequisite=prerequisite).exists():
                logger.warning(f"Duplicate prerequisite {prerequisite.id} for skill {skill.id}")
                raise Conflict('Prerequisite already exists', skill_id=str(skill.id), prerequisite_id=str(prerequisite.id))

            if order is None:
                current_max = SkillPrerequisite.objects.filter(skill=skill).aggregate(m=Max('order'))['m']
                order = (current_max or 0) + 1

            edge = SkillPrerequisite.objects.create(
                skill=skill,
                prerequisite=prerequisite,
                order=order,
                is_required=bool(is_required),
                weight=weight,
            )

        logger.info(f"Added prerequisite {prerequisite.name} to skill {skill.name}")
        return edge

    @staticmethod
    def remove_prerequisite(skill_id, prerequisite_id):
        """Idempotent; returns the number of deleted edges"""
        deleted, _ = SkillPrerequisite.objects.filter(skill_id=skill_id, prerequisite_id=prerequisite_id).delete()
        if deleted:
            logger.info(f"Removed prerequisite {prerequisite_id} from skill {skill_id}")
        else:
            logger.debug(f"No prerequisite {prerequisite_id} on skill {skill_id} to remove")
        return deleted

    @staticmethod
    def replace_prerequisites(skill_id, edges):
        """
        Replace every prerequisite of a skill in one transaction.

        Each new edge is validated against the graph as it stands inside the
        transaction, so edges inserted earlier in the same call are seen by the
        cycle check of later ones. The first invalid edge rolls back the whole
        replacement, including the deletion of the previous edges.
        """
        normalized = [normalize_edge(edge) for edge in edges]
        seen = set()
        for edge in normalized:
            key = str(edge['prerequisite_id'])
            if key in seen:
                raise ValidationError('Duplicate prerequisite in replacement set', prerequisite_id=key)
            seen.add(key)

        with transaction.atomic():
            skill = get_or_not_found(Skill, 'Skill', id=skill_id)
            removed, _ = SkillPrerequisite.objects.filter(skill=skill).delete()

            created = []
            for position, edge in enumerate(normalized):
                created.append(PrerequisiteService.add_prerequisite(
                    skill.id,
                    edge['prerequisite_id'],
                    order=edge['order'] if edge['order'] is not None else position + 1,
                    is_required=edge['is_required'],
                    weight=edge['weight'],
                ))

        logger.info(f"Replaced prerequisites of skill {skill.name}: removed {removed}, added {len(created)}")
        return created

    @staticmethod
    def list_prerequisites(skill_id):
        skill = get_or_not_found(Skill, 'Skill', id=skill_id)
        return list(
            SkillPrerequisite.objects.filter(skill=skill)
            .select_related('prerequisite')
            .order_by('order', 'created_at')
        )

    @staticmethod
    def prerequisite_readiness(student_id, skill_id):
        """
        Weighted share of the skill's required prerequisites the student has
        validated, in [0, 1]. A skill without required prerequisites is ready.
        """
        skill = get_or_not_found(Skill, 'Skill', id=skill_id)
        required = list(SkillPrerequisite.objects.filter(skill=skill, is_required=True))
        if not required:
            return 1.0

        total = sum(edge.weight for edge in required)
        satisfied = sum(
            edge.weight
            for edge in required
            if ProgressionStore.skill_status(student_id, edge.prerequisite_id) == 'validated'
        )
        return satisfied / total
