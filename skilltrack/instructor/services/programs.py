"""
Program Catalog Service
Program authoring: ordered skill membership, reordering, template duplication and listings
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Max

from instructor.models import Assignment, Program, ProgramSkill, Skill
from roster.models import UserProfile
from skilltrack.exceptions import AuthorizationError, NotFound, ValidationError
from skilltrack.lookups import get_or_not_found

logger = logging.getLogger(__name__)


def get_active_program(program_id):
    return get_or_not_found(Program.objects.filter(active=True), 'Program', id=program_id)


def require_program_owner(program, caller):
    if caller.is_admin or str(program.author_id) == str(caller.id):
        return
    logger.warning(f"User {caller.id} attempted to modify program {program.id} owned by {program.author_id}")
    raise AuthorizationError('Only the program author can modify this program', program_id=str(program.id))


def _resolve_skills(skill_ids):
    """Fetch skills in the given order; duplicates and unknown ids are rejected"""
    keys = [str(skill_id) for skill_id in skill_ids]
    if len(set(keys)) != len(keys):
        raise ValidationError('A skill can appear only once in a program')
    try:
        found = {str(skill.id): skill for skill in Skill.objects.filter(id__in=keys)}
    except (ValueError, DjangoValidationError):
        found = {}
    missing = [key for key in keys if key not in found]
    if missing:
        raise NotFound('Skill not found', skill_ids=missing)
    return [found[key] for key in keys]


class ProgramCatalog:
    """Service for program authoring and listings"""

    @staticmethod
    def create_program(author_id, name, skill_ids=(), description='', is_template=False):
        name = (name or '').strip()
        if not name:
            raise ValidationError('Program name is required')

        with transaction.atomic():
            author = get_or_not_found(UserProfile, 'Author', id=author_id)
            skills = _resolve_skills(skill_ids)
            program = Program.objects.create(
                name=name,
                description=description or '',
                author=author,
                is_template=bool(is_template),
            )
            ProgramSkill.objects.bulk_create([
                ProgramSkill(program=program, skill=skill, order=index + 1)
                for index, skill in enumerate(skills)
            ])

        logger.info(f"Created program {program.name} with {len(skills)} skills for author {author.id}")
        return program

    @staticmethod
    def add_skills_to_program(program_id, skill_ids, caller):
        """Append skills after the current last one; skills already present are skipped"""
        with transaction.atomic():
            program = get_active_program(program_id)
            require_program_owner(program, caller)
            skills = _resolve_skills(skill_ids)

            present = set(program.memberships.values_list('skill_id', flat=True))
            next_order = (program.memberships.aggregate(m=Max('order'))['m'] or 0) + 1
            added = skipped = 0
            for skill in skills:
                if skill.id in present:
                    skipped += 1
                    continue
                ProgramSkill.objects.create(program=program, skill=skill, order=next_order)
                next_order += 1
                added += 1

        logger.info(f"Added {added} skills to program {program.id} ({skipped} already present)")
        return {'added': added, 'skipped': skipped}

    @staticmethod
    def remove_skill_from_program(program_id, skill_id, caller):
        """Remove one skill and close the gap in the order indexes"""
        with transaction.atomic():
            program = get_active_program(program_id)
            require_program_owner(program, caller)
            deleted, _ = program.memberships.filter(skill_id=skill_id).delete()
            if not deleted:
                raise NotFound('Skill is not part of this program', skill_id=str(skill_id))

            for index, membership in enumerate(program.memberships.order_by('order')):
                if membership.order != index + 1:
                    membership.order = index + 1
                    membership.save(update_fields=['order'])

        logger.info(f"Removed skill {skill_id} from program {program.id}")
        return True

    @staticmethod
    def reorder_program(program_id, ordering, caller):
        """
        Apply [(skill_id, order), ...] to the program's memberships.
        Every skill listed must already belong to the program.
        """
        with transaction.atomic():
            program = get_active_program(program_id)
            require_program_owner(program, caller)
            memberships = {str(m.skill_id): m for m in program.memberships.all()}

            for skill_id, order in ordering:
                membership = memberships.get(str(skill_id))
                if membership is None:
                    raise ValidationError('Skill is not part of this program', skill_id=str(skill_id))
                if isinstance(order, bool) or not isinstance(order, int) or order < 1:
                    raise ValidationError('Order must be a positive integer', skill_id=str(skill_id), order=order)
                membership.order = order
                membership.save(update_fields=['order'])

        logger.info(f"Reordered {len(ordering)} skills in program {program.id}")
        return ProgramCatalog.program_skills(program.id)

    @staticmethod
    def duplicate_program(program_id, caller_id, new_name=None):
        """Copy a program for caller_id; allowed for the owner or for any template"""
        with transaction.atomic():
            source = get_active_program(program_id)
            if not source.is_template and str(source.author_id) != str(caller_id):
                raise AuthorizationError('Only templates or your own programs can be duplicated', program_id=str(source.id))
            author = get_or_not_found(UserProfile, 'User', id=caller_id)

            copy = Program.objects.create(
                name=(new_name or '').strip() or f"{source.name} (copy)",
                description=source.description,
                author=author,
                is_template=False,
            )
            ProgramSkill.objects.bulk_create([
                ProgramSkill(program=copy, skill_id=membership.skill_id, order=membership.order)
                for membership in source.memberships.order_by('order')
            ])

        logger.info(f"Duplicated program {source.id} as {copy.id} for user {author.id}")
        return copy

    @staticmethod
    def program_skills(program_id):
        return list(
            ProgramSkill.objects.filter(program_id=program_id)
            .select_related('skill')
            .order_by('order')
        )

    @staticmethod
    def list_authored_programs(author_id):
        return list(
            Program.objects.filter(author_id=author_id, active=True)
            .prefetch_related('memberships__skill')
            .order_by('-created_at')
        )

    @staticmethod
    def list_student_programs(student_id):
        """
        Programs visible to a student: everything assigned to them (with
        provenance and detachment) and everything they authored themselves
        """
        assignments = (
            Assignment.objects.filter(student_id=student_id, program__active=True)
            .select_related('program', 'source_group', 'source_share')
            .order_by('-assigned_at')
        )
        assigned_ids = set()
        assigned = []
        for assignment in assignments:
            assigned_ids.add(assignment.program_id)
            assigned.append({
                'assignment_id': str(assignment.id),
                'program_id': str(assignment.program_id),
                'name': assignment.program.name,
                'provenance': assignment.provenance,
                'source_group': assignment.source_group.name if assignment.source_group else None,
                'detached': assignment.detached,
                'detached_note': assignment.detached_note,
                'status': assignment.status,
                'assigned_at': assignment.assigned_at,
            })

        authored = [
            {
                'program_id': str(program.id),
                'name': program.name,
                'is_template': program.is_template,
                'created_at': program.created_at,
            }
            for program in Program.objects.filter(author_id=student_id, active=True).exclude(id__in=assigned_ids).order_by('-created_at')
        ]
        return {'assigned': assigned, 'authored': authored}
