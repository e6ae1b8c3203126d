"""
Assignment Propagator
Fans program assignments out to single students, to a group's current members,
and to students who join a group after the program was pushed to it
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count

from instructor.models import Assignment, GroupAssignment, Share, Step
from instructor.services.programs import get_active_program
from learner.models import Progression
from roster.models import Group, UserProfile
from roster.relationships import RelationshipLookup
from skilltrack.exceptions import AuthorizationError, NotFound
from skilltrack.lookups import get_or_not_found

logger = logging.getLogger(__name__)


def resolve_source_share(source_share_id, program, caller=None):
    """
    Active share of this program; when a caller is given they must be its
    recipient
    """
    share = get_or_not_found(
        Share.objects.filter(active=True),
        'Active share',
        id=source_share_id,
    )
    if share.program_id != program.id:
        raise NotFound('Share does not cover this program', share_id=str(share.id))
    if caller is not None and not caller.is_admin and str(share.recipient_id) != str(caller.id):
        raise AuthorizationError('Only the share recipient can assign through it', share_id=str(share.id))
    return share


def require_program_access(program, caller, share=None):
    """The author, an admin, or the recipient of an active share may assign"""
    if caller.is_admin or str(program.author_id) == str(caller.id):
        return
    if share is not None and str(share.recipient_id) == str(caller.id):
        return
    logger.warning(f"User {caller.id} may not assign program {program.id}")
    raise AuthorizationError('You cannot assign this program', program_id=str(program.id))


def _insert_assignment(program, student, **fields):
    """
    Create one Assignment inside a savepoint. Returns None when the
    (program, student) pair already exists; any other integrity error propagates.
    """
    try:
        with transaction.atomic():
            return Assignment.objects.create(program=program, student=student, **fields)
    except IntegrityError:
        if Assignment.objects.filter(program=program, student=student).exists():
            logger.debug(f"Program {program.id} already assigned to student {student.id}")
            return None
        raise


class AssignmentPropagator:
    """Service for distributing programs to students and groups"""

    @staticmethod
    def assign_direct(program_id, student_id, caller, source_share_id=None):
        """
        Assign a program to one student. A pre-existing assignment is reported
        as skipped rather than raised.
        """
        program = get_active_program(program_id)
        student = get_or_not_found(UserProfile, 'Student', id=student_id)
        share = resolve_source_share(source_share_id, program, caller) if source_share_id else None
        require_program_access(program, caller, share)
        if not RelationshipLookup.is_my_student(caller, student.id):
            logger.warning(f"User {caller.id} tried to assign program {program.id} to unrelated student {student.id}")
            raise AuthorizationError('This student is not yours', student_id=str(student.id))

        assignment = _insert_assignment(
            program,
            student,
            provenance='share' if share else 'direct',
            source_share=share,
            assigned_by_id=caller.id,
        )
        if assignment is None:
            return {'assigned': 0, 'skipped': 1, 'assignment': None}

        logger.info(f"Assigned program {program.id} to student {student.id} ({assignment.provenance})")
        return {'assigned': 1, 'skipped': 0, 'assignment': assignment}

    @staticmethod
    def assign_to_group(program_id, group_id, source_share_id=None, caller=None):
        """
        Record the group-level assignment and fan it out to every current
        member in one transaction. Members who already have the program are
        counted as skipped.
        """
        with transaction.atomic():
            program = get_active_program(program_id)
            group = get_or_not_found(Group.objects.filter(active=True), 'Group', id=group_id)
            share = resolve_source_share(source_share_id, program, caller) if source_share_id else None
            if caller is not None:
                require_program_access(program, caller, share)
                if not RelationshipLookup.is_my_group(caller, group.id):
                    raise AuthorizationError('This group is not yours', group_id=str(group.id))

            group_assignment, created = GroupAssignment.objects.get_or_create(
                program=program,
                group=group,
                defaults={'source_share': share},
            )
            if not created and share is not None and group_assignment.source_share_id != share.id:
                group_assignment.source_share = share
                group_assignment.save(update_fields=['source_share'])

            assigned = skipped = 0
            members = group.memberships.select_related('student').order_by('joined_at')
            for membership in members:
                assignment = _insert_assignment(
                    program,
                    membership.student,
                    provenance='group',
                    source_group=group,
                    source_group_assignment=group_assignment,
                    source_share=share,
                    assigned_by_id=caller.id if caller is not None else None,
                )
                if assignment is None:
                    skipped += 1
                else:
                    assigned += 1

        logger.info(f"Assigned program {program.id} to group {group.name}: {assigned} assigned, {skipped} skipped")
        return {'assigned': assigned, 'skipped': skipped, 'total_members': assigned + skipped}

    @staticmethod
    def assign_program(program_id, caller, student_ids=(), group_ids=(), source_share_id=None):
        """
        Batch entry point: assign to several students and groups at once.
        Targets the caller cannot reach are counted as skipped.
        """
        program = get_active_program(program_id)
        share = resolve_source_share(source_share_id, program, caller) if source_share_id else None
        require_program_access(program, caller, share)

        result = {
            'students': {'assigned': 0, 'skipped': 0},
            'groups': {'assigned': 0, 'skipped': 0, 'groups': 0, 'unreachable_groups': 0},
        }

        with transaction.atomic():
            for student_id in student_ids:
                student = RelationshipLookup.get_profile(student_id)
                if student is None or not RelationshipLookup.is_my_student(caller, student.id):
                    result['students']['skipped'] += 1
                    continue
                assignment = _insert_assignment(
                    program,
                    student,
                    provenance='share' if share else 'direct',
                    source_share=share,
                    assigned_by_id=caller.id,
                )
                result['students']['assigned' if assignment else 'skipped'] += 1

            for group_id in group_ids:
                try:
                    reachable = RelationshipLookup.is_my_group(caller, group_id)
                except (ValueError, DjangoValidationError):
                    reachable = False
                if not reachable:
                    result['groups']['unreachable_groups'] += 1
                    continue
                fan_out = AssignmentPropagator.assign_to_group(
                    program.id,
                    group_id,
                    source_share_id=share.id if share else None,
                    caller=caller,
                )
                result['groups']['groups'] += 1
                result['groups']['assigned'] += fan_out['assigned']
                result['groups']['skipped'] += fan_out['skipped']

        logger.info(f"Batch assignment of program {program.id} by {caller.id}: {result}")
        return result

    @staticmethod
    def on_member_joined_group(group_id, student_id):
        """
        Replay every group-level assignment of the group for the joining
        student only. Programs pushed through a share that has since been
        revoked are not replayed.
        """
        group = get_or_not_found(Group.objects.filter(active=True), 'Group', id=group_id)
        student = get_or_not_found(UserProfile, 'Student', id=student_id)
        assigned = skipped = 0

        with transaction.atomic():
            group_assignments = (
                GroupAssignment.objects.filter(group=group)
                .select_related('program', 'group', 'source_share')
                .order_by('assigned_at')
            )
            for group_assignment in group_assignments:
                share = group_assignment.source_share
                if not group_assignment.program.active or (share is not None and not share.active):
                    skipped += 1
                    continue
                assignment = _insert_assignment(
                    group_assignment.program,
                    student,
                    provenance='group',
                    source_group=group_assignment.group,
                    source_group_assignment=group_assignment,
                    source_share=share,
                )
                if assignment is None:
                    skipped += 1
                else:
                    assigned += 1

        if assigned:
            logger.info(f"Replayed {assigned} group programs for student {student.id} joining group {group.name}")
        return {'assigned': assigned, 'skipped': skipped}

    @staticmethod
    def refresh_completion(student_id, skill_id):
        """
        Mark the student's in-progress assignments of programs containing this
        skill as completed once every step of every program skill is validated.
        A completed assignment is never reopened.
        """
        validated_steps = Progression.objects.filter(student_id=student_id, status='validated').values('step_id')
        assignments = (
            Assignment.objects.filter(
                student_id=student_id,
                status='in_progress',
                program__memberships__skill_id=skill_id,
            )
            .distinct()
        )
        completed = 0
        for assignment in assignments:
            steps = Step.objects.filter(skill__program_memberships__program_id=assignment.program_id)
            if not steps.exists() or steps.exclude(id__in=validated_steps).exists():
                continue
            completed += Assignment.objects.filter(id=assignment.id, status='in_progress').update(status='completed')

        if completed:
            logger.info(f"Completed {completed} assignments of student {student_id}")
        return completed

    @staticmethod
    def retire_group_assignment(program_id, group_id, caller=None):
        """Delete only the group-level record; produced assignments stay"""
        if caller is not None and not RelationshipLookup.is_my_group(caller, group_id):
            raise AuthorizationError('This group is not yours', group_id=str(group_id))
        deleted, _ = GroupAssignment.objects.filter(program_id=program_id, group_id=group_id).delete()
        if deleted:
            logger.info(f"Retired group assignment of program {program_id} for group {group_id}")
        return bool(deleted)

    @staticmethod
    def remove_direct_assignment(program_id, student_id, caller):
        """Delete a direct assignment; group and share assignments are left alone"""
        assignment = get_or_not_found(
            Assignment.objects.select_related('program').filter(provenance='direct'),
            'Direct assignment',
            program_id=program_id,
            student_id=student_id,
        )
        require_program_access(assignment.program, caller)
        if not RelationshipLookup.is_my_student(caller, student_id):
            raise AuthorizationError('This student is not yours', student_id=str(student_id))

        assignment.delete()
        logger.info(f"Removed direct assignment of program {program_id} from student {student_id}")
        return True

    @staticmethod
    def assignment_summary(program_id, caller):
        """Groups (with member counts) and individually assigned students of a program"""
        program = get_active_program(program_id)
        if not caller.is_admin and str(program.author_id) != str(caller.id):
            received = Share.objects.filter(program=program, recipient_id=caller.id, active=True).exists()
            if not received:
                raise AuthorizationError('You cannot view this program', program_id=str(program.id))

        groups = [
            {
                'group_id': str(group_assignment.group_id),
                'name': group_assignment.group.name,
                'member_count': group_assignment.member_count,
                'assigned_at': group_assignment.assigned_at,
                'source_share_id': str(group_assignment.source_share_id) if group_assignment.source_share_id else None,
            }
            for group_assignment in (
                GroupAssignment.objects.filter(program=program)
                .select_related('group')
                .annotate(member_count=Count('group__memberships'))
                .order_by('group__name')
            )
        ]
        students = [
            {
                'student_id': str(assignment.student_id),
                'name': assignment.student.full_name,
                'email': assignment.student.email,
                'provenance': assignment.provenance,
                'detached': assignment.detached,
                'status': assignment.status,
            }
            for assignment in (
                Assignment.objects.filter(program=program, source_group__isnull=True)
                .select_related('student')
                .order_by('student__last_name', 'student__first_name')
            )
        ]
        return {'program_id': str(program.id), 'groups': groups, 'students': students}
