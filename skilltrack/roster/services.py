"""
Group Roster Service
Group creation and membership changes. A joining student receives every
program already pushed to the group.
"""
import logging

from django.db import transaction

from instructor.services.assignments import AssignmentPropagator
from roster.models import Group, GroupMember, UserProfile
from roster.relationships import RelationshipLookup
from skilltrack.exceptions import AuthorizationError, Conflict, ValidationError
from skilltrack.lookups import get_or_not_found

logger = logging.getLogger(__name__)


class GroupRoster:
    """Service for instructor-managed groups"""

    @staticmethod
    def create_group(caller, name, description=''):
        if not caller.is_instructor:
            raise AuthorizationError('Only instructors can create groups')
        name = (name or '').strip()
        if not name:
            raise ValidationError('Group name is required')

        owner = get_or_not_found(UserProfile, 'Owner', id=caller.id)
        group = Group.objects.create(name=name, description=description or '', owner=owner)
        logger.info(f"Group {group.name} created by {owner.id}")
        return group

    @staticmethod
    def list_groups(caller):
        groups = Group.objects.filter(active=True)
        if not caller.is_admin:
            groups = groups.filter(owner_id=caller.id)
        return list(groups.prefetch_related('memberships__student').order_by('name'))

    @staticmethod
    def add_member(group_id, student_id, caller):
        """
        Add a student to one of the caller's groups and replay the group's
        program assignments for them. Returns the propagation counts.
        """
        group = get_or_not_found(Group.objects.filter(active=True), 'Group', id=group_id)
        student = get_or_not_found(UserProfile, 'Student', id=student_id)
        if not RelationshipLookup.is_my_group(caller, group.id):
            logger.warning(f"User {caller.id} tried to add a member to group {group.id}")
            raise AuthorizationError('This group is not yours', group_id=str(group.id))
        if not RelationshipLookup.is_my_student(caller, student.id):
            logger.warning(f"User {caller.id} tried to add unrelated student {student.id} to group {group.id}")
            raise AuthorizationError('This student is not yours', student_id=str(student.id))

        with transaction.atomic():
            if GroupMember.objects.filter(group=group, student=student).exists():
                raise Conflict('Student is already a member of this group', student_id=str(student.id))
            GroupMember.objects.create(group=group, student=student, added_by_id=caller.id)
            propagated = AssignmentPropagator.on_member_joined_group(group.id, student.id)

        logger.info(f"Student {student.id} joined group {group.name}; {propagated['assigned']} programs assigned")
        return propagated

    @staticmethod
    def remove_member(group_id, student_id, caller):
        """Remove a member; assignments the student received stay in place"""
        if not RelationshipLookup.is_my_group(caller, group_id):
            raise AuthorizationError('This group is not yours', group_id=str(group_id))
        membership = get_or_not_found(
            GroupMember.objects.filter(group_id=group_id),
            'Group member',
            student_id=student_id,
        )
        membership.delete()
        logger.info(f"Student {student_id} removed from group {group_id}")
        return True
