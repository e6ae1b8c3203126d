"""
Relationship lookup used by the instructor services for authorization.

Answers "is this student mine", "is this group mine" and "may these two
users share programs with each other". The engine calls it but never owns the
policy.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q

from roster.models import UserProfile, InstructorStudentLink, Group


class RelationshipLookup:
    """Read-only relationship queries against the roster tables"""

    @staticmethod
    def is_my_student(caller, student_id):
        """An admin reaches every student; an instructor only accepted links"""
        if caller.is_admin:
            return True
        if str(caller.id) == str(student_id):
            # Self-directed learners manage their own programs
            return True
        return InstructorStudentLink.objects.filter(
            instructor_id=caller.id,
            student_id=student_id,
            status='accepted'
        ).exists()

    @staticmethod
    def is_my_group(caller, group_id):
        queryset = Group.objects.filter(id=group_id, active=True)
        if not caller.is_admin:
            queryset = queryset.filter(owner_id=caller.id)
        return queryset.exists()

    @staticmethod
    def can_share(sharer, recipient, audience):
        """
        Sharing eligibility between two profiles.

        teacher: an accepted instructor-student link between the pair (either
                 direction), or the recipient is an admin.
        peer:    both users are students, in the same school when the sharer has one.
        """
        if audience == 'teacher':
            if recipient.role == 'admin':
                return True
            return InstructorStudentLink.objects.filter(
                Q(instructor_id=sharer.id, student_id=recipient.id) |
                Q(instructor_id=recipient.id, student_id=sharer.id),
                status='accepted'
            ).exists()
        if audience == 'peer':
            if sharer.role != 'student' or recipient.role != 'student':
                return False
            if sharer.school_code:
                return recipient.school_code == sharer.school_code
            return True
        return False

    @staticmethod
    def get_profile(user_id):
        try:
            return UserProfile.objects.get(id=user_id)
        except (UserProfile.DoesNotExist, ValueError, DjangoValidationError):
            return None
