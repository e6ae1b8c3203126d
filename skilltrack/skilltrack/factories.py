"""
Fixture helpers shared by the app test suites.
"""
import uuid

from roster.auth import token_for_profile
from roster.models import InstructorStudentLink, UserProfile


def make_profile(role='student', first_name=None, last_name='Tester', **extra):
    """Create a profile with a unique email"""
    suffix = uuid.uuid4().hex[:8]
    return UserProfile.objects.create(
        first_name=first_name or role.title(),
        last_name=last_name,
        email=extra.pop('email', f"{role}-{suffix}@test.com"),
        role=role,
        **extra
    )


def link(instructor, student, status='accepted'):
    return InstructorStudentLink.objects.create(instructor=instructor, student=student, status=status)


def authenticate(client, profile):
    """Attach a token for profile to an APIClient"""
    token = token_for_profile(profile)
    client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
    return token
