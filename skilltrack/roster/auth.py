"""
Token login and principal resolution.

- login: validates email/password against the users table and returns a DRF token
- caller_context_from_request: maps the token's Django user back to a CallerContext
"""
import logging

from django.contrib.auth.hashers import check_password
from django.contrib.auth.models import User as DjangoUser
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from roster.context import CallerContext
from roster.models import UserProfile
from skilltrack.exceptions import AuthorizationError

logger = logging.getLogger(__name__)

USERNAME_PREFIX = 'user_'


def django_username_for(profile):
    return f"{USERNAME_PREFIX}{profile.id}"


def token_for_profile(profile):
    """Get or create the Django user and token that stand for a profile"""
    django_user, _ = DjangoUser.objects.get_or_create(
        username=django_username_for(profile),
        defaults={
            'email': profile.email,
            'first_name': profile.first_name,
            'last_name': profile.last_name,
        }
    )
    token, _ = Token.objects.get_or_create(user=django_user)
    return token


def caller_context_from_request(request):
    """Resolve the authenticated request user to a CallerContext"""
    user = request.user
    if not user or not user.is_authenticated:
        raise AuthorizationError('Authentication required')

    username = user.get_username()
    if not username.startswith(USERNAME_PREFIX):
        raise AuthorizationError('Authenticated user has no learner profile')

    try:
        profile = UserProfile.objects.get(id=username[len(USERNAME_PREFIX):], status='active')
    except (UserProfile.DoesNotExist, ValueError, DjangoValidationError):
        raise AuthorizationError('Authenticated user has no active profile')

    return CallerContext.for_profile(profile)


@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    """
    Login endpoint for all roles

    Request body:
    {
        "email": "user@example.com",
        "password": "password123"
    }
    """
    email = request.data.get('email')
    password = request.data.get('password')

    if not email or not password:
        return Response(
            {'success': False, 'error': 'Email and password are required'},
            status=status.HTTP_400_BAD_REQUEST
        )

    email = email.strip().lower()

    try:
        profile = UserProfile.objects.get(email__iexact=email)
    except UserProfile.DoesNotExist:
        return Response(
            {'success': False, 'error': 'Invalid email or password'},
            status=status.HTTP_401_UNAUTHORIZED
        )

    if profile.status != 'active':
        return Response(
            {'success': False, 'error': 'Your account is inactive. Please contact an administrator.'},
            status=status.HTTP_403_FORBIDDEN
        )

    if not profile.password_hash or not check_password(password, profile.password_hash):
        return Response(
            {'success': False, 'error': 'Invalid email or password'},
            status=status.HTTP_401_UNAUTHORIZED
        )

    profile.last_login = timezone.now()
    profile.save(update_fields=['last_login'])

    token = token_for_profile(profile)
    logger.info('User %s logged in (role: %s)', profile.email, profile.role)

    return Response({
        'success': True,
        'token': token.key,
        'user': {
            'id': str(profile.id),
            'email': profile.email,
            'first_name': profile.first_name,
            'last_name': profile.last_name,
            'name': profile.full_name,
            'role': profile.role,
            'status': profile.status,
        }
    }, status=status.HTTP_200_OK)
