"""
Roster tests: login, relationship lookups and group management endpoints
"""
from django.contrib.auth.hashers import make_password
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from roster.context import CallerContext
from roster.models import GroupMember
from roster.relationships import RelationshipLookup
from skilltrack.factories import authenticate, link, make_profile


class LoginTest(APITestCase):

    def setUp(self):
        self.profile = make_profile('instructor', email='coach@test.com', password_hash=make_password('test123'))
        self.client = APIClient()

    def test_01_login_returns_token(self):
        response = self.client.post(
            '/api/roster/login/', {'email': 'Coach@Test.com', 'password': 'test123'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['user']['role'], 'instructor')

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {response.data['token']}")
        response = self.client.get('/api/roster/groups/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_02_wrong_password(self):
        response = self.client.post(
            '/api/roster/login/', {'email': 'coach@test.com', 'password': 'nope'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_03_missing_fields(self):
        response = self.client.post('/api/roster/login/', {'email': 'coach@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_04_inactive_profile(self):
        self.profile.status = 'inactive'
        self.profile.save()
        response = self.client.post(
            '/api/roster/login/', {'email': 'coach@test.com', 'password': 'test123'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class RelationshipLookupTestCase(TestCase):

    def setUp(self):
        self.instructor = make_profile('instructor')
        self.student = make_profile('student')
        self.caller = CallerContext.for_profile(self.instructor)

    def test_is_my_student_needs_accepted_link(self):
        self.assertFalse(RelationshipLookup.is_my_student(self.caller, self.student.id))
        link(self.instructor, self.student, status='pending')
        self.assertFalse(RelationshipLookup.is_my_student(self.caller, self.student.id))

        other = make_profile('student')
        link(self.instructor, other)
        self.assertTrue(RelationshipLookup.is_my_student(self.caller, other.id))

    def test_admin_and_self(self):
        admin = CallerContext.for_profile(make_profile('admin'))
        self.assertTrue(RelationshipLookup.is_my_student(admin, self.student.id))
        self.assertTrue(RelationshipLookup.is_my_student(CallerContext.for_profile(self.student), self.student.id))

    def test_teacher_share_either_direction(self):
        self.assertFalse(RelationshipLookup.can_share(self.student, self.instructor, 'teacher'))
        link(self.instructor, self.student)
        self.assertTrue(RelationshipLookup.can_share(self.student, self.instructor, 'teacher'))
        self.assertTrue(RelationshipLookup.can_share(self.instructor, self.student, 'teacher'))

    def test_peer_share_respects_school(self):
        sharer = make_profile('student', school_code='NORTH')
        same = make_profile('student', school_code='NORTH')
        other = make_profile('student', school_code='SOUTH')

        self.assertTrue(RelationshipLookup.can_share(sharer, same, 'peer'))
        self.assertFalse(RelationshipLookup.can_share(sharer, other, 'peer'))
        self.assertFalse(RelationshipLookup.can_share(sharer, self.instructor, 'peer'))
        self.assertFalse(RelationshipLookup.can_share(sharer, same, 'parent'))

    def test_get_profile_tolerates_garbage(self):
        self.assertIsNone(RelationshipLookup.get_profile('not-a-uuid'))
        self.assertEqual(RelationshipLookup.get_profile(self.student.id), self.student)


class GroupApiTest(APITestCase):

    def setUp(self):
        self.instructor = make_profile('instructor')
        self.student = make_profile('student')
        link(self.instructor, self.student)
        self.client = APIClient()
        authenticate(self.client, self.instructor)

    def test_create_group_and_manage_members(self):
        response = self.client.post('/api/roster/groups/', {'name': 'Evening class'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        group_id = response.data['id']

        url = f'/api/roster/groups/{group_id}/members/'
        response = self.client.post(url, {'student_id': str(self.student.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['assigned'], 0)

        response = self.client.post(url, {'student_id': str(self.student.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.get(f'/api/roster/groups/{group_id}/')
        self.assertEqual(response.data['member_count'], 1)

        response = self.client.delete(f'{url}{self.student.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(GroupMember.objects.exists())

    def test_students_cannot_manage_groups(self):
        client = APIClient()
        authenticate(client, self.student)
        response = client.get('/api/roster/groups/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
