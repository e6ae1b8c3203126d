"""
Instructor API tests
Authoring, distribution and sharing through the REST layer
"""
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from instructor.models import Assignment, Share
from instructor.services.catalog import SkillCatalog
from instructor.services.programs import ProgramCatalog
from roster.models import Group, GroupMember
from skilltrack.factories import authenticate, link, make_profile


class SkillApiTest(APITestCase):

    def setUp(self):
        self.instructor = make_profile('instructor')
        self.client = APIClient()
        authenticate(self.client, self.instructor)

    def _create(self, name, steps=('Hold',)):
        response = self.client.post(
            '/api/instructor/skills/',
            {'name': name, 'steps': [{'title': title} for title in steps]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data

    def test_create_skill(self):
        data = self._create('Handstand', ['Wall hold', 'Free hold'])

        self.assertEqual([s['title'] for s in data['steps']], ['Wall hold', 'Free hold'])
        self.assertEqual(data['created_by'], str(self.instructor.id))

    def test_cycle_is_reported_with_chain(self):
        a = self._create('Handstand')
        b = self._create('Wall walk')
        self.client.post(f"/api/instructor/skills/{a['id']}/prerequisites/", {'prerequisite_id': b['id']}, format='json')

        response = self.client.post(
            f"/api/instructor/skills/{b['id']}/prerequisites/", {'prerequisite_id': a['id']}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['type'], 'CYCLE_DETECTED')
        self.assertEqual(response.data['details']['chain'], [b['id'], a['id'], b['id']])

    def test_duplicate_edge_conflicts(self):
        a = self._create('Handstand')
        b = self._create('Wall walk')
        url = f"/api/instructor/skills/{a['id']}/prerequisites/"

        first = self.client.post(url, {'prerequisite_id': b['id'], 'weight': 2}, format='json')
        second = self.client.post(url, {'prerequisite_id': b['id']}, format='json')

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)

        response = self.client.get(url)
        self.assertEqual([edge['prerequisite_id'] for edge in response.data], [b['id']])

        response = self.client.delete(f"{url}{b['id']}/")
        self.assertEqual(response.data, {'deleted': 1})

    def test_students_cannot_author_skills(self):
        client = APIClient()
        authenticate(client, make_profile('student'))
        response = client.post('/api/instructor/skills/', {'name': 'Plank', 'steps': [{'title': 'Hold'}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProgramApiTest(APITestCase):

    def setUp(self):
        self.instructor = make_profile('instructor')
        self.students = [make_profile('student') for _ in range(2)]
        for student in self.students:
            link(self.instructor, student)
        self.group = Group.objects.create(name='Morning class', owner=self.instructor)
        GroupMember.objects.create(group=self.group, student=self.students[0])
        self.skill = SkillCatalog.create_skill('Handstand', ['Wall hold'])
        self.client = APIClient()
        authenticate(self.client, self.instructor)

    def _program(self):
        response = self.client.post(
            '/api/instructor/programs/', {'name': 'Inversions', 'skill_ids': [str(self.skill.id)]}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data

    def test_assign_to_students_and_groups(self):
        program = self._program()

        response = self.client.post(
            f"/api/instructor/programs/{program['id']}/assign/",
            {'student_ids': [str(self.students[1].id)], 'group_ids': [str(self.group.id)]},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['students'], {'assigned': 1, 'skipped': 0})
        self.assertEqual(response.data['groups']['assigned'], 1)
        self.assertEqual(Assignment.objects.filter(program_id=program['id']).count(), 2)

        summary = self.client.get(f"/api/instructor/programs/{program['id']}/assignments/")
        self.assertEqual(summary.status_code, status.HTTP_200_OK)
        self.assertEqual(len(summary.data['groups']), 1)

    def test_direct_assignment_endpoint(self):
        program = self._program()
        payload = {'program_id': program['id'], 'student_id': str(self.students[0].id)}

        first = self.client.post('/api/instructor/assignments/', payload, format='json')
        second = self.client.post('/api/instructor/assignments/', payload, format='json')

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.data['assignment']['provenance'], 'direct')
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.data['skipped'], 1)

    def test_direct_assignment_requires_ids(self):
        response = self.client.post('/api/instructor/assignments/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unrelated_student_is_forbidden(self):
        program = self._program()
        response = self.client.post(
            '/api/instructor/assignments/',
            {'program_id': program['id'], 'student_id': str(make_profile('student').id)},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ShareApiTest(APITestCase):

    def setUp(self):
        self.author = make_profile('student')
        self.teacher = make_profile('instructor')
        link(self.teacher, self.author)
        skill = SkillCatalog.create_skill('Handstand', ['Wall hold'])
        self.program = ProgramCatalog.create_program(self.author.id, 'My inversions', [skill.id])
        self.author_client = APIClient()
        authenticate(self.author_client, self.author)
        self.teacher_client = APIClient()
        authenticate(self.teacher_client, self.teacher)

    def test_share_assign_revoke_and_delete(self):
        response = self.author_client.post(
            f'/api/instructor/programs/{self.program.id}/shares/',
            {'recipient_id': str(self.teacher.id), 'audience': 'teacher'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        share_id = response.data['share']['id']

        received = self.teacher_client.get('/api/instructor/shares/')
        self.assertEqual([s['id'] for s in received.data], [share_id])

        pupil = make_profile('student')
        link(self.teacher, pupil)
        response = self.teacher_client.post(
            '/api/instructor/assignments/',
            {'program_id': str(self.program.id), 'student_id': str(pupil.id), 'source_share_id': share_id},
            format='json'
        )
        self.assertEqual(response.data['assignment']['provenance'], 'share')

        blocked = self.author_client.delete(f'/api/instructor/programs/{self.program.id}/')
        self.assertEqual(blocked.status_code, status.HTTP_409_CONFLICT)

        response = self.author_client.post(f'/api/instructor/shares/{share_id}/revoke/')
        self.assertEqual(response.data, {'revoked': True, 'detached': 1})
        self.assertTrue(Assignment.objects.get(student=pupil).detached)

        response = self.author_client.delete(f'/api/instructor/programs/{self.program.id}/')
        self.assertIn(response.status_code, (status.HTTP_200_OK, status.HTTP_204_NO_CONTENT))
        self.assertFalse(Share.objects.filter(active=True).exists())

    def test_recipient_cannot_revoke(self):
        share = Share.objects.create(program=self.program, sharer=self.author, recipient=self.teacher, audience='teacher')
        response = self.teacher_client.post(f'/api/instructor/shares/{share.id}/revoke/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
