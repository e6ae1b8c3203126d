"""
Share lifecycle tests: creation rules, revocation cascade and guarded program deletion
"""
from django.test import TestCase

from instructor.models import Assignment, Share
from instructor.services.assignments import AssignmentPropagator
from instructor.services.catalog import SkillCatalog
from instructor.services.programs import ProgramCatalog
from instructor.services.shares import ShareLifecycleManager
from roster.context import CallerContext
from roster.models import Group, GroupMember
from skilltrack.exceptions import AuthorizationError, Conflict, NotFound, ValidationError
from skilltrack.factories import link, make_profile


class ShareTestBase(TestCase):
    """A self-directed student authors a program and shares it with their teacher"""

    def setUp(self):
        self.author = make_profile('student', first_name='Ada')
        self.teacher = make_profile('instructor', first_name='Grace')
        link(self.teacher, self.author)
        skill = SkillCatalog.create_skill('Handstand', ['Wall hold', 'Free hold'])
        self.program = ProgramCatalog.create_program(self.author.id, 'My inversions', [skill.id])

    def share_with_teacher(self):
        return ShareLifecycleManager.create_share(self.program.id, self.author.id, self.teacher.id, 'teacher')['share']

    def teacher_group(self, size):
        group = Group.objects.create(name='Evening class', owner=self.teacher)
        students = []
        for index in range(size):
            student = make_profile('student', first_name=f"Pupil{index}")
            link(self.teacher, student)
            GroupMember.objects.create(group=group, student=student)
            students.append(student)
        return group, students


class CreateShareTestCase(ShareTestBase):

    def test_create_and_reshare(self):
        first = ShareLifecycleManager.create_share(self.program.id, self.author.id, self.teacher.id, 'teacher', note='Try it')
        again = ShareLifecycleManager.create_share(self.program.id, self.author.id, self.teacher.id, 'teacher')

        self.assertTrue(first['created'])
        self.assertFalse(again['created'])
        self.assertEqual(again['share'].id, first['share'].id)
        self.assertEqual(Share.objects.count(), 1)

    def test_share_with_self_is_rejected(self):
        with self.assertRaises(ValidationError):
            ShareLifecycleManager.create_share(self.program.id, self.author.id, self.author.id, 'peer')

    def test_unknown_audience_is_rejected(self):
        with self.assertRaises(ValidationError):
            ShareLifecycleManager.create_share(self.program.id, self.author.id, self.teacher.id, 'parent')

    def test_role_must_match_audience(self):
        peer = make_profile('student')
        with self.assertRaises(ValidationError):
            ShareLifecycleManager.create_share(self.program.id, self.author.id, peer.id, 'teacher')
        with self.assertRaises(ValidationError):
            ShareLifecycleManager.create_share(self.program.id, self.author.id, self.teacher.id, 'peer')

    def test_teacher_without_relationship_is_refused(self):
        stranger = make_profile('instructor')
        with self.assertRaises(AuthorizationError):
            ShareLifecycleManager.create_share(self.program.id, self.author.id, stranger.id, 'teacher')

    def test_admin_recipient_needs_no_link(self):
        admin = make_profile('admin')
        result = ShareLifecycleManager.create_share(self.program.id, self.author.id, admin.id, 'teacher')
        self.assertTrue(result['created'])

    def test_peer_share_between_students(self):
        peer = make_profile('student')
        share = ShareLifecycleManager.create_share(self.program.id, self.author.id, peer.id, 'peer')['share']
        self.assertEqual(share.audience, 'peer')

    def test_only_author_can_share(self):
        with self.assertRaises(NotFound):
            ShareLifecycleManager.create_share(self.program.id, self.teacher.id, self.author.id, 'peer')


class RevokeShareTestCase(ShareTestBase):

    def test_revoke_detaches_exactly_the_shared_assignments(self):
        share = self.share_with_teacher()
        group, students = self.teacher_group(3)
        teacher = CallerContext.for_profile(self.teacher)
        AssignmentPropagator.assign_to_group(self.program.id, group.id, source_share_id=share.id, caller=teacher)
        outsider = make_profile('student')
        link(self.teacher, outsider)
        AssignmentPropagator.assign_direct(self.program.id, outsider.id, teacher, source_share_id=share.id)
        # The author's own copy does not come from the share
        Assignment.objects.create(program=self.program, student=self.author, provenance='direct')
        Assignment.objects.filter(student=students[0]).update(status='completed')

        detached = ShareLifecycleManager.revoke_share(share.id, self.author.id)

        self.assertEqual(detached, 4)
        shared = Assignment.objects.filter(source_share=share)
        self.assertEqual(shared.count(), 4)
        self.assertTrue(all(a.detached and a.detached_note for a in shared))
        self.assertEqual(Assignment.objects.get(student=students[0]).status, 'completed')
        self.assertEqual(Assignment.objects.get(student=outsider).provenance, 'share')
        self.assertFalse(Assignment.objects.get(student=self.author).detached)

        share.refresh_from_db()
        self.assertFalse(share.active)
        self.assertEqual(share.revoked_by, self.author)
        self.assertIsNotNone(share.revoked_at)

    def test_revoked_share_cannot_be_revoked_or_used_again(self):
        share = self.share_with_teacher()
        ShareLifecycleManager.revoke_share(share.id, self.author.id)

        with self.assertRaises(NotFound):
            ShareLifecycleManager.revoke_share(share.id, self.author.id)

        student = make_profile('student')
        link(self.teacher, student)
        with self.assertRaises(NotFound):
            AssignmentPropagator.assign_direct(
                self.program.id, student.id, CallerContext.for_profile(self.teacher), source_share_id=share.id
            )

    def test_only_sharer_can_revoke(self):
        share = self.share_with_teacher()
        with self.assertRaises(AuthorizationError):
            ShareLifecycleManager.revoke_share(share.id, self.teacher.id)

    def test_reshare_after_revoke_creates_new_share(self):
        share = self.share_with_teacher()
        ShareLifecycleManager.revoke_share(share.id, self.author.id)

        result = ShareLifecycleManager.create_share(self.program.id, self.author.id, self.teacher.id, 'teacher')

        self.assertTrue(result['created'])
        self.assertNotEqual(result['share'].id, share.id)

    def test_revoked_share_is_not_replayed_for_new_members(self):
        share = self.share_with_teacher()
        group, _ = self.teacher_group(1)
        AssignmentPropagator.assign_to_group(self.program.id, group.id, source_share_id=share.id)
        ShareLifecycleManager.revoke_share(share.id, self.author.id)

        newcomer = make_profile('student')
        result = AssignmentPropagator.on_member_joined_group(group.id, newcomer.id)

        self.assertEqual(result, {'assigned': 0, 'skipped': 1})

    def test_revoke_all_with_audience_filter(self):
        share = self.share_with_teacher()
        live, stale = make_profile('student'), make_profile('student')
        Assignment.objects.create(program=self.program, student=live, provenance='share', source_share=share)
        Assignment.objects.create(
            program=self.program, student=stale, provenance='share', source_share=share,
            detached=True, detached_note='Detached by hand'
        )
        peer = make_profile('student')
        ShareLifecycleManager.create_share(self.program.id, self.author.id, peer.id, 'peer')

        result = ShareLifecycleManager.revoke_all_shares(self.program.id, self.author.id, audience='peer')
        self.assertEqual(result, {'revoked': 1, 'detached': 0, 'skipped': 0})
        self.assertEqual([s.audience for s in ShareLifecycleManager.list_shares(self.program.id, self.author.id)], ['teacher'])

        result = ShareLifecycleManager.revoke_all_shares(self.program.id, self.author.id)
        self.assertEqual(result, {'revoked': 1, 'detached': 1, 'skipped': 1})
        self.assertTrue(Assignment.objects.get(student=live).detached)
        self.assertEqual(Assignment.objects.get(student=stale).detached_note, 'Detached by hand')
        self.assertEqual(
            ShareLifecycleManager.revoke_all_shares(self.program.id, self.author.id),
            {'revoked': 0, 'detached': 0, 'skipped': 0}
        )


class DeleteAuthoredProgramTestCase(ShareTestBase):

    def test_active_share_blocks_deletion(self):
        share = self.share_with_teacher()

        with self.assertRaises(Conflict):
            ShareLifecycleManager.delete_authored_program(self.program.id, self.author.id)

        ShareLifecycleManager.revoke_share(share.id, self.author.id)
        program = ShareLifecycleManager.delete_authored_program(self.program.id, self.author.id)
        self.assertFalse(program.active)

    def test_live_share_assignment_blocks_deletion(self):
        share = self.share_with_teacher()
        student = make_profile('student')
        Assignment.objects.create(program=self.program, student=student, provenance='share', source_share=share)
        Share.objects.filter(id=share.id).update(active=False)

        with self.assertRaises(Conflict):
            ShareLifecycleManager.delete_authored_program(self.program.id, self.author.id)

        Assignment.objects.filter(source_share=share).update(detached=True)
        ShareLifecycleManager.delete_authored_program(self.program.id, self.author.id)

        self.program.refresh_from_db()
        self.assertFalse(self.program.active)
        self.assertTrue(Assignment.objects.filter(program=self.program, student=student).exists())

    def test_only_owner_can_delete(self):
        with self.assertRaises(NotFound):
            ShareLifecycleManager.delete_authored_program(self.program.id, self.teacher.id)
