"""
Progression store tests: bulk start, state machine, manual validation and abandon
"""
import uuid

from django.test import TestCase

from instructor.models import Skill, Step
from learner.models import Attempt, Progression
from learner.services.attempts import AttemptRecorder
from learner.services.progression import ProgressionStore, derive_skill_status
from learner.signals import step_status_changed
from skilltrack.exceptions import Conflict, NotFound, ValidationError
from skilltrack.factories import make_profile


def make_skill(name, titles):
    skill = Skill.objects.create(name=name)
    for index, title in enumerate(titles):
        Step.objects.create(skill=skill, title=title, order=index + 1)
    return skill


class StartSkillTestCase(TestCase):

    def setUp(self):
        self.student = make_profile('student')
        self.skill = make_skill('Handstand', ['Wall hold', 'Kick up', 'Free hold'])

    def test_creates_one_row_per_step(self):
        rows = ProgressionStore.start_skill_progression(self.student.id, self.skill.id)

        self.assertEqual(len(rows), 3)
        self.assertEqual(Progression.objects.filter(student=self.student, status='not_started').count(), 3)

    def test_second_start_conflicts_and_creates_nothing(self):
        ProgressionStore.start_skill_progression(self.student.id, self.skill.id)

        with self.assertRaises(Conflict):
            ProgressionStore.start_skill_progression(self.student.id, self.skill.id)
        self.assertEqual(Progression.objects.filter(student=self.student).count(), 3)

    def test_start_after_lazy_attempt_conflicts(self):
        AttemptRecorder.record_attempt(self.student.id, self.skill.steps.first().id, 'timed', {'duration_seconds': 30})

        with self.assertRaises(Conflict):
            ProgressionStore.start_skill_progression(self.student.id, self.skill.id)
        self.assertEqual(Progression.objects.filter(student=self.student).count(), 1)

    def test_skill_without_steps_is_not_found(self):
        empty = Skill.objects.create(name='Empty')
        with self.assertRaises(NotFound):
            ProgressionStore.start_skill_progression(self.student.id, empty.id)

    def test_unknown_skill_is_not_found(self):
        with self.assertRaises(NotFound):
            ProgressionStore.start_skill_progression(self.student.id, uuid.uuid4())


class StateMachineTestCase(TestCase):

    def setUp(self):
        self.student = make_profile('student')
        self.skill = make_skill('Handstand', ['Wall hold', 'Free hold'])
        self.rows = ProgressionStore.start_skill_progression(self.student.id, self.skill.id)

    def test_failed_attempt_moves_to_in_progress(self):
        row = ProgressionStore.record_attempt_outcome(self.rows[0], False)
        self.assertEqual(row.status, 'in_progress')
        self.assertIsNone(row.validated_at)

    def test_success_validates(self):
        row = ProgressionStore.record_attempt_outcome(self.rows[0], True)
        self.assertEqual(row.status, 'validated')
        self.assertIsNotNone(row.validated_at)

    def test_validated_never_regresses(self):
        ProgressionStore.record_attempt_outcome(self.rows[0], True)
        row = ProgressionStore.record_attempt_outcome(self.rows[0], False)

        row.refresh_from_db()
        self.assertEqual(row.status, 'validated')

    def test_signal_fires_once_per_change(self):
        received = []

        def receiver(sender, progression, previous_status, new_status, source, **kwargs):
            received.append((previous_status, new_status, source))

        step_status_changed.connect(receiver)
        self.addCleanup(step_status_changed.disconnect, receiver)

        with self.captureOnCommitCallbacks(execute=True):
            ProgressionStore.record_attempt_outcome(self.rows[0], False)
            ProgressionStore.record_attempt_outcome(self.rows[0], False)
            ProgressionStore.record_attempt_outcome(self.rows[0], True)
            ProgressionStore.record_attempt_outcome(self.rows[0], True)

        self.assertEqual(received, [
            ('not_started', 'in_progress', 'attempt'),
            ('in_progress', 'validated', 'attempt'),
        ])

    def test_aggregate_status(self):
        self.assertEqual(ProgressionStore.skill_status(self.student.id, self.skill.id), 'not_started')
        ProgressionStore.record_attempt_outcome(self.rows[0], True)
        self.assertEqual(ProgressionStore.skill_status(self.student.id, self.skill.id), 'in_progress')
        ProgressionStore.record_attempt_outcome(self.rows[1], True)
        self.assertEqual(ProgressionStore.skill_status(self.student.id, self.skill.id), 'validated')

    def test_derive_skill_status(self):
        self.assertEqual(derive_skill_status([], 0), 'not_started')
        self.assertEqual(derive_skill_status(['validated'], 2), 'in_progress')
        self.assertEqual(derive_skill_status(['validated', 'validated'], 2), 'validated')


class ManualValidationTestCase(TestCase):

    def setUp(self):
        self.student = make_profile('student')
        self.instructor = make_profile('instructor')
        self.skill = make_skill('Pistol squat', ['Assisted', 'Free'])
        self.step = self.skill.steps.get(order=1)

    def test_requires_existing_row(self):
        with self.assertRaises(NotFound):
            ProgressionStore.validate_step_manually(self.step.id, self.student.id, self.instructor.id)

    def test_sets_audit_fields(self):
        ProgressionStore.start_skill_progression(self.student.id, self.skill.id)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            row = ProgressionStore.validate_step_manually(
                self.step.id, self.student.id, self.instructor.id, side_attribute='left'
            )

        self.assertEqual(row.status, 'validated')
        self.assertEqual(row.validated_by, self.instructor)
        self.assertEqual(row.laterality, 'left')
        self.assertIsNotNone(row.validated_at)
        self.assertEqual(len(callbacks), 1)

    def test_unknown_side_is_rejected(self):
        ProgressionStore.start_skill_progression(self.student.id, self.skill.id)
        with self.assertRaises(ValidationError):
            ProgressionStore.validate_step_manually(self.step.id, self.student.id, self.instructor.id, side_attribute='up')


class AbandonAndListingTestCase(TestCase):

    def setUp(self):
        self.student = make_profile('student')
        self.handstand = make_skill('Handstand', ['Wall hold', 'Free hold'])
        self.plank = make_skill('Plank', ['Knees', 'Full'])
        ProgressionStore.start_skill_progression(self.student.id, self.handstand.id)
        ProgressionStore.start_skill_progression(self.student.id, self.plank.id)

    def test_abandon_removes_only_that_skill(self):
        step = self.handstand.steps.get(order=1)
        AttemptRecorder.record_attempt(self.student.id, step.id, 'rated', {'score': 1})

        result = ProgressionStore.abandon_skill_progression(self.student.id, self.handstand.id)

        self.assertEqual(result, {'deleted_progressions': 2, 'deleted_attempts': 1})
        self.assertEqual(Attempt.objects.count(), 0)
        remaining = Progression.objects.filter(student=self.student)
        self.assertEqual({row.step.skill_id for row in remaining}, {self.plank.id})

    def test_abandon_is_idempotent(self):
        ProgressionStore.abandon_skill_progression(self.student.id, self.handstand.id)
        result = ProgressionStore.abandon_skill_progression(self.student.id, self.handstand.id)
        self.assertEqual(result, {'deleted_progressions': 0, 'deleted_attempts': 0})

    def test_other_students_are_untouched(self):
        other = make_profile('student')
        ProgressionStore.start_skill_progression(other.id, self.handstand.id)

        ProgressionStore.abandon_skill_progression(self.student.id, self.handstand.id)

        self.assertEqual(Progression.objects.filter(student=other).count(), 2)

    def test_grouped_listing(self):
        step = self.plank.steps.get(order=2)
        AttemptRecorder.record_attempt(self.student.id, step.id, 'binary', {'success': True})

        skills = ProgressionStore.get_student_progressions(self.student.id)

        self.assertEqual([s['skill_name'] for s in skills], ['Handstand', 'Plank'])
        self.assertEqual([s['status'] for s in skills], ['not_started', 'in_progress'])
        self.assertEqual([step['order'] for step in skills[1]['steps']], [1, 2])
        self.assertEqual(skills[1]['steps'][1]['status'], 'validated')

    def test_get_skill_steps_is_order_sorted(self):
        rows = ProgressionStore.get_skill_steps(self.student.id, self.plank.id)
        self.assertEqual([row.step.title for row in rows], ['Knees', 'Full'])
