"""
Attempt Recorder
Validates practice submissions in four input modes, records them and drives the
progression state machine. Rapid identical resubmissions are collapsed onto
the previously stored attempt.
"""
from collections import namedtuple
from datetime import timedelta
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from instructor.models import Step
from learner.models import Attempt, Progression
from learner.services.progression import ProgressionStore
from roster.models import UserProfile
from skilltrack.exceptions import ValidationError
from skilltrack.lookups import get_or_not_found

logger = logging.getLogger(__name__)

AttemptResult = namedtuple('AttemptResult', ['progression', 'attempt', 'idempotent'])

# Fields each mode requires; anything else is rejected
MODE_FIELDS = {
    'binary': ('success',),
    'rated': ('score',),
    'timed': ('duration_seconds',),
    'rated_timed': ('score', 'duration_seconds'),
}
ATTEMPT_FIELDS = {'success', 'score', 'duration_seconds'}
MIN_SCORE = 1
MAX_SCORE = 3
PASSING_SCORE = 2
DEFAULT_DEDUP_WINDOW_SECONDS = 3


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _whole(value):
    # JSON clients may send 3.0 for 3
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def clean_attempt_fields(mode, fields):
    """
    Check that the submitted fields match the mode exactly and derive success.

    rated / rated_timed succeed with a score of at least 2, binary carries its
    own outcome, and every timed session counts as successful practice.
    """
    if mode not in MODE_FIELDS:
        raise ValidationError(f"Unknown attempt mode '{mode}'", allowed=sorted(MODE_FIELDS))

    submitted = {key: value for key, value in (fields or {}).items() if value is not None}
    unknown = sorted(set(submitted) - ATTEMPT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown attempt fields: {', '.join(unknown)}", mode=mode)

    required = MODE_FIELDS[mode]
    missing = [name for name in required if name not in submitted]
    if missing:
        raise ValidationError(f"Mode '{mode}' requires {', '.join(missing)}", mode=mode)
    extra = sorted(name for name in submitted if name not in required)
    if extra:
        raise ValidationError(f"Mode '{mode}' does not accept {', '.join(extra)}", mode=mode)

    score = _whole(submitted.get('score'))
    if score is not None and (not _is_int(score) or not MIN_SCORE <= score <= MAX_SCORE):
        raise ValidationError(f"Score must be an integer between {MIN_SCORE} and {MAX_SCORE}", score=score)

    duration = _whole(submitted.get('duration_seconds'))
    if duration is not None and (not _is_int(duration) or duration <= 0):
        raise ValidationError('Duration must be a positive integer number of seconds', duration_seconds=duration)

    if mode == 'binary':
        if not isinstance(submitted['success'], bool):
            raise ValidationError('Binary outcome must be true or false', success=submitted['success'])
        succeeded = submitted['success']
    elif mode == 'timed':
        succeeded = True
    else:
        succeeded = score >= PASSING_SCORE

    return {
        'mode': mode,
        'succeeded': succeeded,
        'score': score,
        'duration_seconds': duration,
    }


def _dedup_window():
    config = getattr(settings, 'SKILLTRACK', {})
    return timedelta(seconds=config.get('ATTEMPT_DEDUP_WINDOW_SECONDS', DEFAULT_DEDUP_WINDOW_SECONDS))


def _same_outcome(attempt, cleaned):
    return (
        attempt.mode == cleaned['mode']
        and attempt.succeeded == cleaned['succeeded']
        and attempt.score == cleaned['score']
        and attempt.duration_seconds == cleaned['duration_seconds']
    )


class AttemptRecorder:
    """Service for recording practice attempts"""

    @staticmethod
    def record_attempt(student_id, step_id, mode, fields=None):
        """
        Record one attempt and apply its outcome to the step's progression.

        The progression row is created lazily, so practising a step is enough
        to start it. Returns AttemptResult(progression, attempt, idempotent).
        """
        cleaned = clean_attempt_fields(mode, fields)
        step = get_or_not_found(Step, 'Step', id=step_id)
        student = get_or_not_found(UserProfile, 'Student', id=student_id)

        with transaction.atomic():
            progression, created = Progression.objects.get_or_create(student=student, step=step)
            if created:
                logger.info(f"Lazily started step {step.id} for student {student.id}")

            now = timezone.now()
            latest = progression.attempts.order_by('-created_at').first()
            if latest is not None and now - latest.created_at <= _dedup_window() and _same_outcome(latest, cleaned):
                logger.debug(f"Duplicate {mode} attempt on step {step.id} for student {student.id}; returning {latest.id}")
                return AttemptResult(progression, latest, True)

            attempt = Attempt.objects.create(progression=progression, created_at=now, **cleaned)
            ProgressionStore.record_attempt_outcome(progression, attempt.succeeded)

        logger.info(f"Recorded {mode} attempt on step {step.id} for student {student.id} (success={attempt.succeeded})")
        return AttemptResult(progression, attempt, False)

    @staticmethod
    def list_attempts(student_id, step_id, limit=50):
        """Most-recent-first attempt history of one step"""
        step = get_or_not_found(Step, 'Step', id=step_id)
        return list(
            Attempt.objects.filter(progression__student_id=student_id, progression__step=step)
            .order_by('-created_at')[:limit]
        )
