"""
Learner API views - progression, practice attempts and the learner's programs.

Every endpoint acts on the caller's own progression unless an instructor
passes student_id for one of their students.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from instructor.services.prerequisites import PrerequisiteService
from instructor.services.programs import ProgramCatalog
from learner.serializers import (
    AttemptInputSerializer, AttemptSerializer, ManualValidationSerializer, ProgressionSerializer,
)
from learner.services.attempts import AttemptRecorder
from learner.services.progression import ProgressionStore
from roster.auth import caller_context_from_request
from roster.permissions import HasActiveProfile, IsInstructor
from roster.relationships import RelationshipLookup
from skilltrack.exceptions import AuthorizationError, NotFound


def _target_student(request, caller):
    student_id = request.query_params.get('student_id') or request.data.get('student_id')
    if not student_id or str(student_id) == str(caller.id):
        return caller.id
    if RelationshipLookup.get_profile(student_id) is None:
        raise NotFound('Student not found', student_id=str(student_id))
    if not caller.is_instructor or not RelationshipLookup.is_my_student(caller, student_id):
        raise AuthorizationError('This student is not yours', student_id=str(student_id))
    return student_id


@api_view(['GET'])
@permission_classes([HasActiveProfile])
def student_progressions(request):
    """Skills with nested step statuses and the derived skill status"""
    caller = caller_context_from_request(request)
    student_id = _target_student(request, caller)
    return Response({
        'student_id': str(student_id),
        'skills': ProgressionStore.get_student_progressions(student_id),
    })


@api_view(['GET'])
@permission_classes([HasActiveProfile])
def student_programs(request):
    caller = caller_context_from_request(request)
    student_id = _target_student(request, caller)
    return Response(ProgramCatalog.list_student_programs(student_id))


@api_view(['GET'])
@permission_classes([HasActiveProfile])
def skill_detail(request, skill_id):
    caller = caller_context_from_request(request)
    student_id = _target_student(request, caller)
    steps = ProgressionStore.get_skill_steps(student_id, skill_id)
    return Response({
        'skill_id': str(skill_id),
        'status': ProgressionStore.skill_status(student_id, skill_id),
        'prerequisite_readiness': PrerequisiteService.prerequisite_readiness(student_id, skill_id),
        'steps': ProgressionSerializer(steps, many=True).data,
    })


@api_view(['POST'])
@permission_classes([HasActiveProfile])
def start_skill(request, skill_id):
    caller = caller_context_from_request(request)
    student_id = _target_student(request, caller)
    rows = ProgressionStore.start_skill_progression(student_id, skill_id)
    return Response(
        {'skill_id': str(skill_id), 'steps': ProgressionSerializer(rows, many=True).data},
        status=status.HTTP_201_CREATED
    )


@api_view(['POST', 'DELETE'])
@permission_classes([HasActiveProfile])
def abandon_skill(request, skill_id):
    caller = caller_context_from_request(request)
    student_id = _target_student(request, caller)
    return Response(ProgressionStore.abandon_skill_progression(student_id, skill_id))


@api_view(['GET', 'POST'])
@permission_classes([HasActiveProfile])
def step_attempts(request, step_id):
    """
    GET: attempt history, most recent first (?limit=, default 50)
    POST: record an attempt

    Request body:
    {
        "mode": "rated",
        "score": 3
    }
    """
    caller = caller_context_from_request(request)
    student_id = _target_student(request, caller)

    if request.method == 'GET':
        try:
            limit = max(1, min(int(request.query_params.get('limit', 50)), 200))
        except ValueError:
            limit = 50
        attempts = AttemptRecorder.list_attempts(student_id, step_id, limit=limit)
        return Response(AttemptSerializer(attempts, many=True).data)

    serializer = AttemptInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    fields = {key: value for key, value in serializer.validated_data.items() if key != 'mode'}
    result = AttemptRecorder.record_attempt(student_id, step_id, serializer.validated_data['mode'], fields)
    return Response(
        {
            'idempotent': result.idempotent,
            'attempt': AttemptSerializer(result.attempt).data,
            'progression': ProgressionSerializer(result.progression).data,
        },
        status=status.HTTP_200_OK if result.idempotent else status.HTTP_201_CREATED
    )


@api_view(['POST'])
@permission_classes([IsInstructor])
def validate_step(request, step_id):
    """Instructor sign-off on one step for one of their students"""
    caller = caller_context_from_request(request)
    serializer = ManualValidationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    student_id = serializer.validated_data['student_id']
    if not RelationshipLookup.is_my_student(caller, student_id):
        raise AuthorizationError('This student is not yours', student_id=str(student_id))

    progression = ProgressionStore.validate_step_manually(
        step_id, student_id, caller.id, side_attribute=serializer.validated_data['side']
    )
    return Response(ProgressionSerializer(progression).data)
