"""
Instructor API views - thin transport adapters over the catalog, assignment and share services
"""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from instructor.models import Skill
from instructor.serializers import (
    SkillSerializer, SkillCreateSerializer, StepsUpdateSerializer,
    SkillPrerequisiteSerializer, PrerequisiteInputSerializer, PrerequisiteReplaceSerializer,
    ProgramSerializer, ProgramCreateSerializer, ProgramSkillSerializer, SkillIdsSerializer,
    ReorderSerializer, DuplicateSerializer, AssignSerializer,
    ShareSerializer, ShareCreateSerializer, AssignmentSerializer,
)
from instructor.services.assignments import AssignmentPropagator
from instructor.services.catalog import SkillCatalog
from instructor.services.prerequisites import PrerequisiteService
from instructor.services.programs import ProgramCatalog, get_active_program
from instructor.services.shares import ShareLifecycleManager
from roster.auth import caller_context_from_request
from roster.permissions import HasActiveProfile, IsInstructor
from skilltrack.exceptions import ValidationError


class SkillViewSet(viewsets.ViewSet):
    """
    Skill catalog.

    list / retrieve are open to every profile; authoring needs an instructor.
    """

    def get_permissions(self):
        if self.action in ('list', 'retrieve', 'prerequisites'):
            return [HasActiveProfile()]
        return [IsInstructor()]

    def list(self, request):
        skills = Skill.objects.prefetch_related('steps').order_by('name')
        return Response(SkillSerializer(skills, many=True).data)

    def retrieve(self, request, pk=None):
        return Response(SkillSerializer(SkillCatalog.get_skill(pk)).data)

    def create(self, request):
        caller = caller_context_from_request(request)
        serializer = SkillCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        skill = SkillCatalog.create_skill(
            data['name'],
            data['steps'],
            created_by=caller.id,
            description=data['description'],
            prerequisites=data['prerequisites'],
        )
        return Response(SkillSerializer(SkillCatalog.get_skill(skill.id)).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['put'])
    def steps(self, request, pk=None):
        serializer = StepsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = SkillCatalog.update_steps(pk, serializer.validated_data['steps'])
        return Response({**result, 'skill': SkillSerializer(SkillCatalog.get_skill(pk)).data})

    @action(detail=True, methods=['get'])
    def prerequisites(self, request, pk=None):
        edges = PrerequisiteService.list_prerequisites(pk)
        return Response(SkillPrerequisiteSerializer(edges, many=True).data)

    @prerequisites.mapping.post
    def add_prerequisite(self, request, pk=None):
        serializer = PrerequisiteInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        edge = PrerequisiteService.add_prerequisite(
            pk,
            data['prerequisite_id'],
            order=data.get('order'),
            is_required=data['is_required'],
            weight=data['weight'],
        )
        return Response(SkillPrerequisiteSerializer(edge).data, status=status.HTTP_201_CREATED)

    @prerequisites.mapping.put
    def replace_prerequisites(self, request, pk=None):
        serializer = PrerequisiteReplaceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        edges = PrerequisiteService.replace_prerequisites(pk, serializer.validated_data['prerequisites'])
        return Response(SkillPrerequisiteSerializer(edges, many=True).data)

    @action(detail=True, methods=['delete'], url_path=r'prerequisites/(?P<prerequisite_id>[^/.]+)')
    def remove_prerequisite(self, request, pk=None, prerequisite_id=None):
        deleted = PrerequisiteService.remove_prerequisite(pk, prerequisite_id)
        return Response({'deleted': deleted})


class ProgramViewSet(viewsets.ViewSet):
    """
    Programs authored by the caller, their skills, distribution and shares.
    Self-directed students author programs too, so only assignment summaries
    and group actions need an instructor.
    """

    def get_permissions(self):
        if self.action in ('summary', 'retire_group'):
            return [IsInstructor()]
        return [HasActiveProfile()]

    def list(self, request):
        caller = caller_context_from_request(request)
        programs = ProgramCatalog.list_authored_programs(caller.id)
        return Response(ProgramSerializer(programs, many=True).data)

    def retrieve(self, request, pk=None):
        return Response(ProgramSerializer(get_active_program(pk)).data)

    def create(self, request):
        caller = caller_context_from_request(request)
        serializer = ProgramCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        program = ProgramCatalog.create_program(
            caller.id,
            data['name'],
            data['skill_ids'],
            description=data['description'],
            is_template=data['is_template'],
        )
        return Response(ProgramSerializer(program).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        caller = caller_context_from_request(request)
        ShareLifecycleManager.delete_authored_program(pk, caller.id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def skills(self, request, pk=None):
        caller = caller_context_from_request(request)
        serializer = SkillIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = ProgramCatalog.add_skills_to_program(pk, serializer.validated_data['skill_ids'], caller)
        return Response(result)

    @skills.mapping.patch
    def reorder(self, request, pk=None):
        caller = caller_context_from_request(request)
        serializer = ReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ordering = [(item['skill_id'], item['order']) for item in serializer.validated_data['order']]
        memberships = ProgramCatalog.reorder_program(pk, ordering, caller)
        return Response(ProgramSkillSerializer(memberships, many=True).data)

    @action(detail=True, methods=['delete'], url_path=r'skills/(?P<skill_id>[^/.]+)')
    def remove_skill(self, request, pk=None, skill_id=None):
        caller = caller_context_from_request(request)
        ProgramCatalog.remove_skill_from_program(pk, skill_id, caller)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def duplicate(self, request, pk=None):
        caller = caller_context_from_request(request)
        serializer = DuplicateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        copy = ProgramCatalog.duplicate_program(pk, caller.id, serializer.validated_data.get('name'))
        return Response(ProgramSerializer(copy).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def assign(self, request, pk=None):
        """
        Assign to students and/or groups

        Request body:
        {
            "student_ids": ["uuid1", "uuid2"],
            "group_ids": ["uuid3"],
            "source_share_id": null
        }
        """
        caller = caller_context_from_request(request)
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = AssignmentPropagator.assign_program(
            pk,
            caller,
            student_ids=data['student_ids'],
            group_ids=data['group_ids'],
            source_share_id=data['source_share_id'],
        )
        return Response({'success': True, **result})

    @action(detail=True, methods=['get'], url_path='assignments')
    def summary(self, request, pk=None):
        caller = caller_context_from_request(request)
        return Response(AssignmentPropagator.assignment_summary(pk, caller))

    @action(detail=True, methods=['delete'], url_path=r'groups/(?P<group_id>[^/.]+)')
    def retire_group(self, request, pk=None, group_id=None):
        caller = caller_context_from_request(request)
        removed = AssignmentPropagator.retire_group_assignment(pk, group_id, caller)
        return Response({'removed': removed})

    @action(detail=True, methods=['delete'], url_path=r'students/(?P<student_id>[^/.]+)')
    def remove_student(self, request, pk=None, student_id=None):
        caller = caller_context_from_request(request)
        AssignmentPropagator.remove_direct_assignment(pk, student_id, caller)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'])
    def shares(self, request, pk=None):
        caller = caller_context_from_request(request)
        shares = ShareLifecycleManager.list_shares(pk, caller.id, request.query_params.get('audience'))
        return Response(ShareSerializer(shares, many=True).data)

    @shares.mapping.post
    def create_share(self, request, pk=None):
        caller = caller_context_from_request(request)
        serializer = ShareCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = ShareLifecycleManager.create_share(
            pk, caller.id, data['recipient_id'], data['audience'], note=data['note']
        )
        return Response(
            {'created': result['created'], 'share': ShareSerializer(result['share']).data},
            status=status.HTTP_201_CREATED if result['created'] else status.HTTP_200_OK
        )

    @shares.mapping.delete
    def revoke_all_shares(self, request, pk=None):
        caller = caller_context_from_request(request)
        result = ShareLifecycleManager.revoke_all_shares(pk, caller.id, request.query_params.get('audience'))
        return Response(result)


class ShareViewSet(viewsets.ViewSet):
    """Shares received by the caller, and revocation by the sharer"""
    permission_classes = [HasActiveProfile]

    def list(self, request):
        caller = caller_context_from_request(request)
        shares = ShareLifecycleManager.list_received_shares(caller.id)
        return Response(ShareSerializer(shares, many=True).data)

    @action(detail=True, methods=['post'])
    def revoke(self, request, pk=None):
        caller = caller_context_from_request(request)
        detached = ShareLifecycleManager.revoke_share(pk, caller.id)
        return Response({'revoked': True, 'detached': detached})


class AssignmentViewSet(viewsets.ViewSet):
    """Direct assignment of one program to one student"""
    permission_classes = [IsInstructor]

    def create(self, request):
        caller = caller_context_from_request(request)
        program_id = request.data.get('program_id')
        student_id = request.data.get('student_id')
        if not program_id or not student_id:
            raise ValidationError('program_id and student_id are required')
        result = AssignmentPropagator.assign_direct(
            program_id, student_id, caller, source_share_id=request.data.get('source_share_id')
        )
        assignment = result['assignment']
        return Response(
            {
                'assigned': result['assigned'],
                'skipped': result['skipped'],
                'assignment': AssignmentSerializer(assignment).data if assignment else None,
            },
            status=status.HTTP_201_CREATED if assignment else status.HTTP_200_OK
        )
