"""
Roster API views - instructor-managed groups and their membership
"""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from roster.auth import caller_context_from_request
from roster.models import Group
from roster.permissions import IsInstructor
from roster.serializers import GroupMemberInputSerializer, GroupSerializer
from roster.services import GroupRoster
from skilltrack.lookups import get_or_not_found


class GroupViewSet(viewsets.ViewSet):
    """
    Groups owned by the calling instructor.

    list:           GET    /groups/
    create:         POST   /groups/
    retrieve:       GET    /groups/<id>/
    members:        POST   /groups/<id>/members/              {"student_id": ...}
    remove_member:  DELETE /groups/<id>/members/<student_id>/
    """
    permission_classes = [IsInstructor]

    def list(self, request):
        caller = caller_context_from_request(request)
        groups = GroupRoster.list_groups(caller)
        return Response(GroupSerializer(groups, many=True).data)

    def create(self, request):
        caller = caller_context_from_request(request)
        serializer = GroupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group = GroupRoster.create_group(
            caller,
            serializer.validated_data['name'],
            serializer.validated_data.get('description', ''),
        )
        return Response(GroupSerializer(group).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        caller = caller_context_from_request(request)
        queryset = Group.objects.filter(active=True).prefetch_related('memberships__student')
        if not caller.is_admin:
            queryset = queryset.filter(owner_id=caller.id)
        group = get_or_not_found(queryset, 'Group', id=pk)
        return Response(GroupSerializer(group).data)

    @action(detail=True, methods=['post'])
    def members(self, request, pk=None):
        caller = caller_context_from_request(request)
        serializer = GroupMemberInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = GroupRoster.add_member(pk, serializer.validated_data['student_id'], caller)
        return Response({'success': True, **result}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['delete'], url_path=r'members/(?P<student_id>[^/.]+)')
    def remove_member(self, request, pk=None, student_id=None):
        caller = caller_context_from_request(request)
        GroupRoster.remove_member(pk, student_id, caller)
        return Response(status=status.HTTP_204_NO_CONTENT)
