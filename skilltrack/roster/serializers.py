"""
Roster serializers
"""
from rest_framework import serializers

from roster.models import UserProfile, Group, GroupMember


class UserProfileSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = UserProfile
        fields = ['id', 'first_name', 'last_name', 'full_name', 'email', 'role', 'status']
        read_only_fields = fields


class GroupMemberSerializer(serializers.ModelSerializer):
    student_id = serializers.UUIDField(source='student.id', read_only=True)
    name = serializers.CharField(source='student.full_name', read_only=True)
    email = serializers.EmailField(source='student.email', read_only=True)

    class Meta:
        model = GroupMember
        fields = ['student_id', 'name', 'email', 'joined_at']


class GroupSerializer(serializers.ModelSerializer):
    owner_id = serializers.UUIDField(source='owner.id', read_only=True)
    members = GroupMemberSerializer(source='memberships', many=True, read_only=True)
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Group
        fields = ['id', 'name', 'description', 'owner_id', 'active', 'member_count', 'members', 'created_at']
        read_only_fields = ['id', 'owner_id', 'active', 'created_at']

    def get_member_count(self, obj):
        return len(obj.memberships.all())


class GroupMemberInputSerializer(serializers.Serializer):
    student_id = serializers.UUIDField()
