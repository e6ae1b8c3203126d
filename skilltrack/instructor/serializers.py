"""
Instructor app serializers - skill catalog, programs, assignments and shares
"""
from rest_framework import serializers

from instructor.models import (
    Skill, Step, SkillPrerequisite, Program, ProgramSkill, Share, Assignment,
)


class StepSerializer(serializers.ModelSerializer):
    class Meta:
        model = Step
        fields = ['id', 'title', 'description', 'order', 'weight']


class SkillPrerequisiteSerializer(serializers.ModelSerializer):
    prerequisite_id = serializers.UUIDField(source='prerequisite.id', read_only=True)
    prerequisite_name = serializers.CharField(source='prerequisite.name', read_only=True)

    class Meta:
        model = SkillPrerequisite
        fields = ['id', 'prerequisite_id', 'prerequisite_name', 'order', 'is_required', 'weight']


class SkillSerializer(serializers.ModelSerializer):
    steps = serializers.SerializerMethodField()
    created_by = serializers.UUIDField(source='created_by_id', read_only=True)

    class Meta:
        model = Skill
        fields = ['id', 'name', 'description', 'created_by', 'steps', 'created_at']

    def get_steps(self, obj):
        return StepSerializer(sorted(obj.steps.all(), key=lambda step: step.order), many=True).data


# Input payloads; the services do the domain validation

class StepInputSerializer(serializers.Serializer):
    id = serializers.UUIDField(required=False)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    order = serializers.IntegerField(required=False, min_value=1)
    weight = serializers.IntegerField(required=False, min_value=1)


class PrerequisiteInputSerializer(serializers.Serializer):
    prerequisite_id = serializers.UUIDField()
    order = serializers.IntegerField(required=False, min_value=1)
    is_required = serializers.BooleanField(required=False, default=True)
    weight = serializers.IntegerField(required=False, default=1)


class SkillCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    steps = StepInputSerializer(many=True)
    prerequisites = PrerequisiteInputSerializer(many=True, required=False, default=list)


class StepsUpdateSerializer(serializers.Serializer):
    steps = StepInputSerializer(many=True)


class PrerequisiteReplaceSerializer(serializers.Serializer):
    prerequisites = PrerequisiteInputSerializer(many=True)


class ProgramSkillSerializer(serializers.ModelSerializer):
    skill_id = serializers.UUIDField(source='skill.id', read_only=True)
    name = serializers.CharField(source='skill.name', read_only=True)

    class Meta:
        model = ProgramSkill
        fields = ['skill_id', 'name', 'order']


class ProgramSerializer(serializers.ModelSerializer):
    author_id = serializers.UUIDField(source='author.id', read_only=True)
    skills = serializers.SerializerMethodField()

    class Meta:
        model = Program
        fields = ['id', 'name', 'description', 'author_id', 'is_template', 'active', 'skills', 'created_at']

    def get_skills(self, obj):
        memberships = sorted(obj.memberships.all(), key=lambda membership: membership.order)
        return ProgramSkillSerializer(memberships, many=True).data


class ProgramCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    is_template = serializers.BooleanField(required=False, default=False)
    skill_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class SkillIdsSerializer(serializers.Serializer):
    skill_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class SkillOrderSerializer(serializers.Serializer):
    skill_id = serializers.UUIDField()
    order = serializers.IntegerField(min_value=1)


class ReorderSerializer(serializers.Serializer):
    order = SkillOrderSerializer(many=True)


class DuplicateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)


class AssignSerializer(serializers.Serializer):
    student_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    group_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    source_share_id = serializers.UUIDField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if not attrs['student_ids'] and not attrs['group_ids']:
            raise serializers.ValidationError('Provide at least one student or group')
        return attrs


class ShareCreateSerializer(serializers.Serializer):
    recipient_id = serializers.UUIDField()
    audience = serializers.CharField()
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class ShareSerializer(serializers.ModelSerializer):
    program_id = serializers.UUIDField(source='program.id', read_only=True)
    program_name = serializers.CharField(source='program.name', read_only=True)
    sharer_id = serializers.UUIDField(source='sharer.id', read_only=True)
    recipient_id = serializers.UUIDField(source='recipient.id', read_only=True)
    recipient_name = serializers.CharField(source='recipient.full_name', read_only=True)

    class Meta:
        model = Share
        fields = [
            'id', 'program_id', 'program_name', 'sharer_id', 'recipient_id', 'recipient_name',
            'audience', 'note', 'active', 'shared_at', 'revoked_at',
        ]


class AssignmentSerializer(serializers.ModelSerializer):
    program_id = serializers.UUIDField(source='program.id', read_only=True)
    student_id = serializers.UUIDField(source='student.id', read_only=True)
    source_group_id = serializers.UUIDField(read_only=True, allow_null=True)
    source_share_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Assignment
        fields = [
            'id', 'program_id', 'student_id', 'provenance', 'source_group_id', 'source_share_id',
            'status', 'detached', 'detached_note', 'assigned_at',
        ]
