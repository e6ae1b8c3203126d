"""
Learner serializers - progression rows and practice attempts
"""
from rest_framework import serializers

from learner.models import Progression, Attempt


class ProgressionSerializer(serializers.ModelSerializer):
    step_id = serializers.UUIDField(source='step.id', read_only=True)
    title = serializers.CharField(source='step.title', read_only=True)
    order = serializers.IntegerField(source='step.order', read_only=True)
    validated_by = serializers.UUIDField(source='validated_by_id', read_only=True, allow_null=True)

    class Meta:
        model = Progression
        fields = ['id', 'step_id', 'title', 'order', 'status', 'validated_at', 'validated_by', 'laterality']


class AttemptSerializer(serializers.ModelSerializer):
    class Meta:
        model = Attempt
        fields = ['id', 'mode', 'succeeded', 'score', 'duration_seconds', 'created_at']


class AttemptInputSerializer(serializers.Serializer):
    """
    Transport shape only; mode/field consistency is checked by AttemptRecorder,
    so values are passed through untouched
    """
    mode = serializers.CharField()
    success = serializers.JSONField(required=False, allow_null=True)
    score = serializers.JSONField(required=False, allow_null=True)
    duration_seconds = serializers.JSONField(required=False, allow_null=True)


class ManualValidationSerializer(serializers.Serializer):
    student_id = serializers.UUIDField()
    side = serializers.CharField(required=False, allow_null=True, default=None)
