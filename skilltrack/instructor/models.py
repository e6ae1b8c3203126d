"""
Instructor app models - skill catalog, programs and their distribution
Includes skills with ordered steps, the prerequisite graph, programs, assignments,
group assignments and program shares
"""
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
import uuid

from roster.models import UserProfile, Group


class Skill(models.Model):
    """A named competency decomposed into ordered steps"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='skill_id')
    name = models.CharField(max_length=255, db_column='name')
    description = models.TextField(blank=True, default='', db_column='description')
    created_by = models.ForeignKey(UserProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='authored_skills', db_column='created_by')
    created_at = models.DateTimeField(default=timezone.now, db_column='created_at')
    updated_at = models.DateTimeField(auto_now=True, db_column='updated_at')

    class Meta:
        db_table = 'skills'
        managed = True
        ordering = ['name']

    def __str__(self):
        return self.name


class Step(models.Model):
    """Atomic sub-skill with an order index and a mastery weight"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='step_id')
    skill = models.ForeignKey(Skill, on_delete=models.CASCADE, related_name='steps', db_column='skill_id')
    title = models.CharField(max_length=255, db_column='title')
    description = models.TextField(blank=True, default='', db_column='description')
    order = models.PositiveIntegerField(default=1, db_column='sequence_order')
    weight = models.PositiveIntegerField(default=10, validators=[MinValueValidator(1)], db_column='mastery_weight')
    created_at = models.DateTimeField(default=timezone.now, db_column='created_at')
    updated_at = models.DateTimeField(auto_now=True, db_column='updated_at')

    class Meta:
        db_table = 'skill_steps'
        managed = True
        ordering = ['skill', 'order']

    def __str__(self):
        return f"{self.skill.name} #{self.order}: {self.title}"


class SkillPrerequisite(models.Model):
    """Directed edge: skill requires prerequisite. The edge set must stay acyclic."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='prerequisite_id')
    skill = models.ForeignKey(Skill, on_delete=models.CASCADE, related_name='prerequisite_links', db_column='skill_id')
    prerequisite = models.ForeignKey(Skill, on_delete=models.CASCADE, related_name='required_by_links', db_column='prerequisite_skill_id')
    order = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)], db_column='sequence_order')
    is_required = models.BooleanField(default=True, db_column='is_required')
    weight = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(3)],
        db_column='weight'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_column='created_at')

    class Meta:
        db_table = 'skill_prerequisites'
        managed = True
        unique_together = ('skill', 'prerequisite')
        ordering = ['skill', 'order']
        constraints = [
            models.CheckConstraint(condition=~Q(skill=models.F('prerequisite')), name='skill_prerequisite_not_self'),
        ]

    def __str__(self):
        return f"{self.prerequisite} -> {self.skill}"


class Program(models.Model):
    """Ordered curriculum of skills authored by an instructor or a self-directed learner"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='program_id')
    name = models.CharField(max_length=255, db_column='name')
    description = models.TextField(blank=True, default='', db_column='description')
    author = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='authored_programs', db_column='author_id')
    is_template = models.BooleanField(default=False, db_column='is_template')
    active = models.BooleanField(default=True, db_column='is_active')
    skills = models.ManyToManyField(Skill, through='ProgramSkill', related_name='programs')
    created_at = models.DateTimeField(default=timezone.now, db_column='created_at')
    updated_at = models.DateTimeField(auto_now=True, db_column='updated_at')

    class Meta:
        db_table = 'programs'
        managed = True
        ordering = ['-created_at']

    def __str__(self):
        return self.name


class ProgramSkill(models.Model):
    """Skill membership of a program with its order index"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='program_skill_id')
    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name='memberships', db_column='program_id')
    skill = models.ForeignKey(Skill, on_delete=models.CASCADE, related_name='program_memberships', db_column='skill_id')
    order = models.PositiveIntegerField(default=1, db_column='sequence_order')

    class Meta:
        db_table = 'program_skills'
        managed = True
        unique_together = ('program', 'skill')
        ordering = ['program', 'order']


class Share(models.Model):
    """Grant letting a teacher or peer assign a self-authored program onward"""
    AUDIENCE_CHOICES = [
        ('teacher', 'Teacher'),
        ('peer', 'Peer'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='share_id')
    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name='shares', db_column='program_id')
    sharer = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='shares_sent', db_column='shared_by_id')
    recipient = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='shares_received', db_column='shared_with_id')
    audience = models.CharField(max_length=20, choices=AUDIENCE_CHOICES, default='teacher', db_column='audience')
    note = models.TextField(blank=True, null=True, db_column='note')
    active = models.BooleanField(default=True, db_column='is_active')
    shared_at = models.DateTimeField(default=timezone.now, db_column='shared_at')
    revoked_at = models.DateTimeField(blank=True, null=True, db_column='revoked_at')
    revoked_by = models.ForeignKey(UserProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='+', db_column='revoked_by')

    class Meta:
        db_table = 'program_shares'
        managed = True
        ordering = ['-shared_at']
        constraints = [
            # Re-sharing is allowed once the previous share was revoked
            models.UniqueConstraint(
                fields=['program', 'recipient'],
                condition=Q(active=True),
                name='unique_active_program_share'
            ),
        ]
        indexes = [
            models.Index(fields=['recipient', 'active'], name='idx_shares_received'),
            models.Index(fields=['sharer', 'active'], name='idx_shares_sent'),
        ]

    def __str__(self):
        return f"{self.program} shared with {self.recipient} ({self.audience})"


class GroupAssignment(models.Model):
    """Program pushed to a group as a whole"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='group_assignment_id')
    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name='group_assignments', db_column='program_id')
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='program_assignments', db_column='group_id')
    source_share = models.ForeignKey(Share, on_delete=models.SET_NULL, null=True, blank=True, related_name='group_assignments', db_column='source_share_id')
    assigned_at = models.DateTimeField(default=timezone.now, db_column='assigned_at')

    class Meta:
        db_table = 'group_program_assignments'
        managed = True
        unique_together = ('program', 'group')

    def __str__(self):
        return f"Program {self.program} -> Group {self.group}"


class Assignment(models.Model):
    """Program assigned to one student, with provenance for audit and cascade"""
    PROVENANCE_CHOICES = [
        ('direct', 'Direct'),
        ('group', 'Group'),
        ('share', 'Share'),
    ]
    STATUS_CHOICES = [
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='assignment_id')
    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name='assignments', db_column='program_id')
    student = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='program_assignments', db_column='student_id')
    provenance = models.CharField(max_length=20, choices=PROVENANCE_CHOICES, default='direct', db_column='source_type')
    source_group = models.ForeignKey(Group, on_delete=models.SET_NULL, null=True, blank=True, related_name='+', db_column='source_group_id')
    source_group_assignment = models.ForeignKey(GroupAssignment, on_delete=models.SET_NULL, null=True, blank=True, related_name='assignments', db_column='source_group_assignment_id')
    source_share = models.ForeignKey(Share, on_delete=models.SET_NULL, null=True, blank=True, related_name='assignments', db_column='source_share_id')
    assigned_by = models.ForeignKey(UserProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='+', db_column='assigned_by')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='in_progress', db_column='status')
    detached = models.BooleanField(default=False, db_column='source_detached')
    detached_note = models.TextField(blank=True, null=True, db_column='detached_note')
    assigned_at = models.DateTimeField(default=timezone.now, db_column='assigned_at')

    class Meta:
        db_table = 'program_assignments'
        managed = True
        unique_together = ('program', 'student')
        ordering = ['-assigned_at']
        indexes = [
            models.Index(fields=['student', 'status'], name='idx_assignments_student'),
            models.Index(fields=['provenance', 'source_group'], name='idx_assignments_source'),
        ]

    def __str__(self):
        return f"{self.program} -> {self.student} ({self.provenance})"
