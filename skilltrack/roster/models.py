from django.db import models
from django.utils import timezone
import uuid


# User Profile model - maps to the users table
class UserProfile(models.Model):
    ROLE_CHOICES = [
        ('admin', 'Admin'),
        ('instructor', 'Instructor'),
        ('student', 'Student'),
    ]
    STATUS_CHOICES = [('active', 'active'), ('inactive', 'inactive'), ('archived', 'archived')]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='user_id')
    first_name = models.CharField(max_length=100, db_column='first_name')
    last_name = models.CharField(max_length=100, db_column='last_name')
    email = models.EmailField(unique=True, db_column='email')
    password_hash = models.CharField(max_length=255, blank=True, db_column='password_hash')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='student', db_column='primary_role')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active', db_column='status')
    school_code = models.CharField(max_length=64, blank=True, null=True, db_column='school_code')
    last_login = models.DateTimeField(blank=True, null=True, db_column='last_login')
    created_at = models.DateTimeField(auto_now_add=True, db_column='created_at')
    updated_at = models.DateTimeField(auto_now=True, db_column='updated_at')

    class Meta:
        db_table = 'users'
        managed = True

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_instructor(self):
        return self.role in ('instructor', 'admin')

    def __str__(self):
        return self.full_name or self.email


class InstructorStudentLink(models.Model):
    """Instructor-student relationship backing the "is this student mine" lookup"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('declined', 'Declined'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='link_id')
    instructor = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='student_links', db_column='instructor_id')
    student = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='instructor_links', db_column='student_id')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_column='status')
    created_at = models.DateTimeField(default=timezone.now, db_column='created_at')

    class Meta:
        db_table = 'instructor_student_links'
        managed = True
        unique_together = ('instructor', 'student')

    def __str__(self):
        return f"{self.instructor} -> {self.student} ({self.status})"


class Group(models.Model):
    """Roster of students managed by an instructor"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='group_id')
    name = models.CharField(max_length=255, db_column='group_name')
    description = models.TextField(blank=True, db_column='description')
    owner = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='owned_groups', db_column='owner_id')
    active = models.BooleanField(default=True, db_column='is_active')
    created_at = models.DateTimeField(auto_now_add=True, db_column='created_at')
    updated_at = models.DateTimeField(auto_now=True, db_column='updated_at')
    students = models.ManyToManyField(UserProfile, blank=True, related_name='student_groups', through='GroupMember')

    class Meta:
        db_table = 'groups'
        managed = True
        ordering = ['name']

    def __str__(self):
        return self.name


class GroupMember(models.Model):
    """Explicit through table for Group members relationship"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, db_column='membership_id')
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='memberships', db_column='group_id')
    student = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='group_memberships', db_column='student_id')
    joined_at = models.DateTimeField(default=timezone.now, db_column='joined_at')
    added_by = models.ForeignKey(UserProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='+', db_column='added_by')

    class Meta:
        db_table = 'group_members'
        managed = True
        unique_together = ('group', 'student')
        ordering = ['joined_at']

    def __str__(self):
        return f"{self.student.email} in {self.group.name}"
