import uuid

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal


class Role(models.TextChoices):
    """Closed set of permission tiers an identity can hold"""
    SUPER_ADMIN = 'super_admin', 'Super Admin'
    SCHOOL_ADMIN = 'school_admin', 'School Admin'
    TEACHER = 'teacher', 'Teacher'
    STUDENT = 'student', 'Student'
    PARENT = 'parent', 'Parent'


ADMIN_ROLES = frozenset({Role.SUPER_ADMIN.value, Role.SCHOOL_ADMIN.value})


class SubscriptionPlan(models.Model):
    """Subscription tier capping how many accounts a school may provision"""
    PLAN_CHOICES = [
        ('basic', 'Basic'),
        ('standard', 'Standard'),
        ('premium', 'Premium'),
        ('enterprise', 'Enterprise'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=20, choices=PLAN_CHOICES, unique=True)
    name_bn = models.CharField(max_length=100, blank=True, null=True)
    max_students = models.IntegerField(validators=[MinValueValidator(0)])
    max_teachers = models.IntegerField(validators=[MinValueValidator(0)])
    price_monthly = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'subscription_plans'
        ordering = ['price_monthly']

    def __str__(self):
        return f"{self.get_name_display()} ({self.max_students} students / {self.max_teachers} teachers)"


class School(models.Model):
    """A school tenant. Codes are not unique: bootstrap may create duplicates."""
    DEFAULT_PLAN = 'basic'

    # entity type -> SubscriptionPlan field holding its cap
    LIMIT_FIELDS = {
        'teacher': 'max_teachers',
        'student': 'max_students',
        'parent': None,
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    name_bn = models.CharField(max_length=200, blank=True, null=True)
    code = models.CharField(max_length=50, db_index=True)
    address = models.TextField(blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    subscription_plan = models.CharField(max_length=20, choices=SubscriptionPlan.PLAN_CHOICES, blank=True, null=True)
    subscription_start = models.DateField(blank=True, null=True)
    subscription_end = models.DateField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    is_suspended = models.BooleanField(default=False)
    suspension_reason = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey('CustomUser', on_delete=models.SET_NULL, null=True, blank=True, related_name='created_schools')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'schools'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"

    def get_subscription_plan(self):
        """Active plan row for this school, or None when the school is unlimited"""
        return SubscriptionPlan.objects.filter(
            name=self.subscription_plan or self.DEFAULT_PLAN,
            is_active=True
        ).first()

    def count_accounts(self, entity_type):
        """Number of entities of this type that already hold an account"""
        if entity_type == 'teacher':
            return self.teachers.filter(user__isnull=False).count()
        if entity_type == 'student':
            return self.students.filter(user__isnull=False).count()
        return self.members.filter(user__roles__role=Role.PARENT).distinct().count()

    def check_limit(self, entity_type):
        """
        Quota check for provisioning one more account of ``entity_type``.

        Returns a dict with ``allowed``, ``current`` and ``max`` (None when
        uncapped). Raises ValueError for an entity type the school does not
        track.
        """
        if entity_type not in self.LIMIT_FIELDS:
            raise ValueError(f"Unknown entity type: {entity_type}")

        current = self.count_accounts(entity_type)
        limit_field = self.LIMIT_FIELDS[entity_type]
        plan = self.get_subscription_plan() if limit_field else None
        maximum = getattr(plan, limit_field) if plan else None

        return {
            'allowed': maximum is None or current < maximum,
            'current': current,
            'max': maximum,
        }


def check_school_limit(school_id, entity_type):
    """Quota check by school id; School.DoesNotExist propagates"""
    school = School.objects.get(pk=school_id)
    return school.check_limit(entity_type)


class CustomUserManager(BaseUserManager):
    """Identities log in with their email address"""
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('An email address is required')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('email_confirmed', True)
        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')
        return self._create_user(email, password, **extra_fields)

    def email_exists(self, email):
        return self.filter(email__iexact=email.strip()).exists()


class CustomUser(AbstractUser):
    """Authenticatable identity. Roles live in UserRole, not on the user row."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    # Human-readable handle handed out with generated credentials (not a login key)
    username = models.CharField(max_length=150, blank=True)
    full_name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    email_confirmed = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = CustomUserManager()

    class Meta:
        db_table = 'auth_identities'
        ordering = ['email']

    def __str__(self):
        return self.email

    def get_roles(self):
        return set(self.roles.values_list('role', flat=True))

    def has_any_role(self, roles):
        return bool(self.get_roles() & set(roles))

    def is_admin(self):
        """Super admins and school admins may provision accounts"""
        return self.has_any_role(ADMIN_ROLES)

    def is_super_admin(self):
        return self.has_any_role({Role.SUPER_ADMIN.value}) or self.is_superuser


class Profile(models.Model):
    """Public profile of an identity; parents are looked up here by email"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(CustomUser, on_delete=models.CASCADE, related_name='profile')
    full_name = models.CharField(max_length=200)
    full_name_bn = models.CharField(max_length=200, blank=True, null=True)
    email = models.EmailField(blank=True, null=True, db_index=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'profiles'

    def __str__(self):
        return f"{self.full_name} <{self.email}>"


class UserRole(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='roles')
    role = models.CharField(max_length=20, choices=Role.choices)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_roles'
        unique_together = ['user', 'role']
        indexes = [
            models.Index(fields=['role'], name='user_roles_role_idx'),
        ]

    def __str__(self):
        return f"{self.user} - {self.get_role_display()}"


class SchoolUser(models.Model):
    """Membership edge between an identity and a school"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name='members')
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='school_links')
    is_admin = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'school_users'
        indexes = [
            models.Index(fields=['school', 'is_admin'], name='school_users_school_admin_idx'),
        ]

    def __str__(self):
        suffix = ' (admin)' if self.is_admin else ''
        return f"{self.user} @ {self.school.code}{suffix}"


class Teacher(models.Model):
    """Teacher record; gains a user back-reference once an account exists"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name='teachers')
    employee_id = models.CharField(max_length=50)
    full_name = models.CharField(max_length=200)
    full_name_bn = models.CharField(max_length=200, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    designation = models.CharField(max_length=100, blank=True, null=True)
    user = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='teacher_records')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'teachers'
        ordering = ['full_name']
        indexes = [
            models.Index(fields=['school', 'employee_id'], name='teachers_school_employee_idx'),
        ]

    def __str__(self):
        return f"{self.employee_id} - {self.full_name}"


class Student(models.Model):
    """Student record; linked to its own account and optionally a parent account"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name='students')
    admission_id = models.CharField(max_length=50, blank=True, null=True)
    full_name = models.CharField(max_length=200)
    full_name_bn = models.CharField(max_length=200, blank=True, null=True)
    class_name = models.CharField(max_length=50, db_column='class')
    section = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    guardian_name = models.CharField(max_length=200, blank=True, null=True)
    guardian_mobile = models.CharField(max_length=20, blank=True, null=True)
    user = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='student_records')
    parent = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'students'
        ordering = ['class_name', 'full_name']
        indexes = [
            models.Index(fields=['school', 'class_name'], name='students_school_class_idx'),
            models.Index(fields=['school', 'admission_id'], name='students_school_admission_idx'),
        ]

    def __str__(self):
        return f"{self.admission_id or self.id} - {self.full_name}"
