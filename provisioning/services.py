"""
Account provisioning and admin bootstrap.

Provisioning is a sequence of independent writes: the identity (with its
profile) is created first, then each remaining step runs in its own
savepoint through ProvisioningSteps. A failed step is logged with its name,
the entity and the user, and reported back in ``incomplete_steps``; it does
not undo the identity. ``manage.py find_incomplete_accounts`` lists
identities left without a role.
"""
import logging
import secrets
import smtplib
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.mail import send_mail
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from education.decorators import missing_fields
from education.models import (
    CustomUser, Profile, Role, School, SchoolUser, Student, Teacher, UserRole,
    check_school_limit
)
from .models import GeneratedCredential

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = 'abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789!@#$%'
PASSWORD_LENGTH = 12

USERNAME_PREFIXES = {
    'teacher': 'T',
    'student': 'S',
    'parent': 'P',
}

ENTITY_ROLES = {
    'teacher': Role.TEACHER,
    'student': Role.STUDENT,
    'parent': Role.PARENT,
}

BOOTSTRAP_ROLES = (Role.SUPER_ADMIN, Role.SCHOOL_ADMIN)

LIMIT_REACHED_MESSAGE = 'সাবস্ক্রিপশন লিমিট অতিক্রম করেছে। বর্তমান: {current}/{max}'
DUPLICATE_EMAIL_MESSAGE = 'এই ইমেইল ইতিমধ্যে নিবন্ধিত আছে'


class ProvisioningError(Exception):
    """Request rejected; carries the HTTP status and any extra response fields"""
    status = 400

    def __init__(self, message, **payload):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def as_dict(self):
        body = {'error': self.message}
        body.update(self.payload)
        return body


class InvalidRequest(ProvisioningError):
    pass


class LimitCheckFailed(ProvisioningError):
    status = 500


class LimitReached(ProvisioningError):
    pass


class DuplicateEmail(ProvisioningError):
    pass


class IdentityNotFound(ProvisioningError):
    status = 404


def generate_secure_password(length=PASSWORD_LENGTH):
    return ''.join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def generate_username(email, entity_type):
    """Human handle such as ``Srahim042``: type prefix, email local part, 3 random digits"""
    local_part = email.split('@')[0]
    prefix = USERNAME_PREFIXES.get(entity_type, 'P')
    return f"{prefix}{local_part}{secrets.randbelow(1000):03d}"


def _parse_uuid(value, field):
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise InvalidRequest(f'Invalid {field}')


def _require(data, fields):
    missing = missing_fields(data, fields)
    if missing:
        raise InvalidRequest(f'Missing required fields: {", ".join(missing)}')


class ProvisioningSteps:
    """Runs non-critical provisioning steps, each in its own savepoint"""

    def __init__(self, entity_type, entity_id, user=None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.user = user
        self.failed = []

    def run(self, step, func, *args, **kwargs):
        """Result of ``func``, or None when the step failed"""
        try:
            with transaction.atomic():
                result = func(*args, **kwargs)
        except (DatabaseError, ValueError):
            self.fail(step, exc_info=True)
            return None
        logger.debug("Provisioning step %s done for %s %s", step, self.entity_type, self.entity_id)
        return result

    def fail(self, step, exc_info=False):
        user_id = self.user.pk if self.user else None
        logger.error(
            "Provisioning step %s failed for %s %s (user %s)",
            step, self.entity_type, self.entity_id, user_id,
            exc_info=exc_info,
            extra={
                'step': step,
                'entity_type': self.entity_type,
                'entity_id': str(self.entity_id),
                'user_id': str(user_id) if user_id else None,
            },
        )
        self.failed.append(step)


def send_credentials_email(email, full_name, password, username=None):
    """Mail the login details; returns False when delivery failed"""
    lines = [
        f"Hello {full_name},",
        "",
        "An account has been created for you.",
        "",
        f"Email: {email}",
    ]
    if username:
        lines.append(f"Username: {username}")
    lines.extend([
        f"Temporary password: {password}",
        "",
        "Please change your password after your first login.",
    ])

    try:
        send_mail(
            'Your school portal account',
            '\n'.join(lines),
            settings.DEFAULT_FROM_EMAIL,
            [email],
            fail_silently=False,
        )
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to email credentials to %s", email)
        return False
    return True


def _create_identity(email, password, full_name, phone=None, username='', metadata=None):
    """Identity plus its profile; IntegrityError on an already registered email"""
    with transaction.atomic():
        user = CustomUser.objects.create_user(
            email=email,
            password=password,
            username=username,
            full_name=full_name,
            phone=phone or '',
            metadata=metadata or {},
            email_confirmed=True,
        )
        Profile.objects.update_or_create(
            user=user,
            defaults={'full_name': full_name, 'email': user.email, 'phone': phone},
        )
    return user


def _link_entity(entity_type, entity_id, user):
    model = {'teacher': Teacher, 'student': Student}.get(entity_type)
    if model is None:
        return True
    return model.objects.filter(pk=entity_id).update(user=user) > 0


def _record_credential(user, entity_type, entity_id, password, emailed, caller):
    credential = GeneratedCredential(
        user=user,
        entity_type=entity_type,
        entity_id=entity_id,
        sent_via='email' if emailed else 'manual',
        sent_at=timezone.now() if emailed else None,
        created_by=caller,
    )
    credential.set_temporary_password(password)
    credential.save()
    return credential


def _issue_account(steps, caller, school_id, entity_type, entity_id, email, full_name,
                   phone, send_email):
    """
    Create one identity with its role, school link and credential record.

    Returns ``(user, password, username)``. Raises DuplicateEmail when the
    email is already registered.
    """
    if CustomUser.objects.email_exists(email):
        raise DuplicateEmail(DUPLICATE_EMAIL_MESSAGE)

    password = generate_secure_password()
    username = generate_username(email, entity_type)

    try:
        user = _create_identity(
            email, password, full_name, phone, username,
            metadata={
                'full_name': full_name,
                'entity_type': entity_type,
                'school_id': str(school_id),
            },
        )
    except IntegrityError:
        logger.info("Email %s is already registered", email)
        raise DuplicateEmail(DUPLICATE_EMAIL_MESSAGE)

    steps.user = user
    logger.info("Created %s identity %s for %s", entity_type, user.pk, email)

    steps.run('assign_role', UserRole.objects.create, user=user, role=ENTITY_ROLES[entity_type])
    steps.run('link_school', SchoolUser.objects.create, school_id=school_id, user=user, is_admin=False)

    emailed = False
    if send_email:
        emailed = send_credentials_email(email, full_name, password, username)
        if not emailed:
            steps.fail('send_email')

    steps.run('record_credentials', _record_credential, user, entity_type, entity_id, password, emailed, caller)
    return user, password, username


def _provision_parent(steps, caller, school_id, student_id, data):
    """
    Link an existing parent by profile email, or create one when a name is given.

    Returns the new parent's credentials, or None when nothing was created.
    """
    parent_email = data['parent_email'].strip()
    existing = Profile.objects.filter(email__iexact=parent_email).select_related('user').first()
    if existing:
        logger.info("Linking student %s to existing parent %s", student_id, existing.user_id)
        steps.run(
            'link_parent',
            Student.objects.filter(pk=student_id).update, parent=existing.user
        )
        return None

    parent_name = data.get('parent_name')
    if not parent_name:
        return None

    parent_steps = ProvisioningSteps('parent', student_id)
    try:
        parent, password, _ = _issue_account(
            parent_steps, caller, school_id, 'parent', student_id, parent_email,
            parent_name, data.get('parent_phone'), data.get('send_email'),
        )
    except DuplicateEmail:
        # Registered identity without a profile cannot be linked by email
        steps.fail('create_parent')
        return None

    parent_steps.run('link_parent', Student.objects.filter(pk=student_id).update, parent=parent)
    steps.failed.extend(f'parent_{step}' for step in parent_steps.failed)

    return {
        'email': parent_email,
        'password': password,
        'name': parent_name,
    }


def create_account(caller, data):
    """
    Provision a login for a teacher, student or parent on behalf of an admin.

    ``caller`` has already been verified as an admin. Raises a
    ProvisioningError subclass when the request is rejected; otherwise returns
    the response body with the one-time credentials.
    """
    _require(data, ['entity_type', 'entity_id', 'school_id', 'email', 'full_name'])
    entity_type = data['entity_type']
    if entity_type not in ENTITY_ROLES:
        raise InvalidRequest('Invalid entity_type')
    entity_id = _parse_uuid(data['entity_id'], 'entity_id')
    school_id = data['school_id']
    email = data['email'].strip()
    full_name = data['full_name']

    logger.info("Creating %s account for %s (entity %s)", entity_type, email, entity_id)

    try:
        limit = check_school_limit(school_id, entity_type)
    except (School.DoesNotExist, ValidationError, ValueError, DatabaseError):
        logger.exception("Limit check failed for school %s", school_id)
        raise LimitCheckFailed('Failed to check subscription limits')

    if not limit['allowed']:
        logger.info("School %s reached its %s limit (%s/%s)", school_id, entity_type, limit['current'], limit['max'])
        raise LimitReached(
            LIMIT_REACHED_MESSAGE.format(current=limit['current'], max=limit['max']),
            limit_reached=True,
            current=limit['current'],
            max=limit['max'],
        )

    steps = ProvisioningSteps(entity_type, entity_id)
    user, password, username = _issue_account(
        steps, caller, school_id, entity_type, entity_id, email, full_name,
        data.get('phone'), data.get('send_email'),
    )

    if not steps.run('link_entity', _link_entity, entity_type, entity_id, user):
        if 'link_entity' not in steps.failed:
            steps.fail('link_entity')

    parent_credentials = None
    if entity_type == 'student' and data.get('parent_email'):
        parent_credentials = _provision_parent(steps, caller, school_id, entity_id, data)

    if steps.failed:
        logger.warning("Account %s created with incomplete steps: %s", user.pk, ', '.join(steps.failed))
    else:
        logger.info("Account created successfully for %s", email)

    return {
        'success': True,
        'credentials': {
            'email': email,
            'username': username,
            'password': password,
            'full_name': full_name,
        },
        'parent_credentials': parent_credentials,
        'user_id': str(user.pk),
        'incomplete_steps': steps.failed,
    }


def _bootstrap_identity(data):
    """Existing identity by ``user_id``, or a new one from email/password/full_name"""
    if data.get('user_id'):
        try:
            user = CustomUser.objects.filter(pk=data['user_id']).first()
        except ValidationError:
            user = None
        if user is None:
            raise IdentityNotFound('User not found')
        return user

    _require(data, ['email', 'password', 'full_name'])
    try:
        user = _create_identity(data['email'].strip(), data['password'], data['full_name'])
    except IntegrityError:
        raise DuplicateEmail('A user with this email address has already been registered')
    logger.info("Created admin identity %s for %s", user.pk, user.email)
    return user


def setup_admin(data):
    """
    Promote an identity to super_admin or school_admin.

    The role grant is idempotent. For a school admin without ``school_id``
    a new School is created on every call, even for a code already in use.
    """
    _require(data, ['role'])
    role = data['role']
    if role not in BOOTSTRAP_ROLES:
        raise InvalidRequest('Invalid role')

    school = None
    if role == Role.SCHOOL_ADMIN:
        if data.get('school_id'):
            try:
                school = School.objects.filter(pk=data['school_id']).first()
            except ValidationError:
                school = None
            if school is None:
                raise InvalidRequest('School not found')
        else:
            _require(data, ['school_name', 'school_code'])

    user = _bootstrap_identity(data)
    logger.info("Setting up %s for %s", role, user.pk)

    try:
        with transaction.atomic():
            _, created = UserRole.objects.get_or_create(user=user, role=role)
    except DatabaseError as e:
        logger.exception("Failed to grant %s to %s", role, user.pk)
        raise ProvisioningError(str(e))
    if not created:
        logger.info("%s already holds %s", user.pk, role)

    if role == Role.SCHOOL_ADMIN:
        if school is None:
            try:
                with transaction.atomic():
                    school = School.objects.create(
                        name=data['school_name'],
                        code=data['school_code'],
                        created_by=user,
                    )
            except DatabaseError as e:
                logger.exception("Failed to create school %s", data['school_code'])
                raise ProvisioningError(str(e))
            logger.info("Created school %s (%s)", school.pk, school.code)

        steps = ProvisioningSteps('school', school.pk, user)
        steps.run(
            'link_school_admin',
            SchoolUser.objects.update_or_create,
            school=school, user=user, defaults={'is_admin': True},
        )

    logger.info("Admin setup complete: %s %s school %s", user.pk, role, school.pk if school else None)
    return {
        'success': True,
        'user_id': str(user.pk),
        'email': user.email,
        'role': role,
        'school_id': str(school.pk) if school else None,
    }
