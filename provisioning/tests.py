import json
import smtplib
from io import StringIO
from unittest import mock

from django.core import mail
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import TestCase, override_settings

from education.models import (
    CustomUser, Profile, Role, School, SchoolUser, Student, SubscriptionPlan,
    Teacher, UserRole
)
from education.tokens import issue_access_token
from .models import GeneratedCredential, encrypt_value
from .services import (
    PASSWORD_ALPHABET, generate_secure_password, generate_username
)


class CredentialGenerationTestCase(TestCase):
    def test_password_length_and_alphabet(self):
        """Test generated passwords use only the declared alphabet"""
        for _ in range(200):
            password = generate_secure_password()
            self.assertEqual(len(password), 12)
            self.assertTrue(set(password) <= set(PASSWORD_ALPHABET))

    def test_consecutive_passwords_do_not_collide(self):
        previous = generate_secure_password()
        for _ in range(10000):
            current = generate_secure_password()
            self.assertNotEqual(current, previous)
            previous = current

    def test_username_format(self):
        self.assertRegex(generate_username('rahim@school.com', 'teacher'), r'^Trahim\d{3}$')
        self.assertRegex(generate_username('karim@school.com', 'student'), r'^Skarim\d{3}$')
        self.assertRegex(generate_username('guardian@mail.com', 'parent'), r'^Pguardian\d{3}$')


class GeneratedCredentialTestCase(TestCase):
    def test_password_is_encrypted_at_rest(self):
        credential = GeneratedCredential(entity_type='teacher', entity_id='00000000-0000-0000-0000-000000000001')
        credential.set_temporary_password('Secret123!@')
        credential.save()

        stored = GeneratedCredential.objects.get(pk=credential.pk)
        self.assertNotEqual(stored.temporary_password, 'Secret123!@')
        self.assertEqual(stored.get_temporary_password(), 'Secret123!@')

    def test_plaintext_rows_are_returned_unchanged(self):
        credential = GeneratedCredential(
            entity_type='teacher', entity_id='00000000-0000-0000-0000-000000000001',
            temporary_password='legacy-plain'
        )
        self.assertEqual(credential.get_temporary_password(), 'legacy-plain')
        self.assertNotEqual(encrypt_value('legacy-plain'), 'legacy-plain')


class ProvisioningTestMixin:
    def setUp(self):
        """Set up test data"""
        self.school = School.objects.create(name="Test School", code="TS01", subscription_plan='basic')
        SubscriptionPlan.objects.create(name='basic', max_students=10, max_teachers=1)

        self.admin = CustomUser.objects.create_user(email="admin@school.com", password="testpass123")
        UserRole.objects.create(user=self.admin, role=Role.SCHOOL_ADMIN)

        self.teacher = Teacher.objects.create(school=self.school, employee_id="E001", full_name="Test Teacher")
        self.student = Student.objects.create(
            school=self.school, admission_id="ADM001", full_name="Test Student", class_name="7"
        )

    def post(self, url, payload, user=None):
        headers = {}
        if user is not None:
            headers['HTTP_AUTHORIZATION'] = f'Bearer {issue_access_token(user)}'
        return self.client.post(url, data=json.dumps(payload), content_type='application/json', **headers)


class CreateUserAccountTestCase(ProvisioningTestMixin, TestCase):
    url = '/functions/v1/create-user-account'

    def teacher_payload(self, **extra):
        payload = {
            'entity_type': 'teacher',
            'entity_id': str(self.teacher.id),
            'school_id': str(self.school.id),
            'email': 'rahim@school.com',
            'full_name': 'Rahim Uddin',
            'phone': '01700000000',
        }
        payload.update(extra)
        return payload

    def student_payload(self, **extra):
        payload = {
            'entity_type': 'student',
            'entity_id': str(self.student.id),
            'school_id': str(self.school.id),
            'email': 'karim@school.com',
            'full_name': 'Karim Hossain',
        }
        payload.update(extra)
        return payload

    def test_missing_authorization_is_401(self):
        response = self.post(self.url, self.teacher_payload())
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'error': 'No authorization header'})

    def test_invalid_token_is_401(self):
        response = self.client.post(
            self.url, data=json.dumps(self.teacher_payload()), content_type='application/json',
            HTTP_AUTHORIZATION='Bearer forged'
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'error': 'Unauthorized'})

    def test_non_admin_is_403_regardless_of_payload(self):
        """Test callers without an admin role are rejected before anything else"""
        teacher_user = CustomUser.objects.create_user(email="t@school.com", password="x")
        UserRole.objects.create(user=teacher_user, role=Role.TEACHER)
        users_before = CustomUser.objects.count()

        for payload in (self.teacher_payload(), {}):
            response = self.post(self.url, payload, user=teacher_user)
            self.assertEqual(response.status_code, 403)
            self.assertEqual(response.json(), {'error': 'Only admins can create user accounts'})

        self.assertEqual(CustomUser.objects.count(), users_before)

    def test_limit_reached_is_400_and_creates_nothing(self):
        """Test a school at its cap gets counts back and no identity is created"""
        existing = CustomUser.objects.create_user(email="existing@school.com", password="x")
        Teacher.objects.create(school=self.school, employee_id="E000", full_name="Existing", user=existing)
        users_before = CustomUser.objects.count()

        response = self.post(self.url, self.teacher_payload(), user=self.admin)

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertTrue(body['limit_reached'])
        self.assertEqual(body['current'], 1)
        self.assertEqual(body['max'], 1)
        self.assertEqual(body['error'], 'সাবস্ক্রিপশন লিমিট অতিক্রম করেছে। বর্তমান: 1/1')
        self.assertEqual(CustomUser.objects.count(), users_before)
        self.assertFalse(GeneratedCredential.objects.exists())

    def test_unknown_school_is_500(self):
        other = School.objects.create(name="Gone", code="GN")
        school_id = str(other.id)
        other.delete()

        response = self.post(self.url, self.teacher_payload(school_id=school_id), user=self.admin)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'error': 'Failed to check subscription limits'})

    def test_missing_fields_is_400(self):
        response = self.post(self.url, {'entity_type': 'teacher'}, user=self.admin)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(),
            {'error': 'Missing required fields: entity_id, school_id, email, full_name'}
        )

    def test_invalid_entity_type_is_400(self):
        response = self.post(self.url, self.teacher_payload(entity_type='janitor'), user=self.admin)
        self.assertEqual(response.status_code, 400)

    def test_teacher_account_is_fully_linked(self):
        """Test identity, role, school link, back-reference and audit row are all written"""
        response = self.post(self.url, self.teacher_payload(), user=self.admin)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertIsNone(body['parent_credentials'])
        self.assertEqual(body['incomplete_steps'], [])

        credentials = body['credentials']
        self.assertEqual(credentials['email'], 'rahim@school.com')
        self.assertEqual(credentials['full_name'], 'Rahim Uddin')
        self.assertRegex(credentials['username'], r'^Trahim\d{3}$')

        user = CustomUser.objects.get(pk=body['user_id'])
        self.assertTrue(user.email_confirmed)
        self.assertTrue(user.check_password(credentials['password']))
        self.assertEqual(user.metadata['entity_type'], 'teacher')
        self.assertEqual(user.metadata['school_id'], str(self.school.id))
        self.assertEqual(user.profile.full_name, 'Rahim Uddin')
        self.assertEqual(user.get_roles(), {'teacher'})

        link = SchoolUser.objects.get(user=user)
        self.assertEqual(link.school, self.school)
        self.assertFalse(link.is_admin)

        self.teacher.refresh_from_db()
        self.assertEqual(self.teacher.user, user)

        credential = GeneratedCredential.objects.get(user=user)
        self.assertEqual(credential.entity_type, 'teacher')
        self.assertEqual(credential.entity_id, self.teacher.id)
        self.assertEqual(credential.created_by, self.admin)
        self.assertEqual(credential.sent_via, 'manual')
        self.assertIsNone(credential.sent_at)
        self.assertNotEqual(credential.temporary_password, credentials['password'])
        self.assertEqual(credential.get_temporary_password(), credentials['password'])

    def test_duplicate_email_is_400(self):
        CustomUser.objects.create_user(email="Rahim@school.com", password="x")
        response = self.post(self.url, self.teacher_payload(), user=self.admin)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'এই ইমেইল ইতিমধ্যে নিবন্ধিত আছে'})

    def test_send_email_marks_credential_emailed(self):
        response = self.post(self.url, self.teacher_payload(send_email=True), user=self.admin)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['rahim@school.com'])
        self.assertIn(response.json()['credentials']['password'], mail.outbox[0].body)

        credential = GeneratedCredential.objects.get()
        self.assertEqual(credential.sent_via, 'email')
        self.assertIsNotNone(credential.sent_at)

    @mock.patch('provisioning.services.send_mail', side_effect=smtplib.SMTPException('down'))
    def test_failed_email_falls_back_to_manual(self, mock_send_mail):
        response = self.post(self.url, self.teacher_payload(send_email=True), user=self.admin)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['incomplete_steps'], ['send_email'])
        credential = GeneratedCredential.objects.get()
        self.assertEqual(credential.sent_via, 'manual')
        self.assertIsNone(credential.sent_at)

    def test_failed_step_is_reported_and_identity_kept(self):
        """Test a failing school link does not undo the account"""
        with mock.patch.object(SchoolUser.objects, 'create', side_effect=DatabaseError('boom')):
            with self.assertLogs('provisioning.services', level='ERROR') as logs:
                response = self.post(self.url, self.teacher_payload(), user=self.admin)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['incomplete_steps'], ['link_school'])
        self.assertIn('link_school', logs.output[0])

        user = CustomUser.objects.get(pk=body['user_id'])
        self.assertEqual(user.get_roles(), {'teacher'})
        self.assertFalse(SchoolUser.objects.filter(user=user).exists())
        self.assertTrue(GeneratedCredential.objects.filter(user=user).exists())

    @override_settings(ENCRYPTION_KEY='not-a-fernet-key')
    def test_bad_encryption_key_only_skips_credential_record(self):
        """Test an unusable encryption key leaves the account usable and is reported"""
        with self.assertLogs('provisioning.services', level='ERROR'):
            response = self.post(self.url, self.teacher_payload(), user=self.admin)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['incomplete_steps'], ['record_credentials'])
        self.assertTrue(body['credentials']['password'])

        user = CustomUser.objects.get(pk=body['user_id'])
        self.assertEqual(user.get_roles(), {'teacher'})
        self.assertTrue(SchoolUser.objects.filter(user=user, school=self.school).exists())
        self.assertFalse(GeneratedCredential.objects.exists())

    def test_unknown_entity_is_reported(self):
        response = self.post(
            self.url,
            self.teacher_payload(entity_id='00000000-0000-0000-0000-000000000009'),
            user=self.admin
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['incomplete_steps'], ['link_entity'])

    def test_student_with_new_parent_creates_both_identities(self):
        """Test a new parent email with a name creates a linked parent account"""
        users_before = CustomUser.objects.count()

        response = self.post(self.url, self.student_payload(
            parent_email='new@x.com', parent_name='Guardian', parent_phone='01800000000'
        ), user=self.admin)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(CustomUser.objects.count(), users_before + 2)

        parent_credentials = body['parent_credentials']
        self.assertEqual(parent_credentials['email'], 'new@x.com')
        self.assertEqual(parent_credentials['name'], 'Guardian')
        self.assertNotEqual(parent_credentials['password'], body['credentials']['password'])

        parent = CustomUser.objects.get(email='new@x.com')
        self.assertTrue(parent.check_password(parent_credentials['password']))
        self.assertEqual(parent.get_roles(), {'parent'})
        self.assertTrue(SchoolUser.objects.filter(user=parent, school=self.school, is_admin=False).exists())

        self.student.refresh_from_db()
        self.assertEqual(str(self.student.user_id), body['user_id'])
        self.assertEqual(self.student.parent, parent)

        parent_credential = GeneratedCredential.objects.get(user=parent)
        self.assertEqual(parent_credential.entity_type, 'parent')
        self.assertEqual(parent_credential.entity_id, self.student.id)

    def test_student_with_existing_parent_links_without_new_identity(self):
        """Test a known parent email only links the student to that parent"""
        parent = CustomUser.objects.create_user(email="guardian@x.com", password="x")
        Profile.objects.create(user=parent, full_name="Guardian", email="guardian@x.com")
        users_before = CustomUser.objects.count()

        response = self.post(self.url, self.student_payload(
            parent_email='guardian@x.com', parent_name='Guardian'
        ), user=self.admin)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertIsNone(body['parent_credentials'])
        self.assertEqual(CustomUser.objects.count(), users_before + 1)

        self.student.refresh_from_db()
        self.assertEqual(self.student.parent, parent)
        self.assertFalse(GeneratedCredential.objects.filter(user=parent).exists())

    def test_parent_email_without_name_creates_no_parent(self):
        users_before = CustomUser.objects.count()
        response = self.post(self.url, self.student_payload(parent_email='new@x.com'), user=self.admin)
        self.assertIsNone(response.json()['parent_credentials'])
        self.assertEqual(CustomUser.objects.count(), users_before + 1)


class SetupAdminTestCase(ProvisioningTestMixin, TestCase):
    url = '/functions/v1/setup-admin'

    def setUp(self):
        super().setUp()
        self.user = CustomUser.objects.create_user(email="owner@school.com", password="testpass123")

    def test_unknown_user_is_404(self):
        response = self.post(self.url, {'user_id': '00000000-0000-0000-0000-000000000009', 'role': 'super_admin'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'error': 'User not found'})

    def test_super_admin_grant_is_idempotent(self):
        """Test granting super_admin twice leaves a single role row"""
        payload = {'user_id': str(self.user.id), 'role': 'super_admin'}
        first = self.post(self.url, payload)
        second = self.post(self.url, payload)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json(), {
            'success': True,
            'user_id': str(self.user.id),
            'email': 'owner@school.com',
            'role': 'super_admin',
            'school_id': None,
        })
        self.assertEqual(UserRole.objects.filter(user=self.user, role='super_admin').count(), 1)

    def test_school_admin_creates_a_school_per_call(self):
        """Test school creation is not idempotent on the school code"""
        payload = {
            'user_id': str(self.user.id),
            'role': 'school_admin',
            'school_name': 'Dhaka Ideal School',
            'school_code': 'DIS',
        }
        first = self.post(self.url, payload).json()
        second = self.post(self.url, payload).json()

        self.assertNotEqual(first['school_id'], second['school_id'])
        self.assertEqual(School.objects.filter(code='DIS').count(), 2)
        self.assertEqual(UserRole.objects.filter(user=self.user, role='school_admin').count(), 1)
        for school_id in (first['school_id'], second['school_id']):
            school = School.objects.get(pk=school_id)
            self.assertEqual(school.created_by, self.user)
            self.assertTrue(SchoolUser.objects.get(school=school, user=self.user).is_admin)

    def test_school_admin_for_existing_school(self):
        response = self.post(self.url, {
            'user_id': str(self.user.id), 'role': 'school_admin', 'school_id': str(self.school.id)
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['school_id'], str(self.school.id))
        self.assertTrue(SchoolUser.objects.get(school=self.school, user=self.user).is_admin)
        self.assertEqual(School.objects.count(), 1)

    def test_school_admin_without_school_is_400(self):
        response = self.post(self.url, {'user_id': str(self.user.id), 'role': 'school_admin'})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(UserRole.objects.filter(user=self.user).exists())

    def test_invalid_role_is_400(self):
        response = self.post(self.url, {'user_id': str(self.user.id), 'role': 'teacher'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Invalid role'})

    def test_creates_identity_from_email(self):
        response = self.post(self.url, {
            'email': 'first@school.com',
            'password': 'S3cure-pass!',
            'full_name': 'First Admin',
            'role': 'super_admin',
        })

        self.assertEqual(response.status_code, 200)
        user = CustomUser.objects.get(email='first@school.com')
        self.assertEqual(response.json()['user_id'], str(user.id))
        self.assertTrue(user.check_password('S3cure-pass!'))
        self.assertTrue(user.email_confirmed)
        self.assertEqual(user.profile.full_name, 'First Admin')
        self.assertTrue(user.is_super_admin())

    def test_existing_email_is_400(self):
        response = self.post(self.url, {
            'email': 'owner@school.com', 'password': 'x', 'full_name': 'Owner', 'role': 'super_admin'
        })
        self.assertEqual(response.status_code, 400)


class FindIncompleteAccountsTestCase(ProvisioningTestMixin, TestCase):
    def test_lists_identities_without_role(self):
        CustomUser.objects.create_user(email="orphan@school.com", password="x", metadata={'school_id': str(self.school.id)})
        out = StringIO()
        call_command('find_incomplete_accounts', stdout=out)
        output = out.getvalue()
        self.assertIn('No role: orphan@school.com', output)
        self.assertNotIn('admin@school.com', output)

    def test_lists_role_holders_without_school_link(self):
        user = CustomUser.objects.create_user(email="unlinked@school.com", password="x")
        UserRole.objects.create(user=user, role=Role.TEACHER)
        out = StringIO()
        call_command('find_incomplete_accounts', stdout=out)
        self.assertIn('No school link: unlinked@school.com', out.getvalue())

    def test_school_filter(self):
        other = School.objects.create(name="Other", code="OT")
        CustomUser.objects.create_user(email="mine@school.com", password="x", metadata={'school_id': str(self.school.id)})
        CustomUser.objects.create_user(email="theirs@school.com", password="x", metadata={'school_id': str(other.id)})

        out = StringIO()
        call_command('find_incomplete_accounts', school_id=str(self.school.id), stdout=out)
        self.assertIn('mine@school.com', out.getvalue())
        self.assertNotIn('theirs@school.com', out.getvalue())

    def test_unknown_school_is_an_error(self):
        with self.assertRaises(CommandError):
            call_command('find_incomplete_accounts', school_id='not-a-uuid', stdout=StringIO())

    def test_clean_database(self):
        out = StringIO()
        call_command('find_incomplete_accounts', stdout=out)
        self.assertIn('No incomplete accounts found', out.getvalue())
