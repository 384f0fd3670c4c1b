import json
from unittest import mock

from django.core import signing
from django.http import JsonResponse
from django.test import RequestFactory, TestCase, override_settings

from .decorators import bearer_admin_required, missing_fields
from .models import (
    CustomUser, Role, School, SchoolUser, Student, SubscriptionPlan, Teacher,
    UserRole, check_school_limit
)
from .tokens import TOKEN_SALT, get_bearer_token, get_user_for_token, issue_access_token


class SchoolLimitTestCase(TestCase):
    def setUp(self):
        """Set up test data"""
        self.school = School.objects.create(name="Test School", code="TS01", subscription_plan='basic')
        SubscriptionPlan.objects.create(name='basic', max_students=2, max_teachers=1)

    def _teacher_with_account(self, n):
        user = CustomUser.objects.create_user(email=f"teacher{n}@school.com", password="x")
        return Teacher.objects.create(
            school=self.school, employee_id=f"E{n}", full_name=f"Teacher {n}", user=user
        )

    def test_teacher_limit_allows_below_cap(self):
        """Test a school below its teacher cap may provision"""
        result = check_school_limit(self.school.id, 'teacher')
        self.assertEqual(result, {'allowed': True, 'current': 0, 'max': 1})

    def test_teacher_limit_reached(self):
        """Test the check rejects once current equals max"""
        self._teacher_with_account(1)
        result = self.school.check_limit('teacher')
        self.assertFalse(result['allowed'])
        self.assertEqual(result['current'], 1)
        self.assertEqual(result['max'], 1)

    def test_entities_without_accounts_are_not_counted(self):
        """Test only students that already hold an account count towards the cap"""
        Student.objects.create(school=self.school, full_name="No Account", class_name="6")
        user = CustomUser.objects.create_user(email="s1@school.com", password="x")
        Student.objects.create(school=self.school, full_name="Has Account", class_name="6", user=user)

        result = self.school.check_limit('student')
        self.assertEqual(result['current'], 1)
        self.assertTrue(result['allowed'])

    def test_parent_is_always_allowed(self):
        """Test parents are never capped"""
        result = self.school.check_limit('parent')
        self.assertTrue(result['allowed'])
        self.assertIsNone(result['max'])

    def test_school_without_plan_row_is_unlimited(self):
        """Test a school whose plan has no row is uncapped"""
        school = School.objects.create(name="Other", code="OT", subscription_plan='premium')
        result = school.check_limit('student')
        self.assertTrue(result['allowed'])
        self.assertIsNone(result['max'])

    def test_inactive_plan_is_ignored(self):
        """Test an inactive plan does not cap the school"""
        SubscriptionPlan.objects.filter(name='basic').update(is_active=False)
        self._teacher_with_account(1)
        self.assertTrue(self.school.check_limit('teacher')['allowed'])

    def test_unknown_entity_type_raises(self):
        """Test an unknown entity type is an error"""
        with self.assertRaises(ValueError):
            self.school.check_limit('janitor')

    def test_unknown_school_raises(self):
        """Test an unknown school id is an error"""
        other = School.objects.create(name="Gone", code="GN")
        school_id = other.id
        other.delete()
        with self.assertRaises(School.DoesNotExist):
            check_school_limit(school_id, 'teacher')


class CustomUserTestCase(TestCase):
    def setUp(self):
        self.user = CustomUser.objects.create_user(email="Admin@School.com", password="testpass123")

    def test_email_is_normalized_and_login_field(self):
        """Test identities are keyed on their email"""
        self.assertEqual(self.user.email, "Admin@school.com")
        self.assertEqual(CustomUser.USERNAME_FIELD, 'email')
        self.assertTrue(self.user.check_password("testpass123"))

    def test_email_exists_is_case_insensitive(self):
        self.assertTrue(CustomUser.objects.email_exists("admin@school.com "))
        self.assertFalse(CustomUser.objects.email_exists("other@school.com"))

    def test_admin_roles(self):
        """Test only super_admin and school_admin count as admins"""
        self.assertFalse(self.user.is_admin())

        UserRole.objects.create(user=self.user, role=Role.TEACHER)
        self.assertFalse(self.user.is_admin())

        UserRole.objects.create(user=self.user, role=Role.SCHOOL_ADMIN)
        self.assertTrue(self.user.is_admin())
        self.assertFalse(self.user.is_super_admin())
        self.assertEqual(self.user.get_roles(), {'teacher', 'school_admin'})

    def test_school_membership(self):
        school = School.objects.create(name="Test School", code="TS01")
        SchoolUser.objects.create(school=school, user=self.user, is_admin=True)
        self.assertEqual(self.user.school_links.get().school, school)


class AccessTokenTestCase(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.user = CustomUser.objects.create_user(email="admin@school.com", password="testpass123")

    def test_token_resolves_to_user(self):
        token = issue_access_token(self.user)
        self.assertEqual(get_user_for_token(token), self.user)

    def test_tampered_token_is_rejected(self):
        token = issue_access_token(self.user)
        self.assertIsNone(get_user_for_token(token + 'x'))
        self.assertIsNone(get_user_for_token(''))

    def test_expired_token_is_rejected(self):
        token = issue_access_token(self.user)
        with mock.patch('education.tokens.signing.loads', side_effect=signing.SignatureExpired('expired')):
            self.assertIsNone(get_user_for_token(token))

    def test_inactive_user_token_is_rejected(self):
        token = issue_access_token(self.user)
        self.user.is_active = False
        self.user.save()
        self.assertIsNone(get_user_for_token(token))

    def test_token_signed_with_other_salt_is_rejected(self):
        token = signing.dumps({'uid': str(self.user.pk)}, salt=TOKEN_SALT + '.other')
        self.assertIsNone(get_user_for_token(token))

    def test_bearer_header_parsing(self):
        request = self.factory.post('/', HTTP_AUTHORIZATION='Bearer abc.def')
        self.assertEqual(get_bearer_token(request), 'abc.def')
        self.assertIsNone(get_bearer_token(self.factory.post('/')))


class DecoratorsTestCase(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.user = CustomUser.objects.create_user(email="user@school.com", password="testpass123")

        @bearer_admin_required('Admins only')
        def view(request):
            return JsonResponse({'caller': str(request.caller.pk)})

        self.view = view

    def test_missing_header_is_401(self):
        response = self.view(self.factory.post('/'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(json.loads(response.content), {'error': 'No authorization header'})

    def test_invalid_token_is_401(self):
        response = self.view(self.factory.post('/', HTTP_AUTHORIZATION='Bearer nope'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(json.loads(response.content), {'error': 'Unauthorized'})

    def test_non_admin_is_403(self):
        UserRole.objects.create(user=self.user, role=Role.TEACHER)
        token = issue_access_token(self.user)
        response = self.view(self.factory.post('/', HTTP_AUTHORIZATION=f'Bearer {token}'))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(json.loads(response.content), {'error': 'Admins only'})

    def test_admin_passes_through(self):
        UserRole.objects.create(user=self.user, role=Role.SUPER_ADMIN)
        token = issue_access_token(self.user)
        response = self.view(self.factory.post('/', HTTP_AUTHORIZATION=f'Bearer {token}'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content), {'caller': str(self.user.pk)})

    def test_missing_fields(self):
        data = {'a': 'x', 'b': '  ', 'c': 0}
        self.assertEqual(missing_fields(data, ['a', 'b', 'c', 'd']), ['b', 'd'])


@override_settings(ACCESS_TOKEN_TTL=600)
class TokenEndpointTestCase(TestCase):
    def setUp(self):
        self.user = CustomUser.objects.create_user(email="admin@school.com", password="testpass123")

    def _post(self, payload):
        return self.client.post('/api/auth/token', data=json.dumps(payload), content_type='application/json')

    def test_valid_credentials_issue_token(self):
        response = self._post({'email': 'admin@school.com', 'password': 'testpass123'})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['token_type'], 'bearer')
        self.assertEqual(body['expires_in'], 600)
        self.assertEqual(body['user_id'], str(self.user.pk))
        self.assertEqual(get_user_for_token(body['access_token']), self.user)

    def test_wrong_password_is_401(self):
        response = self._post({'email': 'admin@school.com', 'password': 'wrong'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'error': 'Invalid login credentials'})

    def test_missing_fields_is_400(self):
        response = self._post({'email': 'admin@school.com'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('password', response.json()['error'])

    def test_invalid_json_is_400(self):
        response = self.client.post('/api/auth/token', data='not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_get_not_allowed(self):
        response = self.client.get('/api/auth/token')
        self.assertEqual(response.status_code, 405)


class CorsMiddlewareTestCase(TestCase):
    def test_preflight_answered_with_empty_200(self):
        response = self.client.options('/functions/v1/create-user-account')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b'')
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')
        self.assertIn('authorization', response['Access-Control-Allow-Headers'])

    def test_regular_responses_are_cors_open(self):
        response = self.client.post('/api/auth/token', data='{}', content_type='application/json')
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')
