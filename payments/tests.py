import json
from datetime import date
from decimal import Decimal
from unittest import mock

import requests
from django.test import TestCase, override_settings

from education.models import CustomUser, School, Student
from .bkash_service import LIVE_BASE_URL, SANDBOX_BASE_URL, BkashService
from .config import (
    BKASH_CONFIG_KEY, SSLCOMMERZ_CONFIG_KEY, GatewayConfigurationError,
    bkash_config_provider
)
from .models import Fee, Invoice, PaymentTransaction, SystemSetting


def gateway_response(payload):
    response = mock.Mock()
    response.json.return_value = payload
    return response


BKASH_CONFIG = {
    'data': {
        'app_key': 'app-key',
        'app_secret': 'app-secret',
        'username': 'merchant',
        'password': 'merchant-pass',
        'is_sandbox': True,
    }
}

SSLCOMMERZ_CONFIG = {
    'data': {
        'store_id': 'store1',
        'store_password': 'store1@ssl',
        'is_sandbox': True,
    }
}

TOKEN_OK = {'statusCode': '0000', 'id_token': 'id-token-1'}


class PaymentTestMixin:
    def setUp(self):
        """Set up test data"""
        self.school = School.objects.create(name="Test School", code="ts 01")
        self.student = Student.objects.create(
            school=self.school, admission_id="ADM001", full_name="Test Student", class_name="7"
        )
        self.fee = Fee.objects.create(
            student=self.student, fee_type='tuition', amount=Decimal('500.00'), due_date=date(2025, 1, 31)
        )
        self.invoice = Invoice.objects.create(school=self.school, student=self.student, amount=Decimal('500.00'))

    def post(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json')


class GatewayConfigTestCase(TestCase):
    def test_missing_config_raises(self):
        """Test a missing system setting is a configuration error"""
        with self.assertRaisesMessage(
            GatewayConfigurationError,
            'bKash configuration not found. Please configure in System Settings.'
        ):
            bkash_config_provider().load()

    def test_config_without_data_raises(self):
        SystemSetting.objects.create(key=BKASH_CONFIG_KEY, value={'enabled': True})
        with self.assertRaises(GatewayConfigurationError):
            bkash_config_provider().load()

    def test_partial_config_names_missing_keys(self):
        SystemSetting.objects.create(key=BKASH_CONFIG_KEY, value={'data': {'is_sandbox': True, 'username': 'u'}})
        with self.assertRaisesMessage(GatewayConfigurationError, 'missing app_key, app_secret, password'):
            bkash_config_provider().load()

    def test_config_is_reread_on_every_load(self):
        """Test edits to the setting are visible on the next load"""
        provider = bkash_config_provider()
        setting = SystemSetting.objects.create(key=BKASH_CONFIG_KEY, value=BKASH_CONFIG)
        self.assertEqual(provider.load()['app_key'], 'app-key')

        setting.value = {'data': dict(BKASH_CONFIG['data'], app_key='rotated')}
        setting.save()
        self.assertEqual(provider.load()['app_key'], 'rotated')


class PaymentModelsTestCase(PaymentTestMixin, TestCase):
    def test_admin_created_invoice_is_numbered(self):
        """Test invoices added through the admin get the next number"""
        superuser = CustomUser.objects.create_superuser(email='root@school.com', password='testpass123')
        self.client.force_login(superuser)

        response = self.client.post('/django-admin/payments/invoice/add/', {
            'school': str(self.school.id),
            'student': str(self.student.id),
            'amount': '250.00',
            'status': 'pending',
        })

        self.assertEqual(response.status_code, 302)
        invoice = Invoice.objects.get(amount=Decimal('250.00'))
        self.assertRegex(invoice.invoice_number, r'^INV-TS01-\d{8}-0002$')

    def test_invoice_numbers_are_sequential_per_school_and_day(self):
        """Test invoice number generation"""
        second = Invoice.objects.create(school=self.school, student=self.student, amount=Decimal('100.00'))
        self.assertRegex(self.invoice.invoice_number, r'^INV-TS01-\d{8}-0001$')
        self.assertTrue(second.invoice_number.endswith('-0002'))

    def test_completed_transaction_cannot_be_completed_again(self):
        payment = PaymentTransaction.objects.create(
            amount=Decimal('10.00'), payment_method='sslcommerz', transaction_number='T1'
        )
        payment.mark_completed('BANK1', {'status': 'VALID'})
        self.assertTrue(payment.is_completed)
        self.assertIsNotNone(payment.verified_at)

        with self.assertRaises(ValueError):
            payment.mark_completed('BANK2', {'status': 'VALID'})
        payment.refresh_from_db()
        self.assertEqual(payment.gateway_transaction_id, 'BANK1')

    def test_fee_mark_paid(self):
        self.fee.mark_paid('bkash', 'TRX1')
        self.fee.refresh_from_db()
        self.assertEqual(self.fee.status, 'paid')
        self.assertEqual(self.fee.transaction_id, 'TRX1')
        self.assertIsNotNone(self.fee.paid_date)


class BkashPaymentTestCase(PaymentTestMixin, TestCase):
    url = '/functions/v1/bkash-payment'

    def setUp(self):
        super().setUp()
        self.setting = SystemSetting.objects.create(key=BKASH_CONFIG_KEY, value=BKASH_CONFIG, category='payment')

    def execute_result(self, **overrides):
        result = {
            'statusCode': '0000',
            'statusMessage': 'Successful',
            'paymentID': 'PAY123',
            'trxID': 'TRX123',
            'transactionStatus': 'Completed',
            'amount': '500',
            'currency': 'BDT',
            'merchantInvoiceNumber': 'INV-1',
        }
        result.update(overrides)
        return result

    def test_missing_config_is_400(self):
        self.setting.delete()
        response = self.post(self.url, {'action': 'query', 'paymentID': 'PAY123'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(),
            {'error': 'bKash configuration not found. Please configure in System Settings.'}
        )

    @mock.patch('payments.bkash_service.requests.post')
    def test_partial_config_is_400(self, mock_post):
        """Test a half-filled setting is answered with 400 before any gateway call"""
        self.setting.value = {'data': {'is_sandbox': True, 'username': 'u'}}
        self.setting.save()

        response = self.post(self.url, {
            'action': 'create',
            'payer_reference': '01700000000',
            'callback_url': 'https://school.test/callback',
            'amount': 500,
            'invoice_number': 'INV-1',
        })

        self.assertEqual(response.status_code, 400)
        self.assertIn('missing app_key, app_secret, password', response.json()['error'])
        mock_post.assert_not_called()

    @mock.patch('payments.bkash_service.requests.post')
    def test_non_object_reply_is_400(self, mock_post):
        mock_post.side_effect = [gateway_response(TOKEN_OK), gateway_response(['unexpected'])]
        response = self.post(self.url, {'action': 'execute', 'paymentID': 'PAY123', 'fee_id': str(self.fee.id)})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'bKash returned an unexpected response'})
        self.assertFalse(PaymentTransaction.objects.exists())

    @mock.patch('payments.bkash_service.requests.post')
    def test_unreadable_token_reply_is_400(self, mock_post):
        reply = mock.Mock()
        reply.json.side_effect = ValueError('Expecting value')
        mock_post.return_value = reply

        response = self.post(self.url, {'action': 'query', 'paymentID': 'PAY123'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'bKash returned a response that is not JSON'})

    def test_unexpected_error_is_400(self):
        """Test an error outside the known gateway failures still answers 400 JSON"""
        with mock.patch.object(BkashService, 'query_payment', side_effect=KeyError('statusCode')):
            with self.assertLogs('payments.views', level='ERROR'):
                response = self.post(self.url, {'action': 'query', 'paymentID': 'PAY123'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response['Content-Type'], 'application/json')
        self.assertIn('statusCode', response.json()['error'])

    def test_non_string_action_is_400(self):
        response = self.post(self.url, {'action': ['create'], 'paymentID': 'PAY123'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Invalid action'})

    @mock.patch('payments.bkash_service.requests.post')
    def test_create_grants_token_then_creates(self, mock_post):
        """Test create fetches a token and forwards the checkout fields"""
        mock_post.side_effect = [
            gateway_response(TOKEN_OK),
            gateway_response({'statusCode': '0000', 'paymentID': 'PAY123', 'bkashURL': 'https://pay'}),
        ]
        response = self.post(self.url, {
            'action': 'create',
            'payer_reference': '01700000000',
            'callback_url': 'https://school.test/callback',
            'amount': 500,
            'invoice_number': 'INV-1',
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['paymentID'], 'PAY123')

        token_call, create_call = mock_post.call_args_list
        self.assertEqual(token_call.args[0], f'{SANDBOX_BASE_URL}/tokenized/checkout/token/grant')
        self.assertEqual(token_call.kwargs['headers']['username'], 'merchant')
        self.assertEqual(token_call.kwargs['json'], {'app_key': 'app-key', 'app_secret': 'app-secret'})

        self.assertEqual(create_call.args[0], f'{SANDBOX_BASE_URL}/tokenized/checkout/create')
        self.assertEqual(create_call.kwargs['headers']['Authorization'], 'id-token-1')
        self.assertEqual(create_call.kwargs['headers']['X-APP-Key'], 'app-key')
        self.assertEqual(create_call.kwargs['json'], {
            'mode': '0011',
            'payerReference': '01700000000',
            'callbackURL': 'https://school.test/callback',
            'amount': '500',
            'currency': 'BDT',
            'intent': 'sale',
            'merchantInvoiceNumber': 'INV-1',
        })
        self.assertEqual(create_call.kwargs['timeout'], 30)

    @override_settings(PAYMENT_GATEWAY_TIMEOUT=5)
    @mock.patch('payments.bkash_service.requests.post')
    def test_live_config_uses_live_url_and_timeout(self, mock_post):
        self.setting.value = {'data': dict(BKASH_CONFIG['data'], is_sandbox=False)}
        self.setting.save()
        mock_post.side_effect = [gateway_response(TOKEN_OK), gateway_response({'statusCode': '0000'})]

        self.post(self.url, {'action': 'query', 'paymentID': 'PAY123'})

        query_call = mock_post.call_args_list[1]
        self.assertEqual(query_call.args[0], f'{LIVE_BASE_URL}/tokenized/checkout/payment/status')
        self.assertEqual(query_call.kwargs['json'], {'paymentID': 'PAY123'})
        self.assertEqual(query_call.kwargs['timeout'], 5)

    @mock.patch('payments.bkash_service.requests.post')
    def test_token_failure_is_400(self, mock_post):
        mock_post.return_value = gateway_response({'statusCode': '2079', 'statusMessage': 'Invalid app token'})
        response = self.post(self.url, {'action': 'query', 'paymentID': 'PAY123'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Invalid app token'})
        self.assertEqual(mock_post.call_count, 1)

    @mock.patch('payments.bkash_service.requests.post')
    def test_transport_error_is_400(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('connection refused')
        response = self.post(self.url, {'action': 'query', 'paymentID': 'PAY123'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('connection refused', response.json()['error'])

    @mock.patch('payments.bkash_service.requests.post')
    def test_fresh_token_per_call(self, mock_post):
        """Test every call grants its own token"""
        mock_post.side_effect = [
            gateway_response(TOKEN_OK), gateway_response({'statusCode': '0000'}),
            gateway_response(TOKEN_OK), gateway_response({'statusCode': '0000'}),
        ]
        service = BkashService()
        service.query_payment('PAY1')
        service.query_payment('PAY2')

        urls = [c.args[0] for c in mock_post.call_args_list]
        self.assertEqual(sum(url.endswith('/token/grant') for url in urls), 2)

    @mock.patch('payments.bkash_service.requests.post')
    def test_query_returns_gateway_payload(self, mock_post):
        status = {'statusCode': '0000', 'paymentID': 'PAY123', 'transactionStatus': 'Initiated'}
        mock_post.side_effect = [gateway_response(TOKEN_OK), gateway_response(status)]

        response = self.post(self.url, {'action': 'query', 'paymentID': 'PAY123'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), status)
        self.assertFalse(PaymentTransaction.objects.exists())

    @mock.patch('payments.bkash_service.requests.post')
    def test_completed_execute_records_transaction(self, mock_post):
        """Test a completed execution writes a completed ledger row and pays the fee"""
        mock_post.side_effect = [gateway_response(TOKEN_OK), gateway_response(self.execute_result())]

        response = self.post(self.url, {
            'action': 'execute',
            'paymentID': 'PAY123',
            'student_id': str(self.student.id),
            'fee_id': str(self.fee.id),
            'invoice_id': str(self.invoice.id),
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['trxID'], 'TRX123')

        payment = PaymentTransaction.objects.get()
        self.assertEqual(payment.status, 'completed')
        self.assertEqual(payment.gateway_transaction_id, 'TRX123')
        self.assertEqual(payment.transaction_number, 'INV-1')
        self.assertEqual(payment.amount, Decimal('500'))
        self.assertEqual(payment.payment_method_bn, 'বিকাশ')
        self.assertEqual(payment.student, self.student)
        self.assertEqual(payment.gateway_response['paymentID'], 'PAY123')
        self.assertIsNotNone(payment.payment_date)

        self.fee.refresh_from_db()
        self.assertEqual(self.fee.status, 'paid')
        self.assertEqual(self.fee.payment_method, 'bkash')
        self.assertEqual(self.fee.transaction_id, 'TRX123')

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, 'paid')

    @mock.patch('payments.bkash_service.requests.post')
    def test_repeated_execute_records_once(self, mock_post):
        mock_post.side_effect = [
            gateway_response(TOKEN_OK), gateway_response(self.execute_result()),
            gateway_response(TOKEN_OK), gateway_response(self.execute_result()),
        ]
        payload = {'action': 'execute', 'paymentID': 'PAY123', 'fee_id': str(self.fee.id)}
        self.post(self.url, payload)
        self.post(self.url, payload)
        self.assertEqual(PaymentTransaction.objects.filter(gateway_transaction_id='TRX123').count(), 1)

    @mock.patch('payments.bkash_service.requests.post')
    def test_incomplete_execute_writes_nothing(self, mock_post):
        """Test a non-completed execution leaves the ledger and the fee untouched"""
        mock_post.side_effect = [
            gateway_response(TOKEN_OK),
            gateway_response({'statusCode': '2056', 'statusMessage': 'Invalid Payment State'}),
        ]
        response = self.post(self.url, {'action': 'execute', 'paymentID': 'PAY123', 'fee_id': str(self.fee.id)})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['statusCode'], '2056')
        self.assertFalse(PaymentTransaction.objects.exists())
        self.fee.refresh_from_db()
        self.assertEqual(self.fee.status, 'pending')

    @mock.patch('payments.bkash_service.requests.post')
    def test_unknown_fee_does_not_fail_execute(self, mock_post):
        mock_post.side_effect = [gateway_response(TOKEN_OK), gateway_response(self.execute_result())]
        response = self.post(self.url, {'action': 'execute', 'paymentID': 'PAY123', 'fee_id': 'not-a-uuid'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(PaymentTransaction.objects.get().status, 'completed')

    def test_invalid_action_is_400(self):
        response = self.post(self.url, {'action': 'refund'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Invalid action'})

    def test_missing_fields_is_400(self):
        response = self.post(self.url, {'action': 'create', 'amount': 500})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(),
            {'error': 'Missing required fields: payer_reference, callback_url, invoice_number'}
        )


class SSLCommerzPaymentTestCase(PaymentTestMixin, TestCase):
    url = '/functions/v1/sslcommerz-payment'

    def setUp(self):
        super().setUp()
        SystemSetting.objects.create(key=SSLCOMMERZ_CONFIG_KEY, value=SSLCOMMERZ_CONFIG, category='payment')

    def init_payload(self, **extra):
        payload = {
            'action': 'init',
            'amount': 500,
            'transaction_id': 'TXN-1',
            'success_url': 'https://school.test/ok',
            'fail_url': 'https://school.test/fail',
            'cancel_url': 'https://school.test/cancel',
            'customer_name': 'Guardian',
            'customer_phone': '01700000000',
        }
        payload.update(extra)
        return payload

    def validation_result(self, **overrides):
        result = {
            'status': 'VALID',
            'tran_id': 'TXN-1',
            'bank_tran_id': 'BANK-9',
            'amount': '500.00',
            'value_a': str(self.student.id),
            'value_b': str(self.fee.id),
            'value_c': str(self.invoice.id),
        }
        result.update(overrides)
        return result

    @mock.patch('payments.sslcommerz_service.requests.post')
    def test_init_success_records_pending(self, mock_post):
        """Test a successful session pre-creates a pending transaction"""
        mock_post.return_value = gateway_response({'status': 'SUCCESS', 'GatewayPageURL': 'https://gw'})

        response = self.post(self.url, self.init_payload(
            student_id=str(self.student.id), fee_id=str(self.fee.id)
        ))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['GatewayPageURL'], 'https://gw')

        payment = PaymentTransaction.objects.get()
        self.assertEqual(payment.status, 'pending')
        self.assertEqual(payment.transaction_number, 'TXN-1')
        self.assertEqual(payment.payment_method, 'sslcommerz')
        self.assertEqual(payment.payment_method_bn, 'এসএসএল কমার্জ')
        self.assertEqual(payment.fee, self.fee)

        sent = mock_post.call_args.kwargs['data']
        self.assertEqual(mock_post.call_args.args[0], 'https://sandbox.sslcommerz.com/gwprocess/v4/api.php')
        self.assertEqual(sent['store_id'], 'store1')
        self.assertEqual(sent['store_passwd'], 'store1@ssl')
        self.assertEqual(sent['total_amount'], '500')
        self.assertEqual(sent['ipn_url'], 'https://school.test/ok')
        self.assertEqual(sent['cus_email'], 'customer@school.com')
        self.assertEqual(sent['product_name'], 'School Fee')
        self.assertEqual(sent['value_b'], str(self.fee.id))
        self.assertEqual(sent['value_c'], '')

    @mock.patch('payments.sslcommerz_service.requests.post')
    def test_init_failure_records_nothing(self, mock_post):
        mock_post.return_value = gateway_response({'status': 'FAILED', 'failedreason': 'Store inactive'})
        response = self.post(self.url, self.init_payload())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['failedreason'], 'Store inactive')
        self.assertFalse(PaymentTransaction.objects.exists())

    def test_init_missing_fields_is_400(self):
        response = self.post(self.url, {'action': 'init', 'amount': 500})
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.json()['error'].startswith('Missing required fields: transaction_id'))

    @mock.patch('payments.sslcommerz_service.requests.get')
    def test_valid_validation_completes_pending(self, mock_get):
        """Test VALID completes the pending row and pays the fee and invoice"""
        PaymentTransaction.objects.create(
            student=self.student, fee=self.fee, amount=Decimal('500.00'),
            payment_method='sslcommerz', transaction_number='TXN-1'
        )
        mock_get.return_value = gateway_response(self.validation_result())

        response = self.post(self.url, {'action': 'validate', 'val_id': 'VAL-1'})

        self.assertEqual(response.status_code, 200)
        params = mock_get.call_args.kwargs['params']
        self.assertEqual(params, {
            'val_id': 'VAL-1', 'store_id': 'store1', 'store_passwd': 'store1@ssl', 'format': 'json'
        })

        payment = PaymentTransaction.objects.get()
        self.assertEqual(payment.status, 'completed')
        self.assertEqual(payment.gateway_transaction_id, 'BANK-9')
        self.assertIsNotNone(payment.verified_at)
        self.assertIsNotNone(payment.payment_date)

        self.fee.refresh_from_db()
        self.assertEqual(self.fee.status, 'paid')
        self.assertEqual(self.fee.payment_method, 'sslcommerz')
        self.assertEqual(self.fee.transaction_id, 'BANK-9')
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, 'paid')

    @mock.patch('payments.sslcommerz_service.requests.get')
    def test_repeated_validation_keeps_first_payment_stamp(self, mock_get):
        """Test validating a settled tran_id again does not re-stamp the fee or invoice"""
        PaymentTransaction.objects.create(
            student=self.student, fee=self.fee, amount=Decimal('500.00'),
            payment_method='sslcommerz', transaction_number='TXN-1'
        )
        mock_get.return_value = gateway_response(self.validation_result())
        self.post(self.url, {'action': 'validate', 'val_id': 'VAL-1'})
        self.fee.refresh_from_db()
        self.invoice.refresh_from_db()
        fee_paid_date = self.fee.paid_date
        invoice_paid_date = self.invoice.paid_date

        mock_get.return_value = gateway_response(self.validation_result(bank_tran_id='BANK-10'))
        response = self.post(self.url, {'action': 'validate', 'val_id': 'VAL-1'})

        self.assertEqual(response.status_code, 200)
        self.fee.refresh_from_db()
        self.assertEqual(self.fee.transaction_id, 'BANK-9')
        self.assertEqual(self.fee.paid_date, fee_paid_date)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.transaction_id, 'BANK-9')
        self.assertEqual(self.invoice.paid_date, invoice_paid_date)
        self.assertEqual(PaymentTransaction.objects.get().gateway_transaction_id, 'BANK-9')

    @mock.patch('payments.sslcommerz_service.requests.get')
    def test_non_object_reply_is_400(self, mock_get):
        """Test a validator reply that is not a JSON object leaves the ledger untouched"""
        PaymentTransaction.objects.create(amount=Decimal('500.00'), payment_method='sslcommerz', transaction_number='TXN-1')
        mock_get.return_value = gateway_response([])

        response = self.post(self.url, {'action': 'validate', 'val_id': 'VAL-1'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'SSLCommerz returned an unexpected response'})
        self.assertEqual(PaymentTransaction.objects.get().status, 'pending')

    @mock.patch('payments.sslcommerz_service.requests.get')
    def test_partial_config_is_400(self, mock_get):
        SystemSetting.objects.filter(key=SSLCOMMERZ_CONFIG_KEY).update(
            value={'data': {'store_id': 'store1', 'is_sandbox': True}}
        )
        response = self.post(self.url, {'action': 'status', 'tran_id': 'TXN-1'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('missing store_password', response.json()['error'])
        mock_get.assert_not_called()

    @mock.patch('payments.sslcommerz_service.requests.get')
    def test_validated_status_also_completes(self, mock_get):
        PaymentTransaction.objects.create(amount=Decimal('500.00'), payment_method='sslcommerz', transaction_number='TXN-1')
        mock_get.return_value = gateway_response(self.validation_result(status='VALIDATED'))
        self.post(self.url, {'action': 'validate', 'val_id': 'VAL-1'})
        self.assertEqual(PaymentTransaction.objects.get().status, 'completed')

    @mock.patch('payments.sslcommerz_service.requests.get')
    def test_invalid_validation_leaves_pending(self, mock_get):
        PaymentTransaction.objects.create(amount=Decimal('500.00'), payment_method='sslcommerz', transaction_number='TXN-1')
        mock_get.return_value = gateway_response(self.validation_result(status='INVALID_TRANSACTION'))

        self.post(self.url, {'action': 'validate', 'val_id': 'VAL-1'})

        self.assertEqual(PaymentTransaction.objects.get().status, 'pending')
        self.fee.refresh_from_db()
        self.assertEqual(self.fee.status, 'pending')

    @mock.patch('payments.sslcommerz_service.requests.get')
    def test_validation_without_ledger_row_does_not_pay_fee(self, mock_get):
        """Test the fee stays unpaid when no transaction exists for the tran_id"""
        mock_get.return_value = gateway_response(self.validation_result())
        response = self.post(self.url, {'action': 'validate', 'val_id': 'VAL-1'})
        self.assertEqual(response.status_code, 200)
        self.fee.refresh_from_db()
        self.assertEqual(self.fee.status, 'pending')

    @mock.patch('payments.sslcommerz_service.requests.post')
    def test_refund(self, mock_post):
        mock_post.return_value = gateway_response({'status': 'success', 'refund_ref_id': 'R1'})
        response = self.post(self.url, {'action': 'refund', 'bank_tran_id': 'BANK-9', 'refund_amount': 100})

        self.assertEqual(response.json()['refund_ref_id'], 'R1')
        self.assertEqual(
            mock_post.call_args.args[0],
            'https://sandbox.sslcommerz.com/validator/api/merchantTransIDvalidationAPI.php'
        )
        sent = mock_post.call_args.kwargs['data']
        self.assertEqual(sent['refund_amount'], '100')
        self.assertEqual(sent['refund_remarks'], 'Refund requested')

    @mock.patch('payments.sslcommerz_service.requests.get')
    def test_status(self, mock_get):
        mock_get.return_value = gateway_response({'APIConnect': 'DONE', 'no_of_trans_found': 1})
        response = self.post(self.url, {'action': 'status', 'tran_id': 'TXN-1'})
        self.assertEqual(response.json()['APIConnect'], 'DONE')
        self.assertEqual(mock_get.call_args.kwargs['params']['tran_id'], 'TXN-1')

    def test_missing_config_is_400(self):
        SystemSetting.objects.filter(key=SSLCOMMERZ_CONFIG_KEY).delete()
        response = self.post(self.url, {'action': 'status', 'tran_id': 'TXN-1'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(),
            {'error': 'SSLCommerz configuration not found. Please configure in System Settings.'}
        )

    def test_invalid_json_is_400(self):
        response = self.client.post(self.url, data='{', content_type='application/json')
        self.assertEqual(response.status_code, 400)
