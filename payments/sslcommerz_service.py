"""
SSLCommerz payment gateway integration service
"""
import logging

import requests
from django.conf import settings

from .config import gateway_reply, sslcommerz_config_provider

logger = logging.getLogger(__name__)

SANDBOX_BASE_URL = 'https://sandbox.sslcommerz.com'
LIVE_BASE_URL = 'https://securepay.sslcommerz.com'

VALID_STATUSES = frozenset({'VALID', 'VALIDATED'})


class SSLCommerzService:
    """
    SSLCommerz session, validation, refund and status calls.

    Store credentials are re-read from the configuration provider on every
    call. Responses are returned verbatim; callers decide what to record.
    """

    def __init__(self, provider=None):
        self.provider = provider or sslcommerz_config_provider()

    def _load_config(self):
        config = self.provider.load()
        config['base_url'] = SANDBOX_BASE_URL if config.get('is_sandbox') else LIVE_BASE_URL
        return config

    def _credentials(self, config):
        return {
            'store_id': config['store_id'],
            'store_passwd': config['store_password'],
        }

    def init_payment(self, amount, transaction_id, success_url, fail_url, cancel_url,
                     customer_name, customer_phone, ipn_url=None, customer_email=None,
                     customer_address=None, product_name=None, student_id=None,
                     fee_id=None, invoice_id=None):
        """Open a gateway session; ``value_a/b/c`` carry the student, fee and invoice ids"""
        config = self._load_config()
        payment_data = self._credentials(config)
        payment_data.update({
            'total_amount': str(amount),
            'currency': 'BDT',
            'tran_id': transaction_id,
            'success_url': success_url,
            'fail_url': fail_url,
            'cancel_url': cancel_url,
            'ipn_url': ipn_url or success_url,
            'cus_name': customer_name,
            'cus_email': customer_email or 'customer@school.com',
            'cus_phone': customer_phone,
            'cus_add1': customer_address or 'Bangladesh',
            'cus_city': 'Dhaka',
            'cus_country': 'Bangladesh',
            'shipping_method': 'NO',
            'product_name': product_name or 'School Fee',
            'product_category': 'Education',
            'product_profile': 'general',
            'value_a': student_id or '',
            'value_b': fee_id or '',
            'value_c': invoice_id or '',
        })

        response = requests.post(
            f"{config['base_url']}/gwprocess/v4/api.php",
            data=payment_data,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT
        )
        result = gateway_reply(response, 'SSLCommerz')
        logger.info("SSLCommerz init %s response: %s", transaction_id, result.get('status'))
        return result

    def validate_payment(self, val_id):
        """Ask the validator API whether ``val_id`` is a genuine, settled payment"""
        config = self._load_config()
        params = {'val_id': val_id}
        params.update(self._credentials(config))
        params['format'] = 'json'

        response = requests.get(
            f"{config['base_url']}/validator/api/validationserverAPI.php",
            params=params,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT
        )
        result = gateway_reply(response, 'SSLCommerz')
        logger.info("SSLCommerz validate %s response: %s", val_id, result.get('status'))
        return result

    def refund(self, bank_tran_id, refund_amount, remarks=None):
        config = self._load_config()
        refund_data = self._credentials(config)
        refund_data.update({
            'bank_tran_id': bank_tran_id,
            'refund_amount': str(refund_amount),
            'refund_remarks': remarks or 'Refund requested',
        })

        response = requests.post(
            f"{config['base_url']}/validator/api/merchantTransIDvalidationAPI.php",
            data=refund_data,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT
        )
        result = gateway_reply(response, 'SSLCommerz')
        logger.info("SSLCommerz refund %s response: %s", bank_tran_id, result.get('status'))
        return result

    def transaction_status(self, tran_id):
        config = self._load_config()
        params = {'tran_id': tran_id}
        params.update(self._credentials(config))
        params['format'] = 'json'

        response = requests.get(
            f"{config['base_url']}/validator/api/merchantTransIDvalidationAPI.php",
            params=params,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT
        )
        result = gateway_reply(response, 'SSLCommerz')
        logger.info("SSLCommerz status %s response: %s", tran_id, result.get('status'))
        return result

    @staticmethod
    def is_valid(result):
        return result.get('status') in VALID_STATUSES
