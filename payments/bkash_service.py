"""
bKash Tokenized Checkout API service
"""
import logging

import requests
from django.conf import settings

from .config import PaymentGatewayError, bkash_config_provider, gateway_reply

logger = logging.getLogger(__name__)

SANDBOX_BASE_URL = 'https://tokenized.sandbox.bka.sh/v1.2.0-beta'
LIVE_BASE_URL = 'https://tokenized.pay.bka.sh/v1.2.0-beta'

SUCCESS_STATUS_CODE = '0000'
COMPLETED_STATUS = 'Completed'


class BkashService:
    """
    Service for interacting with the bKash tokenized checkout API

    Flow: grant token -> create payment (customer approves on bKash) ->
    execute payment -> optionally query status. A fresh token is granted
    before every create/execute/query call, and credentials are re-read from
    the configuration provider each time.
    """

    def __init__(self, provider=None):
        self.provider = provider or bkash_config_provider()

    def _load_config(self):
        config = self.provider.load()
        config['base_url'] = SANDBOX_BASE_URL if config.get('is_sandbox') else LIVE_BASE_URL
        return config

    def _post(self, config, path, payload, headers):
        url = f"{config['base_url']}{path}"
        request_headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        request_headers.update(headers)
        response = requests.post(
            url, json=payload, headers=request_headers, timeout=settings.PAYMENT_GATEWAY_TIMEOUT
        )
        return gateway_reply(response, 'bKash')

    def _authorized_headers(self, config, token):
        return {
            'Authorization': token,
            'X-APP-Key': config['app_key'],
        }

    def get_token(self, config=None):
        """Grant an id_token for the configured merchant"""
        config = config or self._load_config()
        data = self._post(
            config,
            '/tokenized/checkout/token/grant',
            {
                'app_key': config['app_key'],
                'app_secret': config['app_secret'],
            },
            {
                'username': config['username'],
                'password': config['password'],
            },
        )
        logger.info("bKash token response: %s", data.get('statusCode', 'success'))

        status_code = data.get('statusCode')
        if status_code and status_code != SUCCESS_STATUS_CODE:
            raise PaymentGatewayError(data.get('statusMessage') or 'Failed to get bKash token', data)
        return data.get('id_token')

    def create_payment(self, payer_reference, callback_url, amount, invoice_number):
        """
        Create a checkout payment.

        Returns bKash's create response verbatim; on success it carries the
        ``paymentID`` and the ``bkashURL`` to redirect the payer to.
        """
        config = self._load_config()
        token = self.get_token(config)
        data = self._post(
            config,
            '/tokenized/checkout/create',
            {
                'mode': '0011',
                'payerReference': payer_reference,
                'callbackURL': callback_url,
                'amount': str(amount),
                'currency': 'BDT',
                'intent': 'sale',
                'merchantInvoiceNumber': invoice_number,
            },
            self._authorized_headers(config, token),
        )
        logger.info("bKash create payment response: %s", data.get('statusCode') or data.get('paymentID'))
        return data

    def execute_payment(self, payment_id):
        """Execute an approved payment; the response is returned verbatim"""
        config = self._load_config()
        token = self.get_token(config)
        data = self._post(
            config,
            '/tokenized/checkout/execute',
            {'paymentID': payment_id},
            self._authorized_headers(config, token),
        )
        logger.info("bKash execute payment %s response: %s", payment_id, data.get('statusCode') or data.get('trxID'))
        return data

    def query_payment(self, payment_id):
        config = self._load_config()
        token = self.get_token(config)
        data = self._post(
            config,
            '/tokenized/checkout/payment/status',
            {'paymentID': payment_id},
            self._authorized_headers(config, token),
        )
        logger.info("bKash query payment %s response: %s", payment_id, data.get('statusCode'))
        return data

    @staticmethod
    def is_completed(result):
        """True when an execute response confirms the money moved"""
        return (
            result.get('statusCode') == SUCCESS_STATUS_CODE
            and result.get('transactionStatus') == COMPLETED_STATUS
        )
