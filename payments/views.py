"""
Payment gateway endpoints: bkash-payment and sslcommerz-payment.

Both take ``{"action": ..., ...fields}`` and return the gateway's JSON
verbatim. Any failure (missing or incomplete configuration, gateway error,
bad input, transport error, unreadable reply) is answered with 400
``{"error": message}``.
"""
import logging

import requests
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from education.decorators import json_body_required, missing_fields
from . import ledger
from .bkash_service import BkashService
from .config import GatewayConfigurationError, PaymentGatewayError
from .sslcommerz_service import SSLCommerzService

logger = logging.getLogger(__name__)

GATEWAY_ERRORS = (GatewayConfigurationError, PaymentGatewayError, ValueError, requests.RequestException)


def _require(data, fields):
    missing = missing_fields(data, fields)
    if missing:
        raise ValueError(f'Missing required fields: {", ".join(missing)}')


def _bkash_create(service, data):
    _require(data, ['payer_reference', 'callback_url', 'amount', 'invoice_number'])
    return service.create_payment(
        payer_reference=data['payer_reference'],
        callback_url=data['callback_url'],
        amount=data['amount'],
        invoice_number=data['invoice_number'],
    )


def _bkash_execute(service, data):
    _require(data, ['paymentID'])
    result = service.execute_payment(data['paymentID'])
    if BkashService.is_completed(result):
        ledger.record_bkash_completion(
            result,
            student_id=data.get('student_id'),
            fee_id=data.get('fee_id'),
            invoice_id=data.get('invoice_id'),
        )
    return result


def _bkash_query(service, data):
    _require(data, ['paymentID'])
    return service.query_payment(data['paymentID'])


BKASH_ACTIONS = {
    'create': _bkash_create,
    'execute': _bkash_execute,
    'query': _bkash_query,
}


def _sslcommerz_init(service, data):
    _require(data, [
        'amount', 'transaction_id', 'success_url', 'fail_url', 'cancel_url',
        'customer_name', 'customer_phone',
    ])
    result = service.init_payment(
        amount=data['amount'],
        transaction_id=data['transaction_id'],
        success_url=data['success_url'],
        fail_url=data['fail_url'],
        cancel_url=data['cancel_url'],
        customer_name=data['customer_name'],
        customer_phone=data['customer_phone'],
        ipn_url=data.get('ipn_url'),
        customer_email=data.get('customer_email'),
        customer_address=data.get('customer_address'),
        product_name=data.get('product_name'),
        student_id=data.get('student_id'),
        fee_id=data.get('fee_id'),
        invoice_id=data.get('invoice_id'),
    )
    if result.get('status') == 'SUCCESS':
        ledger.record_sslcommerz_pending(
            data['transaction_id'],
            data['amount'],
            student_id=data.get('student_id'),
            fee_id=data.get('fee_id'),
            invoice_id=data.get('invoice_id'),
        )
    return result


def _sslcommerz_validate(service, data):
    _require(data, ['val_id'])
    result = service.validate_payment(data['val_id'])
    if SSLCommerzService.is_valid(result):
        ledger.complete_sslcommerz(result)
    return result


def _sslcommerz_refund(service, data):
    _require(data, ['bank_tran_id', 'refund_amount'])
    return service.refund(data['bank_tran_id'], data['refund_amount'], data.get('remarks'))


def _sslcommerz_status(service, data):
    _require(data, ['tran_id'])
    return service.transaction_status(data['tran_id'])


SSLCOMMERZ_ACTIONS = {
    'init': _sslcommerz_init,
    'validate': _sslcommerz_validate,
    'refund': _sslcommerz_refund,
    'status': _sslcommerz_status,
}


def _dispatch(request, service_class, actions, gateway_name):
    data = dict(request.json)
    action = data.pop('action', None)
    logger.info("%s action: %s", gateway_name, action)

    try:
        handler = actions.get(action) if isinstance(action, str) else None
        if handler is None:
            raise ValueError('Invalid action')
        result = handler(service_class(), data)
    except GATEWAY_ERRORS as e:
        logger.error("%s payment error: %s", gateway_name, e)
        return JsonResponse({'error': str(e)}, status=400)
    except Exception as e:
        logger.exception("%s payment failed unexpectedly", gateway_name)
        return JsonResponse({'error': str(e) or e.__class__.__name__}, status=400)

    return JsonResponse(result, safe=False)


@csrf_exempt
@require_http_methods(["POST"])
@json_body_required
def bkash_payment(request):
    """bKash checkout: create, execute or query a payment"""
    return _dispatch(request, BkashService, BKASH_ACTIONS, 'bKash')


@csrf_exempt
@require_http_methods(["POST"])
@json_body_required
def sslcommerz_payment(request):
    """SSLCommerz: init a session, validate, refund or check status"""
    return _dispatch(request, SSLCommerzService, SSLCOMMERZ_ACTIONS, 'SSLCommerz')
