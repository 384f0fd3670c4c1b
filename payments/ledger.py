"""
Transaction ledger writer.

The only code that mutates PaymentTransaction, Fee and Invoice rows. Writes
happen only after a gateway has confirmed the outcome. The transaction write
and the fee/invoice writes are independent: each runs in its own savepoint
and a failure is logged rather than failing the gateway response, which has
already moved money.
"""
import logging
import uuid
from decimal import Decimal, InvalidOperation

from django.db import DatabaseError, transaction

from education.models import Student
from .models import Fee, Invoice, PaymentTransaction

logger = logging.getLogger(__name__)

BKASH = 'bkash'
BKASH_LABEL = 'বিকাশ'
SSLCOMMERZ = 'sslcommerz'
SSLCOMMERZ_LABEL = 'এসএসএল কমার্জ'


def _parse_uuid(value):
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        logger.warning("Ignoring malformed id %r", value)
        return None


def _get_or_none(model, value):
    pk = _parse_uuid(value)
    if pk is None:
        return None
    instance = model.objects.filter(pk=pk).first()
    if instance is None:
        logger.warning("%s %s not found", model.__name__, pk)
    return instance


def _to_amount(value):
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid amount: {value!r}")


def mark_fee_paid(fee_id, payment_method, transaction_id):
    """
    Stamp a fee as paid; returns the fee, or None if it is missing or the write failed.

    A fee that is already paid keeps its original date and transaction id.
    """
    fee = _get_or_none(Fee, fee_id)
    if fee is None:
        return None
    if fee.status == 'paid':
        logger.info("Fee %s already paid by %s %s", fee.pk, fee.payment_method, fee.transaction_id)
        return fee
    try:
        with transaction.atomic():
            fee.mark_paid(payment_method, transaction_id)
    except DatabaseError:
        logger.exception("Failed to mark fee %s paid by %s %s", fee.pk, payment_method, transaction_id)
        return None
    logger.info("Fee %s marked paid by %s %s", fee.pk, payment_method, transaction_id)
    return fee


def mark_invoice_paid(invoice_id, payment_method, transaction_id):
    invoice = _get_or_none(Invoice, invoice_id)
    if invoice is None:
        return None
    if invoice.status == 'paid':
        logger.info(
            "Invoice %s already paid by %s %s",
            invoice.invoice_number, invoice.payment_method, invoice.transaction_id
        )
        return invoice
    try:
        with transaction.atomic():
            invoice.mark_paid(payment_method, transaction_id)
    except DatabaseError:
        logger.exception("Failed to mark invoice %s paid by %s %s", invoice.pk, payment_method, transaction_id)
        return None
    logger.info("Invoice %s marked paid by %s %s", invoice.invoice_number, payment_method, transaction_id)
    return invoice


def record_bkash_completion(result, student_id=None, fee_id=None, invoice_id=None):
    """
    Record a bKash execute response that reported a completed payment.

    A trxID that is already in the ledger is not recorded twice. Returns the
    completed PaymentTransaction, or None when the insert failed.
    """
    trx_id = result.get('trxID')
    existing = PaymentTransaction.objects.filter(
        payment_method=BKASH,
        gateway_transaction_id=trx_id,
        status=PaymentTransaction.STATUS_COMPLETED
    ).first()
    if existing:
        logger.info("bKash trxID %s already recorded as %s", trx_id, existing.pk)
        return existing

    try:
        with transaction.atomic():
            payment = PaymentTransaction.objects.create(
                student=_get_or_none(Student, student_id),
                invoice=_get_or_none(Invoice, invoice_id),
                fee=_get_or_none(Fee, fee_id),
                amount=_to_amount(result.get('amount')),
                payment_method=BKASH,
                payment_method_bn=BKASH_LABEL,
                transaction_number=result.get('merchantInvoiceNumber') or trx_id,
                status=PaymentTransaction.STATUS_PENDING,
            )
            payment.mark_completed(trx_id, result, verified=False)
    except (DatabaseError, ValueError):
        logger.exception("Failed to record bKash payment %s (trxID %s)", result.get('paymentID'), trx_id)
        return None

    logger.info("Recorded bKash payment %s as transaction %s", trx_id, payment.pk)
    if fee_id:
        mark_fee_paid(fee_id, BKASH, trx_id)
    if invoice_id:
        mark_invoice_paid(invoice_id, BKASH, trx_id)
    return payment


def record_sslcommerz_pending(transaction_id, amount, student_id=None, fee_id=None, invoice_id=None):
    """Pre-create the pending row a later validation will complete"""
    try:
        with transaction.atomic():
            payment = PaymentTransaction.objects.create(
                student=_get_or_none(Student, student_id),
                invoice=_get_or_none(Invoice, invoice_id),
                fee=_get_or_none(Fee, fee_id),
                amount=_to_amount(amount),
                payment_method=SSLCOMMERZ,
                payment_method_bn=SSLCOMMERZ_LABEL,
                transaction_number=transaction_id,
                status=PaymentTransaction.STATUS_PENDING,
            )
    except (DatabaseError, ValueError):
        logger.exception("Failed to record pending SSLCommerz transaction %s", transaction_id)
        return None
    logger.info("Recorded pending SSLCommerz transaction %s", transaction_id)
    return payment


def complete_sslcommerz(result):
    """
    Complete the pending rows matching a VALID/VALIDATED validator response.

    Fee ``value_b`` and invoice ``value_c`` are marked paid only once a
    transaction for ``tran_id`` is completed. Returns the number of rows
    completed by this call.
    """
    tran_id = result.get('tran_id')
    bank_tran_id = result.get('bank_tran_id')

    completed = 0
    for payment in PaymentTransaction.objects.filter(
        payment_method=SSLCOMMERZ,
        transaction_number=tran_id,
        status=PaymentTransaction.STATUS_PENDING
    ):
        try:
            with transaction.atomic():
                payment.mark_completed(bank_tran_id, result)
        except DatabaseError:
            logger.exception("Failed to complete SSLCommerz transaction %s (%s)", tran_id, payment.pk)
            continue
        completed += 1

    is_settled = completed or PaymentTransaction.objects.filter(
        payment_method=SSLCOMMERZ,
        transaction_number=tran_id,
        status=PaymentTransaction.STATUS_COMPLETED
    ).exists()
    if not is_settled:
        logger.warning("SSLCommerz tran_id %s validated but no transaction was recorded for it", tran_id)
        return completed

    logger.info("Completed %d SSLCommerz transaction(s) for %s", completed, tran_id)
    if result.get('value_b'):
        mark_fee_paid(result['value_b'], SSLCOMMERZ, bank_tran_id)
    if result.get('value_c'):
        mark_invoice_paid(result['value_c'], SSLCOMMERZ, bank_tran_id)
    return completed
