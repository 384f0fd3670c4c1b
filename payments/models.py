import uuid
from datetime import datetime
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from education.models import CustomUser, School, Student


class SystemSetting(models.Model):
    """Key/value settings edited by super admins (gateway credentials live here)"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField(default=dict)
    category = models.CharField(max_length=50, blank=True, null=True)
    updated_by = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='updated_settings')
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'system_settings'
        ordering = ['key']

    def __str__(self):
        return self.key

    @classmethod
    def get_value(cls, key, default=None):
        """Current value for ``key``, read from the database on every call"""
        setting = cls.objects.filter(key=key).only('value').first()
        return setting.value if setting else default


class PaidStatusMixin:
    """Stamp a fee or invoice as paid by a completed gateway transaction"""

    def mark_paid(self, payment_method, transaction_id, paid_date=None):
        self.status = 'paid'
        self.paid_date = paid_date or timezone.now()
        self.payment_method = payment_method
        self.transaction_id = transaction_id
        self.save(update_fields=['status', 'paid_date', 'payment_method', 'transaction_id', 'updated_at'])


class Fee(PaidStatusMixin, models.Model):
    """Fee owed by a student; only ever mutated by the payment flow"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('waived', 'Waived'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='fees')
    fee_type = models.CharField(max_length=50)
    amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    due_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', null=True, blank=True)
    paid_date = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=50, null=True, blank=True)
    transaction_id = models.CharField(max_length=100, null=True, blank=True)
    remarks = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'fees'
        ordering = ['-due_date']
        indexes = [
            models.Index(fields=['student', 'status'], name='fees_student_status_idx'),
        ]

    def __str__(self):
        return f"{self.fee_type} - {self.student.full_name} - BDT {self.amount}"


class Invoice(PaidStatusMixin, models.Model):
    """Student invoice; numbered per school and day"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('cancelled', 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name='invoices')
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='invoices')
    invoice_number = models.CharField(max_length=50, unique=True, db_index=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    paid_date = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=50, null=True, blank=True)
    transaction_id = models.CharField(max_length=100, null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'invoices'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['student', 'status'], name='invoices_student_status_idx'),
        ]

    def __str__(self):
        return f"Invoice {self.invoice_number} - {self.student.full_name}"

    def save(self, *args, **kwargs):
        # Auto-generate invoice number if not provided
        if not self.invoice_number:
            self.invoice_number = self.generate_invoice_number()
        super().save(*args, **kwargs)

    def generate_invoice_number(self):
        """Next INV-<SCHOOLCODE>-<YYYYMMDD>-<NNNN> number for today"""
        school_code = self.school.code.upper().replace(' ', '')
        prefix = f"INV-{school_code}-{datetime.now().strftime('%Y%m%d')}"

        last_invoice = Invoice.objects.filter(
            invoice_number__startswith=prefix
        ).order_by('-invoice_number').first()

        if last_invoice:
            try:
                new_num = int(last_invoice.invoice_number.split('-')[-1]) + 1
            except (ValueError, IndexError):
                new_num = 1
        else:
            new_num = 1

        return f"{prefix}-{new_num:04d}"


class PaymentTransaction(models.Model):
    """
    Ledger row for a gateway payment.

    Status only moves forward: a row is created ``pending`` (SSLCommerz init)
    or directly ``completed`` (bKash execute) and a completed row is never
    completed again or moved back.
    """
    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('bkash', 'bKash'),
        ('sslcommerz', 'SSLCommerz'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student = models.ForeignKey(Student, on_delete=models.SET_NULL, null=True, blank=True, related_name='payment_transactions')
    invoice = models.ForeignKey(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='payment_transactions')
    fee = models.ForeignKey(Fee, on_delete=models.SET_NULL, null=True, blank=True, related_name='payment_transactions')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_method_bn = models.CharField(max_length=50, blank=True)
    transaction_number = models.CharField(max_length=100, db_index=True)
    gateway_transaction_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    gateway_response = models.JSONField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_date = models.DateTimeField(null=True, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_transactions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['payment_method', 'status'], name='payment_tx_method_status_idx'),
        ]

    def __str__(self):
        return f"{self.get_payment_method_display()} {self.transaction_number} ({self.status})"

    @property
    def is_completed(self):
        return self.status == self.STATUS_COMPLETED

    def mark_completed(self, gateway_transaction_id, gateway_response, verified=True):
        """Complete a pending transaction; raises ValueError for any other status"""
        if self.status != self.STATUS_PENDING:
            raise ValueError(f"Cannot complete a {self.status} transaction")

        now = timezone.now()
        self.status = self.STATUS_COMPLETED
        self.gateway_transaction_id = gateway_transaction_id
        self.gateway_response = gateway_response
        self.payment_date = now
        if verified:
            self.verified_at = now
        self.save(update_fields=[
            'status', 'gateway_transaction_id', 'gateway_response',
            'payment_date', 'verified_at', 'updated_at',
        ])

