from django.contrib import admin
from .models import SystemSetting, Fee, Invoice, PaymentTransaction


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'category', 'updated_by', 'updated_at']
    list_filter = ['category']
    search_fields = ['key']
    readonly_fields = ['updated_at']

    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(Fee)
class FeeAdmin(admin.ModelAdmin):
    list_display = ['student', 'fee_type', 'amount', 'due_date', 'status', 'paid_date', 'payment_method']
    list_filter = ['status', 'fee_type', 'payment_method']
    search_fields = ['student__full_name', 'student__admission_id', 'transaction_id']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'student', 'school', 'amount', 'status', 'paid_date']
    list_filter = ['status', 'school']
    search_fields = ['invoice_number', 'student__full_name', 'transaction_id']
    readonly_fields = ['invoice_number', 'created_at', 'updated_at']


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ['transaction_number', 'payment_method', 'amount', 'status', 'student', 'payment_date', 'verified_at']
    list_filter = ['payment_method', 'status']
    search_fields = ['transaction_number', 'gateway_transaction_id', 'student__full_name']
    readonly_fields = [
        'student', 'invoice', 'fee', 'amount', 'payment_method', 'payment_method_bn',
        'transaction_number', 'gateway_transaction_id', 'gateway_response', 'status',
        'payment_date', 'verified_at', 'created_at', 'updated_at',
    ]

    def has_add_permission(self, request):
        # Rows are written by the gateway endpoints only
        return False
