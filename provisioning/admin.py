from django.contrib import admin
from .models import GeneratedCredential


@admin.register(GeneratedCredential)
class GeneratedCredentialAdmin(admin.ModelAdmin):
    list_display = ['user', 'entity_type', 'entity_id', 'sent_via', 'sent_at', 'created_by', 'created_at']
    list_filter = ['entity_type', 'sent_via']
    search_fields = ['user__email', 'entity_id']
    fields = [
        'user', 'entity_type', 'entity_id', 'temporary_password_display',
        'sent_via', 'sent_at', 'first_login_at', 'created_by', 'created_at',
    ]
    readonly_fields = fields

    def temporary_password_display(self, obj):
        return obj.get_temporary_password()
    temporary_password_display.short_description = 'Temporary password'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        # Audit rows are never edited
        return False
