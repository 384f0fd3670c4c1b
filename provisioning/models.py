import base64
import hashlib
import logging
import uuid

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.db import models

from education.models import CustomUser

logger = logging.getLogger(__name__)


# Encryption helpers for the temporary passwords kept for admins
def get_encryption_key():
    """Fernet key from settings, derived from SECRET_KEY when unset"""
    key = getattr(settings, 'ENCRYPTION_KEY', None)
    if not key:
        key = hashlib.sha256(settings.SECRET_KEY.encode()).digest()
        key = base64.urlsafe_b64encode(key[:32])
    elif isinstance(key, str):
        key = key.encode()
    return key


def encrypt_value(value):
    if not value:
        return value
    f = Fernet(get_encryption_key())
    return f.encrypt(value.encode()).decode()


def decrypt_value(encrypted_value):
    """Decrypt a stored value; rows written before encryption come back as they are"""
    if not encrypted_value:
        return encrypted_value
    try:
        f = Fernet(get_encryption_key())
        return f.decrypt(encrypted_value.encode()).decode()
    except InvalidToken:
        logger.warning("Stored credential is not a valid token, returning it unchanged")
        return encrypted_value


class GeneratedCredential(models.Model):
    """
    Audit row for credentials issued by account provisioning.

    Written once per issued account and never updated. The temporary
    password is kept encrypted so admins can look it up or hand it over
    again later.
    """
    SENT_VIA_CHOICES = [
        ('email', 'Email'),
        ('manual', 'Manual'),
    ]

    ENTITY_TYPE_CHOICES = [
        ('teacher', 'Teacher'),
        ('student', 'Student'),
        ('parent', 'Parent'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='generated_credentials')
    entity_type = models.CharField(max_length=20, choices=ENTITY_TYPE_CHOICES)
    entity_id = models.UUIDField()
    temporary_password = models.TextField(blank=True, null=True)
    sent_via = models.CharField(max_length=20, choices=SENT_VIA_CHOICES, default='manual', null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    first_login_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='issued_credentials')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'generated_credentials'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id'], name='gen_creds_entity_idx'),
        ]

    def __str__(self):
        return f"{self.get_entity_type_display()} credentials for {self.user or self.entity_id}"

    def set_temporary_password(self, password):
        self.temporary_password = encrypt_value(password)

    def get_temporary_password(self):
        return decrypt_value(self.temporary_password)
