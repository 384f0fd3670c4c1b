"""
Gateway configuration provider and payment exceptions.

Gateway credentials are edited by super admins in the ``system_settings``
table and must take effect on the very next request, so providers re-read
the row on every ``load()`` and never cache it.
"""
import logging

from .models import SystemSetting

logger = logging.getLogger(__name__)

BKASH_CONFIG_KEY = 'bkash_config'
SSLCOMMERZ_CONFIG_KEY = 'sslcommerz_config'

BKASH_REQUIRED_KEYS = ('app_key', 'app_secret', 'username', 'password')
SSLCOMMERZ_REQUIRED_KEYS = ('store_id', 'store_password')


class GatewayConfigurationError(Exception):
    """Gateway credentials are missing; an admin has to fix System Settings"""


class PaymentGatewayError(Exception):
    """The gateway answered with an error status or an unreadable body"""

    def __init__(self, message, response=None):
        super().__init__(message)
        self.response = response


class SystemSettingConfigProvider:
    """Loads one gateway's credentials from ``SystemSetting`` on every call"""

    def __init__(self, key, label, required_keys=()):
        self.key = key
        self.label = label
        self.required_keys = required_keys

    def load(self):
        value = SystemSetting.get_value(self.key)
        data = value.get('data') if isinstance(value, dict) else None
        if not data or not isinstance(data, dict):
            logger.error("%s configuration missing (system setting %r)", self.label, self.key)
            raise GatewayConfigurationError(
                f"{self.label} configuration not found. Please configure in System Settings."
            )

        missing = [name for name in self.required_keys if not data.get(name)]
        if missing:
            logger.error("%s configuration incomplete, missing %s", self.label, ', '.join(missing))
            raise GatewayConfigurationError(
                f"{self.label} configuration is incomplete (missing {', '.join(missing)}). "
                "Please configure in System Settings."
            )
        return dict(data)


def bkash_config_provider():
    return SystemSettingConfigProvider(BKASH_CONFIG_KEY, 'bKash', BKASH_REQUIRED_KEYS)


def sslcommerz_config_provider():
    return SystemSettingConfigProvider(SSLCOMMERZ_CONFIG_KEY, 'SSLCommerz', SSLCOMMERZ_REQUIRED_KEYS)


def gateway_reply(response, label):
    """Decoded JSON object from a gateway response"""
    try:
        data = response.json()
    except ValueError:
        raise PaymentGatewayError(f"{label} returned a response that is not JSON")
    if not isinstance(data, dict):
        logger.error("%s returned a %s instead of a JSON object", label, type(data).__name__)
        raise PaymentGatewayError(f"{label} returned an unexpected response", data)
    return data
