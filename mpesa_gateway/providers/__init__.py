from mpesa_gateway.providers.mpesa_provider import MPesaProvider
from mpesa_gateway.providers.token_cache import TokenCache


def get_provider_config(app_config) -> dict:
    """Translate Flask app config into MPesaProvider config."""
    return {
        # Required
        'consumer_key':      app_config.get('MPESA_CONSUMER_KEY'),
        'consumer_secret':   app_config.get('MPESA_CONSUMER_SECRET'),
        'shortcode':         app_config.get('MPESA_SHORTCODE'),
        'passkey':           app_config.get('MPESA_PASSKEY'),
        'callback_url':      app_config.get('MPESA_CALLBACK_URL', ''),
        # Environment
        'environment':       app_config.get('MPESA_ENV', 'sandbox'),
        'base_url':          app_config.get('MPESA_BASE_URL'),
        # Request defaults
        'till_number':       app_config.get('MPESA_TILL_NUMBER', ''),
        'account_reference': app_config.get('MPESA_ACCOUNT_REFERENCE'),
        'transaction_desc':  app_config.get('MPESA_TRANSACTION_DESC'),
        # Timeouts
        'auth_timeout':      app_config.get('MPESA_AUTH_TIMEOUT', 15),
        'request_timeout':   app_config.get('MPESA_REQUEST_TIMEOUT', 30),
    }


__all__ = ['MPesaProvider', 'TokenCache', 'get_provider_config']
