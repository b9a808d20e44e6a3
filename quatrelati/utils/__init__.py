# Utilitários compartilhados pelos routers

from quatrelati.utils.auth import (
    verify_password, get_password_hash, create_tokens, create_access_token
)
from quatrelati.utils.activity_log import log_activity
from quatrelati.utils.error_log import log_error, sanitize_body
from quatrelati.utils.ip_utils import get_real_ip

__all__ = [
    'verify_password', 'get_password_hash', 'create_tokens', 'create_access_token',
    'log_activity',
    'log_error', 'sanitize_body',
    'get_real_ip'
]
