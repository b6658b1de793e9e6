"""
Custom logging formatters for structured JSON logging, plus the
security event logger used by the auth and IAM layers.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    SECRET_PATTERN = re.compile(r'(api[_-]?key|token|secret|password|auth)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE)
    PLATFORM_KEY_PATTERN = re.compile(r'\bchg_[0-9a-f]{8,}\b')
    EIN_PATTERN = re.compile(r'\b\d{2}-\d{7}\b')
    SSN_PATTERN = re.compile(r'\b\d{3}-\d{2}-\d{4}\b')

    # Sensitive field names that should be masked
    SENSITIVE_FIELDS = {
        'email', 'email_address',
        'password', 'password_hash', 'passwd',
        'api_key', 'key_hash', 'plain_text_key', 'access_token', 'refresh_token', 'token',
        'secret', 'secret_key',
        'ein', 'ssn', 'tax_id',
    }

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text."""
        if not isinstance(text, str):
            return text
        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            masked_username = username[0] + '*' * (len(username) - 1) if len(username) > 1 else username
            return f"{masked_username}@{domain}"
        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        """Mask API keys, tokens, and secrets in text."""
        if not isinstance(text, str):
            return text
        text = cls.PLATFORM_KEY_PATTERN.sub(lambda m: m.group(0)[:12] + '********', text)
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_identifiers(cls, text):
        """Mask tax identifiers (EIN, SSN)."""
        if not isinstance(text, str):
            return text
        text = cls.SSN_PATTERN.sub('***-**-****', text)
        return cls.EIN_PATTERN.sub('**-*******', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        text = cls.mask_email(text)
        text = cls.mask_secrets(text)
        text = cls.mask_identifiers(text)
        return text

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in cls.SENSITIVE_FIELDS):
                if value and not isinstance(value, (dict, list)):
                    masked[key] = '********'
                else:
                    masked[key] = value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict)
                    else cls.mask_text(item) if isinstance(item, str)
                    else item
                    for item in value
                ]
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value

        return masked


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
    'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'request_id', 'tenant_id', 'task_id', 'task_name',
}


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id and tenant_id from extra fields if available.
    Automatically masks sensitive PII data.
    """

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attr in ('request_id', 'tenant_id', 'task_id', 'task_name'):
            value = getattr(record, attr, None)
            if value is not None:
                log_data[attr] = str(value)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [PIIMasker.mask_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        # Extra fields
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            if isinstance(value, dict):
                masked_value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                masked_value = PIIMasker.mask_text(value)
            else:
                masked_value = value
            try:
                json.dumps(masked_value)
                log_data[key] = masked_value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized security event logging.

    Events are written to the ``security`` logger with structured context.
    Critical events are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'cross_tenant_access',
        'api_key_misuse',
        'account_locked',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'failed_login', 'api_key_revoked')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (ip_address, user_email, tenant_id, etc.)
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'event_timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(
            f"Security event: {event_type}",
            extra=log_data
        )

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(email: str, ip_address: str, user_agent: str = None, reason: str = None):
        """Log a failed login attempt."""
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            reason=reason
        )

    @staticmethod
    def log_account_locked(email: str, ip_address: str, attempts: int):
        SecurityLogger.log_event(
            'account_locked',
            level='error',
            email=email,
            ip_address=ip_address,
            attempts=attempts,
        )

    @staticmethod
    def log_permission_denied(user, tenant, required_scopes, ip_address: str = None):
        """Log a permission denial."""
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            user_id=str(user.id) if user and getattr(user, 'id', None) else None,
            tenant_id=str(tenant.id) if tenant else None,
            required_scopes=sorted(required_scopes),
            ip_address=ip_address
        )

    @staticmethod
    def log_cross_tenant_access(user, tenant, ip_address: str = None):
        """Log a platform admin acting inside a tenant they are not a member of."""
        SecurityLogger.log_event(
            'cross_tenant_access',
            level='warning',
            user_id=str(user.id),
            tenant_id=str(tenant.id),
            ip_address=ip_address,
        )

    @staticmethod
    def log_api_key_event(action: str, api_key, actor=None, ip_address: str = None):
        """Log API key lifecycle events (created, revoked, rejected)."""
        SecurityLogger.log_event(
            f'api_key_{action}',
            level='info' if action in ('created', 'revoked') else 'warning',
            api_key_id=str(api_key.id) if api_key else None,
            key_prefix=api_key.key_prefix if api_key else None,
            tenant_id=str(api_key.tenant_id) if api_key else None,
            actor_id=str(actor.id) if actor else None,
            ip_address=ip_address,
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, tenant_id: str = None):
        """Log a rate limit violation."""
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            tenant_id=tenant_id,
        )
