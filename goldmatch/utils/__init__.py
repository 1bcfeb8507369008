from .config import (
    ConfigManager,
    deep_merge
)

from .logging import (
    setup_logging,
    TextFormatter,
    JsonFormatter,
    LoggerAdapter,
    ContextLogger
)

from .validation import (
    ValidationError,
    validate_email,
    validate_phone,
    canonical_phone,
    validate_date,
    validate_number,
    validate_url,
    validate_postal_code,
    validate_vat_id,
    validate_ean,
    check_format
)

__all__ = [
    # Configuration
    'ConfigManager',
    'deep_merge',

    # Logging
    'setup_logging',
    'TextFormatter',
    'JsonFormatter',
    'LoggerAdapter',
    'ContextLogger',

    # Validation
    'ValidationError',
    'validate_email',
    'validate_phone',
    'canonical_phone',
    'validate_date',
    'validate_number',
    'validate_url',
    'validate_postal_code',
    'validate_vat_id',
    'validate_ean',
    'check_format'
]
