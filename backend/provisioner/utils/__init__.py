"""
Utilities Package for the provisioner.

logger:
    Logging configuration including:
    - JSONFormatter for structured log output
    - StandardFormatter for human-readable terminal logs
    - setup_logging for run-wide configuration
    - add_log_context for step-scoped context fields
    - CredentialMaskingFilter to keep URI credentials out of log lines
"""

from provisioner.utils.logger import (
    ContextLoggerAdapter,
    CredentialMaskingFilter,
    JSONFormatter,
    StandardFormatter,
    add_log_context,
    setup_logging,
)


__all__ = [
    "ContextLoggerAdapter",
    "CredentialMaskingFilter",
    "JSONFormatter",
    "StandardFormatter",
    "add_log_context",
    "setup_logging",
]
