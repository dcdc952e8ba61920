"""
widget-fuzz — observability

File: src/widget_fuzz/observability/__init__.py

Purpose
- Queue-backed JSON-lines logging with contextvar correlation (run id, seed).
"""

from widget_fuzz.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    flush_logging,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "flush_logging",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
