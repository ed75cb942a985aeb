"""
Observability Module for Folder Sync

Provides:
- Structured logging with correlation IDs (request, scan, pending item, workflow)
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
