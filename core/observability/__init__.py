"""
Observability Module for the Lunch Order Automation

Provides:
- Structured logging with correlation IDs (run, job, period, month, file)
- Job start/complete/error log helpers
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
    log_job_start,
    log_job_complete,
    log_job_error,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
    "log_job_start",
    "log_job_complete",
    "log_job_error",
]
