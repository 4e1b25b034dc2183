"""Core module - provider-neutral models, configuration and logging.

This module contains the canonical order, change and invoice models, the
configuration loader, the Ok/Err result type and structured logging. It is
intentionally free of Google, Slack and OpenAI specifics.

Provider-specific adapters belong in /connectors/.
"""

__version__ = "1.0.0"
