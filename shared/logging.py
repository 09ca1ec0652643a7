"""
Shared logging configuration for the TursoConnector.
"""

import sys
import structlog
import logging
import uuid
import time
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for message correlation
message_id_var: ContextVar[Optional[str]] = ContextVar('message_id', default=None)
subject_var: ContextVar[Optional[str]] = ContextVar('subject', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _service_context(service_name),
            add_message_context,
            add_timestamp,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )


def _service_context(service_name: str):
    def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Add service name to log events."""
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service_context


def add_message_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add bus message correlation to log events."""
    message_id = message_id_var.get()
    if message_id:
        event_dict["message_id"] = message_id

    subject = subject_var.get()
    if subject:
        event_dict["subject"] = subject

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_message_context(subject: Optional[str] = None, message_id: Optional[str] = None) -> str:
    """Bind the current task's log context to a bus message."""
    if message_id is None:
        message_id = str(uuid.uuid4())
    message_id_var.set(message_id)
    if subject:
        subject_var.set(subject)
    return message_id


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
