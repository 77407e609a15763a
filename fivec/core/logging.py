"""
Structured logging configuration with correlation IDs.
"""
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

from fivec import __version__

# Context variables for request-scoped data
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
group_id_var: ContextVar[Optional[str]] = ContextVar('group_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)


def add_correlation_id(
    logger, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add correlation ID to log events."""
    correlation_id = correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())[:8]
        correlation_id_var.set(correlation_id)

    event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def add_request_context(
    logger, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add request context information to log events."""
    group_id = group_id_var.get()
    if group_id:
        event_dict.setdefault("group_id", group_id)

    user_id = user_id_var.get()
    if user_id:
        event_dict.setdefault("user_id", user_id)

    return event_dict


def add_service_context(
    logger, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add service context to log events."""
    event_dict["service"] = "fivec-orchestrator"
    event_dict["version"] = __version__
    return event_dict


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_service_context,
            add_request_context,
            add_correlation_id,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def get_business_logger() -> structlog.stdlib.BoundLogger:
    """Get a business event logger instance."""
    return structlog.get_logger("business")


def get_correlation_id() -> Optional[str]:
    """Get correlation ID from current context."""
    return correlation_id_var.get()


@contextmanager
def correlation_context(correlation_id: str = None, group_id: str = None,
                        user_id: str = None):
    """
    Context manager for setting correlation context.

    Args:
        correlation_id: Correlation ID for the request
        group_id: Group being operated on
        user_id: Acting user
    """
    tokens = []
    try:
        if correlation_id:
            tokens.append((correlation_id_var, correlation_id_var.set(correlation_id)))
        if group_id:
            tokens.append((group_id_var, group_id_var.set(group_id)))
        if user_id:
            tokens.append((user_id_var, user_id_var.set(user_id)))

        yield

    finally:
        for var, token in reversed(tokens):
            var.reset(token)


@contextmanager
def performance_timing(operation_name: str, **context):
    """
    Context manager for timing operations.

    Args:
        operation_name: Name of the operation being timed
    """
    logger = structlog.get_logger("performance")
    start_time = time.time()

    try:
        yield

    finally:
        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            "Operation completed",
            operation=operation_name,
            duration_ms=duration_ms,
            **context
        )


def log_business_event(event_type: str, **kwargs):
    """
    Log a structured business event.

    Args:
        event_type: Type of business event
        **kwargs: Additional event data
    """
    logger = get_business_logger()
    logger.info("Business event", event_type=event_type, **kwargs)
