"""
Centralized logging configuration for the tickbot trading system.

This module provides standardized logging configuration using structlog
for all components. The connection manager and the trading session use
dedicated bound loggers so every state transition leaves an audit record.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    # Convert string level to logging constant
    log_level = getattr(logging, level.upper())

    # Configure standard library logging
    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )

    # Build processor chain
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # Add timestamp if requested
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    # Add caller information if requested
    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    # Add any extra processors
    if extra_processors:
        processors.extend(extra_processors)

    # Add final formatting processor
    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    # Configure structlog
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_connection_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger for the streaming connection subsystem.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger bound with the connection subsystem and audit context
    """
    logger = get_logger(name)

    # Add connection-specific binding for context
    return logger.bind(
        subsystem="connection",
        audit_trail=True
    )


def get_session_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger for trading session decisions.

    Every record carries the audit flag so settlements and threshold
    decisions can be filtered out of the stream.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger bound with the trading session context
    """
    return get_logger(name).bind(
        subsystem="trading_session",
        audit_trail=True
    )


def log_state_transition(
    logger: FilteringBoundLogger,
    entity: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a state transition with standardized format.

    Args:
        logger: Structlog logger instance
        entity: What is transitioning (``connection`` or ``session``)
        from_state: Current state
        to_state: Target state
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        entity=entity,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
        log_event="state_transition"
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("State transition")


def log_threshold_decision(
    logger: FilteringBoundLogger,
    threshold: str,
    crossed: bool,
    current_profit: Any,
    limit: Any,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a take-profit / stop-loss evaluation.

    Args:
        logger: Structlog logger instance
        threshold: ``take_profit`` or ``stop_loss``
        crossed: Whether the threshold was reached
        current_profit: Cumulative session profit at evaluation time
        limit: Threshold value it was compared against
        context: Additional context data
    """
    bound_logger = logger.bind(
        threshold=threshold,
        threshold_result="CROSSED" if crossed else "HOLD",
        current_profit=str(current_profit),
        limit=str(limit),
        log_event="threshold_decision"
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if crossed:
        bound_logger.info("Threshold crossed")
    else:
        bound_logger.debug("Threshold held")
