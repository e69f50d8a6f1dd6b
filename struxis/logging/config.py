"""
Centralized logging configuration for the struxis pipeline.

This module provides standardized logging configuration using structlog
for all components. All logging throughout the package should use this
configuration to ensure consistent formatting and structured logging.
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
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                       structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

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


def get_state_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger for swing and trend lifecycle transitions.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger bound with the structure-state audit context
    """
    return get_logger(name).bind(
        subsystem="structure_state",
        audit_trail=True
    )


def get_pipeline_logger(name: str, symbol: str, timeframe: str) -> FilteringBoundLogger:
    """
    Get a logger bound to one (symbol, timeframe) context.

    Args:
        name: Logger name (typically __name__)
        symbol: Context symbol
        timeframe: Context timeframe label

    Returns:
        Logger bound with the pipeline context
    """
    return get_logger(name).bind(
        subsystem="pipeline",
        symbol=symbol,
        timeframe=timeframe
    )


def log_state_transition(
    logger: FilteringBoundLogger,
    entity_id: int,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a lifecycle transition with standardized format.

    Args:
        logger: Structlog logger instance
        entity_id: ID of the swing or trend transitioning
        from_state: Current state
        to_state: Target state
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        entity_id=entity_id,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("state_transition")


def log_backtrack(
    logger: FilteringBoundLogger,
    stage: str,
    entity_id: int,
    reason: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a revision of an already-reported entity.

    Args:
        logger: Structlog logger instance
        stage: Pipeline stage that revised the entity
        entity_id: ID of the revised entity
        reason: Why the entity was revised
        context: Additional context data
    """
    bound_logger = logger.bind(
        stage=stage,
        entity_id=entity_id,
        reason=reason,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.debug("backtrack")
