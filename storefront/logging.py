"""
Logging — structlog setup.

    from storefront import logging as log

    log.configure(level="INFO", json=True)
    logger = log.get_logger("checkout")
    logger.info("order_placed", order_id=12, total="25.00")
"""

from __future__ import annotations

import logging

import structlog


def configure(level: str = "INFO", *, json: bool = True) -> None:
    """Install the processor chain. Safe to call more than once."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger().bind(component=component)


__all__ = ("configure", "get_logger")
