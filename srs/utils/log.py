import logging

import structlog


def configure_logging(level=logging.INFO) -> None:
    """ISO timestamps and JSON lines, routed through the stdlib logging tree."""
    logging.basicConfig(level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
