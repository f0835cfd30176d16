import structlog

logger = structlog.get_logger()


def log_dispatcher(event):
    """Default outbound channel: record the event and leave delivery to others."""
    logger.info("notification_dispatched", **event.to_dict())
