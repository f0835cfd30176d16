class SrsError(Exception):
    """Base class for scheduler errors."""


class InvalidFeedbackError(SrsError):
    """Feedback cannot be applied: unknown quality or corrupt schedule."""


class InvalidSettingsError(SrsError):
    """Notification settings record is malformed."""


class ScheduleNotFoundError(SrsError):
    pass


class InvalidTransitionError(SrsError):
    pass
