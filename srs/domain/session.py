from datetime import datetime

from ..config import DEFAULT_CONFIG, SchedulerConfig
from .enums import SessionState
from .errors import InvalidTransitionError
from .logic import ReviewOutcome, review
from .types import ReviewFeedback, ReviewSchedule


class ReviewSession:
    """One review interaction: show the prompt, reveal the answer, take feedback.

    AWAITING_REVEAL -> AWAITING_FEEDBACK -> SUBMITTED
    """

    def __init__(self, schedule: ReviewSchedule, config: SchedulerConfig = DEFAULT_CONFIG):
        self.schedule = schedule
        self.config = config
        self.state = SessionState.AWAITING_REVEAL
        self.outcome = None

    def reveal(self) -> None:
        self._expect(SessionState.AWAITING_REVEAL, "reveal")
        self.state = SessionState.AWAITING_FEEDBACK

    def submit(self, feedback: ReviewFeedback, now: datetime) -> ReviewOutcome:
        self._expect(SessionState.AWAITING_FEEDBACK, "submit")
        # state only advances once the calculator accepted the feedback
        self.outcome = review(self.schedule, feedback, now, self.config)
        self.schedule = self.outcome.schedule
        self.state = SessionState.SUBMITTED
        return self.outcome

    def _expect(self, state: SessionState, action: str) -> None:
        if self.state is not state:
            raise InvalidTransitionError(
                f"Cannot {action} while session is {self.state.value}"
            )
