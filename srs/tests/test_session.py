from datetime import timedelta

import pytest

from srs.domain.enums import Quality, SessionState
from srs.domain.errors import InvalidFeedbackError, InvalidTransitionError
from srs.domain.session import ReviewSession
from srs.domain.types import ReviewFeedback

from .factories import make_schedule


def test_reveal_then_submit(now):
    session = ReviewSession(make_schedule(interval=timedelta(days=4), ease_factor=2.5))
    assert session.state is SessionState.AWAITING_REVEAL

    session.reveal()
    assert session.state is SessionState.AWAITING_FEEDBACK

    outcome = session.submit(ReviewFeedback.create(Quality.EASY), now)

    assert session.state is SessionState.SUBMITTED
    assert session.schedule is outcome.schedule
    assert outcome.schedule.current_interval_days == 10


def test_submit_before_reveal_is_rejected(now):
    session = ReviewSession(make_schedule())

    with pytest.raises(InvalidTransitionError):
        session.submit(ReviewFeedback.create("good"), now)


def test_session_accepts_a_single_submission(now):
    session = ReviewSession(make_schedule())
    session.reveal()
    session.submit(ReviewFeedback.create("again"), now)

    with pytest.raises(InvalidTransitionError):
        session.submit(ReviewFeedback.create("again"), now)
    with pytest.raises(InvalidTransitionError):
        session.reveal()


def test_rejected_feedback_keeps_session_open(now):
    session = ReviewSession(make_schedule())
    session.reveal()

    with pytest.raises(InvalidFeedbackError):
        session.submit(ReviewFeedback(quality="maybe"), now)

    assert session.state is SessionState.AWAITING_FEEDBACK
    assert session.outcome is None
