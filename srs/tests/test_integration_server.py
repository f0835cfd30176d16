import pytest
import requests
import subprocess
import sys
import uuid
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

BASE_URL = "http://127.0.0.1:8000"
MANAGE_PY = Path(__file__).resolve().parents[2] / "manage.py"
logger = logging.getLogger(__name__)


def seed(student_id, count=1, spread_minutes=0):
    """Create schedules in the server's database; returns their ids."""
    out = subprocess.run(
        [sys.executable, str(MANAGE_PY), "seed_schedules",
         "--student", str(student_id),
         "--count", str(count),
         "--spread-minutes", str(spread_minutes)],
        check=True, capture_output=True, text=True,
    ).stdout
    return [line.split()[0] for line in out.splitlines()[:count]]


def post_review(student_id, schedule_id, quality, idem=None):
    """Helper for POST /reviews"""
    payload = {
        "student_id": str(student_id),
        "schedule_id": str(schedule_id),
        "quality": quality,
    }
    if idem:
        payload["idempotency_key"] = idem
    r = requests.post(f"{BASE_URL}/reviews", json=payload)
    data = r.json()
    logger.info(
        "POST /reviews quality=%s → status=%s interval=%s idempotent=%s",
        quality,
        r.status_code,
        data.get("interval_seconds"),
        data.get("idempotent"),
    )
    return r


def get_due(student_id, until=None):
    """Helper for GET /students/{id}/due-queue"""
    params = {"until": until.isoformat()} if until else {}
    r = requests.get(f"{BASE_URL}/students/{student_id}/due-queue", params=params)
    data = r.json()
    logger.info(
        "GET /due-queue until=%s → status=%s total=%s",
        until.isoformat() if until else None,
        r.status_code,
        data.get("total_count"),
    )
    return r


@pytest.mark.integration
def test_again_immediate_retry_live():
    """again → retry within 60s"""
    student_id = uuid.uuid4()
    [schedule_id] = seed(student_id)

    r = post_review(student_id, schedule_id, "again", "idem-live-0")
    d = r.json()
    assert r.status_code == 201
    assert d["interval_seconds"] == 60
    assert d["quality_label"] == "Again"
    logger.info("✓ Passed: again scheduled retry in 60s")


@pytest.mark.integration
def test_intervals_never_shrink_on_success_live():
    """Successful reviews never shorten the interval"""
    student_id = uuid.uuid4()
    [schedule_id] = seed(student_id)

    intervals = []
    for i, quality in enumerate(["good", "easy", "good", "easy"]):
        resp = post_review(student_id, schedule_id, quality, f"idem-live-grow-{i}")
        intervals.append(resp.json()["interval_seconds"])

    assert all(intervals[i] <= intervals[i+1] for i in range(len(intervals)-1))
    logger.info("✓ Passed: monotonic growth across reviews %s", intervals)


@pytest.mark.integration
def test_idempotency_live():
    """Identical requests should reuse result with 200 + idempotent=True"""
    student_id = uuid.uuid4()
    [schedule_id] = seed(student_id)

    first = post_review(student_id, schedule_id, "easy", "idem-live-same")
    d1 = first.json()
    assert first.status_code == 201
    assert d1["idempotent"] is False

    second = post_review(student_id, schedule_id, "easy", "idem-live-same")
    d2 = second.json()
    assert second.status_code == 200
    assert d2["idempotent"] is True
    assert d1["next_review_utc"] == d2["next_review_utc"]

    logger.info("✓ Passed: idempotency verified (201 then 200)")


@pytest.mark.integration
def test_due_queue_includes_and_excludes_live():
    """The due queue holds what is due and leaves far-off reviews out"""
    student_id = uuid.uuid4()
    due, later = seed(student_id, count=2)

    # easy → days away
    post_review(student_id, later, "easy")

    r1 = get_due(student_id, datetime.now(timezone.utc) + timedelta(minutes=2))
    ids = [item["schedule_id"] for item in r1.json()["reviews"]]
    assert due in ids
    assert later not in ids

    r2 = get_due(student_id, datetime.now(timezone.utc) - timedelta(days=1))
    assert r2.json()["reviews"] == []

    logger.info("✓ Passed: due queue includes/excludes correctly")


@pytest.mark.integration
def test_easy_keeps_growing_live():
    """Repeated EASY answers keep stretching the interval, with no default ceiling"""
    student_id = uuid.uuid4()
    [schedule_id] = seed(student_id)
    intervals = []

    for i in range(8):
        resp = post_review(student_id, schedule_id, "easy", f"idem-live-easy-{i}")
        intervals.append(resp.json()["interval_seconds"])

    assert all(intervals[i] < intervals[i+1] for i in range(len(intervals)-1))
    assert intervals[-1] > 365 * 24 * 3600
    logger.info("✓ Passed: easy intervals %s", intervals)
