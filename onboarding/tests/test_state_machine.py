"""
Tests for the attempt state machine: transition table, timer and gating.
"""

import datetime

import pytest

from onboarding.assessments.models import AttemptStatus, TestAvailability
from onboarding.assessments.state_machine import AttemptStateMachine
from onboarding.common.error_handling import InvalidTransitionError, PrerequisiteNotMetError

STARTED = datetime.datetime(2026, 1, 5, 9, 0, 0)


@pytest.mark.parametrize("current,target", [
    (AttemptStatus.AVAILABLE, AttemptStatus.IN_PROGRESS),
    (AttemptStatus.IN_PROGRESS, AttemptStatus.SUBMITTED),
    (AttemptStatus.SUBMITTED, AttemptStatus.EVALUATED),
    (AttemptStatus.EVALUATED, AttemptStatus.EVALUATED),
    (AttemptStatus.GRADED, AttemptStatus.EVALUATED),
])
def test_allowed_transitions(current, target):
    assert AttemptStateMachine.transition(current, target) is target


@pytest.mark.parametrize("current,target", [
    (AttemptStatus.AVAILABLE, AttemptStatus.SUBMITTED),
    (AttemptStatus.IN_PROGRESS, AttemptStatus.EVALUATED),
    (AttemptStatus.SUBMITTED, AttemptStatus.IN_PROGRESS),
    (AttemptStatus.EVALUATED, AttemptStatus.IN_PROGRESS),
    (AttemptStatus.EVALUATED, AttemptStatus.SUBMITTED),
    (AttemptStatus.GRADED, AttemptStatus.GRADED),
])
def test_rejected_transitions(current, target):
    with pytest.raises(InvalidTransitionError) as exc_info:
        AttemptStateMachine.transition(current, target, test_id="t1")
    assert exc_info.value.details["current_status"] == current.value
    assert exc_info.value.details["target_status"] == target.value


def test_starting_a_locked_test_reports_prerequisite():
    with pytest.raises(PrerequisiteNotMetError):
        AttemptStateMachine.transition(AttemptStatus.LOCKED, AttemptStatus.IN_PROGRESS, test_id="t2")


def test_transition_accepts_string_values():
    assert AttemptStateMachine.transition("submitted", "evaluated") is AttemptStatus.EVALUATED


def test_remaining_seconds_counts_down_from_start():
    now = STARTED + datetime.timedelta(minutes=10, seconds=30)
    assert AttemptStateMachine.remaining_seconds(STARTED, 30, now) == 19 * 60 + 30


def test_remaining_seconds_never_negative():
    now = STARTED + datetime.timedelta(hours=2)
    assert AttemptStateMachine.remaining_seconds(STARTED, 30, now) == 0
    assert AttemptStateMachine.is_expired(STARTED, 30, now)


def test_remaining_seconds_capped_at_limit_for_clock_skew():
    now = STARTED - datetime.timedelta(minutes=5)
    assert AttemptStateMachine.remaining_seconds(STARTED, 30, now) == 30 * 60


def test_untimed_test_never_expires():
    now = STARTED + datetime.timedelta(days=3)
    assert AttemptStateMachine.remaining_seconds(STARTED, None, now) is None
    assert AttemptStateMachine.deadline(STARTED, None) is None
    assert not AttemptStateMachine.is_expired(STARTED, None, now)


def test_deadline():
    assert AttemptStateMachine.deadline(STARTED, 45) == STARTED + datetime.timedelta(minutes=45)


def test_first_test_is_always_available():
    assert AttemptStateMachine.gate(None, has_previous_test=False) is AttemptStatus.AVAILABLE


@pytest.mark.parametrize("previous,expected", [
    (None, AttemptStatus.LOCKED),
    (AttemptStatus.IN_PROGRESS, AttemptStatus.LOCKED),
    (AttemptStatus.SUBMITTED, AttemptStatus.AVAILABLE),
    (AttemptStatus.EVALUATED, AttemptStatus.AVAILABLE),
    (AttemptStatus.GRADED, AttemptStatus.AVAILABLE),
])
def test_gate_follows_previous_test(previous, expected):
    assert AttemptStateMachine.gate(previous, has_previous_test=True) is expected


def test_availability_prefers_own_attempt():
    assert AttemptStateMachine.availability(
        AttemptStatus.IN_PROGRESS, None, True) is TestAvailability.IN_PROGRESS
    assert AttemptStateMachine.availability(
        AttemptStatus.EVALUATED, None, True) is TestAvailability.COMPLETED
    assert AttemptStateMachine.availability(
        None, AttemptStatus.SUBMITTED, True) is TestAvailability.AVAILABLE
    assert AttemptStateMachine.availability(None, None, True) is TestAvailability.LOCKED
