"""Unit tests for polling and presentation transition guardrails."""

import pytest

from pickersync.common.state_machine import PRESENTATION_TRANSITIONS, validate_transition


def test_valid_polling_transition():
    """Sanity check: a poll cycle may start from idle."""

    validate_transition("IDLE", "POLLING")


def test_merging_requires_a_fetch():
    """Merging without an outstanding poll must raise."""

    with pytest.raises(ValueError):
        validate_transition("IDLE", "MERGING")


def test_failed_poll_returns_to_idle():
    validate_transition("POLLING", "IDLE")


def test_presentation_preemption_is_allowed():
    validate_transition("SHOWING", "SHOWING", PRESENTATION_TRANSITIONS)


def test_unknown_presentation_state_rejected():
    with pytest.raises(ValueError):
        validate_transition("CLOSING", "HIDDEN", PRESENTATION_TRANSITIONS)
