"""Tests for the OfferStateMachine domain guard.

These tests verify that:
    1. make, take and cancel are allowed from the right states.
    2. Everything else is blocked, including a second take or cancel.
    3. The convenience function validate_transition works.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from token_escrow.domain.state_machine import (
    OfferStateMachine,
    validate_transition,
)


class TestHappyPath:
    """NON_EXISTENT -> OPEN -> FULFILLED."""

    def test_make_then_take(self) -> None:
        sm = OfferStateMachine()
        assert sm.status == "NON_EXISTENT"

        sm.make()
        assert sm.status == "OPEN"

        sm.take()
        assert sm.status == "FULFILLED"

    def test_make_then_cancel(self) -> None:
        sm = OfferStateMachine("NON_EXISTENT")
        sm.make()
        sm.cancel()
        assert sm.status == "CANCELLED"


class TestIllegalTransitions:
    """Verify that illegal transitions raise TransitionNotAllowed."""

    def test_take_before_make(self) -> None:
        sm = OfferStateMachine("NON_EXISTENT")
        with pytest.raises(TransitionNotAllowed):
            sm.take()

    def test_cancel_before_make(self) -> None:
        sm = OfferStateMachine("NON_EXISTENT")
        with pytest.raises(TransitionNotAllowed):
            sm.cancel()

    def test_make_twice(self) -> None:
        sm = OfferStateMachine("OPEN")
        with pytest.raises(TransitionNotAllowed):
            sm.make()

    def test_cancel_after_take(self) -> None:
        sm = OfferStateMachine("FULFILLED")
        with pytest.raises(TransitionNotAllowed):
            sm.cancel()

    def test_take_after_cancel(self) -> None:
        sm = OfferStateMachine("CANCELLED")
        with pytest.raises(TransitionNotAllowed):
            sm.take()

    def test_fulfilled_is_final(self) -> None:
        sm = OfferStateMachine("FULFILLED")
        assert sm.get_allowed_events() == []

    def test_cancelled_is_final(self) -> None:
        sm = OfferStateMachine("CANCELLED")
        assert sm.get_allowed_events() == []


class TestAllowedEvents:
    def test_non_existent_allowed(self) -> None:
        assert OfferStateMachine("NON_EXISTENT").get_allowed_events() == ["make"]

    def test_open_allowed(self) -> None:
        allowed = OfferStateMachine("OPEN").get_allowed_events()
        assert sorted(allowed) == ["cancel", "take"]


class TestValidateTransitionFunction:
    def test_valid_transition(self) -> None:
        assert validate_transition("OPEN", "take") == "FULFILLED"

    def test_illegal_transition(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition("FULFILLED", "take")

    def test_invalid_event_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition("OPEN", "settle")

    def test_invalid_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            OfferStateMachine("EXPIRED")
