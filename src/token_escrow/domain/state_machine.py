"""Offer State Machine Guard.

Uses python-statemachine to enforce legal offer transitions at the domain
level. Whatever the client sends, an illegal transition (e.g. taking an
offer that was never made) raises TransitionNotAllowed before the handler
touches any balance.

Transition table:
    NON_EXISTENT -> OPEN       (make)
    OPEN         -> FULFILLED  (take)
    OPEN         -> CANCELLED  (cancel)

FULFILLED and CANCELLED are final. The persisted record disappears on the
way into either of them, so "final" is enforced by the ledger as well: a
second take or cancel finds nothing to load.
"""

from __future__ import annotations

from statemachine import State, StateMachine


class OfferStateMachine(StateMachine):
    """State machine that guards the offer lifecycle.

    Usage:
        sm = OfferStateMachine(current_status="OPEN")
        sm.take()        # transitions to FULFILLED
        sm.status        # "FULFILLED"
    """

    # --- States ---
    NON_EXISTENT = State("NON_EXISTENT", initial=True)
    OPEN = State("OPEN")
    FULFILLED = State("FULFILLED", final=True)
    CANCELLED = State("CANCELLED", final=True)

    # --- Events / Transitions ---
    make = NON_EXISTENT.to(OPEN)
    take = OPEN.to(FULFILLED)
    cancel = OPEN.to(CANCELLED)

    def __init__(self, current_status: str = "NON_EXISTENT") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current OfferStatus value (e.g., "OPEN").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches OfferStatus)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def validate_transition(current_status: str, event_name: str) -> str:
    """Validate an offer transition and return the new status.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = OfferStateMachine(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status
