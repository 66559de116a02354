"""Tests for domain enumerations."""

from __future__ import annotations

from token_escrow.domain.enums import ErrorCategory, EventType, OfferStatus


class TestOfferStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {"NON_EXISTENT", "OPEN", "FULFILLED", "CANCELLED"}
        actual = {s.value for s in OfferStatus}
        assert actual == expected

    def test_status_is_str_enum(self) -> None:
        assert isinstance(OfferStatus.OPEN, str)
        assert OfferStatus.OPEN == "OPEN"


class TestEventType:
    def test_one_event_per_transition(self) -> None:
        # make, take, cancel
        assert len(EventType) == 3

    def test_event_type_is_str_enum(self) -> None:
        assert isinstance(EventType.OFFER_TAKEN, str)
        assert EventType.OFFER_CANCELLED == "OFFER_CANCELLED"


class TestErrorCategory:
    def test_categories(self) -> None:
        assert ErrorCategory.PROTOCOL_VIOLATION == "protocol_violation"
        assert ErrorCategory.PRECONDITION == "precondition"
        assert ErrorCategory.RESOURCE == "resource"
        assert ErrorCategory.DERIVATION == "derivation"
