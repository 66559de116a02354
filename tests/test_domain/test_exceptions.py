"""Tests for domain exceptions and their serialized form."""

from __future__ import annotations

from token_escrow.domain.enums import ErrorCategory
from token_escrow.domain.exceptions import (
    AccountNotInitializedError,
    ConstraintSeedsError,
    EscrowError,
    InsufficientFundsError,
    TakerShouldNotBeMakerError,
)


class TestCategories:
    def test_self_trade_is_protocol_violation(self) -> None:
        err = TakerShouldNotBeMakerError("maker")
        assert err.category is ErrorCategory.PROTOCOL_VIOLATION
        assert err.error_number == 6000
        assert err.code == "TakerShouldNotBeMaker"

    def test_insufficient_funds_is_resource(self) -> None:
        err = InsufficientFundsError("acct", required=80, available=79)
        assert err.category is ErrorCategory.RESOURCE
        assert err.required == 80
        assert err.available == 79

    def test_seeds_is_derivation(self) -> None:
        err = ConstraintSeedsError(expected="a", actual="b")
        assert err.category is ErrorCategory.DERIVATION

    def test_default_is_precondition(self) -> None:
        assert AccountNotInitializedError("x").category is ErrorCategory.PRECONDITION

    def test_all_are_escrow_errors(self) -> None:
        assert isinstance(TakerShouldNotBeMakerError("m"), EscrowError)


class TestToDict:
    def test_includes_instruction_index(self) -> None:
        err = AccountNotInitializedError("Offer111", kind="offer")
        err.instruction_index = 2
        data = err.to_dict()
        assert data["error"] == "AccountNotInitialized"
        assert data["category"] == "precondition"
        assert data["error_number"] == 3012
        assert data["instruction_index"] == 2
        assert "offer" in data["message"]
