"""Domain exceptions for the token escrow ledger.

Every check in the runtime and the programs raises one of these. Raising
aborts the whole transaction; the runtime records which instruction failed
and the API layer translates the error into a structured JSON response.

Error numbers follow the on-chain conventions: token program errors are
small integers, account constraint errors live in the 2000/3000 ranges, and
escrow program errors start at 6000.
"""

from __future__ import annotations

from token_escrow.domain.enums import ErrorCategory


class EscrowError(Exception):
    """Base exception for all ledger errors."""

    category: ErrorCategory = ErrorCategory.PRECONDITION
    error_number: int | None = None

    def __init__(self, message: str, code: str = "ESCROW_ERROR") -> None:
        self.message = message
        self.code = code
        self.instruction_index: int | None = None
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serialize for API responses and transaction receipts."""
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "error_number": self.error_number,
            "instruction_index": self.instruction_index,
        }


# --- Protocol violations ---


class TakerShouldNotBeMakerError(EscrowError):
    """Raised when the maker tries to take its own offer."""

    category = ErrorCategory.PROTOCOL_VIOLATION
    error_number = 6000

    def __init__(self, maker: str) -> None:
        super().__init__(
            message=f"Maker itself can not take the offer: {maker}",
            code="TakerShouldNotBeMaker",
        )
        self.maker = maker


# --- Preconditions ---


class AccountNotInitializedError(EscrowError):
    """Raised when an instruction references an account that does not exist."""

    error_number = 3012

    def __init__(self, address: str, kind: str = "account") -> None:
        super().__init__(
            message=f"The program expected this {kind} to be already initialized: {address}",
            code="AccountNotInitialized",
        )
        self.address = address


class ConstraintHasOneError(EscrowError):
    """Raised when a stored field does not match the supplied account."""

    error_number = 2001

    def __init__(self, field: str, expected: str, actual: str) -> None:
        super().__init__(
            message=f"A has one constraint was violated: {field} is {expected}, got {actual}",
            code="ConstraintHasOne",
        )
        self.field = field


class MintMismatchError(EscrowError):
    """Raised when an account's mint differs from the mint supplied."""

    error_number = 3

    def __init__(self, account: str, expected: str, actual: str) -> None:
        super().__init__(
            message=f"Account {account} holds mint {actual}, expected {expected}",
            code="MintMismatch",
        )


class MintDecimalsMismatchError(EscrowError):
    """Raised when the declared decimals differ from the mint's decimals."""

    error_number = 18

    def __init__(self, mint: str, expected: int, actual: int) -> None:
        super().__init__(
            message=f"Mint {mint} has {expected} decimals, instruction declared {actual}",
            code="MintDecimalsMismatch",
        )


class OwnerMismatchError(EscrowError):
    """Raised when an authority is not the owner of the account it acts on."""

    error_number = 4

    def __init__(self, account: str, owner: str, authority: str) -> None:
        super().__init__(
            message=f"Account {account} is owned by {owner}, not {authority}",
            code="OwnerMismatch",
        )


class MissingRequiredSignatureError(EscrowError):
    """Raised when an account that must authorize an action did not sign."""

    def __init__(self, address: str) -> None:
        super().__init__(
            message=f"Missing required signature for {address}",
            code="MissingRequiredSignature",
        )
        self.address = address


class AccountNotWritableError(EscrowError):
    """Raised when an instruction mutates an account not marked writable."""

    def __init__(self, address: str) -> None:
        super().__init__(
            message=f"Account is not marked writable: {address}",
            code="AccountNotWritable",
        )


class IncorrectProgramIdError(EscrowError):
    """Raised when a program account slot holds the wrong program id."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            message=f"Incorrect program id: expected {expected}, got {actual}",
            code="IncorrectProgramId",
        )


class InvalidInstructionError(EscrowError):
    """Raised for unknown instructions, malformed arguments or account lists."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="InvalidInstruction")


class InvalidStateTransitionError(EscrowError):
    """Raised when an attempted offer transition is not allowed.

    Example: OPEN -> OPEN (an offer cannot be made twice).
    """

    def __init__(self, current_state: str, attempted_event: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {attempted_event} from {current_state}",
            code="InvalidStateTransition",
        )
        self.current_state = current_state
        self.attempted_event = attempted_event


# --- Resource failures ---


class InsufficientFundsError(EscrowError):
    """Raised when a token account holds less than the amount to move."""

    category = ErrorCategory.RESOURCE
    error_number = 1

    def __init__(self, account: str, required: int, available: int) -> None:
        super().__init__(
            message=f"Insufficient funds in {account}: required {required}, available {available}",
            code="InsufficientFunds",
        )
        self.required = required
        self.available = available


class InsufficientLamportsError(EscrowError):
    """Raised when a payer cannot cover a storage deposit."""

    category = ErrorCategory.RESOURCE

    def __init__(self, payer: str, required: int, available: int) -> None:
        super().__init__(
            message=f"Insufficient lamports in {payer}: required {required}, available {available}",
            code="InsufficientLamports",
        )


class AddressAlreadyInUseError(EscrowError):
    """Raised when creating an account at an address that is already taken."""

    category = ErrorCategory.RESOURCE

    def __init__(self, address: str) -> None:
        super().__init__(
            message=f"Address already in use: {address}",
            code="AddressAlreadyInUse",
        )
        self.address = address


class NonNativeHasBalanceError(EscrowError):
    """Raised when closing a token account that still holds tokens."""

    category = ErrorCategory.RESOURCE
    error_number = 11

    def __init__(self, account: str, amount: int) -> None:
        super().__init__(
            message=f"Cannot close {account}: it still holds {amount}",
            code="NonNativeHasBalance",
        )


class ArithmeticOverflowError(EscrowError):
    """Raised when a balance would leave the u64 range."""

    category = ErrorCategory.RESOURCE
    error_number = 14

    def __init__(self, account: str) -> None:
        super().__init__(
            message=f"Operation overflowed the balance of {account}",
            code="Overflow",
        )


class AccountInUseError(EscrowError):
    """Raised when a transaction loses a write conflict on an account."""

    category = ErrorCategory.RESOURCE

    def __init__(self, detail: str) -> None:
        super().__init__(
            message=f"Account in use: {detail}",
            code="AccountInUse",
        )


class AlreadyProcessedError(EscrowError):
    """Raised when a transaction signature has already been processed."""

    category = ErrorCategory.RESOURCE

    def __init__(self, signature: str) -> None:
        super().__init__(
            message=f"Transaction already processed: {signature}",
            code="AlreadyProcessed",
        )


# --- Derivation mismatches ---


class ConstraintSeedsError(EscrowError):
    """Raised when a supplied address is not the one its seeds derive."""

    category = ErrorCategory.DERIVATION
    error_number = 2006

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            message=f"A seeds constraint was violated: expected {expected}, got {actual}",
            code="ConstraintSeeds",
        )
        self.expected = expected
        self.actual = actual


class InvalidSeedsError(EscrowError):
    """Raised when an associated token account address is not canonical."""

    category = ErrorCategory.DERIVATION

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            message=f"Associated address mismatch: expected {expected}, got {actual}",
            code="InvalidSeeds",
        )
        self.expected = expected
        self.actual = actual


class InvalidAddressError(EscrowError):
    """Raised when a string is not a valid base58 public key."""

    category = ErrorCategory.DERIVATION

    def __init__(self, value: str) -> None:
        super().__init__(
            message=f"Not a valid address: {value!r}",
            code="InvalidAddress",
        )
