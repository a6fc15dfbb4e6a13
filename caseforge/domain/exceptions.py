"""Exceptions raised by CaseForge ledger services."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ITEM_NOT_FOUND = "item_not_found"
    STALE_OFFER = "stale_offer"
    NOT_AUTHORIZED = "not_authorized"
    NOT_PENDING = "not_pending"
    ALREADY_REDEEMED = "already_redeemed"
    REDEMPTIONS_EXHAUSTED = "redemptions_exhausted"
    CODE_INACTIVE = "code_inactive"
    CODE_NOT_FOUND = "code_not_found"
    VALIDATION_ERROR = "validation_error"


class LedgerError(RuntimeError):
    """Base class for typed ledger failures."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind.value)


class NotFound(LedgerError):
    kind = ErrorKind.NOT_FOUND


class AlreadyExists(LedgerError):
    kind = ErrorKind.ALREADY_EXISTS


class InvalidAmount(LedgerError):
    kind = ErrorKind.INVALID_AMOUNT


class InsufficientFunds(LedgerError):
    """Raised when a balance cannot cover a debit."""

    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(self, message: str = "", *, balance: int | None = None, required: int | None = None) -> None:
        super().__init__(message)
        self.balance = balance
        self.required = required


class ItemNotFound(LedgerError):
    kind = ErrorKind.ITEM_NOT_FOUND


class StaleOffer(LedgerError):
    """Raised when a pending offer no longer matches the ledger at settlement time."""

    kind = ErrorKind.STALE_OFFER


class NotAuthorized(LedgerError):
    kind = ErrorKind.NOT_AUTHORIZED


class NotPending(LedgerError):
    kind = ErrorKind.NOT_PENDING


class AlreadyRedeemed(LedgerError):
    kind = ErrorKind.ALREADY_REDEEMED


class RedemptionsExhausted(LedgerError):
    kind = ErrorKind.REDEMPTIONS_EXHAUSTED


class CodeInactive(LedgerError):
    kind = ErrorKind.CODE_INACTIVE


class CodeNotFound(LedgerError):
    kind = ErrorKind.CODE_NOT_FOUND


class ValidationError(LedgerError):
    """Raised when imported catalog data breaks weight or shape rules."""

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str = "", *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or ())
