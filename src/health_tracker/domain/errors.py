"""Typed failures raised by mutation operations."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from health_tracker.domain.products import BarcodeValidation


class HealthTrackerError(Exception):
    """Base class for application errors."""


class UnauthenticatedError(HealthTrackerError):
    """A user-scoped mutation was requested without a user id."""

    def __init__(self, message: str = "User must be authenticated") -> None:
        super().__init__(message)


class InvalidInputError(HealthTrackerError, ValueError):
    """Required parameters were missing or invalid."""


class InvalidBarcodeError(InvalidInputError):
    """A barcode failed validation and cannot be linked."""

    def __init__(self, validation: "BarcodeValidation") -> None:
        super().__init__(validation.message or "Invalid barcode")
        self.validation = validation


class BarcodeAlreadyRegisteredError(HealthTrackerError):
    """The barcode is already bound to a catalog product."""

    def __init__(self, barcode: str) -> None:
        super().__init__(f"Barcode {barcode} is already registered to a product")
        self.barcode = barcode


class StorageWriteError(HealthTrackerError):
    """A storage mutation failed."""


class ExtractionContractError(HealthTrackerError):
    """The extraction oracle returned a payload that violates its contract."""
