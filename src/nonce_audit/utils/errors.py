"""Exception taxonomy for the nonce audit."""

from __future__ import annotations


class NonceAuditError(Exception):
    """Base class for every error raised by nonce_audit."""


class DecodeError(NonceAuditError, ValueError):
    """Malformed DER signature: too short or inconsistent length fields."""


class InvalidSignature(NonceAuditError, ArithmeticError):
    """Signature component is not invertible modulo the group order."""


class CapabilityUnavailable(NonceAuditError, RuntimeError):
    """The host cannot provide a capability a check depends on.

    Raised for a skip, not a failure: e.g. a CPU clock too coarse to time
    single signing operations.
    """


class StatisticalAnomaly(NonceAuditError, AssertionError):
    """A detector exceeded its calibrated threshold.

    Carries the numeric evidence so callers can report more than a boolean.
    """

    def __init__(
        self,
        check: str,
        value: float,
        threshold: float,
        message: str = "",
        details: dict | None = None,
    ) -> None:
        self.check = check
        self.value = value
        self.threshold = threshold
        self.details = dict(details or {})
        if not message:
            message = f"{check}: {value} exceeds threshold {threshold}"
        super().__init__(message)
