"""
Error taxonomy shared by the workflow services.

Every workflow failure is one of these classes; `code` is the stable identifier
carried into results and HTTP responses.
"""

from __future__ import annotations


class ConferenceError(Exception):
    """Base class for expected workflow failures."""

    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotAuthenticated(ConferenceError):
    code = "not_authenticated"


class IncompleteProfile(ConferenceError):
    code = "incomplete_profile"


class Unauthorized(ConferenceError):
    code = "unauthorized"


class ValidationError(ConferenceError):
    code = "validation_error"


class InvalidState(ConferenceError):
    code = "invalid_state"


class NotFound(ConferenceError):
    code = "not_found"


class UpstreamFailure(ConferenceError):
    """Backend, storage or gateway error passed through."""

    code = "upstream_failure"


class PaymentCancelled(ConferenceError):
    code = "payment_cancelled"


class DuplicateAccount(ConferenceError):
    code = "duplicate_account"


class WeakCredential(ConferenceError):
    code = "weak_credential"


class InvalidCredential(ConferenceError):
    code = "invalid_credential"
