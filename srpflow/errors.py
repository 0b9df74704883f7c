"""
srpflow error taxonomy.

Local failures (bad encodings, degenerate exchanges, HKDF limits) are raised
where they are detected and are never retried, with the single exception of
bounded ephemeral key regeneration. Errors reported by the identity service
are wrapped in ServiceRejected subclasses that keep the service's code and
message verbatim so the caller can decide its own retry policy.
"""

from __future__ import annotations


class SrpFlowError(Exception):
    """Base class for every error raised by srpflow."""


class InvalidEncoding(SrpFlowError, ValueError):
    """Raised when hex or base64 input from the service is malformed."""


class DegenerateExchange(SrpFlowError):
    """Raised when an SRP value reduces to zero.

    Covers A or B congruent to 0 mod N, a zero scrambler u, and exhaustion of
    the ephemeral key regeneration budget.
    """


class LengthTooLarge(SrpFlowError, ValueError):
    """Raised when HKDF-Expand is asked for more than 255 hash blocks."""


class ProtocolViolation(SrpFlowError):
    """Raised when the authentication flow receives an event it cannot accept.

    Always fatal: the flow moves to FAILED before this is raised.
    """


class ServiceRejected(SrpFlowError):
    """The identity service rejected a request.

    Attributes:
        code: Service error code, e.g. "NotAuthorizedException".
        message: Service error message, unmodified.
        retryable: Whether the flow is still waiting for the same input.
    """

    def __init__(self, code: str, message: str = "", *, retryable: bool = False) -> None:
        """Initialize a service rejection.

        Args:
            code: Service error code.
            message: Service error message.
            retryable: True when the flow stayed in its current state.
        """
        self.code = code
        self.message = message
        self.retryable = retryable
        super().__init__(f"{code}: {message}" if message else code)


class ChallengeMismatch(ServiceRejected):
    """The service rejected a password or device claim. Terminal."""


class CodeMismatch(ServiceRejected):
    """The service rejected an MFA code.

    Retryable until the MFA attempt budget is used up.
    """
