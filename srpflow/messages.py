"""
Identity service request and response shapes.

srpflow never sends anything itself. The flow coordinator returns
InitiateAuthRequest / RespondToAuthChallengeRequest values whose to_dict()
is the JSON body of the corresponding service call, and the caller feeds the
service's answer back as ServiceResponse.from_dict(...) or ServiceError(...).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

# =============================================================================
# Protocol Names
# =============================================================================


class AuthFlow(str, Enum):
    """InitiateAuth flows used by srpflow."""

    USER_SRP_AUTH = "USER_SRP_AUTH"
    CUSTOM_AUTH = "CUSTOM_AUTH"
    REFRESH_TOKEN_AUTH = "REFRESH_TOKEN_AUTH"


class ChallengeName(str, Enum):
    """Challenge names the coordinator understands.

    Anything else is passed through to the caller as a custom challenge.
    """

    PASSWORD_VERIFIER = "PASSWORD_VERIFIER"
    SMS_MFA = "SMS_MFA"
    SOFTWARE_TOKEN_MFA = "SOFTWARE_TOKEN_MFA"
    NEW_PASSWORD_REQUIRED = "NEW_PASSWORD_REQUIRED"
    DEVICE_SRP_AUTH = "DEVICE_SRP_AUTH"
    DEVICE_PASSWORD_VERIFIER = "DEVICE_PASSWORD_VERIFIER"
    CUSTOM_CHALLENGE = "CUSTOM_CHALLENGE"


MFA_CHALLENGES = frozenset({ChallengeName.SMS_MFA, ChallengeName.SOFTWARE_TOKEN_MFA})

# Auth / challenge parameter names
PARAM_USERNAME = "USERNAME"
PARAM_SRP_A = "SRP_A"
PARAM_SRP_B = "SRP_B"
PARAM_SALT = "SALT"
PARAM_SECRET_BLOCK = "SECRET_BLOCK"
PARAM_USER_ID_FOR_SRP = "USER_ID_FOR_SRP"
PARAM_SECRET_HASH = "SECRET_HASH"
PARAM_DEVICE_KEY = "DEVICE_KEY"
PARAM_CHALLENGE_NAME = "CHALLENGE_NAME"
PARAM_REFRESH_TOKEN = "REFRESH_TOKEN"
PARAM_PASSWORD_CLAIM_SECRET_BLOCK = "PASSWORD_CLAIM_SECRET_BLOCK"
PARAM_PASSWORD_CLAIM_SIGNATURE = "PASSWORD_CLAIM_SIGNATURE"
PARAM_TIMESTAMP = "TIMESTAMP"
PARAM_SMS_MFA_CODE = "SMS_MFA_CODE"
PARAM_SOFTWARE_TOKEN_MFA_CODE = "SOFTWARE_TOKEN_MFA_CODE"
PARAM_NEW_PASSWORD = "NEW_PASSWORD"
PARAM_USER_ATTRIBUTES = "userAttributes"
PARAM_REQUIRED_ATTRIBUTES = "requiredAttributes"
PARAM_CODE_DELIVERY_MEDIUM = "CODE_DELIVERY_DELIVERY_MEDIUM"
PARAM_CODE_DELIVERY_DESTINATION = "CODE_DELIVERY_DESTINATION"

USER_ATTRIBUTE_PREFIX = "userAttributes."

# Service error codes with flow-specific handling
ERROR_CODE_MISMATCH = "CodeMismatchException"
ERROR_INVALID_PASSWORD = "InvalidPasswordException"
ERROR_NOT_AUTHORIZED = "NotAuthorizedException"


# =============================================================================
# Outgoing Requests
# =============================================================================


@dataclass(frozen=True)
class InitiateAuthRequest:
    """Body of an InitiateAuth call."""

    auth_flow: AuthFlow
    client_id: str
    auth_parameters: dict[str, str]
    client_metadata: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "AuthFlow": self.auth_flow.value,
            "ClientId": self.client_id,
            "AuthParameters": dict(self.auth_parameters),
        }
        if self.client_metadata:
            body["ClientMetadata"] = dict(self.client_metadata)
        return body


@dataclass(frozen=True)
class RespondToAuthChallengeRequest:
    """Body of a RespondToAuthChallenge call."""

    challenge_name: str
    client_id: str
    challenge_responses: dict[str, str]
    session: str | None = None
    client_metadata: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "ChallengeName": self.challenge_name,
            "ClientId": self.client_id,
            "ChallengeResponses": dict(self.challenge_responses),
        }
        if self.session is not None:
            body["Session"] = self.session
        if self.client_metadata:
            body["ClientMetadata"] = dict(self.client_metadata)
        return body


OutgoingRequest = Union[InitiateAuthRequest, RespondToAuthChallengeRequest]


# =============================================================================
# Incoming Responses
# =============================================================================


@dataclass(frozen=True)
class ServiceResponse:
    """A successful InitiateAuth / RespondToAuthChallenge answer."""

    challenge_name: str | None = None
    parameters: dict[str, str] = field(default_factory=dict)
    session: str | None = None
    authentication_result: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ServiceResponse:
        """Parse the service's JSON response body."""
        return cls(
            challenge_name=payload.get("ChallengeName") or None,
            parameters=dict(payload.get("ChallengeParameters") or {}),
            session=payload.get("Session"),
            authentication_result=payload.get("AuthenticationResult"),
        )


@dataclass(frozen=True)
class ServiceError:
    """An error answer from the service, kept verbatim."""

    code: str
    message: str = ""
