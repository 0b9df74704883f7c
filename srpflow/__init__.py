"""
srpflow: client-side SRP authentication against a Cognito-style identity service.

The engine computes the SRP values the service expects (SRP_A, the password
claim signature, device verifiers, SECRET_HASH) and the flow coordinator
sequences one login through its challenges. No network I/O happens here.
"""

from __future__ import annotations

from srpflow.config import ClientContext, FlowConfig
from srpflow.device import (
    DeviceIdentity,
    DeviceSecretVerifier,
    compute_device_claim,
    compute_device_verifier,
    confirm_device_parameters,
    get_device_key_hash,
    register_device,
)
from srpflow.errors import (
    ChallengeMismatch,
    CodeMismatch,
    DegenerateExchange,
    InvalidEncoding,
    LengthTooLarge,
    ProtocolViolation,
    ServiceRejected,
    SrpFlowError,
)
from srpflow.flow import (
    Abort,
    AuthenticationFlow,
    CustomChallenge,
    FlowState,
    MfaChallenge,
    NewPasswordChallenge,
    SrpChallenge,
    Start,
    StepResult,
    SubmitCustomAnswer,
    SubmitMfaCode,
    SubmitNewPassword,
)
from srpflow.hkdf import HkdfSha256, hkdf
from srpflow.log import configure_logging
from srpflow.messages import (
    AuthFlow,
    ChallengeName,
    InitiateAuthRequest,
    RespondToAuthChallengeRequest,
    ServiceError,
    ServiceResponse,
)
from srpflow.secret_hash import compute_secret_hash
from srpflow.srp import (
    EphemeralKeyPair,
    compute_password_claim,
    create_ephemeral_key_pair,
    derive_password_authentication_key,
    format_timestamp,
)
from srpflow.tokens import SessionTokens, build_refresh_request

__version__ = "1.0.0"

__all__ = [
    "Abort",
    "AuthFlow",
    "AuthenticationFlow",
    "ChallengeMismatch",
    "ChallengeName",
    "ClientContext",
    "CodeMismatch",
    "CustomChallenge",
    "DegenerateExchange",
    "DeviceIdentity",
    "DeviceSecretVerifier",
    "EphemeralKeyPair",
    "FlowConfig",
    "FlowState",
    "HkdfSha256",
    "InitiateAuthRequest",
    "InvalidEncoding",
    "LengthTooLarge",
    "MfaChallenge",
    "NewPasswordChallenge",
    "ProtocolViolation",
    "RespondToAuthChallengeRequest",
    "ServiceError",
    "ServiceRejected",
    "ServiceResponse",
    "SessionTokens",
    "SrpChallenge",
    "SrpFlowError",
    "Start",
    "StepResult",
    "SubmitCustomAnswer",
    "SubmitMfaCode",
    "SubmitNewPassword",
    "build_refresh_request",
    "compute_device_claim",
    "compute_device_verifier",
    "compute_password_claim",
    "compute_secret_hash",
    "configure_logging",
    "confirm_device_parameters",
    "create_ephemeral_key_pair",
    "derive_password_authentication_key",
    "format_timestamp",
    "get_device_key_hash",
    "hkdf",
    "register_device",
]
