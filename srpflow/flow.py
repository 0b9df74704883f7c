"""
Authentication flow coordinator.

Sequences one SRP login against the identity service:

    START
      | Start                         -> InitiateAuth(SRP_A)
    AWAITING_SRP_CHALLENGE
      | PASSWORD_VERIFIER             -> RespondToAuthChallenge(claim)
    AWAITING_NEXT_CHALLENGE <---------------------------------------+
      | tokens                        -> AUTHENTICATED              |
      | SMS_MFA / SOFTWARE_TOKEN_MFA  -> AWAITING_MFA_CODE ---------+ SubmitMfaCode
      | NEW_PASSWORD_REQUIRED         -> AWAITING_NEW_PASSWORD -----+ SubmitNewPassword
      | other challenge               -> CUSTOM_CHALLENGE ----------+ SubmitCustomAnswer
      | DEVICE_SRP_AUTH               -> RespondToAuthChallenge(device SRP_A)
    AWAITING_DEVICE_CHALLENGE
      | DEVICE_PASSWORD_VERIFIER      -> RespondToAuthChallenge(device claim)
    AWAITING_DEVICE_VERIFIER
      | tokens                        -> AUTHENTICATED

Any state can fall to FAILED. The coordinator does no I/O: advance() takes
one event and returns the request (if any) the caller must send next. One
AuthenticationFlow instance per login; instances are not thread-safe.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Union

import structlog

from srpflow.config import ClientContext, FlowConfig
from srpflow.device import DeviceIdentity, compute_device_claim
from srpflow.errors import (
    ChallengeMismatch,
    CodeMismatch,
    InvalidEncoding,
    ProtocolViolation,
    ServiceRejected,
    SrpFlowError,
)
from srpflow.messages import (
    ERROR_CODE_MISMATCH,
    ERROR_INVALID_PASSWORD,
    ERROR_NOT_AUTHORIZED,
    MFA_CHALLENGES,
    PARAM_CHALLENGE_NAME,
    PARAM_CODE_DELIVERY_DESTINATION,
    PARAM_CODE_DELIVERY_MEDIUM,
    PARAM_DEVICE_KEY,
    PARAM_NEW_PASSWORD,
    PARAM_PASSWORD_CLAIM_SECRET_BLOCK,
    PARAM_PASSWORD_CLAIM_SIGNATURE,
    PARAM_REQUIRED_ATTRIBUTES,
    PARAM_SALT,
    PARAM_SECRET_BLOCK,
    PARAM_SECRET_HASH,
    PARAM_SMS_MFA_CODE,
    PARAM_SOFTWARE_TOKEN_MFA_CODE,
    PARAM_SRP_A,
    PARAM_SRP_B,
    PARAM_TIMESTAMP,
    PARAM_USER_ATTRIBUTES,
    PARAM_USER_ID_FOR_SRP,
    PARAM_USERNAME,
    USER_ATTRIBUTE_PREFIX,
    AuthFlow,
    ChallengeName,
    InitiateAuthRequest,
    OutgoingRequest,
    RespondToAuthChallengeRequest,
    ServiceError,
    ServiceResponse,
)
from srpflow.srp import (
    EphemeralKeyPair,
    compute_password_claim,
    create_ephemeral_key_pair,
    format_timestamp,
)
from srpflow.tokens import SessionTokens

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# States
# =============================================================================


class FlowState(IntEnum):
    """Authentication flow states."""

    START = 0
    AWAITING_SRP_CHALLENGE = 1
    AWAITING_NEXT_CHALLENGE = 2
    AWAITING_MFA_CODE = 3
    AWAITING_NEW_PASSWORD = 4
    AWAITING_DEVICE_CHALLENGE = 5
    AWAITING_DEVICE_VERIFIER = 6
    CUSTOM_CHALLENGE = 7
    AUTHENTICATED = 8
    FAILED = 9


TERMINAL_STATES = frozenset({FlowState.AUTHENTICATED, FlowState.FAILED})

# States in which a service answer is outstanding
_WAITING_ON_SERVICE = frozenset(
    {
        FlowState.AWAITING_SRP_CHALLENGE,
        FlowState.AWAITING_NEXT_CHALLENGE,
        FlowState.AWAITING_DEVICE_CHALLENGE,
        FlowState.AWAITING_DEVICE_VERIFIER,
    }
)


# =============================================================================
# Challenges
# =============================================================================


def _require_parameters(name: str, params: Mapping[str, str], keys: tuple[str, ...]) -> None:
    missing = [key for key in keys if not params.get(key)]
    if missing:
        raise ProtocolViolation(f"{name} challenge missing {', '.join(missing)}")


@dataclass(frozen=True)
class SrpChallenge:
    """PASSWORD_VERIFIER or DEVICE_PASSWORD_VERIFIER parameters."""

    name: ChallengeName
    srp_b: str
    salt: str
    secret_block: str
    user_id_for_srp: str | None = None
    username: str | None = None

    @classmethod
    def from_parameters(cls, name: ChallengeName, params: Mapping[str, str]) -> SrpChallenge:
        """Parse challenge parameters.

        Raises:
            ProtocolViolation: If a required parameter is missing.
        """
        required: tuple[str, ...] = (PARAM_SRP_B, PARAM_SALT, PARAM_SECRET_BLOCK)
        if name == ChallengeName.PASSWORD_VERIFIER:
            required += (PARAM_USER_ID_FOR_SRP,)
        _require_parameters(name.value, params, required)

        return cls(
            name=name,
            srp_b=params[PARAM_SRP_B],
            salt=params[PARAM_SALT],
            secret_block=params[PARAM_SECRET_BLOCK],
            user_id_for_srp=params.get(PARAM_USER_ID_FOR_SRP),
            username=params.get(PARAM_USERNAME),
        )


@dataclass(frozen=True)
class MfaChallenge:
    """SMS_MFA or SOFTWARE_TOKEN_MFA. The caller must supply a code."""

    name: ChallengeName
    delivery_medium: str | None = None
    destination: str | None = None

    @property
    def code_parameter(self) -> str:
        if self.name == ChallengeName.SMS_MFA:
            return PARAM_SMS_MFA_CODE
        return PARAM_SOFTWARE_TOKEN_MFA_CODE


@dataclass(frozen=True)
class NewPasswordChallenge:
    """NEW_PASSWORD_REQUIRED. The caller must supply a new password."""

    user_attributes: dict[str, Any] = field(default_factory=dict)
    required_attributes: list[str] = field(default_factory=list)

    @classmethod
    def from_parameters(cls, params: Mapping[str, str]) -> NewPasswordChallenge:
        """Parse the JSON-encoded attribute parameters.

        Raises:
            InvalidEncoding: If an attribute parameter is not valid JSON.
        """
        try:
            user_attributes = json.loads(params.get(PARAM_USER_ATTRIBUTES) or "{}")
            required = json.loads(params.get(PARAM_REQUIRED_ATTRIBUTES) or "[]")
        except json.JSONDecodeError as e:
            raise InvalidEncoding(f"Malformed NEW_PASSWORD_REQUIRED attributes: {e}") from e
        if not isinstance(user_attributes, dict) or not isinstance(required, list):
            raise InvalidEncoding("Malformed NEW_PASSWORD_REQUIRED attributes")

        return cls(
            user_attributes=dict(user_attributes),
            required_attributes=[name.removeprefix(USER_ATTRIBUTE_PREFIX) for name in required],
        )


@dataclass(frozen=True)
class CustomChallenge:
    """Any challenge srpflow does not interpret, passed through verbatim."""

    name: str
    parameters: dict[str, str] = field(default_factory=dict)


Challenge = Union[SrpChallenge, MfaChallenge, NewPasswordChallenge, CustomChallenge]


def _known_challenge(name: str) -> ChallengeName | None:
    try:
        return ChallengeName(name)
    except ValueError:
        return None


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class Start:
    """Begin the login."""


@dataclass(frozen=True)
class SubmitMfaCode:
    """Answer to an MFA challenge."""

    code: str = field(repr=False)


@dataclass(frozen=True)
class SubmitNewPassword:
    """Answer to NEW_PASSWORD_REQUIRED, with optional attribute updates."""

    password: str = field(repr=False)
    attributes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmitCustomAnswer:
    """Answer to a custom challenge, sent as the challenge responses."""

    answers: Mapping[str, str]


@dataclass(frozen=True)
class Abort:
    """Caller gives up on the login."""

    reason: str = "aborted by caller"


Event = Union[
    Start,
    ServiceResponse,
    ServiceError,
    SubmitMfaCode,
    SubmitNewPassword,
    SubmitCustomAnswer,
    Abort,
]


@dataclass(frozen=True)
class StepResult:
    """Outcome of one advance() call.

    request is what the caller must send next (None while waiting for caller
    input or once terminal). challenge is set when the caller must answer.
    """

    state: FlowState
    request: OutgoingRequest | None = None
    challenge: Challenge | None = None
    tokens: SessionTokens | None = None


# =============================================================================
# Coordinator
# =============================================================================


class AuthenticationFlow:
    """State machine for one SRP login.

    Args:
        context: App client the login is made against.
        username: Username (or alias) the user typed.
        password: Plaintext password. Never sent or logged.
        device: Remembered device to use if the service asks for DEVICE_SRP_AUTH.
        config: Retry budgets; defaults to FlowConfig().
        custom_auth: Start with CUSTOM_AUTH (SRP_A as first challenge) instead
            of USER_SRP_AUTH.
        client_metadata: Passed through on every request.
        clock: Source of the current UTC time, for TIMESTAMP and token issue time.
        key_pair_factory: Source of ephemeral key pairs, for deterministic tests.
    """

    def __init__(
        self,
        context: ClientContext,
        username: str,
        password: str,
        *,
        device: DeviceIdentity | None = None,
        config: FlowConfig | None = None,
        custom_auth: bool = False,
        client_metadata: Mapping[str, str] | None = None,
        clock: Callable[[], datetime] | None = None,
        key_pair_factory: Callable[[], EphemeralKeyPair] | None = None,
    ) -> None:
        self.context = context
        self.username = username
        self._password = password
        self.device = device
        self.config = config or FlowConfig()
        self.custom_auth = custom_auth
        self.client_metadata = dict(client_metadata) if client_metadata else None
        self._clock = clock or _utcnow
        self._key_pair_factory = key_pair_factory or self._new_key_pair

        self.state = FlowState.START
        self.session: str | None = None
        self.challenge: Challenge | None = None
        self.tokens: SessionTokens | None = None
        self.new_device_metadata: dict[str, str] | None = None
        self.mfa_attempts = 0

        self._key_pair: EphemeralKeyPair | None = None
        self._device_key_pair: EphemeralKeyPair | None = None
        self._answered: str | None = None  # challenge name of the last response sent
        self._log = log.bind(username=username, client_id=context.client_id)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def tokens_valid(self, now: datetime | None = None) -> bool:
        """True while the tokens are unexpired, less config.clock_skew_seconds."""
        if self.tokens is None:
            return False
        return self.tokens.is_valid(
            now or self._clock(), clock_skew_seconds=self.config.clock_skew_seconds
        )

    def advance(self, event: Event) -> StepResult:
        """Feed one event into the flow.

        Args:
            event: Caller input or service answer.

        Returns:
            StepResult with the new state and the next request, if any.

        Raises:
            ProtocolViolation: If the event does not fit the current state.
                The flow is FAILED afterwards (unless it had already
                authenticated).
            CodeMismatch: MFA code rejected. retryable is True while the
                flow is back in AWAITING_MFA_CODE.
            ChallengeMismatch: Password or device claim rejected. Terminal.
            ServiceRejected: Any other service error, verbatim.
            InvalidEncoding, DegenerateExchange: Bad challenge values. Terminal.
        """
        if self.is_terminal:
            raise ProtocolViolation(
                f"Flow is {self.state.name}; cannot accept {type(event).__name__}"
            )

        try:
            return self._dispatch(event)
        except SrpFlowError as exc:
            if not getattr(exc, "retryable", False):
                self._fail(f"{type(exc).__name__}: {exc}")
            raise

    def _dispatch(self, event: Event) -> StepResult:
        if isinstance(event, Abort):
            self._fail(event.reason)
            return self._result()
        if isinstance(event, Start):
            return self._on_start()
        if isinstance(event, ServiceResponse):
            return self._on_service_response(event)
        if isinstance(event, ServiceError):
            return self._on_service_error(event)
        if isinstance(event, SubmitMfaCode):
            return self._on_mfa_code(event)
        if isinstance(event, SubmitNewPassword):
            return self._on_new_password(event)
        if isinstance(event, SubmitCustomAnswer):
            return self._on_custom_answer(event)
        raise TypeError(f"Unsupported event: {event!r}")

    # -------------------------------------------------------------------------
    # Caller events
    # -------------------------------------------------------------------------

    def _on_start(self) -> StepResult:
        self._require(FlowState.START, "Start")
        self._key_pair = self._key_pair_factory()

        params = {PARAM_USERNAME: self.username, PARAM_SRP_A: self._key_pair.public_hex}
        self._add_client_parameters(params)
        auth_flow = AuthFlow.USER_SRP_AUTH
        if self.custom_auth:
            auth_flow = AuthFlow.CUSTOM_AUTH
            params[PARAM_CHALLENGE_NAME] = PARAM_SRP_A

        request = InitiateAuthRequest(
            auth_flow=auth_flow,
            client_id=self.context.client_id,
            auth_parameters=params,
            client_metadata=self.client_metadata,
        )
        self._log.info("flow_started", auth_flow=auth_flow.value)
        self._transition(FlowState.AWAITING_SRP_CHALLENGE)
        return self._result(request=request)

    def _on_mfa_code(self, event: SubmitMfaCode) -> StepResult:
        self._require(FlowState.AWAITING_MFA_CODE, "SubmitMfaCode")
        if not isinstance(self.challenge, MfaChallenge):
            raise ProtocolViolation("No MFA challenge is pending")

        responses = {self.challenge.code_parameter: event.code, PARAM_USERNAME: self.username}
        self._add_client_parameters(responses)
        return self._respond(self.challenge.name, responses, FlowState.AWAITING_NEXT_CHALLENGE)

    def _on_new_password(self, event: SubmitNewPassword) -> StepResult:
        self._require(FlowState.AWAITING_NEW_PASSWORD, "SubmitNewPassword")

        responses = {PARAM_NEW_PASSWORD: event.password, PARAM_USERNAME: self.username}
        for name, value in event.attributes.items():
            responses[f"{USER_ATTRIBUTE_PREFIX}{name}"] = value
        self._add_client_parameters(responses)
        return self._respond(
            ChallengeName.NEW_PASSWORD_REQUIRED, responses, FlowState.AWAITING_NEXT_CHALLENGE
        )

    def _on_custom_answer(self, event: SubmitCustomAnswer) -> StepResult:
        self._require(FlowState.CUSTOM_CHALLENGE, "SubmitCustomAnswer")
        if not isinstance(self.challenge, CustomChallenge):
            raise ProtocolViolation("No custom challenge is pending")

        responses = dict(event.answers)
        responses.setdefault(PARAM_USERNAME, self.username)
        self._add_client_parameters(responses)
        return self._respond(self.challenge.name, responses, FlowState.AWAITING_NEXT_CHALLENGE)

    # -------------------------------------------------------------------------
    # Service events
    # -------------------------------------------------------------------------

    def _on_service_response(self, event: ServiceResponse) -> StepResult:
        if self.state not in _WAITING_ON_SERVICE:
            raise ProtocolViolation(f"Unexpected service response in state {self.state.name}")
        self._log.debug(
            "challenge_received",
            challenge=event.challenge_name,
            has_tokens=event.authentication_result is not None,
            state=self.state.name,
        )

        if self.state == FlowState.AWAITING_SRP_CHALLENGE:
            return self._on_password_verifier(event)
        if self.state == FlowState.AWAITING_DEVICE_CHALLENGE:
            return self._on_device_password_verifier(event)
        if self.state == FlowState.AWAITING_DEVICE_VERIFIER:
            if event.challenge_name is None:
                return self._authenticate(event)
            raise ProtocolViolation(
                f"Expected tokens after device claim, got {event.challenge_name}"
            )
        return self._on_next_challenge(event)

    def _on_password_verifier(self, event: ServiceResponse) -> StepResult:
        if event.challenge_name != ChallengeName.PASSWORD_VERIFIER:
            got = event.challenge_name or "tokens"
            raise ProtocolViolation(f"Expected PASSWORD_VERIFIER, got {got}")
        if self._key_pair is None:
            raise ProtocolViolation("PASSWORD_VERIFIER received before SRP_A was sent")

        challenge = SrpChallenge.from_parameters(ChallengeName.PASSWORD_VERIFIER, event.parameters)
        timestamp = format_timestamp(self._clock())
        claim = compute_password_claim(
            challenge.user_id_for_srp or challenge.username or self.username,
            self._password,
            self.context.pool_name,
            self._key_pair,
            challenge.salt,
            challenge.srp_b,
            challenge.secret_block,
            timestamp,
        )
        self._accept(event)

        responses = {
            PARAM_PASSWORD_CLAIM_SECRET_BLOCK: challenge.secret_block,
            PARAM_PASSWORD_CLAIM_SIGNATURE: base64.b64encode(claim).decode("ascii"),
            PARAM_USERNAME: self.username,
            PARAM_TIMESTAMP: timestamp,
        }
        self._add_client_parameters(responses)
        return self._respond(
            ChallengeName.PASSWORD_VERIFIER, responses, FlowState.AWAITING_NEXT_CHALLENGE
        )

    def _on_next_challenge(self, event: ServiceResponse) -> StepResult:
        name = event.challenge_name
        if name is None:
            if event.authentication_result:
                return self._authenticate(event)
            raise ProtocolViolation("Service response carried neither a challenge nor tokens")

        kind = _known_challenge(name)
        if kind in (ChallengeName.PASSWORD_VERIFIER, ChallengeName.DEVICE_PASSWORD_VERIFIER):
            raise ProtocolViolation(f"Unexpected {name} challenge in state {self.state.name}")

        challenge: Challenge
        if kind in MFA_CHALLENGES:
            challenge = MfaChallenge(
                name=kind,
                delivery_medium=event.parameters.get(PARAM_CODE_DELIVERY_MEDIUM),
                destination=event.parameters.get(PARAM_CODE_DELIVERY_DESTINATION),
            )
            next_state = FlowState.AWAITING_MFA_CODE
        elif kind == ChallengeName.NEW_PASSWORD_REQUIRED:
            challenge = NewPasswordChallenge.from_parameters(event.parameters)
            next_state = FlowState.AWAITING_NEW_PASSWORD
        elif kind == ChallengeName.DEVICE_SRP_AUTH:
            return self._start_device_auth(event)
        else:
            challenge = CustomChallenge(name=name, parameters=dict(event.parameters))
            next_state = FlowState.CUSTOM_CHALLENGE

        self._accept(event)
        self.challenge = challenge
        self._transition(next_state)
        return self._result(challenge=self.challenge)

    def _start_device_auth(self, event: ServiceResponse) -> StepResult:
        if self.device is None:
            raise ProtocolViolation(
                "Service requested DEVICE_SRP_AUTH but no remembered device is configured"
            )
        self._accept(event)
        self._device_key_pair = self._key_pair_factory()

        responses = {
            PARAM_USERNAME: self.username,
            PARAM_DEVICE_KEY: self.device.device_key,
            PARAM_SRP_A: self._device_key_pair.public_hex,
        }
        self._add_client_parameters(responses)
        return self._respond(
            ChallengeName.DEVICE_SRP_AUTH, responses, FlowState.AWAITING_DEVICE_CHALLENGE
        )

    def _on_device_password_verifier(self, event: ServiceResponse) -> StepResult:
        if event.challenge_name != ChallengeName.DEVICE_PASSWORD_VERIFIER:
            got = event.challenge_name or "tokens"
            raise ProtocolViolation(f"Expected DEVICE_PASSWORD_VERIFIER, got {got}")
        if self.device is None or self._device_key_pair is None:
            raise ProtocolViolation("DEVICE_PASSWORD_VERIFIER received before device SRP_A")

        challenge = SrpChallenge.from_parameters(
            ChallengeName.DEVICE_PASSWORD_VERIFIER, event.parameters
        )
        timestamp = format_timestamp(self._clock())
        claim = compute_device_claim(
            self.device.device_key,
            self.device.device_group_key,
            self.device.device_password,
            self._device_key_pair,
            challenge.salt,
            challenge.srp_b,
            challenge.secret_block,
            timestamp,
        )
        self._accept(event)

        responses = {
            PARAM_USERNAME: self.username,
            PARAM_PASSWORD_CLAIM_SECRET_BLOCK: challenge.secret_block,
            PARAM_TIMESTAMP: timestamp,
            PARAM_PASSWORD_CLAIM_SIGNATURE: base64.b64encode(claim).decode("ascii"),
        }
        self._add_client_parameters(responses)
        return self._respond(
            ChallengeName.DEVICE_PASSWORD_VERIFIER, responses, FlowState.AWAITING_DEVICE_VERIFIER
        )

    def _authenticate(self, event: ServiceResponse) -> StepResult:
        result = event.authentication_result or {}
        self.tokens = SessionTokens.from_authentication_result(result, issued_at=self._clock())
        self._accept(event)
        self.new_device_metadata = result.get("NewDeviceMetadata")
        self.challenge = None
        self._transition(FlowState.AUTHENTICATED)
        self._log.info(
            "authenticated",
            expires_in=self.tokens.expires_in,
            new_device=self.new_device_metadata is not None,
        )
        return self._result(tokens=self.tokens)

    def _on_service_error(self, event: ServiceError) -> StepResult:
        if self.state not in _WAITING_ON_SERVICE:
            raise ProtocolViolation(f"Unexpected service error in state {self.state.name}")

        answered = _known_challenge(self._answered) if self._answered else None
        if answered in MFA_CHALLENGES and event.code == ERROR_CODE_MISMATCH:
            self.mfa_attempts += 1
            remaining = self.config.mfa_max_attempts - self.mfa_attempts
            self._log.info("mfa_code_rejected", attempts=self.mfa_attempts, remaining=remaining)
            if remaining > 0:
                self._transition(FlowState.AWAITING_MFA_CODE)
                raise CodeMismatch(event.code, event.message, retryable=True)
            raise CodeMismatch(event.code, event.message)

        if answered == ChallengeName.NEW_PASSWORD_REQUIRED and event.code == ERROR_INVALID_PASSWORD:
            self._transition(FlowState.AWAITING_NEW_PASSWORD)
            raise ServiceRejected(event.code, event.message, retryable=True)

        claims = (ChallengeName.PASSWORD_VERIFIER, ChallengeName.DEVICE_PASSWORD_VERIFIER)
        if answered in claims and event.code == ERROR_NOT_AUTHORIZED:
            raise ChallengeMismatch(event.code, event.message)

        raise ServiceRejected(event.code, event.message)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _accept(self, event: ServiceResponse) -> None:
        """Take session and canonical USERNAME from a response that passed validation."""
        if event.session is not None:
            self.session = event.session
        if event.parameters.get(PARAM_USERNAME):
            self.username = event.parameters[PARAM_USERNAME]

    def _new_key_pair(self) -> EphemeralKeyPair:
        return create_ephemeral_key_pair(max_attempts=self.config.keygen_max_attempts)

    def _add_client_parameters(self, params: dict[str, str]) -> None:
        """Add SECRET_HASH and DEVICE_KEY where the client/device call for them."""
        secret_hash = self.context.secret_hash(self.username)
        if secret_hash is not None:
            params[PARAM_SECRET_HASH] = secret_hash
        if self.device is not None:
            params[PARAM_DEVICE_KEY] = self.device.device_key

    def _respond(
        self,
        challenge_name: str,
        responses: dict[str, str],
        next_state: FlowState,
    ) -> StepResult:
        request = RespondToAuthChallengeRequest(
            challenge_name=str(getattr(challenge_name, "value", challenge_name)),
            client_id=self.context.client_id,
            challenge_responses=responses,
            session=self.session,
            client_metadata=self.client_metadata,
        )
        self._answered = request.challenge_name
        self._transition(next_state)
        return self._result(request=request)

    def _require(self, expected: FlowState, event_name: str) -> None:
        if self.state != expected:
            raise ProtocolViolation(f"{event_name} is not allowed in state {self.state.name}")

    def _transition(self, new_state: FlowState) -> None:
        if new_state != self.state:
            self._log.debug("state_changed", from_state=self.state.name, to_state=new_state.name)
        self.state = new_state

    def _fail(self, reason: str) -> None:
        if self.state in TERMINAL_STATES:
            return
        self._log.warning("flow_failed", state=self.state.name, reason=reason)
        self.state = FlowState.FAILED

    def _result(self, **kwargs: Any) -> StepResult:
        return StepResult(state=self.state, **kwargs)
