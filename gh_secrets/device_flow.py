# gh_secrets/device_flow.py
"""
OAuth 2.0 Device Authorization Grant client

This module implements the client side of RFC 8628 against GitHub's OAuth
endpoints. The user is shown a short code to enter in a browser while this
client polls the token endpoint, honouring the server-provided interval and
``slow_down`` backoff, until the attempt reaches a terminal state.

The wait between polls goes through an injectable ``sleep`` coroutine and the
optional deadline through an injectable ``clock``, so the state machine can be
driven in tests without real waiting. Cancelling the polling task takes
effect at the next wait.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum

import aiohttp
from loguru import logger

from .errors import (
    DeviceCodeExpired,
    ProviderError,
    TransportError,
    UserDeniedAuthorization,
)
from .protocol import AccessToken, DeviceAuthorization, PollOutcome, PollStatus

DEVICE_CODE_URL = "https://github.com/login/device/code"
TOKEN_URL = "https://github.com/login/oauth/access_token"
DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

# Added to the interval on every slow_down response (RFC 8628 section 3.5)
SLOW_DOWN_INCREMENT = 5
DEFAULT_TIMEOUT = 30.0

_JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}

_KNOWN_ERRORS = {
    PollStatus.EXPIRED.value: PollStatus.EXPIRED,
    PollStatus.DENIED.value: PollStatus.DENIED,
    PollStatus.PENDING.value: PollStatus.PENDING,
    PollStatus.SLOW_DOWN.value: PollStatus.SLOW_DOWN,
}


class FlowState(Enum):
    NOT_STARTED = "not_started"
    CODE_REQUESTED = "code_requested"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    EXPIRED = "expired"
    DENIED = "denied"
    FAILED = "failed"


def classify_token_response(payload: dict) -> PollOutcome:
    """
    Turn a token endpoint response into a PollOutcome.

    The error field wins over a token. A response with neither is treated as
    pending rather than failing the attempt. This tolerates provider quirks,
    at the cost of a malformed response only surfacing once the device code
    expires.
    """
    if not isinstance(payload, dict):
        return PollOutcome(PollStatus.PENDING)

    error = payload.get("error")
    if error:
        status = _KNOWN_ERRORS.get(error, PollStatus.OTHER_ERROR)
        return PollOutcome(status, error=error)

    value = payload.get("access_token")
    if value:
        token = AccessToken(
            value=value,
            scope=AccessToken.parse_scope(payload.get("scope")),
            token_type=payload.get("token_type") or "bearer",
        )
        return PollOutcome(PollStatus.ACCESS_TOKEN, token=token)

    return PollOutcome(PollStatus.PENDING)


class DeviceFlowClient:
    """
    Drives one device authorization attempt.

    Instances hold the state of a single attempt; create a new one to
    restart the flow.
    """

    def __init__(
        self,
        client_id: str,
        scopes: list[str],
        session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        timeout: float = DEFAULT_TIMEOUT,
        device_code_url: str = DEVICE_CODE_URL,
        token_url: str = TOKEN_URL,
    ):
        """
        Args:
            client_id: OAuth app client ID.
            scopes: Scopes to request; sent space-separated.
            session: Shared aiohttp session. A short-lived one is opened per
                request when omitted.
            sleep: Coroutine used to wait between polls.
            clock: Monotonic clock used for the expiry deadline.
            timeout: Per-request timeout in seconds.
        """
        self.client_id = client_id
        self.scopes = list(scopes)
        self.state = FlowState.NOT_STARTED
        self._session = session
        self._sleep = sleep
        self._clock = clock
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._device_code_url = device_code_url
        self._token_url = token_url

    async def _post_json(self, url: str, body: dict) -> dict:
        try:
            if self._session is not None:
                return await self._send(self._session, url, body)
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                return await self._send(session, url, body)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

    async def _send(self, session: aiohttp.ClientSession, url: str, body: dict) -> dict:
        async with session.post(
            url, json=body, headers=_JSON_HEADERS, timeout=self._timeout
        ) as resp:
            resp.raise_for_status()
            # GitHub may label JSON as text/plain; skip the content type check
            return await resp.json(content_type=None)

    async def request_device_code(self) -> DeviceAuthorization:
        """
        Ask the provider for a device code and user code.

        Returns:
            DeviceAuthorization: Codes and polling parameters for this attempt.

        Raises:
            TransportError: On network or HTTP failure. The attempt stays
                unstarted and may be retried.
        """
        payload = await self._post_json(
            self._device_code_url,
            {"client_id": self.client_id, "scope": " ".join(self.scopes)},
        )
        if isinstance(payload, dict) and payload.get("error"):
            raise ProviderError(payload["error"])
        authorization = DeviceAuthorization.from_payload(payload)
        self.state = FlowState.CODE_REQUESTED
        logger.info(
            f"Device code issued, expires in {authorization.expires_in}s, "
            f"poll interval {authorization.interval}s"
        )
        return authorization

    async def poll_for_token(
        self,
        device_code: str,
        interval: float,
        expires_in: float | None = None,
    ) -> AccessToken:
        """
        Poll the token endpoint until the attempt ends.

        Args:
            device_code: Code from request_device_code().
            interval: Seconds to wait between polls, as issued by the provider.
            expires_in: Optional lifetime of the device code. When it has
                elapsed no further request is sent.

        Returns:
            AccessToken: The issued token.

        Raises:
            DeviceCodeExpired: The code expired before approval.
            UserDeniedAuthorization: The user declined.
            ProviderError: Any other error code from the provider.
            TransportError: A request failed. Not retried.
        """
        self.state = FlowState.POLLING
        deadline = self._clock() + expires_in if expires_in is not None else None
        body = {
            "client_id": self.client_id,
            "device_code": device_code,
            "grant_type": DEVICE_GRANT_TYPE,
        }

        while True:
            if deadline is not None and self._clock() >= deadline:
                self.state = FlowState.EXPIRED
                raise DeviceCodeExpired()

            try:
                payload = await self._post_json(self._token_url, body)
            except TransportError:
                self.state = FlowState.FAILED
                raise

            outcome = classify_token_response(payload)

            if outcome.status is PollStatus.ACCESS_TOKEN:
                self.state = FlowState.SUCCEEDED
                logger.info(f"Authorization granted with scopes: {sorted(outcome.token.scope)}")
                return outcome.token
            if outcome.status is PollStatus.EXPIRED:
                self.state = FlowState.EXPIRED
                raise DeviceCodeExpired()
            if outcome.status is PollStatus.DENIED:
                self.state = FlowState.DENIED
                raise UserDeniedAuthorization()
            if outcome.status is PollStatus.OTHER_ERROR:
                self.state = FlowState.FAILED
                raise ProviderError(outcome.error)

            if outcome.status is PollStatus.SLOW_DOWN:
                interval += SLOW_DOWN_INCREMENT
                logger.debug(f"Provider asked to slow down, interval now {interval}s")
            elif outcome.error is None:
                logger.debug("Token response had neither error nor token, still waiting")

            await self._sleep(interval)

    async def authenticate(self) -> str:
        """
        Run the whole flow and return the bare access token string.

        Use request_device_code() and poll_for_token() separately when the
        user code has to be shown to someone.
        """
        authorization = await self.request_device_code()
        token = await self.poll_for_token(
            authorization.device_code,
            authorization.interval,
            authorization.expires_in,
        )
        return token.value
