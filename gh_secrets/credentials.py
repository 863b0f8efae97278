# gh_secrets/credentials.py
"""
Credential Acquisition

Turns either a static token or an OAuth device flow into an authenticated
SecretsSession. This is the entry point the command line calls. Every
failure on the way is surfaced as AuthenticationFailed with the original
error chained; retrying or re-prompting is left to the caller.
"""
import inspect
from collections.abc import Callable

from loguru import logger

from .config import Settings
from .device_flow import DeviceFlowClient
from .errors import AuthenticationFailed, DeviceFlowError, GhSecretsError, TransportError
from .protocol import DeviceAuthorization, SecretsGateway
from .providers.github import GitHubSecretsGateway
from .session import SecretsSession

GatewayFactory = Callable[[str, Settings], SecretsGateway]
DeviceFlowFactory = Callable[[str, list[str], Settings], DeviceFlowClient]


def default_gateway_factory(token: str, settings: Settings) -> SecretsGateway:
    return GitHubSecretsGateway(
        token,
        api_url=settings.api_url,
        api_version=settings.api_version,
        timeout=settings.request_timeout,
    )


def default_device_flow_factory(
    client_id: str, scopes: list[str], settings: Settings
) -> DeviceFlowClient:
    return DeviceFlowClient(
        client_id,
        scopes,
        timeout=settings.request_timeout,
        device_code_url=settings.device_code_url,
        token_url=settings.token_url,
    )


class CredentialAcquisition:
    """
    Produces authenticated sessions.

    Args:
        settings: Client ID, scopes, endpoints and timeouts.
        gateway_factory: Builds a gateway for a token.
        device_flow_factory: Builds a device flow client for a client ID and scopes.
    """

    def __init__(
        self,
        settings: Settings,
        gateway_factory: GatewayFactory = default_gateway_factory,
        device_flow_factory: DeviceFlowFactory = default_device_flow_factory,
    ):
        self.settings = settings
        self._gateway_factory = gateway_factory
        self._device_flow_factory = device_flow_factory

    async def with_token(self, token: str) -> SecretsSession:
        """
        Validate a pre-obtained token with an identity lookup.

        Raises:
            AuthenticationFailed: If the token is empty or rejected, or the
                lookup fails.
        """
        if not token:
            raise AuthenticationFailed("No token provided")

        gateway = self._gateway_factory(token, self.settings)
        try:
            identity = await gateway.get_identity()
        except GhSecretsError as exc:
            await gateway.close()
            raise AuthenticationFailed("Authentication failed", exc) from exc

        logger.info(f"Authenticated as {identity.login}")
        return SecretsSession(gateway, identity)

    async def with_device_flow(
        self,
        on_code: Callable[[DeviceAuthorization], object] | None = None,
        client_id: str | None = None,
        scopes: list[str] | None = None,
    ) -> SecretsSession:
        """
        Authorize through the OAuth device flow.

        Args:
            on_code: Called with the DeviceAuthorization once codes are issued,
                so the user code can be shown. May be a coroutine function.
            client_id: Overrides the configured OAuth app client ID.
            scopes: Overrides the configured scopes.

        Raises:
            AuthenticationFailed: Wrapping the terminal device flow error,
                a transport failure, or a rejected token.
        """
        client_id = client_id or self.settings.client_id
        if not client_id:
            raise AuthenticationFailed("No OAuth client ID configured")
        scopes = list(scopes) if scopes is not None else list(self.settings.scopes)

        flow = self._device_flow_factory(client_id, scopes, self.settings)
        try:
            authorization = await flow.request_device_code()
            if on_code is not None:
                result = on_code(authorization)
                if inspect.isawaitable(result):
                    await result
            token = await flow.poll_for_token(
                authorization.device_code,
                authorization.interval,
                authorization.expires_in,
            )
        except (DeviceFlowError, TransportError) as exc:
            raise AuthenticationFailed("OAuth authentication failed", exc) from exc

        return await self.with_token(token.value)
