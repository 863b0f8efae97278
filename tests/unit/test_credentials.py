from unittest.mock import AsyncMock, MagicMock

import pytest

from gh_secrets.config import Settings
from gh_secrets.credentials import CredentialAcquisition
from gh_secrets.errors import (
    AuthError,
    AuthenticationFailed,
    DeviceCodeExpired,
    EncodingError,
    TransportError,
    UserDeniedAuthorization,
)
from gh_secrets.protocol import AccessToken, DeviceAuthorization
from gh_secrets.providers.github import GitHubSecretsGateway

AUTHORIZATION = DeviceAuthorization(
    device_code="dev-code",
    user_code="ABCD-1234",
    verification_uri="https://github.com/login/device",
    expires_in=900,
    interval=5,
)


@pytest.fixture
def settings():
    return Settings(client_id="configured-client", scopes=["repo"])


@pytest.fixture
def gateway_factory(fake_gateway):
    return MagicMock(return_value=fake_gateway)


@pytest.fixture
def flow():
    flow = MagicMock()
    flow.request_device_code = AsyncMock(return_value=AUTHORIZATION)
    flow.poll_for_token = AsyncMock(return_value=AccessToken(value="gho_issued", scope=frozenset({"repo"})))
    return flow


@pytest.fixture
def acquisition(settings, gateway_factory, flow):
    return CredentialAcquisition(
        settings,
        gateway_factory=gateway_factory,
        device_flow_factory=MagicMock(return_value=flow),
    )


class TestWithToken:
    @pytest.mark.asyncio
    async def test_success(self, acquisition, gateway_factory, fake_gateway, settings):
        session = await acquisition.with_token("ghp_static")

        assert session.identity.login == "octocat"
        assert session.gateway is fake_gateway
        gateway_factory.assert_called_once_with("ghp_static", settings)
        fake_gateway.get_identity.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rejected_token(self, acquisition, fake_gateway):
        fake_gateway.get_identity.side_effect = AuthError(401, "Bad credentials")

        with pytest.raises(AuthenticationFailed) as exc_info:
            await acquisition.with_token("ghp_revoked")

        assert isinstance(exc_info.value.__cause__, AuthError)
        assert exc_info.value.cause is exc_info.value.__cause__
        assert "ghp_revoked" not in str(exc_info.value)
        fake_gateway.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_network_failure(self, acquisition, fake_gateway):
        fake_gateway.get_identity.side_effect = TransportError("GET /user failed")

        with pytest.raises(AuthenticationFailed) as exc_info:
            await acquisition.with_token("ghp_static")
        assert isinstance(exc_info.value.__cause__, TransportError)

    @pytest.mark.asyncio
    async def test_malformed_identity_response(self, settings, http_session, json_response, as_context):
        http_session.request.return_value = as_context(json_response({"message": "unexpected"}))
        gateway = GitHubSecretsGateway("ghp_static", session=http_session)
        acquisition = CredentialAcquisition(settings, gateway_factory=lambda token, s: gateway)

        with pytest.raises(AuthenticationFailed) as exc_info:
            await acquisition.with_token("ghp_static")
        assert isinstance(exc_info.value.__cause__, TransportError)

    @pytest.mark.asyncio
    async def test_any_library_error_closes_gateway(self, acquisition, fake_gateway):
        fake_gateway.get_identity.side_effect = EncodingError("bad body")

        with pytest.raises(AuthenticationFailed):
            await acquisition.with_token("ghp_static")
        fake_gateway.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_token(self, acquisition, gateway_factory):
        with pytest.raises(AuthenticationFailed):
            await acquisition.with_token("")
        gateway_factory.assert_not_called()


class TestWithDeviceFlow:
    @pytest.mark.asyncio
    async def test_success(self, acquisition, flow, gateway_factory, settings):
        shown = []

        session = await acquisition.with_device_flow(on_code=shown.append)

        assert shown == [AUTHORIZATION]
        flow.poll_for_token.assert_awaited_once_with("dev-code", 5, 900)
        gateway_factory.assert_called_once_with("gho_issued", settings)
        assert session.identity.login == "octocat"

    @pytest.mark.asyncio
    async def test_async_callback(self, acquisition):
        on_code = AsyncMock()
        await acquisition.with_device_flow(on_code=on_code)
        on_code.assert_awaited_once_with(AUTHORIZATION)

    @pytest.mark.asyncio
    async def test_uses_configured_client_and_scopes(self, settings, gateway_factory, flow):
        factory = MagicMock(return_value=flow)
        acquisition = CredentialAcquisition(settings, gateway_factory=gateway_factory, device_flow_factory=factory)

        await acquisition.with_device_flow()
        factory.assert_called_once_with("configured-client", ["repo"], settings)

        factory.reset_mock()
        await acquisition.with_device_flow(client_id="own-app", scopes=["repo", "admin:org"])
        factory.assert_called_once_with("own-app", ["repo", "admin:org"], settings)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [DeviceCodeExpired(), UserDeniedAuthorization(), TransportError("down")])
    async def test_flow_errors_are_wrapped(self, acquisition, flow, gateway_factory, error):
        flow.poll_for_token.side_effect = error

        with pytest.raises(AuthenticationFailed) as exc_info:
            await acquisition.with_device_flow()

        assert exc_info.value.__cause__ is error
        assert type(error).__name__ in str(exc_info.value)
        gateway_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_client_id(self, gateway_factory):
        acquisition = CredentialAcquisition(Settings(client_id=""), gateway_factory=gateway_factory)
        with pytest.raises(AuthenticationFailed):
            await acquisition.with_device_flow()
