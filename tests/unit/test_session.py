"""Tests for gh_secrets.session: validation, sealing and batch upload."""

import base64
from unittest.mock import AsyncMock

import pytest
from nacl.public import SealedBox

from gh_secrets.errors import ApiError, EncodingError, InvalidSecretName, TransportError
from gh_secrets.protocol import PublicKeyMaterial, SealedCiphertext, UserIdentity
from gh_secrets.session import SecretsSession


@pytest.fixture
def session(fake_gateway):
    return SecretsSession(fake_gateway, UserIdentity(login="octocat", id=1))


class TestSetSecret:
    @pytest.mark.asyncio
    async def test_uploads_sealed_value(self, session, fake_gateway, keypair):
        private_key, _ = keypair

        await session.set_secret("octocat", "hello", "API_KEY", "s3cret!")

        fake_gateway.get_repo_public_key.assert_awaited_once_with("octocat", "hello")
        args = fake_gateway.put_secret.await_args.args
        owner, repo, name, ciphertext, key_id = args
        assert (owner, repo, name, key_id) == ("octocat", "hello", "API_KEY", "key-123")
        assert isinstance(ciphertext, SealedCiphertext)
        assert SealedBox(private_key).decrypt(base64.b64decode(ciphertext.value)) == b"s3cret!"

    @pytest.mark.asyncio
    async def test_plaintext_never_reaches_gateway(self, session, fake_gateway):
        await session.set_secret("octocat", "hello", "API_KEY", "plaintext-password")
        for value in fake_gateway.put_secret.await_args.args:
            assert "plaintext-password" not in str(value)

    @pytest.mark.asyncio
    async def test_invalid_name_is_rejected_before_network(self, session, fake_gateway):
        with pytest.raises(InvalidSecretName):
            await session.set_secret("octocat", "hello", "GITHUB_TOKEN", "x")
        fake_gateway.get_repo_public_key.assert_not_awaited()
        fake_gateway.put_secret.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_key_aborts_upload(self, session, fake_gateway):
        fake_gateway.get_repo_public_key.return_value = PublicKeyMaterial(key_id="k", key="@@not-base64@@")

        with pytest.raises(EncodingError):
            await session.set_secret("octocat", "hello", "API_KEY", "value")
        fake_gateway.put_secret.assert_not_awaited()


class TestUploadSecrets:
    @pytest.mark.asyncio
    async def test_report(self, session, fake_gateway):
        async def put_secret(owner, repo, name, ciphertext, key_id):
            if name == "BROKEN":
                raise ApiError(422, "Unprocessable Entity")

        fake_gateway.put_secret = AsyncMock(side_effect=put_secret)

        report = await session.upload_secrets("octocat", "hello", {
            "GOOD": "1",
            "GITHUB_BAD": "2",
            "BROKEN": "3",
            "1BAD": "4",
            "ALSO_GOOD": "5",
        })

        assert report.uploaded == ["GOOD", "ALSO_GOOD"]
        assert report.skipped == ["GITHUB_BAD", "1BAD"]
        assert report.failed == [("BROKEN", "GitHub API error 422: Unprocessable Entity")]

    @pytest.mark.asyncio
    async def test_failure_messages_do_not_leak_values(self, session, fake_gateway):
        fake_gateway.get_repo_public_key = AsyncMock(side_effect=TransportError("GET public-key failed"))

        report = await session.upload_secrets("octocat", "hello", {"API_KEY": "topsecretvalue"})

        assert report.uploaded == []
        assert len(report.failed) == 1
        assert "topsecretvalue" not in report.failed[0][1]

    @pytest.mark.asyncio
    async def test_only_invalid_names(self, session, fake_gateway):
        report = await session.upload_secrets("octocat", "hello", {"GITHUB_X": "1"})
        assert report.skipped == ["GITHUB_X"]
        fake_gateway.get_repo_public_key.assert_not_awaited()


class TestPassthroughs:
    @pytest.mark.asyncio
    async def test_list_repositories_user_and_org(self, session, fake_gateway):
        await session.list_repositories()
        fake_gateway.list_user_repositories.assert_awaited_once()

        await session.list_repositories(org="acme")
        fake_gateway.list_org_repositories.assert_awaited_once_with("acme")

    @pytest.mark.asyncio
    async def test_context_manager_closes_gateway(self, fake_gateway):
        async with SecretsSession(fake_gateway, UserIdentity(login="octocat", id=1)):
            pass
        fake_gateway.close.assert_awaited_once()
