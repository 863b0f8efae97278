"""
Authenticated Secrets Session

A SecretsSession is what credential acquisition hands back to the caller. It
combines a gateway with the name validator and the sealed-box encryptor, so
every secret value that reaches the gateway has been validated by name and
sealed for the repository's current public key.
"""
from collections.abc import Iterable, Mapping

from loguru import logger

from .errors import GhSecretsError, InvalidSecretName
from .names import is_valid_name, partition
from .protocol import (
    Organization,
    Repository,
    SecretMetadata,
    SecretsGateway,
    UploadReport,
    UserIdentity,
)
from .sealed import SealedSecretEncryptor


class SecretsSession:
    """
    Secret management operations for one authenticated user.

    Attributes:
        identity: The user the credentials belong to.
    """

    def __init__(
        self,
        gateway: SecretsGateway,
        identity: UserIdentity,
        encryptor: SealedSecretEncryptor | None = None,
    ):
        self.gateway = gateway
        self.identity = identity
        self._encryptor = encryptor or SealedSecretEncryptor()

    async def __aenter__(self) -> "SecretsSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.gateway.close()

    async def list_repositories(self, org: str | None = None) -> list[Repository]:
        if org:
            return await self.gateway.list_org_repositories(org)
        return await self.gateway.list_user_repositories()

    async def list_organizations(self) -> list[Organization]:
        return await self.gateway.list_organizations()

    async def list_secrets(self, owner: str, repo: str) -> list[SecretMetadata]:
        return await self.gateway.list_repo_secrets(owner, repo)

    async def delete_secret(self, owner: str, repo: str, name: str) -> None:
        await self.gateway.delete_secret(owner, repo, name)

    async def set_secret(self, owner: str, repo: str, name: str, value: str) -> None:
        """
        Create or update one secret.

        The repository key is fetched right before sealing. If sealing fails
        nothing is uploaded.

        Raises:
            InvalidSecretName: If the name is not allowed.
            EncodingError: If the repository key cannot be decoded.
            ApiError, TransportError: If a REST call fails.
        """
        if not is_valid_name(name):
            raise InvalidSecretName(name)
        public_key = await self.gateway.get_repo_public_key(owner, repo)
        ciphertext = await self._encryptor.seal(value, public_key)
        await self.gateway.put_secret(owner, repo, name, ciphertext, public_key.key_id)

    async def upload_secrets(
        self,
        owner: str,
        repo: str,
        secrets: Mapping[str, str] | Iterable[tuple[str, str]],
    ) -> UploadReport:
        """
        Upload many secrets, one at a time.

        Invalid names are reported as skipped rather than dropped. A failure
        on one secret is recorded and the batch carries on.
        """
        valid, invalid = partition(secrets)
        report = UploadReport(skipped=invalid)
        for name in invalid:
            logger.warning(f"Skipping invalid secret name: {name}")

        for name, value in valid.items():
            try:
                await self.set_secret(owner, repo, name, value)
            except GhSecretsError as exc:
                logger.error(f"Failed to upload {name}: {exc}")
                report.failed.append((name, str(exc)))
            else:
                report.uploaded.append(name)

        logger.info(
            f"Upload to {owner}/{repo}: {len(report.uploaded)} stored, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped"
        )
        return report
