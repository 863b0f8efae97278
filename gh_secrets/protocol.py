# gh_secrets/protocol.py
"""
Protocol Definitions

This module defines the dataclasses exchanged between the device flow client,
the encryption pipeline and the secrets gateway, together with the abstract
gateway interface that concrete REST clients implement.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from .errors import ProviderError


@dataclass(frozen=True)
class DeviceAuthorization:
    """
    Device and user codes issued by the authorization server.

    Attributes:
        device_code: Opaque code the client polls with. Never shown to the user.
        user_code: Short code the user types at the verification URI.
        verification_uri: Page where the user enters the code.
        expires_in: Lifetime of the codes in seconds from issuance.
        interval: Minimum number of seconds between polls.
    """

    device_code: str = field(repr=False)
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int

    @classmethod
    def from_payload(cls, payload: dict) -> "DeviceAuthorization":
        """Build from the device code endpoint's JSON body."""
        try:
            return cls(
                device_code=payload["device_code"],
                user_code=payload["user_code"],
                verification_uri=payload["verification_uri"],
                expires_in=int(payload["expires_in"]),
                interval=int(payload["interval"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError("invalid_response") from exc


@dataclass(frozen=True)
class AccessToken:
    """
    An OAuth access token.

    The token value is excluded from ``repr`` so it cannot leak into logs
    or tracebacks by accident.
    """

    value: str = field(repr=False)
    scope: frozenset[str] = frozenset()
    token_type: str = "bearer"

    @staticmethod
    def parse_scope(raw: str | None) -> frozenset[str]:
        # GitHub separates scopes with commas, RFC 6749 with spaces
        if not raw:
            return frozenset()
        return frozenset(s for s in re.split(r"[,\s]+", raw) if s)


class PollStatus(Enum):
    PENDING = "authorization_pending"
    SLOW_DOWN = "slow_down"
    ACCESS_TOKEN = "access_token"
    EXPIRED = "expired_token"
    DENIED = "access_denied"
    OTHER_ERROR = "other_error"


@dataclass(frozen=True)
class PollOutcome:
    """Classification of a single token endpoint response."""

    status: PollStatus
    token: AccessToken | None = None
    error: str | None = None


@dataclass(frozen=True)
class PublicKeyMaterial:
    """A repository's sealed-box public key."""

    key_id: str
    key: str


@dataclass(frozen=True)
class SealedCiphertext:
    """Base64 sealed-box output. The only secret payload a gateway will accept."""

    value: str


@dataclass
class UserIdentity:
    login: str
    id: int
    name: str | None = None


@dataclass
class Repository:
    name: str
    full_name: str
    owner: str
    private: bool = False


@dataclass
class Organization:
    login: str
    id: int
    description: str | None = None


@dataclass
class SecretMetadata:
    name: str
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class UploadReport:
    """
    Result of a batch upload.

    Attributes:
        uploaded: Names stored successfully, in upload order.
        failed: (name, error message) pairs for secrets that could not be stored.
        skipped: Names rejected by the validator, in input order.
    """

    uploaded: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class SecretsGateway(ABC):
    """
    Abstract interface over the GitHub Actions secrets REST API.

    Implementations only ever receive sealed ciphertext for upload.
    """

    @abstractmethod
    async def get_identity(self) -> UserIdentity:
        """
        Look up the user the token belongs to.

        Raises:
            AuthError: If the token is rejected.
        """
        ...

    @abstractmethod
    async def list_user_repositories(self) -> list[Repository]:
        ...

    @abstractmethod
    async def list_organizations(self) -> list[Organization]:
        ...

    @abstractmethod
    async def list_org_repositories(self, org: str) -> list[Repository]:
        ...

    @abstractmethod
    async def list_repo_secrets(self, owner: str, repo: str) -> list[SecretMetadata]:
        ...

    @abstractmethod
    async def get_repo_public_key(self, owner: str, repo: str) -> PublicKeyMaterial:
        """Fetch the key that secrets for this repository must be sealed with."""
        ...

    @abstractmethod
    async def put_secret(
        self,
        owner: str,
        repo: str,
        name: str,
        ciphertext: SealedCiphertext,
        key_id: str,
    ) -> None:
        """Create or update a secret from its sealed value."""
        ...

    @abstractmethod
    async def delete_secret(self, owner: str, repo: str, name: str) -> None:
        ...

    async def close(self) -> None:
        """Release network resources held by the gateway."""
        return None
