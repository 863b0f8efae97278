# gh_secrets/providers/github.py
"""
GitHub REST Gateway

This module implements the SecretsGateway interface over the GitHub REST API
using a single aiohttp session. It is a thin wrapper: requests go out as-is,
error statuses become ApiError, and network failures or response bodies
of the wrong shape become TransportError.
"""
import asyncio
from collections.abc import Callable
from typing import TypeVar

import aiohttp
from loguru import logger

from ..errors import ApiError, AuthError, TransportError
from ..protocol import (
    Organization,
    PublicKeyMaterial,
    Repository,
    SealedCiphertext,
    SecretMetadata,
    SecretsGateway,
    UserIdentity,
)

API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
PAGE_SIZE = 100

T = TypeVar("T")


class GitHubSecretsGateway(SecretsGateway):
    """
    GitHub Actions secrets API client.

    Usable as an async context manager; the underlying session is opened
    lazily on the first request and closed by close().
    """

    def __init__(
        self,
        token: str,
        api_url: str = API_URL,
        api_version: str = API_VERSION,
        timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            token: OAuth or personal access token. Never logged.
            api_url: REST API base URL.
            api_version: Value of the X-GitHub-Api-Version header.
            timeout: Total timeout per request, in seconds.
            session: Pre-built session, mainly for tests. Not closed by close().
        """
        self._token = token
        self.api_url = api_url.rstrip("/")
        self.api_version = api_version
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def __repr__(self) -> str:
        return f"GitHubSecretsGateway(api_url={self.api_url!r})"

    async def __aenter__(self) -> "GitHubSecretsGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.api_version,
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
        error_factory: Callable[[int, str], ApiError] = ApiError,
    ):
        url = f"{self.api_url}{path}"
        logger.debug(f"{method} {path}")
        try:
            async with self._get_session().request(
                method, url, params=params, json=json, headers=self._headers()
            ) as resp:
                if resp.status >= 400:
                    raise error_factory(resp.status, await self._error_message(resp))
                if resp.status == 204:
                    return None
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"{method} {path} returned a body that is not JSON") from exc

    @staticmethod
    def _parse(path: str, build: Callable[[object], T], data) -> T:
        """Map a decoded body to a dataclass, treating a wrong shape as a transport fault."""
        try:
            return build(data)
        except (KeyError, TypeError, AttributeError) as exc:
            raise TransportError(
                f"Unexpected response from {path}: {type(exc).__name__} {exc}"
            ) from exc

    @staticmethod
    async def _error_message(resp) -> str:
        try:
            body = await resp.json(content_type=None)
        except (aiohttp.ClientError, ValueError):
            return resp.reason or "request failed"
        if isinstance(body, dict) and body.get("message"):
            return body["message"]
        return resp.reason or "request failed"

    @staticmethod
    def _repositories(data) -> list[Repository]:
        return [
            Repository(
                name=r["name"],
                full_name=r["full_name"],
                owner=r["owner"]["login"],
                private=bool(r.get("private", False)),
            )
            for r in data or []
        ]

    async def get_identity(self) -> UserIdentity:
        data = await self._request("GET", "/user", error_factory=self._identity_error)
        return self._parse(
            "/user",
            lambda d: UserIdentity(login=d["login"], id=d["id"], name=d.get("name")),
            data,
        )

    @staticmethod
    def _identity_error(status: int, message: str) -> ApiError:
        if status in (401, 403):
            return AuthError(status, message)
        return ApiError(status, message)

    async def list_user_repositories(self) -> list[Repository]:
        data = await self._request(
            "GET", "/user/repos", params={"per_page": PAGE_SIZE, "sort": "updated"}
        )
        return self._parse("/user/repos", self._repositories, data)

    async def list_organizations(self) -> list[Organization]:
        data = await self._request("GET", "/user/orgs", params={"per_page": PAGE_SIZE})
        return self._parse(
            "/user/orgs",
            lambda d: [
                Organization(login=o["login"], id=o["id"], description=o.get("description"))
                for o in d or []
            ],
            data,
        )

    async def list_org_repositories(self, org: str) -> list[Repository]:
        path = f"/orgs/{org}/repos"
        data = await self._request(
            "GET", path, params={"per_page": PAGE_SIZE, "sort": "updated"}
        )
        return self._parse(path, self._repositories, data)

    async def list_repo_secrets(self, owner: str, repo: str) -> list[SecretMetadata]:
        path = f"/repos/{owner}/{repo}/actions/secrets"
        data = await self._request("GET", path)
        return self._parse(
            path,
            lambda d: [
                SecretMetadata(
                    name=s["name"],
                    created_at=s.get("created_at"),
                    updated_at=s.get("updated_at"),
                )
                for s in (d or {}).get("secrets", [])
            ],
            data,
        )

    async def get_repo_public_key(self, owner: str, repo: str) -> PublicKeyMaterial:
        path = f"/repos/{owner}/{repo}/actions/secrets/public-key"
        data = await self._request("GET", path)
        return self._parse(
            path, lambda d: PublicKeyMaterial(key_id=d["key_id"], key=d["key"]), data
        )

    async def put_secret(
        self,
        owner: str,
        repo: str,
        name: str,
        ciphertext: SealedCiphertext,
        key_id: str,
    ) -> None:
        if not isinstance(ciphertext, SealedCiphertext):
            raise TypeError("put_secret only accepts SealedCiphertext")
        await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/actions/secrets/{name}",
            json={"encrypted_value": ciphertext.value, "key_id": key_id},
        )
        logger.info(f"Stored secret {name} in {owner}/{repo}")

    async def delete_secret(self, owner: str, repo: str, name: str) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}/actions/secrets/{name}")
        logger.info(f"Deleted secret {name} from {owner}/{repo}")
