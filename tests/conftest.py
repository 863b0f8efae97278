import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from nacl.public import PrivateKey

from gh_secrets.protocol import PublicKeyMaterial, UserIdentity


def _json_response(payload=None, status=200, reason="OK"):
    resp = MagicMock()
    resp.status = status
    resp.reason = reason
    resp.json = AsyncMock(return_value=payload)
    resp.raise_for_status = MagicMock()
    return resp


def _as_context(resp):
    # aiohttp's session.post()/request() return async context managers
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=resp)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


@pytest.fixture
def json_response():
    return _json_response


@pytest.fixture
def as_context():
    return _as_context


@pytest.fixture
def http_session():
    """A stand-in for aiohttp.ClientSession; tests set post/request side effects."""
    session = MagicMock()
    session.close = AsyncMock()
    return session


class RecordingSleep:
    """Replaces asyncio.sleep; records waits and advances an optional clock."""

    def __init__(self, clock=None):
        self.calls = []
        self.clock = clock

    async def __call__(self, seconds):
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.now += seconds


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recording_sleep(fake_clock):
    return RecordingSleep(fake_clock)


@pytest.fixture
def keypair():
    """A recipient key pair standing in for a repository's key."""
    private_key = PrivateKey.generate()
    public_b64 = base64.b64encode(bytes(private_key.public_key)).decode("ascii")
    return private_key, public_b64


@pytest.fixture
def fake_gateway(keypair):
    _, public_b64 = keypair
    gateway = MagicMock()
    gateway.get_identity = AsyncMock(return_value=UserIdentity(login="octocat", id=1, name="The Octocat"))
    gateway.list_user_repositories = AsyncMock(return_value=[])
    gateway.list_org_repositories = AsyncMock(return_value=[])
    gateway.list_organizations = AsyncMock(return_value=[])
    gateway.list_repo_secrets = AsyncMock(return_value=[])
    gateway.get_repo_public_key = AsyncMock(
        return_value=PublicKeyMaterial(key_id="key-123", key=public_b64)
    )
    gateway.put_secret = AsyncMock(return_value=None)
    gateway.delete_secret = AsyncMock(return_value=None)
    gateway.close = AsyncMock(return_value=None)
    return gateway
