"""Sealed-box encryption for GitHub Actions secrets.

GitHub decrypts secrets with libsodium's ``crypto_box_open_seal``, so the
client side must produce exactly ``crypto_box_seal(utf8(value), public_key)``:
an ephemeral X25519 key pair, XSalsa20-Poly1305, no sender identity. The
ciphertext and the public key both travel as standard-alphabet base64.

libsodium must be initialised once per process before use. PyNaCl already
does this when ``nacl.bindings`` is imported; ``ensure_sodium_ready`` keeps
the ordering explicit for callers and returns at once after the first await.
"""

import asyncio
import base64
import binascii
import threading

from nacl import bindings
from nacl.exceptions import CryptoError
from nacl.public import PublicKey, SealedBox

from .errors import EncodingError
from .protocol import PublicKeyMaterial, SealedCiphertext

PUBLIC_KEY_SIZE = bindings.crypto_box_PUBLICKEYBYTES  # 32 bytes for X25519

_ready = False
_ready_lock = threading.Lock()


def _init_sodium() -> None:
    global _ready
    with _ready_lock:
        if not _ready:
            bindings.sodium_init()
            _ready = True


async def ensure_sodium_ready() -> None:
    """Initialise libsodium once. Safe to await repeatedly and concurrently."""
    # nacl.bindings already runs sodium_init on import; this only makes the ordering explicit
    if not _ready:
        await asyncio.to_thread(_init_sodium)


def decode_public_key(public_key_b64: str) -> PublicKey:
    """Decode a base64 public key.

    Raises:
        EncodingError: If the text is not valid base64 or not a 32-byte key.
    """
    try:
        raw = base64.b64decode(public_key_b64, validate=True)
    except (binascii.Error, TypeError, ValueError) as exc:
        raise EncodingError("Public key is not valid base64") from exc
    if len(raw) != PUBLIC_KEY_SIZE:
        raise EncodingError(
            f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(raw)}"
        )
    try:
        return PublicKey(raw)
    except (CryptoError, TypeError, ValueError) as exc:
        raise EncodingError("Public key is not a valid X25519 key") from exc


class SealedSecretEncryptor:
    """
    Encrypts secret values for a recipient public key.

    Stateless; one instance can be shared or created per upload.
    """

    async def encrypt(self, plaintext: str, public_key_b64: str) -> str:
        """
        Seal a secret value for the holder of ``public_key_b64``.

        Args:
            plaintext: The secret value. Encoded as UTF-8.
            public_key_b64: Recipient public key, standard base64.

        Returns:
            str: The sealed ciphertext, standard base64.

        Raises:
            EncodingError: If the public key cannot be decoded.
        """
        await ensure_sodium_ready()
        recipient = decode_public_key(public_key_b64)
        sealed = SealedBox(recipient).encrypt(plaintext.encode("utf-8"))
        return base64.b64encode(sealed).decode("ascii")

    async def seal(self, plaintext: str, public_key: PublicKeyMaterial) -> SealedCiphertext:
        """Encrypt for a repository key and wrap the result for upload."""
        return SealedCiphertext(await self.encrypt(plaintext, public_key.key))
