"""AES-256-GCM encryption for Gmail OAuth tokens."""
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from token_vault.exceptions import AuthenticationFailure, ConfigurationError
from token_vault.utils.keys import KEY_SIZE, KeyProvider

NONCE_SIZE = 12  # 96 bits for AES-GCM
TAG_SIZE = 16  # 128-bit authentication tag


class AeadCipher:
    """Authenticated encryption over an explicit key and nonce."""

    @staticmethod
    def _check(key: bytes, nonce: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ConfigurationError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
        if len(nonce) != NONCE_SIZE:
            raise ConfigurationError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    @classmethod
    def seal(cls, key: bytes, nonce: bytes, plaintext: bytes) -> bytes:
        cls._check(key, nonce)
        return AESGCM(key).encrypt(nonce, plaintext, None)

    @classmethod
    def open(cls, key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
        cls._check(key, nonce)
        if len(ciphertext) < TAG_SIZE:
            raise AuthenticationFailure("Ciphertext is truncated")
        try:
            return AESGCM(key).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise AuthenticationFailure()


def generate_nonce() -> bytes:
    return os.urandom(NONCE_SIZE)


def derive_secondary_nonce(base_nonce: bytes) -> bytes:
    """Nonce for the refresh token: the base nonce with its last byte + 1 (mod 256)."""
    if len(base_nonce) != NONCE_SIZE:
        raise ConfigurationError(f"Nonce must be {NONCE_SIZE} bytes, got {len(base_nonce)}")
    return base_nonce[:-1] + bytes([(base_nonce[-1] + 1) % 256])


@dataclass(frozen=True)
class EncryptedTokenPair:
    access_ciphertext: bytes
    refresh_ciphertext: bytes | None
    base_nonce: bytes
    key_version: int


@dataclass(frozen=True)
class TokenPair:
    access: str
    refresh: str | None = None


class DualTokenCodec:
    """Seals an access/refresh token pair under one stored base nonce.

    The access token uses the base nonce directly; the refresh token uses
    :func:`derive_secondary_nonce`. A new base nonce is drawn on every call
    to :meth:`encrypt_pair`, so the derived nonce never repeats under a key.
    """

    def __init__(self, key_provider: KeyProvider):
        self.key_provider = key_provider

    def encrypt_pair(self, access: str, refresh: str | None = None) -> EncryptedTokenPair:
        material = self.key_provider.active_key()
        base_nonce = generate_nonce()

        access_ct = AeadCipher.seal(material.key, base_nonce, access.encode("utf-8"))
        refresh_ct = None
        if refresh:
            refresh_ct = AeadCipher.seal(
                material.key, derive_secondary_nonce(base_nonce), refresh.encode("utf-8")
            )

        return EncryptedTokenPair(
            access_ciphertext=access_ct,
            refresh_ciphertext=refresh_ct,
            base_nonce=base_nonce,
            key_version=material.version,
        )

    def decrypt_pair(
        self,
        access_ciphertext: bytes,
        refresh_ciphertext: bytes | None,
        base_nonce: bytes,
        key_version: int,
    ) -> TokenPair:
        material = self.key_provider.resolve(key_version)

        access = AeadCipher.open(material.key, base_nonce, access_ciphertext)
        refresh = None
        if refresh_ciphertext:
            refresh = AeadCipher.open(
                material.key, derive_secondary_nonce(base_nonce), refresh_ciphertext
            ).decode("utf-8")

        return TokenPair(access=access.decode("utf-8"), refresh=refresh)
