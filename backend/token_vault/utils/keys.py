"""Versioned key material for Gmail token encryption.

Keys are configured as one 64-hex-character entry per version. The highest
configured version that is not retired is the active (encrypting) key; every
lower configured version is retiring and stays usable for decryption until
its records have been rotated forward.
"""
import enum
import os
import re
from dataclasses import dataclass, field

from token_vault.exceptions import ConfigurationError

KEY_SIZE = 32  # 256 bits for AES-256
_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class KeyStatus(str, enum.Enum):
    ACTIVE = "active"
    RETIRING = "retiring"
    RETIRED = "retired"


@dataclass(frozen=True)
class KeyMaterial:
    version: int
    key: bytes = field(repr=False)
    status: KeyStatus

    @property
    def can_decrypt(self) -> bool:
        return self.status in (KeyStatus.ACTIVE, KeyStatus.RETIRING)


@dataclass(frozen=True)
class KeyringConfig:
    """Injected key configuration: hex entries by version plus retired versions."""

    entries: dict[int, str] = field(default_factory=dict)
    retired: frozenset[int] = frozenset()

    @classmethod
    def from_settings(cls, settings) -> "KeyringConfig":
        return cls(
            entries=settings.token_key_entries(),
            retired=frozenset(settings.GMAIL_TOKEN_RETIRED_KEY_VERSIONS),
        )


def generate_key_hex() -> str:
    """Generate a fresh key entry suitable for the configuration surface."""
    return os.urandom(KEY_SIZE).hex()


class KeyProvider:
    """Resolves key material by version from an injected :class:`KeyringConfig`."""

    def __init__(self, config: KeyringConfig):
        for version in config.entries:
            if version < 1:
                raise ConfigurationError(f"Key version must be a positive integer, got {version}")
        self._config = config

    def versions(self) -> list[int]:
        """All configured versions, ascending."""
        return sorted(self._config.entries)

    def decryptable_versions(self) -> list[int]:
        return [v for v in self.versions() if v not in self._config.retired]

    def active_version(self) -> int:
        candidates = self.decryptable_versions()
        if not candidates:
            raise ConfigurationError("No active token encryption key is configured")
        return candidates[-1]

    def status_of(self, version: int) -> KeyStatus:
        if version not in self._config.entries or version in self._config.retired:
            return KeyStatus.RETIRED
        if version == self.active_version():
            return KeyStatus.ACTIVE
        return KeyStatus.RETIRING

    def resolve(self, version: int) -> KeyMaterial:
        key_hex = self._config.entries.get(version)
        if not key_hex:
            raise ConfigurationError(f"Encryption key not configured for version {version}")
        if version in self._config.retired:
            raise ConfigurationError(f"Encryption key version {version} is retired")
        if not _HEX_KEY_RE.match(key_hex):
            raise ConfigurationError(
                f"Key for version {version} must be 64 hex characters ({KEY_SIZE} bytes)"
            )
        return KeyMaterial(version=version, key=bytes.fromhex(key_hex), status=self.status_of(version))

    def active_key(self) -> KeyMaterial:
        return self.resolve(self.active_version())
