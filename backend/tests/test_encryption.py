"""Tests for AES-256-GCM token sealing and the dual-token codec."""
import pytest

from token_vault.exceptions import AuthenticationFailure, ConfigurationError
from token_vault.utils.encryption import (
    NONCE_SIZE,
    TAG_SIZE,
    AeadCipher,
    DualTokenCodec,
    derive_secondary_nonce,
    generate_nonce,
)
from token_vault.utils.keys import KeyProvider, KeyringConfig

from tests.factories import KEY_V1, KEY_V2, make_codec

KEY = bytes.fromhex(KEY_V2)


def _flip_bit(data: bytes, bit: int) -> bytes:
    index, offset = divmod(bit, 8)
    return data[:index] + bytes([data[index] ^ (1 << offset)]) + data[index + 1:]


SECRET = b"secret"
SEALED_BITS = (len(SECRET) + TAG_SIZE) * 8


# ═══════════════════════════════════════════════════════
# AeadCipher
# ═══════════════════════════════════════════════════════


class TestAeadCipher:
    def test_seal_open_round_trip(self):
        nonce = generate_nonce()
        sealed = AeadCipher.seal(KEY, nonce, b"ya29.access-token")
        assert AeadCipher.open(KEY, nonce, sealed) == b"ya29.access-token"

    def test_ciphertext_carries_tag(self):
        sealed = AeadCipher.seal(KEY, generate_nonce(), b"abc")
        assert len(sealed) == 3 + TAG_SIZE

    def test_empty_plaintext(self):
        nonce = generate_nonce()
        sealed = AeadCipher.seal(KEY, nonce, b"")
        assert len(sealed) == TAG_SIZE
        assert AeadCipher.open(KEY, nonce, sealed) == b""

    @pytest.mark.parametrize("bit", range(SEALED_BITS))
    def test_any_ciphertext_bit_flip_fails(self, bit):
        nonce = generate_nonce()
        sealed = AeadCipher.seal(KEY, nonce, SECRET)
        with pytest.raises(AuthenticationFailure):
            AeadCipher.open(KEY, nonce, _flip_bit(sealed, bit))

    @pytest.mark.parametrize("bit", range(NONCE_SIZE * 8))
    def test_any_nonce_bit_flip_fails(self, bit):
        nonce = generate_nonce()
        sealed = AeadCipher.seal(KEY, nonce, SECRET)
        with pytest.raises(AuthenticationFailure):
            AeadCipher.open(KEY, _flip_bit(nonce, bit), sealed)

    def test_wrong_key_fails(self):
        nonce = generate_nonce()
        sealed = AeadCipher.seal(KEY, nonce, b"secret")
        with pytest.raises(AuthenticationFailure):
            AeadCipher.open(bytes.fromhex(KEY_V1), nonce, sealed)

    def test_truncated_ciphertext_fails(self):
        with pytest.raises(AuthenticationFailure):
            AeadCipher.open(KEY, generate_nonce(), b"short")

    def test_bad_key_length(self):
        with pytest.raises(ConfigurationError):
            AeadCipher.seal(b"\x00" * 16, generate_nonce(), b"x")

    def test_bad_nonce_length(self):
        with pytest.raises(ConfigurationError):
            AeadCipher.seal(KEY, b"\x00" * 8, b"x")
        with pytest.raises(ConfigurationError):
            AeadCipher.open(KEY, b"\x00" * 16, b"\x00" * 32)


# ═══════════════════════════════════════════════════════
# Nonces
# ═══════════════════════════════════════════════════════


class TestNonces:
    def test_generate_nonce_size(self):
        assert len(generate_nonce()) == NONCE_SIZE

    def test_generated_nonces_differ(self):
        nonces = {generate_nonce() for _ in range(100)}
        assert len(nonces) == 100

    def test_secondary_nonce_increments_last_byte(self):
        base = bytes(range(12))
        derived = derive_secondary_nonce(base)
        assert derived[:-1] == base[:-1]
        assert derived[-1] == 12

    def test_secondary_nonce_wraps(self):
        base = b"\x07" * 11 + b"\xff"
        assert derive_secondary_nonce(base) == b"\x07" * 11 + b"\x00"

    def test_secondary_nonce_is_deterministic(self):
        base = generate_nonce()
        assert derive_secondary_nonce(base) == derive_secondary_nonce(base)
        assert derive_secondary_nonce(base) != base

    def test_secondary_nonce_rejects_bad_length(self):
        with pytest.raises(ConfigurationError):
            derive_secondary_nonce(b"\x00" * 11)


# ═══════════════════════════════════════════════════════
# DualTokenCodec
# ═══════════════════════════════════════════════════════


class TestDualTokenCodec:
    def test_pair_round_trip(self, codec_v2):
        pair = codec_v2.encrypt_pair("access-123", "refresh-456")
        assert pair.key_version == 2
        assert len(pair.base_nonce) == NONCE_SIZE

        tokens = codec_v2.decrypt_pair(
            pair.access_ciphertext, pair.refresh_ciphertext, pair.base_nonce, pair.key_version,
        )
        assert tokens.access == "access-123"
        assert tokens.refresh == "refresh-456"

    def test_unicode_tokens(self, codec_v1):
        pair = codec_v1.encrypt_pair("tökén-✓", "рефреш")
        tokens = codec_v1.decrypt_pair(pair.access_ciphertext, pair.refresh_ciphertext, pair.base_nonce, 1)
        assert tokens.access == "tökén-✓"
        assert tokens.refresh == "рефреш"

    def test_access_only(self, codec_v1):
        pair = codec_v1.encrypt_pair("access-only")
        assert pair.refresh_ciphertext is None

        tokens = codec_v1.decrypt_pair(pair.access_ciphertext, None, pair.base_nonce, pair.key_version)
        assert tokens.access == "access-only"
        assert tokens.refresh is None

    def test_ciphertext_is_not_plaintext(self, codec_v1):
        pair = codec_v1.encrypt_pair("access-123", "refresh-456")
        assert b"access-123" not in pair.access_ciphertext
        assert b"refresh-456" not in pair.refresh_ciphertext

    def test_fresh_nonce_per_pair(self, codec_v1):
        first = codec_v1.encrypt_pair("same", "same")
        second = codec_v1.encrypt_pair("same", "same")
        assert first.base_nonce != second.base_nonce
        assert first.access_ciphertext != second.access_ciphertext

    def test_refresh_uses_derived_nonce(self, codec_v1):
        pair = codec_v1.encrypt_pair("access", "refresh")
        key = bytes.fromhex(KEY_V1)

        assert AeadCipher.open(key, derive_secondary_nonce(pair.base_nonce), pair.refresh_ciphertext) == b"refresh"
        with pytest.raises(AuthenticationFailure):
            AeadCipher.open(key, pair.base_nonce, pair.refresh_ciphertext)

    def test_swapped_ciphertexts_fail(self, codec_v1):
        pair = codec_v1.encrypt_pair("access", "refresh")
        with pytest.raises(AuthenticationFailure):
            codec_v1.decrypt_pair(pair.refresh_ciphertext, pair.access_ciphertext, pair.base_nonce, 1)

    @pytest.mark.parametrize("bit", range(NONCE_SIZE * 8))
    def test_any_base_nonce_bit_flip_fails(self, codec_v1, bit):
        pair = codec_v1.encrypt_pair("access", "refresh")
        with pytest.raises(AuthenticationFailure):
            codec_v1.decrypt_pair(pair.access_ciphertext, pair.refresh_ciphertext, _flip_bit(pair.base_nonce, bit), 1)

    @pytest.mark.parametrize("bit", range((len("refresh") + TAG_SIZE) * 8))
    def test_any_refresh_bit_flip_fails(self, codec_v1, bit):
        pair = codec_v1.encrypt_pair("access", "refresh")
        with pytest.raises(AuthenticationFailure):
            codec_v1.decrypt_pair(pair.access_ciphertext, _flip_bit(pair.refresh_ciphertext, bit), pair.base_nonce, 1)

    def test_wrong_version_fails(self, codec_v2):
        pair = codec_v2.encrypt_pair("access", "refresh")
        with pytest.raises(AuthenticationFailure):
            codec_v2.decrypt_pair(pair.access_ciphertext, pair.refresh_ciphertext, pair.base_nonce, 1)

    def test_unknown_version_is_configuration_error(self, codec_v1):
        pair = codec_v1.encrypt_pair("access")
        with pytest.raises(ConfigurationError):
            codec_v1.decrypt_pair(pair.access_ciphertext, None, pair.base_nonce, 7)

    def test_older_version_still_decrypts(self, codec_v1, codec_v2):
        pair = codec_v1.encrypt_pair("access", "refresh")
        tokens = codec_v2.decrypt_pair(pair.access_ciphertext, pair.refresh_ciphertext, pair.base_nonce, 1)
        assert tokens.access == "access"

    def test_encrypt_without_keys_fails_closed(self):
        codec = DualTokenCodec(KeyProvider(KeyringConfig()))
        with pytest.raises(ConfigurationError):
            codec.encrypt_pair("access", "refresh")

    def test_encrypt_with_malformed_key_fails(self):
        codec = make_codec(v1="not-hex")
        with pytest.raises(ConfigurationError):
            codec.encrypt_pair("access")
