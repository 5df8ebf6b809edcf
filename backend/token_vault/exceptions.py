"""Credential vault exceptions."""


class VaultError(Exception):
    """Base exception for vault operations."""

    pass


class ConfigurationError(VaultError):
    """Key material is missing, malformed or retired."""

    def __init__(self, message: str = "Token encryption is not configured."):
        super().__init__(message)


class AuthenticationFailure(VaultError):
    """AEAD tag verification failed (tampered data, wrong key or wrong nonce)."""

    def __init__(self, message: str = "Token ciphertext failed authentication."):
        super().__init__(message)


class NotFoundError(VaultError):
    """No credential record exists for the requested account."""

    def __init__(self, account: str = ""):
        message = f"No Gmail credentials for account {account}" if account else "No Gmail credentials found."
        super().__init__(message)


class PartialBatchFailure(VaultError):
    """One or more records failed during a migration or rotation batch."""

    def __init__(self, job: str, errors: list):
        self.job = job
        self.errors = errors
        super().__init__(f"{job}: {len(errors)} record(s) failed")
