"""
Encryption of stored API keys (Fernet, from the cryptography package).
"""

from cryptography.fernet import Fernet, InvalidToken

from keyrouter.errors import CredentialRevealError


class SecretCipher:
    """Encrypts secrets before storage and decrypts them on demand."""

    def __init__(self, key: str):
        if not key:
            raise ValueError("CREDENTIAL_ENCRYPTION_KEY is required")
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, secret: str) -> str:
        return self._fernet.encrypt(secret.encode()).decode()

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except (InvalidToken, ValueError) as e:
            raise CredentialRevealError("Stored API key could not be decrypted") from e


def generate_key() -> str:
    """New Fernet key for CREDENTIAL_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode()


def mask_secret(secret: str) -> str:
    """Display form of a key: first and last four characters."""
    if not secret:
        return ""
    if len(secret) <= 10:
        return "*" * len(secret)
    return f"{secret[:4]}...{secret[-4:]}"
