# ===== booking_assistant/utils/encryption.py =====
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from booking_assistant.config.settings import get_settings


# Generate a key once and store it as CALENDAR_ENCRYPTION_KEY:
# Fernet.generate_key().decode()


class TokenCipher:
    """Fernet wrapper for OAuth tokens stored at rest"""

    def __init__(self, key: Optional[str] = None):
        key = key if key is not None else get_settings().CALENDAR_ENCRYPTION_KEY
        if not key:
            raise ValueError("CALENDAR_ENCRYPTION_KEY is not set")
        self.fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, token: Optional[str]) -> Optional[bytes]:
        """Encrypt a token string"""
        if not token:
            return None
        return self.fernet.encrypt(token.encode())

    def decrypt(self, encrypted_token: Optional[bytes]) -> Optional[str]:
        """Decrypt a token; raises ValueError when the key does not match"""
        if not encrypted_token:
            return None
        try:
            return self.fernet.decrypt(bytes(encrypted_token)).decode()
        except InvalidToken:
            raise ValueError("Stored calendar token could not be decrypted with the configured key")


@lru_cache()
def get_cipher() -> TokenCipher:
    """Get cached cipher built from settings"""
    return TokenCipher()
