"""Key Vault — encrypts authorization material at rest and recovers it per execution.

Invariants:
    - encrypt() output is an opaque urlsafe token (Fernet: AES-128-CBC + HMAC-SHA256)
    - decrypt() raises DecryptionError on a corrupt token or a mismatched key — never
      returns garbage
    - Decrypted material is returned to the caller and never cached here

Design Decisions:
    - Fernet over hand-assembled AES-GCM framing: authenticated, versioned token format
    - Empty configured key → ephemeral key with a warning: tokens do not survive a
      restart, acceptable for local development only
"""

import logging

from cryptography.fernet import Fernet, InvalidToken

from autopay.core.errors import DecryptionError

logger = logging.getLogger(__name__)


class KeyVault:
    """Symmetric encryption of private keys with a process-wide Fernet key."""

    def __init__(self, key: str | bytes | None = None):
        if not key:
            logger.warning(
                "ENCRYPTION_KEY not set; using an ephemeral key "
                "(stored authorization will not survive a restart)",
            )
            key = Fernet.generate_key()
        if isinstance(key, str):
            key = key.encode()
        self._fernet = Fernet(key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except (InvalidToken, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Failed to decrypt authorization material: {type(e).__name__}")
            raise DecryptionError()
