"""Secret storage for the verification token"""

from accessgate.secrets.store import (
    EncryptedFileBackend,
    MemoryBackend,
    SecretBackend,
    SecureValueStore,
    redact,
)

__all__ = [
    "EncryptedFileBackend",
    "MemoryBackend",
    "SecretBackend",
    "SecureValueStore",
    "redact",
]
