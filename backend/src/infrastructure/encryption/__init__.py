"""Infrastructure encryption utilities."""

from .payload_encryption import (
    PayloadEncryption,
    EncryptedEnvelope,
    is_empty_payload,
    is_envelope,
)

__all__ = [
    "PayloadEncryption",
    "EncryptedEnvelope",
    "is_empty_payload",
    "is_envelope",
]
