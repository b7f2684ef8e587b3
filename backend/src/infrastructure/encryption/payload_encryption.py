"""Payload encryption utilities using AES-256-GCM.

Provides authenticated envelope encryption for telemetry snapshots that a
tenant's privacy policy requires to be stored encrypted.

Security considerations:
- Uses AES-256-GCM for authenticated encryption
- Derives the encryption key from ENCRYPTION_MASTER_KEY using HKDF
- Each encryption uses a unique random 96-bit nonce
- Optional context string bound as associated data (e.g. the cache key), so an
  envelope copied under another key fails authentication
"""

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from privacy.errors import DecryptionFailed, EncryptionKeyError

logger = logging.getLogger(__name__)

ENVELOPE_MARKER = "aes-256-gcm"
NONCE_SIZE = 12
TAG_SIZE = 16

FORMAT_JSON = "json"
FORMAT_BYTES = "bytes"


@dataclass(frozen=True)
class EncryptedEnvelope:
    """Encrypted payload container.

    Attributes:
        version: Encryption format version (for future upgrades)
        nonce: Base64-encoded nonce used for encryption
        ciphertext: Base64-encoded encrypted data (without tag)
        tag: Base64-encoded GCM authentication tag
        format: How the plaintext was serialised ("json" or "bytes")
    """
    version: int
    nonce: str
    ciphertext: str
    tag: str
    format: str = FORMAT_JSON

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON column storage."""
        return {
            "enc": ENVELOPE_MARKER,
            "v": self.version,
            "n": self.nonce,
            "c": self.ciphertext,
            "t": self.tag,
            "f": self.format,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedEnvelope":
        """Deserialize from the stored dict form.

        Raises:
            DecryptionFailed: If required fields are missing
        """
        try:
            return cls(
                version=int(data["v"]),
                nonce=str(data["n"]),
                ciphertext=str(data["c"]),
                tag=str(data["t"]),
                format=str(data.get("f", FORMAT_JSON)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecryptionFailed(f"Malformed envelope: {e}") from e


def is_envelope(value: Any) -> bool:
    """Whether a stored value is an encrypted envelope."""
    return isinstance(value, dict) and value.get("enc") == ENVELOPE_MARKER


def is_empty_payload(value: Any) -> bool:
    return value is None or (isinstance(value, (str, bytes, dict, list)) and len(value) == 0)


def _serialise_json(plaintext: Any) -> bytes:
    try:
        text = json.dumps(plaintext, sort_keys=True, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Payload is not JSON-serialisable: {e}") from e
    if json.loads(text) != plaintext:
        raise ValueError(
            f"Payload of type {type(plaintext).__name__} would not decrypt to an equal value"
        )
    return text.encode("utf-8")


def _associated_data(fmt: str, context: Optional[str]) -> bytes:
    # Format is authenticated together with the context
    return f"{fmt}:{context or ''}".encode("utf-8")


class PayloadEncryption:
    """AES-256-GCM encryption for structured payloads.

    Uses the host-provided master secret as base key material, deriving the
    actual encryption key using HKDF.

    Example:
        codec = PayloadEncryption(settings.ENCRYPTION_MASTER_KEY)

        envelope = codec.encrypt({"messages": 42}, context="t1:metrics:q1")
        stored = envelope.to_dict()

        # Later, decrypt
        payload = codec.decrypt(stored, context="t1:metrics:q1")
    """

    HKDF_INFO = b"queueguard-payload-encryption-v1"
    VERSION = 1

    def __init__(self, master_key: str):
        """Initialize codec with the master secret.

        Args:
            master_key: Base key material supplied by the hosting process

        Raises:
            EncryptionKeyError: If the key is missing or too short
        """
        if not master_key:
            raise EncryptionKeyError("ENCRYPTION_MASTER_KEY is not set")
        if len(master_key) < 16:
            raise EncryptionKeyError("ENCRYPTION_MASTER_KEY must be at least 16 characters")

        self._aesgcm = AESGCM(self._derive_key(master_key.encode()))
        logger.info("Payload encryption initialized with AES-256-GCM")

    @classmethod
    def _derive_key(cls, secret: bytes) -> bytes:
        """Derive 256-bit encryption key from the secret using HKDF."""
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=32,  # 256 bits
            salt=None,
            info=cls.HKDF_INFO,
        )
        return hkdf.derive(secret)

    def encrypt(self, plaintext: Any, context: Optional[str] = None) -> Any:
        """Encrypt a JSON-serialisable payload or raw bytes.

        Empty input (None, "", b"", {}, []) is returned unchanged so that an
        empty value stays distinguishable from a cache miss. Bytes are sealed
        as-is and come back as bytes.

        Args:
            plaintext: Payload to encrypt
            context: Optional associated data; must match during decryption

        Returns:
            EncryptedEnvelope, or the input itself when empty

        Raises:
            ValueError: If the payload would not decrypt to an equal value
                (tuples, non-string keys, NaN, objects JSON cannot encode)
        """
        if is_empty_payload(plaintext):
            return plaintext

        if isinstance(plaintext, (bytes, bytearray)):
            fmt, data = FORMAT_BYTES, bytes(plaintext)
        else:
            fmt, data = FORMAT_JSON, _serialise_json(plaintext)
        nonce = os.urandom(NONCE_SIZE)
        associated_data = _associated_data(fmt, context)

        sealed = self._aesgcm.encrypt(nonce, data, associated_data)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]

        return EncryptedEnvelope(
            version=self.VERSION,
            nonce=base64.b64encode(nonce).decode(),
            ciphertext=base64.b64encode(ciphertext).decode(),
            tag=base64.b64encode(tag).decode(),
            format=fmt,
        )

    def decrypt(self, envelope: Any, context: Optional[str] = None) -> Any:
        """Verify and decrypt an envelope.

        Args:
            envelope: EncryptedEnvelope or its dict form
            context: Associated data used at encryption time

        Returns:
            Decrypted payload

        Raises:
            DecryptionFailed: Tag mismatch, wrong context, or malformed envelope
        """
        if isinstance(envelope, dict):
            envelope = EncryptedEnvelope.from_dict(envelope)
        if not isinstance(envelope, EncryptedEnvelope):
            raise DecryptionFailed(f"Not an encrypted envelope: {type(envelope).__name__}")
        if envelope.version != self.VERSION:
            raise DecryptionFailed(f"Unsupported encryption version: {envelope.version}")
        if envelope.format not in (FORMAT_JSON, FORMAT_BYTES):
            raise DecryptionFailed(f"Unsupported payload format: {envelope.format}")

        try:
            nonce = base64.b64decode(envelope.nonce, validate=True)
            ciphertext = base64.b64decode(envelope.ciphertext, validate=True)
            tag = base64.b64decode(envelope.tag, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionFailed(f"Malformed envelope encoding: {e}") from e

        if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
            raise DecryptionFailed("Malformed envelope: bad nonce or tag length")

        associated_data = _associated_data(envelope.format, context)

        try:
            data = self._aesgcm.decrypt(nonce, ciphertext + tag, associated_data)
        except InvalidTag:
            logger.error("Decryption failed: authentication tag verification failed")
            raise DecryptionFailed(
                "Decryption failed: data has been tampered with or wrong encryption key"
            )

        if envelope.format == FORMAT_BYTES:
            return data
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Decryption failed: invalid JSON after decryption: {e}")
            raise DecryptionFailed("Decryption failed: decrypted data is not valid JSON") from e

    def reencrypt(
        self,
        envelope: Any,
        target: "PayloadEncryption",
        context: Optional[str] = None,
    ) -> EncryptedEnvelope:
        """Re-encrypt an envelope under another codec (key rotation)."""
        return target.encrypt(self.decrypt(envelope, context=context), context=context)
