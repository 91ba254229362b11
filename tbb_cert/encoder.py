"""Typed constructors for TBB extension records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from pyasn1.codec.der import encoder
from pyasn1.type import univ

from tbb_cert.cert_extensions import ExtType
from tbb_cert.errors import KeySerializationFailed, KeyTooLarge
from tbb_cert.registry import ExtensionRegistry

logger = logging.getLogger(__name__)

MAX_KEY_DER_SIZE = 4096


def _as_bytes(data: Any, what: str) -> bytes:
    # bytes(int) would yield a zero-filled buffer of that length
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"{what} must be bytes-like, not {type(data).__name__}")
    return bytes(data)


@dataclass(frozen=True)
class ExtensionRecord:
    """
    One extension ready to be placed in a certificate.

    `encoded_value` is the DER payload held by the extension's OCTET STRING
    container (the extnValue contents).
    """

    numeric_id: int
    critical: bool
    encoded_value: bytes
    oid: x509.ObjectIdentifier

    def der(self) -> bytes:
        """DER of the extnValue OCTET STRING container."""
        return encoder.encode(univ.OctetString(self.encoded_value))

    def to_x509(self) -> x509.Extension:
        return x509.Extension(
            self.oid, self.critical, x509.UnrecognizedExtension(self.oid, self.encoded_value)
        )


class ExtensionEncoder:
    """
    Encodes digests, NV counters and public keys into extension records.

    The registry is only read, so one encoder (or many) can be shared between
    threads once the registry is initialized.
    """

    def __init__(self, registry: ExtensionRegistry, max_key_size: int = MAX_KEY_DER_SIZE) -> None:
        self.registry = registry
        self.max_key_size = max_key_size

    def build_extension(self, numeric_id: int, critical: bool, payload: bytes) -> ExtensionRecord:
        """
        Wrap an already encoded payload into an extension record.

        Raises:
            UnknownExtension: If numeric_id is not registered
            TypeError: If payload is not bytes-like
        """
        oid = self.registry.oid(numeric_id)
        return ExtensionRecord(numeric_id, bool(critical), _as_bytes(payload, "payload"), oid)

    def encode_hash(self, numeric_id: int, critical: bool, digest: bytes) -> ExtensionRecord:
        """Extension holding a digest as a DER OCTET STRING."""
        payload = encoder.encode(univ.OctetString(_as_bytes(digest, "digest")))
        return self.build_extension(numeric_id, critical, payload)

    def encode_counter(self, numeric_id: int, critical: bool, value: int) -> ExtensionRecord:
        """
        Extension holding an anti-rollback counter as a DER INTEGER.

        The counter is expected to be non-negative; a negative value is
        encoded as a negative INTEGER.
        """
        payload = encoder.encode(univ.Integer(value))
        return self.build_extension(numeric_id, critical, payload)

    def encode_public_key(self, numeric_id: int, critical: bool, key: Any) -> ExtensionRecord:
        """
        Extension holding a DER SubjectPublicKeyInfo.

        Args:
            numeric_id: Target extension
            critical: Criticality flag
            key: Public key, or a private key whose public half is encoded

        Raises:
            KeySerializationFailed: If the key cannot be serialized
            KeyTooLarge: If the encoding is larger than max_key_size
        """
        try:
            if not hasattr(key, "public_bytes") and hasattr(key, "public_key"):
                key = key.public_key()
            der = key.public_bytes(
                serialization.Encoding.DER,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        except (AttributeError, TypeError, ValueError, UnsupportedAlgorithm) as e:
            raise KeySerializationFailed(numeric_id, str(e) or type(e).__name__) from e

        if len(der) > self.max_key_size:
            raise KeyTooLarge(numeric_id, len(der), self.max_key_size)
        logger.debug("Encoded %d byte public key for extension %d", len(der), numeric_id)
        return self.build_extension(numeric_id, critical, der)

    def encode(self, ident: int | str, critical: bool, payload: Any) -> ExtensionRecord:
        """
        Encode a payload according to the extension type of its definition.

        Raises:
            UnknownExtension: If ident is not registered
            ValueError: If the definition has no extension type
        """
        numeric_id = self.registry.nid(ident)
        definition = self.registry.definition(numeric_id)
        ext_type = definition.ext_type if definition else None
        match ext_type:
            case ExtType.NVCOUNTER:
                return self.encode_counter(numeric_id, critical, payload)
            case ExtType.HASH:
                return self.encode_hash(numeric_id, critical, payload)
            case ExtType.PKEY:
                return self.encode_public_key(numeric_id, critical, payload)
            case _:
                raise ValueError(f"Extension {ident!r} has no extension type")
