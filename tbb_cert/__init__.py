"""Trusted Board Boot certificate extensions: registration and DER encoding."""

from tbb_cert.errors import (
    AlreadyInitialized,
    EncodingError,
    KeySerializationFailed,
    KeyTooLarge,
    RegistrationFailed,
    UnknownExtension,
)
from tbb_cert.cert_extensions import ExtensionDefinition, ExtType, ValueKind, TBB_EXTENSIONS
from tbb_cert.registry import ExtensionRegistry
from tbb_cert.encoder import ExtensionEncoder, ExtensionRecord

__version__ = "0.1.0"

__all__ = [
    "AlreadyInitialized",
    "EncodingError",
    "ExtType",
    "ExtensionDefinition",
    "ExtensionEncoder",
    "ExtensionRecord",
    "ExtensionRegistry",
    "KeySerializationFailed",
    "KeyTooLarge",
    "RegistrationFailed",
    "TBB_EXTENSIONS",
    "UnknownExtension",
    "ValueKind",
]
