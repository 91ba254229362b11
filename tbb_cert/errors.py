"""Exceptions raised while registering or encoding TBB extensions."""

from __future__ import annotations


class EncodingError(Exception):
    """Base class for extension registration and encoding failures."""


class RegistrationFailed(EncodingError):
    """An extension definition was rejected during registry initialization."""

    def __init__(self, oid: str | None, reason: str) -> None:
        self.oid = oid
        self.reason = reason
        super().__init__(f"Cannot register extension {oid or '<unnamed>'}: {reason}")


class AlreadyInitialized(EncodingError):
    """The registry was initialized before; it only accepts one definition pass."""


class UnknownExtension(EncodingError, KeyError):
    """A numeric id or name does not resolve to a registered extension."""

    def __init__(self, ident: object) -> None:
        self.ident = ident
        super().__init__(f"Unknown extension: {ident!r}")

    def __str__(self) -> str:
        return self.args[0]


class KeySerializationFailed(EncodingError):
    """A public key could not be serialized to SubjectPublicKeyInfo."""

    def __init__(self, numeric_id: int, reason: str) -> None:
        self.numeric_id = numeric_id
        self.reason = reason
        super().__init__(f"Cannot serialize public key for extension {numeric_id}: {reason}")


class KeyTooLarge(EncodingError):
    """The DER SubjectPublicKeyInfo exceeds the allowed size."""

    def __init__(self, numeric_id: int, size: int, limit: int) -> None:
        self.numeric_id = numeric_id
        self.size = size
        self.limit = limit
        super().__init__(
            f"Public key for extension {numeric_id} is {size} bytes, limit is {limit} bytes"
        )
