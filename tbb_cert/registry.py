"""Extension registry: OID interning and per-extension print/parse behavior."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable

from cryptography import x509
from cryptography.x509.oid import ExtensionOID
from pyasn1.codec.der import decoder, encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import univ

from tbb_cert.cert_extensions import ExtensionDefinition, ValueKind
from tbb_cert.errors import AlreadyInitialized, RegistrationFailed, UnknownExtension

logger = logging.getLogger(__name__)

# Largest value printed in decimal, same as a 64-bit signed long
_LONG_MAX = 2 ** 63 - 1


def _decode_exact(der: bytes, asn1_type: univ.Integer | univ.OctetString):
    value, rest = decoder.decode(der, asn1Spec=asn1_type)
    if rest:
        raise ValueError(f"{len(rest)} trailing bytes after {asn1_type.__class__.__name__}")
    return value


def i2s_integer(der: bytes) -> str:
    """Render a DER INTEGER as decimal, or as hex when it does not fit a long."""
    n = int(_decode_exact(der, univ.Integer()))
    if -_LONG_MAX - 1 <= n <= _LONG_MAX:
        return str(n)
    return f"{'-' if n < 0 else ''}0x{abs(n):X}"


def s2i_integer(text: str) -> bytes:
    text = text.strip()
    negative = text.startswith("-")
    body = text[1:] if negative else text
    if body.lower().startswith("0x"):
        n = int(body[2:], 16)
    else:
        n = int(body, 10)
    return encoder.encode(univ.Integer(-n if negative else n))


def i2s_octet_string(der: bytes) -> str:
    """Render a DER OCTET STRING as colon separated upper case hex."""
    return hex_dump(bytes(_decode_exact(der, univ.OctetString())))


def s2i_octet_string(text: str) -> bytes:
    return encoder.encode(univ.OctetString(bytes.fromhex(text.strip().replace(":", ""))))


def hex_dump(data: bytes) -> str:
    return ":".join(f"{b:02X}" for b in data)


@dataclass(frozen=True)
class ExtensionMethod:
    """Print and parse behavior shared by one or more extensions."""

    value_kind: ValueKind
    i2s: Callable[[bytes], str]
    s2i: Callable[[str], bytes]


INTEGER_METHOD = ExtensionMethod(ValueKind.INTEGER, i2s_integer, s2i_integer)
OCTET_STRING_METHOD = ExtensionMethod(ValueKind.OCTET_STRING, i2s_octet_string, s2i_octet_string)

_METHODS_BY_KIND: dict[ValueKind, ExtensionMethod] = {
    ValueKind.INTEGER: INTEGER_METHOD,
    ValueKind.OCTET_STRING: OCTET_STRING_METHOD,
}

# Standard extensions whose value is a bare INTEGER or OCTET STRING
_BUILTIN_METHODS: dict[x509.ObjectIdentifier, ExtensionMethod] = {
    ExtensionOID.SUBJECT_KEY_IDENTIFIER: OCTET_STRING_METHOD,
    ExtensionOID.CRL_NUMBER: INTEGER_METHOD,
    ExtensionOID.DELTA_CRL_INDICATOR: INTEGER_METHOD,
    ExtensionOID.INHIBIT_ANY_POLICY: INTEGER_METHOD,
}


@dataclass(frozen=True)
class ObjectEntry:
    nid: int
    oid: x509.ObjectIdentifier
    short_name: str
    long_name: str


class ObjectTable:
    """Interns (OID, short name, long name) triples into numeric ids."""

    def __init__(self) -> None:
        self._entries: dict[int, ObjectEntry] = {}
        self._by_oid: dict[str, int] = {}
        self._by_name: dict[str, int] = {}
        self._next_nid = 1

    @classmethod
    def with_builtins(cls) -> ObjectTable:
        table = cls()
        for oid in vars(ExtensionOID).values():
            if not isinstance(oid, x509.ObjectIdentifier):
                continue
            if oid.dotted_string in table._by_oid:
                continue
            # some OIDs share a display name
            name = oid._name if oid._name not in table._by_name else oid.dotted_string
            table.intern(oid.dotted_string, name, name)
        return table

    def copy(self) -> ObjectTable:
        other = ObjectTable()
        other._entries = dict(self._entries)
        other._by_oid = dict(self._by_oid)
        other._by_name = dict(self._by_name)
        other._next_nid = self._next_nid
        return other

    def intern(self, oid: str, short_name: str, long_name: str) -> int:
        """
        Return the numeric id of the triple, allocating one when it is new.

        Raises:
            ValueError: If the OID is malformed or the short name is taken by another object
        """
        parsed = x509.ObjectIdentifier(oid)
        existing = self._by_name.get(short_name)
        if existing is not None:
            entry = self._entries[existing]
            if entry.oid == parsed and entry.long_name == long_name:
                return existing
            raise ValueError(f"short name {short_name!r} already names {entry.oid.dotted_string}")

        nid = self._next_nid
        self._next_nid += 1
        self._entries[nid] = ObjectEntry(nid, parsed, short_name, long_name)
        self._by_name[short_name] = nid
        self._by_name.setdefault(long_name, nid)
        # First object interned for an OID keeps it
        self._by_oid.setdefault(parsed.dotted_string, nid)
        return nid

    def lookup(self, ident: int | str | x509.ObjectIdentifier) -> int | None:
        if isinstance(ident, x509.ObjectIdentifier):
            return self._by_oid.get(ident.dotted_string)
        if isinstance(ident, int):
            return ident if ident in self._entries else None
        return self._by_oid.get(ident, self._by_name.get(ident))

    def entry(self, nid: int) -> ObjectEntry | None:
        return self._entries.get(nid)

    def __len__(self) -> int:
        return len(self._entries)


class ExtensionRegistry:
    """
    Table of known extensions for one process or service.

    Build it once, call `initialize` once with the custom definitions, then
    share it read-only between encoders. Initialization is all-or-nothing:
    definitions are staged and only become visible when the whole list has
    been accepted.
    """

    def __init__(self) -> None:
        self._objects = ObjectTable.with_builtins()
        self._methods: dict[int, ExtensionMethod] = {}
        for oid, method in _BUILTIN_METHODS.items():
            nid = self._objects.lookup(oid)
            if nid is not None:
                self._methods[nid] = method
        self._definitions: dict[int, ExtensionDefinition] = {}
        self._lock = threading.Lock()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self, definitions: Iterable[ExtensionDefinition | None]) -> None:
        """
        Register extension definitions, stopping at the first sentinel.

        Args:
            definitions: Ordered definitions; an entry with an empty OID (or None) ends the list

        Raises:
            AlreadyInitialized: If a previous call succeeded
            RegistrationFailed: If a definition is rejected; nothing from this call is kept
        """
        with self._lock:
            if self._initialized:
                raise AlreadyInitialized("Extension registry is already initialized")

            objects = self._objects.copy()
            methods = dict(self._methods)
            staged: dict[int, ExtensionDefinition] = {}
            seen_oids: set[str] = set()

            for definition in definitions:
                if definition is None or definition.is_sentinel:
                    break
                nid = self._stage(definition, objects, methods, seen_oids)
                staged[nid] = definition

            self._objects = objects
            self._methods = methods
            self._definitions.update(staged)
            self._initialized = True
        logger.info("Registered %d extension definitions", len(staged))

    @staticmethod
    def _stage(
        definition: ExtensionDefinition,
        objects: ObjectTable,
        methods: dict[int, ExtensionMethod],
        seen_oids: set[str],
    ) -> int:
        oid = definition.oid
        if not definition.short_name or not definition.long_name:
            raise RegistrationFailed(oid, "short and long names must not be empty")
        if oid in seen_oids and definition.alias is None:
            raise RegistrationFailed(oid, "OID defined twice in one registration pass")

        try:
            nid = objects.intern(oid, definition.short_name, definition.long_name)
        except ValueError as e:
            raise RegistrationFailed(oid, str(e)) from e
        seen_oids.add(oid)

        if definition.alias is not None:
            target = objects.lookup(definition.alias)
            if target is None or target not in methods:
                raise RegistrationFailed(oid, f"alias target {definition.alias!r} has no methods")
            methods[nid] = methods[target]
            logger.debug("%s (%s) aliases %r", definition.short_name, oid, definition.alias)
            return nid

        method = _METHODS_BY_KIND.get(definition.value_kind)
        if method is None:
            # Interned only; printed raw
            logger.debug("%s (%s) has no print method for %s", definition.short_name, oid,
                         definition.value_kind)
            return nid
        methods[nid] = method
        logger.debug("%s (%s) registered as %s, nid %d", definition.short_name, oid,
                     definition.value_kind, nid)
        return nid

    def nid(self, ident: int | str | x509.ObjectIdentifier) -> int:
        """Resolve a numeric id, dotted OID, short name or long name."""
        nid = self._objects.lookup(ident)
        if nid is None:
            raise UnknownExtension(ident)
        return nid

    def _entry(self, nid: int) -> ObjectEntry:
        entry = self._objects.entry(nid)
        if entry is None:
            raise UnknownExtension(nid)
        return entry

    def oid(self, nid: int) -> x509.ObjectIdentifier:
        return self._entry(nid).oid

    def short_name(self, nid: int) -> str:
        return self._entry(nid).short_name

    def long_name(self, nid: int) -> str:
        return self._entry(nid).long_name

    def method(self, nid: int) -> ExtensionMethod | None:
        self._entry(nid)
        return self._methods.get(nid)

    def definition(self, ident: int | str) -> ExtensionDefinition | None:
        """The registered definition, None for built-in extensions."""
        return self._definitions.get(self.nid(ident))

    def definitions(self) -> list[tuple[int, ExtensionDefinition]]:
        return sorted(self._definitions.items())

    def render(self, nid: int, der: bytes) -> str:
        """Human readable form of an extension value, raw hex when it has no method."""
        method = self.method(nid)
        if method is None:
            return hex_dump(der)
        try:
            return method.i2s(der)
        except (PyAsn1Error, ValueError) as e:
            logger.warning("Cannot decode %s as %s: %s", self.short_name(nid),
                           method.value_kind.value, e)
            return hex_dump(der)

    def parse(self, nid: int, text: str) -> bytes:
        """DER value from its textual form.

        Raises:
            UnknownExtension: If the extension has no parse method
            ValueError: If the text is malformed
        """
        method = self.method(nid)
        if method is None:
            raise UnknownExtension(nid)
        return method.s2i(text)

    def __contains__(self, ident: object) -> bool:
        if not isinstance(ident, (int, str, x509.ObjectIdentifier)):
            return False
        return self._objects.lookup(ident) is not None
