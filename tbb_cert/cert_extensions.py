from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Literal, TypedDict

# To add an extension:
# Append an ExtensionDefinition to TBB_EXTENSIONS before the sentinel,
# then reference its short name from the certificates in TBB_CERTIFICATES.

# Arm's enterprise number, TBB arc
TBB_OID_BASE = "1.3.6.1.4.1.4128.2100"

TRUSTED_FW_NVCOUNTER_MAX = 31
NON_TRUSTED_FW_NVCOUNTER_MAX = 223


class ValueKind(enum.Enum):
    """ASN.1 type of an extension value, selects the print behavior."""

    INTEGER = "integer"
    OCTET_STRING = "octet-string"
    UNSUPPORTED = "unsupported"


class ExtType(enum.Enum):
    """Payload carried by an extension, selects the encoder."""

    NVCOUNTER = "nvcounter"
    HASH = "hash"
    PKEY = "pkey"


@dataclass(frozen=True)
class ExtensionDefinition:
    """
    One extension to register.

    `alias` names an already known extension (OID, short name or numeric id)
    whose print behavior is reused; `value_kind` is ignored when it is set.
    A definition with an empty `oid` terminates a definition list.
    """

    oid: str
    short_name: str = ""
    long_name: str = ""
    value_kind: ValueKind = ValueKind.UNSUPPORTED
    alias: str | int | None = None
    ext_type: ExtType | None = None
    nvctr_max: int | None = None

    @property
    def is_sentinel(self) -> bool:
        return not self.oid


SENTINEL = ExtensionDefinition(oid="")


def _nvcounter(suffix: str, sn: str, ln: str, nvctr_max: int) -> ExtensionDefinition:
    return ExtensionDefinition(
        oid=f"{TBB_OID_BASE}.{suffix}", short_name=sn, long_name=ln,
        value_kind=ValueKind.INTEGER, ext_type=ExtType.NVCOUNTER, nvctr_max=nvctr_max,
    )


def _hash(suffix: str, sn: str, ln: str) -> ExtensionDefinition:
    return ExtensionDefinition(
        oid=f"{TBB_OID_BASE}.{suffix}", short_name=sn, long_name=ln,
        value_kind=ValueKind.OCTET_STRING, ext_type=ExtType.HASH,
    )


def _pkey(suffix: str, sn: str, ln: str) -> ExtensionDefinition:
    return ExtensionDefinition(
        oid=f"{TBB_OID_BASE}.{suffix}", short_name=sn, long_name=ln,
        value_kind=ValueKind.OCTET_STRING, ext_type=ExtType.PKEY,
    )


TBB_EXTENSIONS: tuple[ExtensionDefinition, ...] = (
    _nvcounter("1", "TrustedWorldNVCounter", "Trusted World Non-Volatile counter",
               TRUSTED_FW_NVCOUNTER_MAX),
    _nvcounter("2", "NonTrustedWorldNVCounter", "Non-Trusted World Non-Volatile counter",
               NON_TRUSTED_FW_NVCOUNTER_MAX),
    _hash("201", "TrustedBootFirmwareHash", "Trusted Boot Firmware (BL2) hash (SHA256)"),
    _pkey("301", "TrustedWorldPublicKey", "Trusted World Public Key"),
    _pkey("302", "NonTrustedWorldPublicKey", "Non-Trusted World Public Key"),
    _pkey("401", "SCPFirmwareContentCertPK", "SCP Firmware content certificate public key"),
    _hash("402", "SCPFirmwareHash", "SCP Firmware (BL30) hash (SHA256)"),
    _pkey("501", "SoCFirmwareContentCertPK", "SoC Firmware content certificate public key"),
    _hash("502", "SoCAPFirmwareHash", "SoC AP Firmware (BL31) hash (SHA256)"),
    _pkey("601", "TrustedOSFirmwareContentCertPK", "Trusted OS Firmware content certificate public key"),
    _hash("602", "TrustedOSHash", "Trusted OS (BL32) hash (SHA256)"),
    _pkey("1101", "NonTrustedFirmwareContentCertPK", "Non-Trusted Firmware content certificate public key"),
    _hash("1102", "NonTrustedWorldBootloaderHash", "Non-Trusted World (BL33) hash (SHA256)"),
    SENTINEL,
)


CertType = Literal["Key", "Content"]


class CertTypeConfig(TypedDict):
    """Layout of one TBB certificate."""

    type: CertType
    key: str          # key whose public half is the subject key
    issuer: str       # certificate whose key signs this one
    extensions: list[str]


# Each certificate is signed with the key of its issuer. All TBB certificates
# are self-signed; the chain is established through the public key extensions.
TBB_CERTIFICATES: dict[str, CertTypeConfig] = {
    "tb-fw-cert": {
        "type": "Content",
        "key": "rot",
        "issuer": "tb-fw-cert",
        "extensions": ["TrustedWorldNVCounter", "TrustedBootFirmwareHash"],
    },
    "trusted-key-cert": {
        "type": "Key",
        "key": "rot",
        "issuer": "trusted-key-cert",
        "extensions": ["TrustedWorldNVCounter", "TrustedWorldPublicKey", "NonTrustedWorldPublicKey"],
    },
    "scp-fw-key-cert": {
        "type": "Key",
        "key": "trusted-world",
        "issuer": "scp-fw-key-cert",
        "extensions": ["TrustedWorldNVCounter", "SCPFirmwareContentCertPK"],
    },
    "scp-fw-cert": {
        "type": "Content",
        "key": "scp-fw-content",
        "issuer": "scp-fw-cert",
        "extensions": ["TrustedWorldNVCounter", "SCPFirmwareHash"],
    },
    "soc-fw-key-cert": {
        "type": "Key",
        "key": "trusted-world",
        "issuer": "soc-fw-key-cert",
        "extensions": ["TrustedWorldNVCounter", "SoCFirmwareContentCertPK"],
    },
    "soc-fw-cert": {
        "type": "Content",
        "key": "soc-fw-content",
        "issuer": "soc-fw-cert",
        "extensions": ["TrustedWorldNVCounter", "SoCAPFirmwareHash"],
    },
    "tos-fw-key-cert": {
        "type": "Key",
        "key": "trusted-world",
        "issuer": "tos-fw-key-cert",
        "extensions": ["TrustedWorldNVCounter", "TrustedOSFirmwareContentCertPK"],
    },
    "tos-fw-cert": {
        "type": "Content",
        "key": "tos-fw-content",
        "issuer": "tos-fw-cert",
        "extensions": ["TrustedWorldNVCounter", "TrustedOSHash"],
    },
    "nt-fw-key-cert": {
        "type": "Key",
        "key": "non-trusted-world",
        "issuer": "nt-fw-key-cert",
        "extensions": ["NonTrustedWorldNVCounter", "NonTrustedFirmwareContentCertPK"],
    },
    "nt-fw-cert": {
        "type": "Content",
        "key": "nt-fw-content",
        "issuer": "nt-fw-cert",
        "extensions": ["NonTrustedWorldNVCounter", "NonTrustedWorldBootloaderHash"],
    },
    # New certificates here...
}
