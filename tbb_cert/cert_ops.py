from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal, Mapping, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, ed448
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.x509.oid import NameOID

from tbb_cert.cert_extensions import TBB_CERTIFICATES, TBB_EXTENSIONS, ExtType
from tbb_cert.encoder import ExtensionEncoder, ExtensionRecord
from tbb_cert.registry import ExtensionRegistry, hex_dump

logger = logging.getLogger(__name__)

# Type aliases
HashAlgo = Literal["sha256", "sha384", "sha512"]
FormType = Literal["der", "pem"]
PathLike = Union[str, Path]

HASH_ALGOS: dict[str, type[hashes.HashAlgorithm]] = {
    'sha256': hashes.SHA256,
    'sha384': hashes.SHA384,
    'sha512': hashes.SHA512,
}


def hash_file(path: PathLike, algo: HashAlgo = "sha256") -> bytes:
    """Digest of an image file."""
    if algo not in HASH_ALGOS:
        raise ValueError('Parameter error: hash algorithm must be sha256|sha384|sha512')
    digest = hashes.Hash(HASH_ALGOS[algo]())
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(65536), b''):
            digest.update(chunk)
    return digest.finalize()


class CertGen:
    """
    Trusted Board Boot certificate generator.

    Supported certificates (refer to cert_extensions.py):
        Key certificates     - carry the public key that signs the next certificate
        Content certificates - carry the hash of a firmware image

    Every certificate carries the NV counter of its world, so an older
    certificate is rejected once the counter has moved on.
    """

    serialNumber: int = 0
    validityDays: int = 20 * 365

    def __init__(self, registry: ExtensionRegistry | None = None) -> None:
        if registry is None:
            registry = ExtensionRegistry()
            registry.initialize(TBB_EXTENSIONS)
        self.registry = registry
        self.encoder = ExtensionEncoder(registry)

    def __allocate_serial_number(self) -> int:
        """Increment and return a new serial number."""
        self.serialNumber += 1
        return self.serialNumber

    def extensions_for(
        self,
        category: str,
        payloads: Mapping[str, Any],
        critical: bool = True
    ) -> list[ExtensionRecord]:
        """
        Encode the TBB extensions of a certificate.

        Args:
            category: Certificate name in TBB_CERTIFICATES
            payloads: Extension short name -> counter value, digest bytes, image path or key
            critical: Criticality flag of every extension

        Returns:
            Extension records in layout order
        """
        if category not in TBB_CERTIFICATES:
            raise ValueError(f"Unknown cert category: {category}")

        records: list[ExtensionRecord] = []
        for name in TBB_CERTIFICATES[category]['extensions']:
            if name not in payloads:
                raise ValueError(f"Missing payload for extension {name} of {category}")
            definition = self.registry.definition(name)
            if definition is None:
                raise ValueError(f"Extension {name} is not a registered TBB extension")
            value = payloads[name]

            match definition.ext_type:
                case ExtType.NVCOUNTER:
                    upper = definition.nvctr_max
                    if value < 0 or (upper is not None and value > upper):
                        raise ValueError(f"{name}: NV counter {value} outside 0..{upper}")
                case ExtType.HASH:
                    if isinstance(value, (str, Path)):
                        value = hash_file(value)
            records.append(self.encoder.encode(name, critical, value))
        return records

    def cert_gen(
        self,
        category: str,
        keys: Mapping[str, PrivateKeyTypes],
        payloads: Mapping[str, Any],
        signing_algo: HashAlgo = "sha256",
        validityDays: int | None = None,
    ) -> x509.Certificate:
        """
        Build and sign one TBB certificate.

        Args:
            category: Certificate name in TBB_CERTIFICATES
            keys: Key name -> private key, must hold the subject and issuer keys
            payloads: See extensions_for
            signing_algo: Hash algorithm (sha256|sha384|sha512), ignored for EdDSA keys
            validityDays: Validity period override

        Returns:
            Signed certificate
        """
        if signing_algo not in HASH_ALGOS:
            raise ValueError('Parameter error: signature algorithms must be sha256|sha384|sha512')
        if category not in TBB_CERTIFICATES:
            raise ValueError(f"Unknown cert category: {category}")

        layout = TBB_CERTIFICATES[category]
        issuer_layout = TBB_CERTIFICATES[layout['issuer']]
        for key_name in (layout['key'], issuer_layout['key']):
            if key_name not in keys:
                raise ValueError(f"Key '{key_name}' is required to create {category}")
        subject_key = keys[layout['key']]
        signing_key = keys[issuer_layout['key']]

        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, category)])
        issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, layout['issuer'])])

        now = datetime.now(timezone.utc)
        builder = (x509.CertificateBuilder()
                   .serial_number(self.__allocate_serial_number())
                   .subject_name(subject)
                   .issuer_name(issuer)
                   .public_key(subject_key.public_key())
                   .not_valid_before(now)
                   .not_valid_after(now + timedelta(days=validityDays or self.validityDays)))

        # Standard extensions
        builder = builder.add_extension(
            x509.SubjectKeyIdentifier.from_public_key(subject_key.public_key()), critical=False
        )
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()),
            critical=False
        )
        builder = builder.add_extension(
            x509.BasicConstraints(ca=layout['type'] == "Key", path_length=None), critical=True
        )

        # TBB extensions
        for record in self.extensions_for(category, payloads):
            ext = record.to_x509()
            builder = builder.add_extension(ext.value, critical=ext.critical)

        # Ed25519/Ed448 use None as algorithm (EdDSA is built-in)
        sign_algo = None if isinstance(signing_key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)) \
            else HASH_ALGOS[signing_algo]()
        cert = builder.sign(private_key=signing_key, algorithm=sign_algo)
        logger.info("Created %s (serial %d)", category, cert.serial_number)
        return cert

    def obj2file(
        self,
        cert: x509.Certificate,
        cert_file: PathLike,
        form: FormType = "der",
        basedir: PathLike = "/tmp/"
    ) -> Path:
        """
        Write a certificate to disk.

        Args:
            cert: Certificate object
            cert_file: Output file name
            form: Encoding ('der' or 'pem')
            basedir: Base directory for output

        Returns:
            Path to the created file
        """
        encodings = {'der': serialization.Encoding.DER, 'pem': serialization.Encoding.PEM}
        if form.lower() not in encodings:
            raise ValueError('For argument "form": Acceptable inputs are "der" | "pem"')

        output_path = Path(basedir) / cert_file
        with open(output_path, "wb") as f:
            f.write(cert.public_bytes(encodings[form.lower()]))
        return output_path

    def read_extensions(self, cert: x509.Certificate) -> list[tuple[str, bool, str]]:
        """
        Render the extensions of a certificate with the registry's print behaviors.

        Returns:
            List of (name, critical, rendered value)
        """
        rendered: list[tuple[str, bool, str]] = []
        for ext in cert.extensions:
            if isinstance(ext.value, x509.UnrecognizedExtension):
                payload = ext.value.value
            else:
                payload = ext.value.public_bytes()

            if ext.oid in self.registry:
                nid = self.registry.nid(ext.oid)
                rendered.append((self.registry.short_name(nid), ext.critical,
                                 self.registry.render(nid, payload)))
            else:
                rendered.append((ext.oid.dotted_string, ext.critical, hex_dump(payload)))
        return rendered
