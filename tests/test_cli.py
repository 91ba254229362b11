"""Tests for the tbbcert command line."""

from __future__ import annotations

from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from typer.testing import CliRunner

from tbb_cert.cli import app

runner = CliRunner()


def write_key(path: Path, private: bool = True) -> ec.EllipticCurvePrivateKey:
    key = ec.generate_private_key(ec.SECP256R1())
    if private:
        data = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )
    else:
        data = key.public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        )
    path.write_bytes(data)
    return key


class TestInformational:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "tbbcert" in result.output

    def test_extensions(self) -> None:
        result = runner.invoke(app, ["extensions"])
        assert result.exit_code == 0
        assert "TBB Extensions" in result.output


class TestEncodeCommands:
    def test_encode_counter(self) -> None:
        result = runner.invoke(app, ["encode-counter", "TrustedWorldNVCounter", "5"])
        assert result.exit_code == 0
        assert "020105" in result.output

    def test_encode_counter_negative(self) -> None:
        result = runner.invoke(app, ["encode-counter", "TrustedWorldNVCounter", "--", "-1"])
        assert result.exit_code == 1

    def test_encode_counter_unknown_extension(self) -> None:
        result = runner.invoke(app, ["encode-counter", "NoSuchCounter", "5"])
        assert result.exit_code == 1
        assert "Unknown extension" in result.output

    def test_encode_hash_digest(self) -> None:
        result = runner.invoke(app, ["encode-hash", "TrustedBootFirmwareHash", "--digest", "abcd"])
        assert result.exit_code == 0
        assert "AB:CD" in result.output
        assert "0402abcd" in result.output

    def test_encode_hash_image(self, temp_dir: Path) -> None:
        image = temp_dir / "bl2.bin"
        image.write_bytes(b"")
        result = runner.invoke(app, ["encode-hash", "TrustedBootFirmwareHash", "--image", str(image)])
        assert result.exit_code == 0

    def test_encode_hash_needs_one_source(self) -> None:
        result = runner.invoke(app, ["encode-hash", "TrustedBootFirmwareHash"])
        assert result.exit_code == 1

    def test_encode_key(self, temp_dir: Path) -> None:
        key_path = temp_dir / "tw.pem"
        write_key(key_path, private=False)
        result = runner.invoke(app, ["encode-key", "TrustedWorldPublicKey", str(key_path)])
        assert result.exit_code == 0

    def test_encode_key_invalid_file(self, temp_dir: Path) -> None:
        key_path = temp_dir / "garbage.pem"
        key_path.write_text("not a key")
        result = runner.invoke(app, ["encode-key", "TrustedWorldPublicKey", str(key_path)])
        assert result.exit_code == 1


class TestCreate:
    """Tests for creating certificates from the command line."""

    def test_create_tb_fw_cert(self, temp_dir: Path) -> None:
        write_key(temp_dir / "rot.pem")
        image = temp_dir / "bl2.bin"
        image.write_bytes(b"BL2")

        result = runner.invoke(app, [
            "create", "tb-fw-cert",
            "--key", f"rot={temp_dir / 'rot.pem'}",
            "--ext", "TrustedWorldNVCounter=3",
            "--ext", f"TrustedBootFirmwareHash={image}",
            "--output", str(temp_dir),
        ])
        assert result.exit_code == 0, result.output

        cert = x509.load_der_x509_certificate((temp_dir / "tb-fw-cert.crt").read_bytes())
        nvctr = cert.extensions.get_extension_for_oid(x509.ObjectIdentifier("1.3.6.1.4.1.4128.2100.1"))
        assert nvctr.value.value == b"\x02\x01\x03"

        info = runner.invoke(app, ["info", str(temp_dir / "tb-fw-cert.crt")])
        assert info.exit_code == 0
        assert "TrustedWorldNVCounter" in info.output

    def test_create_trusted_key_cert_pem(self, temp_dir: Path) -> None:
        write_key(temp_dir / "rot.pem")
        write_key(temp_dir / "tw.pem", private=False)
        write_key(temp_dir / "ntw.pem", private=False)

        result = runner.invoke(app, [
            "create", "trusted-key-cert",
            "--key", f"rot={temp_dir / 'rot.pem'}",
            "--ext", "TrustedWorldNVCounter=0",
            "--ext", f"TrustedWorldPublicKey={temp_dir / 'tw.pem'}",
            "--ext", f"NonTrustedWorldPublicKey={temp_dir / 'ntw.pem'}",
            "--form", "pem",
            "--output", str(temp_dir),
        ])
        assert result.exit_code == 0, result.output
        assert (temp_dir / "trusted-key-cert.pem").read_bytes().startswith(b"-----BEGIN CERTIFICATE")

    def test_create_form_is_case_insensitive(self, temp_dir: Path) -> None:
        write_key(temp_dir / "rot.pem")
        result = runner.invoke(app, [
            "create", "tb-fw-cert",
            "--key", f"rot={temp_dir / 'rot.pem'}",
            "--ext", "TrustedWorldNVCounter=1",
            "--ext", f"TrustedBootFirmwareHash={temp_dir / 'rot.pem'}",
            "--form", "DER",
            "--output", str(temp_dir),
        ])
        assert result.exit_code == 0, result.output
        assert not (temp_dir / "tb-fw-cert.pem").exists()
        x509.load_der_x509_certificate((temp_dir / "tb-fw-cert.crt").read_bytes())

    @pytest.mark.parametrize("args", [
        ["create", "bl1-cert"],
        ["create", "tb-fw-cert", "--hash", "md5"],
        ["create", "tb-fw-cert", "--ext", "TrustedWorldNVCounter=0"],
        ["create", "tb-fw-cert", "--ext", "basicConstraints=1"],
    ])
    def test_create_errors(self, args: list[str]) -> None:
        result = runner.invoke(app, args)
        assert result.exit_code == 1

    def test_counter_above_limit(self, temp_dir: Path) -> None:
        write_key(temp_dir / "rot.pem")
        result = runner.invoke(app, [
            "create", "tb-fw-cert",
            "--key", f"rot={temp_dir / 'rot.pem'}",
            "--ext", "TrustedWorldNVCounter=32",
            "--ext", f"TrustedBootFirmwareHash={temp_dir / 'rot.pem'}",
            "--output", str(temp_dir),
        ])
        assert result.exit_code == 1
        assert not (temp_dir / "tb-fw-cert.crt").exists()

    def test_info_missing_file(self, temp_dir: Path) -> None:
        result = runner.invoke(app, ["info", str(temp_dir / "none.crt")])
        assert result.exit_code == 1
