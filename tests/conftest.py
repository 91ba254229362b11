"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from tbb_cert.cert_extensions import TBB_CERTIFICATES, TBB_EXTENSIONS
from tbb_cert.cert_ops import CertGen
from tbb_cert.encoder import ExtensionEncoder
from tbb_cert.registry import ExtensionRegistry


@pytest.fixture
def registry() -> ExtensionRegistry:
    """A registry initialized with the TBB extensions."""
    reg = ExtensionRegistry()
    reg.initialize(TBB_EXTENSIONS)
    return reg


@pytest.fixture
def encoder(registry: ExtensionRegistry) -> ExtensionEncoder:
    return ExtensionEncoder(registry)


@pytest.fixture
def cert_gen(registry: ExtensionRegistry) -> CertGen:
    """Create a fresh CertGen instance."""
    return CertGen(registry)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="session")
def tbb_keys() -> dict[str, ec.EllipticCurvePrivateKey]:
    """One P-256 key per key name used by the TBB certificates."""
    names = {layout["key"] for layout in TBB_CERTIFICATES.values()}
    return {name: ec.generate_private_key(ec.SECP256R1()) for name in sorted(names)}


@pytest.fixture(params=[0, 1, 20, 32, 64])
def digest_length(request: pytest.FixtureRequest) -> int:
    """Digest sizes: empty, single byte, SHA-1, SHA-256, SHA-512."""
    return request.param
