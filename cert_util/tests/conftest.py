"""Test fixtures for cert_util tests."""

from collections.abc import Generator
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from cert_util.lib.cert_utils import (
    generate_private_key,
    serialize_certificate,
    serialize_private_key,
)
from cert_util.lib.certificate_builder import CertificateBuilder
from cert_util.lib.config import DistinguishedName, IssuanceConfig
from cert_util.lib.ext_file import ExtensionProfile, parse_extension_text

LOCALHOST_EXT = """\
authorityKeyIdentifier=keyid,issuer
basicConstraints=CA:FALSE
keyUsage = digitalSignature, nonRepudiation, keyEncipherment, dataEncipherment
extendedKeyUsage = serverAuth
subjectAltName = @alt_names

[alt_names]
DNS.1 = localhost
IP.1 = 127.0.0.1
"""


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Return temporary directory for test output artifacts."""
    return tmp_path


@pytest.fixture
def issuance_config() -> IssuanceConfig:
    """Return test issuance configuration with the default 1024-day validity."""
    return IssuanceConfig(
        organization="Test Org",
        organizational_unit="Test Unit",
        key_size=2048,
        root_common_name="Test Root CA",
        root_validity_days=30,
    )


@pytest.fixture
def root_key() -> RSAPrivateKey:
    """Generate RSA private key for Root CA."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def root_dn() -> DistinguishedName:
    """Return test Root CA distinguished name."""
    return DistinguishedName(
        country="GB",
        state="London",
        locality="London",
        organization="Test Org",
        organizational_unit="Test Unit",
        common_name="Test Root CA",
    )


@pytest.fixture
def root_cert(root_key: RSAPrivateKey, root_dn: DistinguishedName) -> x509.Certificate:
    """Generate self-signed Root CA certificate."""
    return CertificateBuilder.build_root_ca(
        subject_dn=root_dn,
        private_key=root_key,
        validity_days=30,
    )


@pytest.fixture
def leaf_key() -> RSAPrivateKey:
    """Generate RSA private key for the leaf certificate."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def leaf_dn() -> DistinguishedName:
    """Return test leaf distinguished name."""
    return DistinguishedName(
        country="GB",
        state="London",
        locality="London",
        organization="Test Org",
        organizational_unit="Test Unit",
        common_name="localhost",
    )


@pytest.fixture
def leaf_csr(leaf_key: RSAPrivateKey, leaf_dn: DistinguishedName) -> x509.CertificateSigningRequest:
    """Generate leaf CSR."""
    return CertificateBuilder.build_csr(leaf_dn, leaf_key)


@pytest.fixture
def localhost_profile() -> ExtensionProfile:
    """Return the parsed localhost extension profile."""
    return parse_extension_text(LOCALHOST_EXT)


@pytest.fixture
def leaf_cert(
    leaf_csr: x509.CertificateSigningRequest,
    root_cert: x509.Certificate,
    root_key: RSAPrivateKey,
    localhost_profile: ExtensionProfile,
) -> x509.Certificate:
    """Generate leaf certificate signed by the Root CA."""
    return CertificateBuilder.sign_csr(
        csr=leaf_csr,
        issuer_cert=root_cert,
        issuer_key=root_key,
        validity_days=1024,
        profile=localhost_profile,
    )


@pytest.fixture
def ext_file(temp_output_dir: Path) -> Path:
    """Write the localhost extension file and return its path."""
    path = temp_output_dir / "localhost.ext"
    path.write_text(LOCALHOST_EXT)
    return path


@pytest.fixture
def ca_files_on_disk(
    temp_output_dir: Path,
    root_key: RSAPrivateKey,
    root_cert: x509.Certificate,
    ext_file: Path,
) -> Generator[Path]:
    """Write CA files and extension file to disk and return base directory.

    Creates:
        {temp_dir}/rootCA.key
        {temp_dir}/rootCA.pem
        {temp_dir}/localhost.ext
    """
    (temp_output_dir / "rootCA.key").write_bytes(serialize_private_key(root_key))
    (temp_output_dir / "rootCA.pem").write_bytes(serialize_certificate(root_cert))

    yield temp_output_dir
