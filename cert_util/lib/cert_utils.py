"""Certificate utility functions for key generation, serialization, loading, and metadata extraction."""

import re
import uuid
from datetime import UTC, datetime
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from cert_util.lib.exceptions import CAMaterialError
from cert_util.lib.models import CertificateMetadata

_PRIVATE_KEY_BLOCK = re.compile(rb"-----BEGIN (?:RSA |EC |ENCRYPTED )?PRIVATE KEY-----")


def generate_private_key(key_size: int = 2048) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def serialize_private_key(key: RSAPrivateKey) -> bytes:
    """Serialize private key to PEM format (PKCS#1 "RSA PRIVATE KEY", no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def deserialize_private_key(pem_data: bytes) -> RSAPrivateKey:
    """Deserialize private key from PEM bytes."""
    key = serialization.load_pem_private_key(pem_data, password=None)
    if not isinstance(key, RSAPrivateKey):
        raise ValueError("expected RSA private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def serialize_csr(csr: x509.CertificateSigningRequest) -> bytes:
    """Serialize CSR to PEM format."""
    return csr.public_bytes(serialization.Encoding.PEM)


def deserialize_csr(pem_data: bytes) -> x509.CertificateSigningRequest:
    """Deserialize CSR from PEM bytes."""
    return x509.load_pem_x509_csr(pem_data)


def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise CAMaterialError(f"failed to open {path}: {e.strerror or e}") from e


def load_private_key(path: Path) -> RSAPrivateKey:
    """Load exactly one RSA private key from a PEM file.

    Args:
        path: PEM file holding a single private key

    Returns:
        The RSA private key

    Raises:
        CAMaterialError: If the file cannot be opened, holds zero or several
            keys, or the key cannot be parsed as an RSA key
    """
    pem_data = _read_file(path)

    block_count = len(_PRIVATE_KEY_BLOCK.findall(pem_data))
    if block_count == 0:
        raise CAMaterialError(f"failed to load private key: no PEM private key in {path}")
    if block_count != 1:
        raise CAMaterialError(f"expected a single private key in {path}, found {block_count}")

    try:
        return deserialize_private_key(pem_data)
    except (ValueError, TypeError) as e:
        raise CAMaterialError(f"failed to load private key from {path}: {e}") from e


def load_certificates(path: Path) -> list[x509.Certificate]:
    """Load every PEM certificate from a file, in file order.

    Raises:
        CAMaterialError: If the file cannot be opened or holds no parsable certificate
    """
    pem_data = _read_file(path)
    try:
        certs = x509.load_pem_x509_certificates(pem_data)
    except ValueError as e:
        raise CAMaterialError(f"failed to load certificate from {path}: {e}") from e
    if not certs:
        raise CAMaterialError(f"failed to load certificate from {path}")
    return certs


def load_certificate(path: Path) -> x509.Certificate:
    """Load the first certificate from a PEM file."""
    return load_certificates(path)[0]


def generate_serial_number() -> int:
    """Generate certificate serial number from UUID4.

    UUID v4 gives a positive 128-bit value with ~122 bits of randomness,
    above the 64-bit CSPRNG minimum of the CA/Browser Forum baseline.

    Returns:
        Integer serial number for x509.CertificateBuilder.serial_number()
    """
    return uuid.uuid4().int


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def get_common_name(name: x509.Name) -> str:
    """Return the first CN of an X.509 name."""
    attrs = name.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    if not attrs:
        raise ValueError("name has no CN")
    cn = attrs[0].value
    if not isinstance(cn, str):
        raise ValueError("CN must be string")
    return cn


def extract_certificate_metadata(cert: x509.Certificate) -> CertificateMetadata:
    """Extract certificate metadata for JSON serialization.

    Args:
        cert: X.509 certificate to extract metadata from

    Returns:
        CertificateMetadata with serialNumber, commonName, issuer and timestamps
    """
    return CertificateMetadata(
        serialNumber=get_certificate_serial_hex(cert),
        commonName=get_common_name(cert.subject),
        issuer=cert.issuer.rfc4514_string(),
        notBefore=cert.not_valid_before_utc.isoformat(),
        expiry=cert.not_valid_after_utc.isoformat(),
        issuedAt=datetime.now(UTC).isoformat(),
    )


def create_fullchain_bundle(leaf_cert_pem: bytes, ca_cert_pem: bytes) -> bytes:
    """Create a full chain bundle by concatenating leaf + CA certs in PEM format."""
    return leaf_cert_pem.rstrip(b"\n") + b"\n" + ca_cert_pem


def validate_certificate_chain(leaf_cert: x509.Certificate, ca_cert: x509.Certificate) -> bool:
    """Verify that leaf_cert is directly signed by ca_cert.

    Returns True if the signature and issuer name check out, False otherwise.
    """
    try:
        leaf_cert.verify_directly_issued_by(ca_cert)
        return True
    except (ValueError, TypeError, InvalidSignature):
        return False


def key_matches_certificate(key: RSAPrivateKey, cert: x509.Certificate) -> bool:
    """Return True if the certificate carries the public half of key."""
    public_key = cert.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        return False
    return public_key.public_numbers() == key.public_key().public_numbers()


def is_currently_valid(cert: x509.Certificate, now: datetime | None = None) -> bool:
    """Return True if now falls inside the certificate validity window."""
    now = now or datetime.now(UTC)
    return cert.not_valid_before_utc <= now <= cert.not_valid_after_utc


def extract_csr_subject(csr: x509.CertificateSigningRequest) -> x509.Name:
    """Extract subject DN from CSR."""
    return csr.subject


def extract_csr_public_key(
    csr: x509.CertificateSigningRequest,
) -> rsa.RSAPublicKey:
    """Extract public key from CSR.

    Raises:
        ValueError: If public key is not RSA type
    """
    public_key = csr.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ValueError("CSR public key must be RSA type")
    return public_key


def validate_csr_signature(csr: x509.CertificateSigningRequest) -> bool:
    """Verify CSR self-signature to prove private key possession."""
    try:
        return csr.is_signature_valid
    except (ValueError, TypeError):
        return False
