"""Certificate builder for X.509 certificate and CSR construction."""

from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .cert_utils import (
    extract_csr_public_key,
    extract_csr_subject,
    generate_serial_number,
    validate_csr_signature,
)
from .config import DistinguishedName
from .ext_file import ExtensionProfile


def _now() -> datetime:
    # X.509 times have second precision
    return datetime.now(timezone.utc).replace(microsecond=0)


class CertificateBuilder:
    """Builds the local root CA, leaf CSRs, and CA-signed leaf certificates."""

    @staticmethod
    def build_root_ca(
        subject_dn: DistinguishedName,
        private_key: RSAPrivateKey,
        validity_days: int,
    ) -> x509.Certificate:
        """Build self-signed Root CA certificate.

        Args:
            subject_dn: Distinguished name for certificate subject
            private_key: RSA private key for signing
            validity_days: Certificate validity period in days

        Returns:
            Self-signed X.509 certificate with CA extensions
        """
        subject = subject_dn.to_x509_name()
        not_before = _now()
        not_after = not_before + timedelta(days=validity_days)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(private_key.public_key())
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
                critical=False,
            )
        )

        return builder.sign(private_key, hashes.SHA256())

    @staticmethod
    def build_csr(
        subject_dn: DistinguishedName,
        private_key: RSAPrivateKey,
    ) -> x509.CertificateSigningRequest:
        """Build a CSR for subject_dn, self-signed with private_key (SHA-256)."""
        return (
            x509.CertificateSigningRequestBuilder()
            .subject_name(subject_dn.to_x509_name())
            .sign(private_key, hashes.SHA256())
        )

    @staticmethod
    def sign_csr(
        csr: x509.CertificateSigningRequest,
        issuer_cert: x509.Certificate,
        issuer_key: RSAPrivateKey,
        validity_days: int,
        profile: ExtensionProfile,
    ) -> x509.Certificate:
        """Build leaf certificate from CSR, signed by the CA.

        Subject and public key come from the CSR; extensions come from the
        extension profile, never from the CSR's requested attributes.

        Args:
            csr: Certificate signing request for the leaf
            issuer_cert: CA certificate (issuer)
            issuer_key: CA private key for signing
            validity_days: Exact validity period in days, starting now
            profile: Extensions parsed from the extension file

        Returns:
            X.509 leaf certificate signed by the CA

        Raises:
            ValueError: If CSR signature is invalid
        """
        if not validate_csr_signature(csr):
            raise ValueError("CSR signature validation failed")

        subject = extract_csr_subject(csr)
        public_key = extract_csr_public_key(csr)

        not_before = _now()
        not_after = not_before + timedelta(days=validity_days)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer_cert.subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )
        for extension, critical in profile.to_extensions(public_key, issuer_cert):
            builder = builder.add_extension(extension, critical=critical)

        return builder.sign(issuer_key, hashes.SHA256())
