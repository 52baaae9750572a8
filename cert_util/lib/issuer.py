"""Certificate issuer: key -> CSR -> CA-signed certificate, written to local files."""

import json
import os
import tempfile
from pathlib import Path

from .cert_utils import (
    create_fullchain_bundle,
    extract_certificate_metadata,
    generate_private_key,
    get_certificate_serial_hex,
    is_currently_valid,
    key_matches_certificate,
    load_certificate,
    load_private_key,
    serialize_certificate,
    serialize_csr,
    serialize_private_key,
    validate_certificate_chain,
)
from .certificate_builder import CertificateBuilder
from .config import DistinguishedName, IssuanceConfig
from .exceptions import CAMaterialError
from .ext_file import load_extension_file
from .logging_config import LOGGER
from .models import BootstrapResult, IssuanceResult, VerificationResult


def write_atomic(path: Path, data: bytes, mode: int = 0o644) -> None:
    """Write data to path via a temporary file in the same directory, then rename."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class CertificateIssuer:
    """Runs the local certificate issuance sequence against an existing root CA."""

    def __init__(self, config: IssuanceConfig) -> None:
        """Initialize issuer with configuration.

        Args:
            config: Subject fields, key size, validity and artifact names
        """
        self.config = config

    def artifact_paths(self, output_dir: Path) -> tuple[Path, Path, Path]:
        """Return (key, csr, cert) paths for output_dir."""
        name = self.config.artifact_name
        return output_dir / f"{name}.key", output_dir / f"{name}.csr", output_dir / f"{name}.pem"

    def issue(
        self,
        ca_key_path: Path,
        ca_cert_path: Path,
        ext_file_path: Path,
        output_dir: Path,
        ext_section: str | None = None,
    ) -> IssuanceResult:
        """Generate a key, a CSR, and a certificate signed by the root CA.

        Certificate, full chain and metadata left by an earlier run are
        removed first, so they never sit beside a newer key. Steps then run
        strictly in order and each writes its artifact before the next starts.
        A failure while loading the CA or the extension file, or while
        signing, raises before the certificate file is written; the key and
        CSR from the earlier steps are left in place.

        Args:
            ca_key_path: Root CA private key (PEM)
            ca_cert_path: Root CA certificate (PEM)
            ext_file_path: X.509 extension file for the signed certificate
            output_dir: Directory for the generated artifacts
            ext_section: Extension file section to read (default: unnamed top section)

        Returns:
            IssuanceResult with file paths and serial number

        Raises:
            CAMaterialError: If the CA key or certificate is missing, invalid, or mismatched
            ExtensionFileError: If the extension file is missing or malformed
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        key_path, csr_path, cert_path = self.artifact_paths(output_dir)
        name = self.config.artifact_name
        fullchain_path = output_dir / f"{name}.fullchain.pem"
        metadata_path = output_dir / "metadata.json"

        for stale_path in (cert_path, fullchain_path, metadata_path):
            stale_path.unlink(missing_ok=True)

        key = generate_private_key(self.config.key_size)
        write_atomic(key_path, serialize_private_key(key), mode=0o600)
        LOGGER.info("Private key written: %s", key_path)

        csr = CertificateBuilder.build_csr(DistinguishedName.from_config(self.config), key)
        write_atomic(csr_path, serialize_csr(csr))
        LOGGER.info("CSR written: %s", csr_path)

        ca_key = load_private_key(ca_key_path)
        ca_cert = load_certificate(ca_cert_path)
        if not key_matches_certificate(ca_key, ca_cert):
            raise CAMaterialError(f"CA key {ca_key_path} does not match CA certificate {ca_cert_path}")
        profile = load_extension_file(ext_file_path, section=ext_section)

        cert = CertificateBuilder.sign_csr(
            csr=csr,
            issuer_cert=ca_cert,
            issuer_key=ca_key,
            validity_days=self.config.validity_days,
            profile=profile,
        )
        cert_pem = serialize_certificate(cert)
        write_atomic(cert_path, cert_pem)
        LOGGER.info("Certificate written: %s", cert_path)

        write_atomic(fullchain_path, create_fullchain_bundle(cert_pem, serialize_certificate(ca_cert)))

        metadata = extract_certificate_metadata(cert)
        write_atomic(metadata_path, json.dumps(metadata, indent=2).encode("utf-8"))

        return IssuanceResult(
            key_path=key_path,
            csr_path=csr_path,
            cert_path=cert_path,
            fullchain_path=fullchain_path,
            metadata_path=metadata_path,
            serial_number=metadata["serialNumber"],
        )

    def bootstrap_root_ca(self, output_dir: Path) -> BootstrapResult:
        """Create a self-signed root CA key and certificate for local development.

        Raises:
            FileExistsError: If a root CA key or certificate already exists in output_dir
        """
        root_key_path = output_dir / self.config.ca_key_filename
        root_cert_path = output_dir / self.config.ca_cert_filename
        for path in (root_key_path, root_cert_path):
            if path.exists():
                raise FileExistsError(f"root CA file already exists: {path}")

        output_dir.mkdir(parents=True, exist_ok=True)

        root_key = generate_private_key(self.config.key_size)
        root_dn = DistinguishedName.from_config(self.config, common_name=self.config.root_common_name)
        root_cert = CertificateBuilder.build_root_ca(
            subject_dn=root_dn,
            private_key=root_key,
            validity_days=self.config.root_validity_days,
        )

        write_atomic(root_key_path, serialize_private_key(root_key), mode=0o600)
        write_atomic(root_cert_path, serialize_certificate(root_cert))

        return BootstrapResult(
            root_key_path=root_key_path,
            root_cert_path=root_cert_path,
            root_serial=get_certificate_serial_hex(root_cert),
        )

    def verify(self, cert_path: Path, key_path: Path, ca_cert_path: Path) -> VerificationResult:
        """Check an issued certificate the way a TLS server would load it.

        Loads the certificate chain and exactly one private key, then checks
        that the key matches the leaf, that the leaf is directly issued by the
        CA, and that it is currently valid.

        Raises:
            CAMaterialError: If any file cannot be opened or parsed
        """
        leaf = load_certificate(cert_path)
        key = load_private_key(key_path)
        ca_cert = load_certificate(ca_cert_path)

        result = VerificationResult(
            cert_path=cert_path,
            serial_number=get_certificate_serial_hex(leaf),
            key_matches=key_matches_certificate(key, leaf),
            issued_by_ca=validate_certificate_chain(leaf, ca_cert),
            currently_valid=is_currently_valid(leaf),
        )
        if not result.key_matches:
            result.problems.append(f"private key {key_path} does not match certificate")
        if not result.issued_by_ca:
            result.problems.append(f"certificate is not signed by {ca_cert_path}")
        if not result.currently_valid:
            result.problems.append("certificate is expired or not yet valid")
        return result
