"""Result models for certificate issuance."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TypedDict


class CertificateMetadata(TypedDict):
    """JSON-serializable summary of an issued certificate (metadata.json)."""

    serialNumber: str
    commonName: str
    issuer: str
    notBefore: str
    expiry: str
    issuedAt: str


@dataclass
class IssuanceResult:
    """Result from the issuance sequence.

    Paths are listed in the order the artifacts are written.
    """

    key_path: Path
    csr_path: Path
    cert_path: Path
    fullchain_path: Path
    metadata_path: Path
    serial_number: str


@dataclass
class BootstrapResult:
    """Result from local root CA bootstrap."""

    root_key_path: Path
    root_cert_path: Path
    root_serial: str


@dataclass
class VerificationResult:
    """Outcome of checking an issued certificate against its key and CA."""

    cert_path: Path
    serial_number: str
    key_matches: bool
    issued_by_ca: bool
    currently_valid: bool
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.key_matches and self.issued_by_ca and self.currently_valid
