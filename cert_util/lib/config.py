"""Issuance configuration dataclasses."""

from dataclasses import dataclass

from cryptography import x509
from cryptography.x509 import oid


@dataclass
class IssuanceConfig:
    """Fixed parameters for the local certificate issuance sequence."""

    country: str = "GB"
    state: str = "London"
    locality: str = "London"
    organization: str = "Local Development"
    organizational_unit: str = "Engineering"
    common_name: str = "localhost"
    validity_days: int = 1024
    key_size: int = 2048
    artifact_name: str = "localhost"
    ca_key_filename: str = "rootCA.key"
    ca_cert_filename: str = "rootCA.pem"
    ext_filename: str = "localhost.ext"
    root_common_name: str = "Local Development Root CA"
    root_validity_days: int = 3650


@dataclass
class DistinguishedName:
    """X.509 Subject Distinguished Name."""

    country: str
    state: str
    locality: str
    organization: str
    organizational_unit: str
    common_name: str

    @classmethod
    def from_config(cls, config: IssuanceConfig, common_name: str | None = None) -> "DistinguishedName":
        """Build DN from IssuanceConfig fields, optionally overriding the CN."""
        return cls(
            country=config.country,
            state=config.state,
            locality=config.locality,
            organization=config.organization,
            organizational_unit=config.organizational_unit,
            common_name=common_name or config.common_name,
        )

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        return x509.Name(
            [
                x509.NameAttribute(oid.NameOID.COUNTRY_NAME, self.country),
                x509.NameAttribute(oid.NameOID.STATE_OR_PROVINCE_NAME, self.state),
                x509.NameAttribute(oid.NameOID.LOCALITY_NAME, self.locality),
                x509.NameAttribute(oid.NameOID.ORGANIZATION_NAME, self.organization),
                x509.NameAttribute(oid.NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
                x509.NameAttribute(oid.NameOID.COMMON_NAME, self.common_name),
            ]
        )
