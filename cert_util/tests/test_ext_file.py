"""Tests for the X.509 extension file parser."""

import ipaddress
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import ExtendedKeyUsageOID

from cert_util.lib.exceptions import ExtensionFileError
from cert_util.lib.ext_file import (
    AuthorityKeyIdentifierRequest,
    ExtensionProfile,
    KeyIdentifierRequest,
    load_extension_file,
    parse_extension_text,
)


def _resolved(profile: ExtensionProfile, key: RSAPrivateKey, issuer: x509.Certificate) -> dict:
    return {type(ext): (ext, critical) for ext, critical in profile.to_extensions(key.public_key(), issuer)}


class TestParseDirectives:
    """Tests for individual directives."""

    def test_localhost_profile_order(self, localhost_profile: ExtensionProfile) -> None:
        """Entries keep file order."""
        assert localhost_profile.names() == [
            "authorityKeyIdentifier",
            "basicConstraints",
            "keyUsage",
            "extendedKeyUsage",
            "subjectAltName",
        ]

    def test_basic_constraints_end_entity(self) -> None:
        """CA:FALSE yields a non-CA BasicConstraints."""
        entry = parse_extension_text("basicConstraints = CA:FALSE\n").entries[0]

        assert entry.value == x509.BasicConstraints(ca=False, path_length=None)
        assert entry.critical is False

    def test_basic_constraints_critical_with_pathlen(self) -> None:
        """critical prefix and pathlen are honoured."""
        entry = parse_extension_text("basicConstraints = critical, CA:TRUE, pathlen:0\n").entries[0]

        assert entry.value == x509.BasicConstraints(ca=True, path_length=0)
        assert entry.critical is True

    def test_basic_constraints_pathlen_without_ca_raises(self) -> None:
        """pathlen on an end-entity is rejected."""
        with pytest.raises(ExtensionFileError, match="pathlen is only allowed"):
            parse_extension_text("basicConstraints = CA:FALSE, pathlen:1\n")

    def test_key_usage_flags(self) -> None:
        """keyUsage names map onto KeyUsage flags."""
        entry = parse_extension_text(
            "keyUsage = digitalSignature, nonRepudiation, keyEncipherment, dataEncipherment\n"
        ).entries[0]
        usage = entry.value

        assert isinstance(usage, x509.KeyUsage)
        assert usage.digital_signature
        assert usage.content_commitment
        assert usage.key_encipherment
        assert usage.data_encipherment
        assert not usage.key_cert_sign

    def test_unknown_key_usage_raises(self) -> None:
        """Unknown keyUsage names are rejected with the line number."""
        with pytest.raises(ExtensionFileError, match=r":1: unknown keyUsage value: signEverything"):
            parse_extension_text("keyUsage = signEverything\n")

    def test_extended_key_usage(self) -> None:
        """extendedKeyUsage names map onto OIDs."""
        entry = parse_extension_text("extendedKeyUsage = serverAuth, clientAuth\n").entries[0]

        assert entry.value == x509.ExtendedKeyUsage(
            [ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]
        )

    def test_subject_alt_name_section(self, localhost_profile: ExtensionProfile) -> None:
        """@alt_names section entries become SAN names."""
        san = next(e.value for e in localhost_profile.entries if e.name == "subjectAltName")

        assert isinstance(san, x509.SubjectAlternativeName)
        assert san.get_values_for_type(x509.DNSName) == ["localhost"]
        assert san.get_values_for_type(x509.IPAddress) == [ipaddress.ip_address("127.0.0.1")]

    def test_subject_alt_name_inline(self) -> None:
        """Inline TYPE:value SAN entries are parsed."""
        san = parse_extension_text(
            "subjectAltName = DNS:example.test, email:ops@example.test, URI:https://example.test\n"
        ).entries[0].value

        assert isinstance(san, x509.SubjectAlternativeName)
        assert san.get_values_for_type(x509.DNSName) == ["example.test"]
        assert san.get_values_for_type(x509.RFC822Name) == ["ops@example.test"]
        assert san.get_values_for_type(x509.UniformResourceIdentifier) == ["https://example.test"]

    def test_subject_alt_name_invalid_ip_raises(self) -> None:
        """Malformed IP addresses are rejected."""
        with pytest.raises(ExtensionFileError, match="invalid IP name"):
            parse_extension_text("subjectAltName = IP:999.1.1.1\n")

    def test_subject_alt_name_missing_section_raises(self) -> None:
        """Reference to an absent section is rejected."""
        with pytest.raises(ExtensionFileError, match=r"section \[alt_names\] not found"):
            parse_extension_text("subjectAltName = @alt_names\n")

    def test_key_identifiers(self) -> None:
        """subjectKeyIdentifier and authorityKeyIdentifier become resolution requests."""
        profile = parse_extension_text(
            "subjectKeyIdentifier = hash\nauthorityKeyIdentifier = keyid:always, issuer\n"
        )

        assert isinstance(profile.entries[0].value, KeyIdentifierRequest)
        assert profile.entries[1].value == AuthorityKeyIdentifierRequest(keyid="always", issuer="optional")

    def test_subject_key_identifier_none_is_skipped(self) -> None:
        """subjectKeyIdentifier = none adds nothing."""
        assert parse_extension_text("subjectKeyIdentifier = none\n").entries == []


class TestParseStructure:
    """Tests for comments, sections and malformed input."""

    def test_comments_and_blank_lines_ignored(self) -> None:
        """Comments and blank lines are skipped."""
        profile = parse_extension_text("# leaf profile\n\nbasicConstraints = CA:FALSE  # end entity\n")

        assert profile.names() == ["basicConstraints"]

    def test_named_section(self) -> None:
        """Directives can be read from a named section."""
        text = "[v3_req]\nbasicConstraints = CA:FALSE\n"

        assert parse_extension_text(text, section="v3_req").names() == ["basicConstraints"]
        assert parse_extension_text(text).names() == []

    def test_missing_named_section_raises(self) -> None:
        """Asking for an absent section is rejected."""
        with pytest.raises(ExtensionFileError, match=r"section \[v3_req\] not found"):
            parse_extension_text("basicConstraints = CA:FALSE\n", section="v3_req")

    def test_unknown_directive_raises(self) -> None:
        """Unsupported extensions are rejected."""
        with pytest.raises(ExtensionFileError, match="unsupported extension: nsComment"):
            parse_extension_text("nsComment = hello\n")

    def test_line_without_equals_raises(self) -> None:
        """Lines that are not name = value are rejected with the line number."""
        with pytest.raises(ExtensionFileError, match=r":2: expected 'name = value'"):
            parse_extension_text("basicConstraints = CA:FALSE\nkeyUsage\n")

    def test_duplicate_directive_raises(self) -> None:
        """A directive may appear once per section."""
        with pytest.raises(ExtensionFileError, match="duplicate entry basicConstraints"):
            parse_extension_text("basicConstraints = CA:FALSE\nbasicConstraints = CA:TRUE\n")

    def test_malformed_section_header_raises(self) -> None:
        """Unterminated section headers are rejected."""
        with pytest.raises(ExtensionFileError, match="malformed section header"):
            parse_extension_text("[alt_names\nDNS.1 = localhost\n")


class TestResolveExtensions:
    """Tests for ExtensionProfile.to_extensions()."""

    def test_authority_key_identifier_uses_ca_ski(
        self,
        localhost_profile: ExtensionProfile,
        leaf_key: RSAPrivateKey,
        root_cert: x509.Certificate,
    ) -> None:
        """keyid copies the CA's subject key identifier and omits issuer+serial."""
        resolved = _resolved(localhost_profile, leaf_key, root_cert)
        aki, critical = resolved[x509.AuthorityKeyIdentifier]
        ca_ski = root_cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value

        assert aki.key_identifier == ca_ski.digest
        assert aki.authority_cert_issuer is None
        assert critical is False

    def test_authority_key_identifier_issuer_always(
        self,
        leaf_key: RSAPrivateKey,
        root_cert: x509.Certificate,
    ) -> None:
        """issuer:always adds the CA issuer name and serial."""
        profile = parse_extension_text("authorityKeyIdentifier = keyid, issuer:always\n")
        aki, _ = _resolved(profile, leaf_key, root_cert)[x509.AuthorityKeyIdentifier]

        assert aki.authority_cert_issuer == [x509.DirectoryName(root_cert.issuer)]
        assert aki.authority_cert_serial_number == root_cert.serial_number

    def test_authority_key_identifier_issuer_only(
        self,
        leaf_key: RSAPrivateKey,
        root_cert: x509.Certificate,
    ) -> None:
        """issuer without keyid falls back to issuer name and serial."""
        profile = parse_extension_text("authorityKeyIdentifier = issuer\n")
        aki, _ = _resolved(profile, leaf_key, root_cert)[x509.AuthorityKeyIdentifier]

        assert aki.key_identifier is None
        assert aki.authority_cert_serial_number == root_cert.serial_number

    def test_subject_key_identifier_hash(
        self,
        leaf_key: RSAPrivateKey,
        root_cert: x509.Certificate,
    ) -> None:
        """subjectKeyIdentifier = hash is derived from the subject key."""
        profile = parse_extension_text("subjectKeyIdentifier = hash\n")
        ski, _ = _resolved(profile, leaf_key, root_cert)[x509.SubjectKeyIdentifier]

        assert ski == x509.SubjectKeyIdentifier.from_public_key(leaf_key.public_key())


class TestLoadExtensionFile:
    """Tests for load_extension_file()."""

    def test_loads_file(self, ext_file: Path) -> None:
        """File on disk parses like its text."""
        assert "subjectAltName" in load_extension_file(ext_file).names()

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Missing extension file raises ExtensionFileError."""
        with pytest.raises(ExtensionFileError, match="failed to open"):
            load_extension_file(tmp_path / "absent.ext")

    def test_errors_name_the_file(self, tmp_path: Path) -> None:
        """Parse errors carry the file path."""
        path = tmp_path / "bad.ext"
        path.write_text("keyUsage = nope\n")

        with pytest.raises(ExtensionFileError, match=r"bad\.ext:1"):
            load_extension_file(path)
